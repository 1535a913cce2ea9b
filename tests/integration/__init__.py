"""Integration tests for the ballot service.

This package exercises the real PostgreSQL transactions:

- The atomic vote commit under concurrent identical requests
- Cascading voter/candidate removal
- Election reset and tally snapshots
- Admin mutations racing with vote casts

All tests require a reachable PostgreSQL (see TEST_POSTGRES_DSN).
"""
