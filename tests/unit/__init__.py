"""Unit tests for the ballot service.

These tests stub the storage layer and need no running database.
"""
