#!/usr/bin/env python3
"""
Fire concurrent identical vote requests at a running server.

Every request carries the same voter id, so exactly one must be accepted
(200) and all others rejected as already voted (409).

The vote route is rate limited per client address (VOTE_RATE_LIMIT,
60/minute by default). Start the server with a higher limit, e.g.
VOTE_RATE_LIMIT=1000/minute, before sending more requests than that,
otherwise the surplus is answered 429.

Usage:
    python scripts/race_check.py --voter V001 --candidate 2 --requests 50
    python scripts/race_check.py --reset --url http://localhost:3000
"""
import argparse
import asyncio
import sys
import time
from collections import Counter

import httpx


async def cast(client: httpx.AsyncClient, voter_id: str, candidate_id: int) -> int:
    try:
        response = await client.post(
            "/api/vote",
            json={"voterId": voter_id, "candidateId": candidate_id}
        )
        return response.status_code
    except httpx.HTTPError:
        return -1


async def run(base_url: str, voter_id: str, candidate_id: int, requests: int, reset: bool) -> bool:
    async with httpx.AsyncClient(base_url=base_url, timeout=30.0) as client:
        if reset:
            response = await client.post("/api/admin/reset")
            response.raise_for_status()
            print("Election reset")

        print(f"Sending {requests} concurrent votes for voter {voter_id} -> candidate {candidate_id}")
        start_time = time.time()
        statuses = await asyncio.gather(
            *(cast(client, voter_id, candidate_id) for _ in range(requests))
        )
        elapsed = time.time() - start_time

        counts = Counter(statuses)
        print(f"\nCompleted in {elapsed:.2f}s")
        for status_code, count in sorted(counts.items()):
            print(f"  HTTP {status_code}: {count}")

        results = (await client.get("/api/results")).json()
        total = sum(entry["voteCount"] for entry in results)
        print(f"  Total votes in tally: {total}")

    ok = counts.get(200, 0) == 1 and counts.get(409, 0) == requests - 1
    print("\n✅ Exactly one vote committed" if ok else "\n❌ Race check failed")
    return ok


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Concurrent duplicate vote check")
    parser.add_argument("--url", default="http://localhost:3000", help="Server base URL")
    parser.add_argument("--voter", default="V001", help="Voter ID")
    parser.add_argument("--candidate", type=int, default=1, help="Candidate ID")
    parser.add_argument(
        "--requests", type=int, default=50,
        help="Concurrent requests; above the server VOTE_RATE_LIMIT (default 60/minute) the surplus gets 429"
    )
    parser.add_argument("--reset", action="store_true", help="Reset the election first")
    args = parser.parse_args()

    ok = asyncio.run(run(args.url, args.voter, args.candidate, args.requests, args.reset))
    sys.exit(0 if ok else 1)
