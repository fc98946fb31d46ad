#!/usr/bin/env python3
"""
Example demonstrating authenticated SPiD API requests.

Reads SPID_CLIENT_ID, SPID_CLIENT_SECRET and SPID_SERVER_URL from the
environment. Pass an authorization code as the first argument to log in;
otherwise the stored token is used.

The client refreshes an expired token once and resends waiting requests,
so the concurrent calls below trigger at most one refresh.
"""

import asyncio
import logging
import sys

from spid_client import SPiDClient, SPiDConfig, SPiDError


def print_section(title: str):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


async def main(code=None):
    logging.basicConfig(level=logging.INFO)
    config = SPiDConfig.from_env()

    async with SPiDClient(config) as client:
        if code:
            print_section("Exchanging authorization code")
            await client.authorize_with_code(code)

        if not client.is_authorized():
            print("❌ Not logged in. Pass an authorization code as the first argument.")
            return 1

        print(f"User ID: {client.current_user_id()}")
        print(f"State: {client.state.value}")

        # Example 1: Current user
        print_section("Example 1: GET /me")
        try:
            response = await client.get_me()
            print(f"HTTP {response.status_code}: {response.json()}")
        except SPiDError as e:
            print(f"❌ Request failed: {e}")
            return 1

        # Example 2: Concurrent requests share one refresh
        print_section("Example 2: Concurrent requests")
        user_id = client.current_user_id()
        results = await asyncio.gather(
            client.get_me(),
            client.get_user(user_id),
            client.get_user_logins(user_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                print(f"❌ {type(result).__name__}: {result}")
            else:
                print(f"✅ {result.request.url.path} -> HTTP {result.status_code}")

        # Example 3: One-time code for the app's backend
        print_section("Example 3: One-time code")
        response = await client.get_one_time_code()
        print(f"HTTP {response.status_code}: {response.json()}")

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None)))
