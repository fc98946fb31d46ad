#!/usr/bin/env python3
"""
Simple CLI tool for managing SPiD access tokens.

This tool makes it easy to:
- Exchange an authorization code for a user token
- Obtain a client (app-level) token
- View the stored token (safely redacted)
- Make authenticated API requests
- Logout and clear all stored copies of the token

Configuration is read from SPID_* environment variables
(SPID_CLIENT_ID, SPID_CLIENT_SECRET, SPID_SERVER_URL, ...).

Usage:
    spid-client login <authorization_code>
    spid-client client-login
    spid-client status
    spid-client me
    spid-client get <api_path>
    spid-client logout
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

from .client import SPiDClient
from .config import SPiDConfig
from .errors import SPiDError


def safe_display_token(token: str, prefix_len: int = 20, suffix_len: int = 6) -> str:
    """Safely display a token with most characters redacted."""
    if len(token) <= prefix_len + suffix_len:
        return f"{token[:10]}..."

    prefix = token[:prefix_len]
    suffix = token[-suffix_len:]
    redacted_len = len(token) - prefix_len - suffix_len

    return f"{prefix}...{'*' * min(redacted_len, 20)}...{suffix}"


def print_header(text: str):
    """Print a formatted header."""
    print("\n" + "=" * 60)
    print(text)
    print("=" * 60)


def print_response(response):
    """Print an API response body, pretty-printing JSON."""
    print(f"HTTP {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


def create_client() -> SPiDClient:
    """Build a client from environment configuration."""
    return SPiDClient(SPiDConfig.from_env())


async def cmd_login(code: str):
    """Exchange an authorization code for a user token."""
    print_header("Logging In")

    async with create_client() as client:
        try:
            token = await client.authorize_with_code(code)
        except SPiDError as e:
            print(f"\n❌ Login failed: {e}")
            return 1

        print("\n✅ Login successful!")
        print(f"User ID: {token.user_id}")
        print(f"Access Token: {safe_display_token(token.access_token)}")
        print("\n💾 Token saved to storage")
        return 0


async def cmd_client_login():
    """Obtain a client token using client credentials."""
    print_header("Client Login")

    async with create_client() as client:
        try:
            token = await client.authorize_client()
        except SPiDError as e:
            print(f"\n❌ Client login failed: {e}")
            return 1

        print("\n✅ Client token obtained")
        print(f"Access Token: {safe_display_token(token.access_token)}")
        return 0


async def cmd_status():
    """Show the stored token."""
    print_header("Token Status")

    async with create_client() as client:
        token = client.access_token
        if token is None:
            print("❌ Not logged in")
            print("\nTip: Log in first with:")
            print("  spid-client login <authorization_code>")
            return 1

        print(f"State: {client.state.value}")
        print(f"Access Token: {safe_display_token(token.access_token)}")
        if token.refresh_token:
            print(f"Refresh Token: {safe_display_token(token.refresh_token)}")
        print(f"Client Token: {'yes' if token.is_client_token else 'no'}")
        if token.user_id:
            print(f"User ID: {token.user_id}")

        expires_at = datetime.fromtimestamp(token.expires_at)
        print(f"Expires At: {expires_at.isoformat(timespec='seconds')}")
        print(f"\nStatus: {'❌ EXPIRED' if client.has_token_expired() else '✅ VALID'}")
        return 0


async def cmd_get(path: str):
    """Make an authenticated GET request against the versioned API."""
    print_header(f"GET {path}")

    async with create_client() as client:
        try:
            response = await client.api_get(path)
        except SPiDError as e:
            print(f"❌ Request failed: {e}")
            return 1

        print_response(response)
        return 0 if response.is_success else 1


async def cmd_me():
    """Show the logged-in user."""
    return await cmd_get("/me")


async def cmd_logout():
    """Logout and clear the token from every backend."""
    print_header("Logging Out")

    async with create_client() as client:
        if not client.is_authorized():
            print("⚠️  No token found")
            print("Already logged out.")
            return 0

        await client.logout()
        print("✅ Logged out")
        print("   ✓ Removed from memory")
        print("   ✓ Removed from every storage backend")
        return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="SPiD Token Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Log in with the code from the redirect URI
  %(prog)s login 5f2a...

  # Show the stored token
  %(prog)s status

  # Call the API
  %(prog)s me
  %(prog)s get /user/123

  # Logout
  %(prog)s logout
        """,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Login command
    login_parser = subparsers.add_parser(
        "login", help="Exchange an authorization code for a token"
    )
    login_parser.add_argument("code", help="Authorization code")

    # Client login command
    subparsers.add_parser("client-login", help="Obtain a client token")

    # Status command
    subparsers.add_parser("status", help="Show the stored token")

    # Me command
    subparsers.add_parser("me", help="Show the logged-in user")

    # Get command
    get_parser = subparsers.add_parser("get", help="Authenticated GET request")
    get_parser.add_argument("path", help="API path (e.g., /user/123)")

    # Logout command
    subparsers.add_parser("logout", help="Logout and clear stored tokens")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Execute command
    try:
        if args.command == "login":
            return asyncio.run(cmd_login(args.code))
        elif args.command == "client-login":
            return asyncio.run(cmd_client_login())
        elif args.command == "status":
            return asyncio.run(cmd_status())
        elif args.command == "me":
            return asyncio.run(cmd_me())
        elif args.command == "get":
            return asyncio.run(cmd_get(args.path))
        elif args.command == "logout":
            return asyncio.run(cmd_logout())
        else:  # pragma: no cover
            # This should never be reached due to argparse validation
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\n\n❌ Interrupted by user")
        return 130
    except Exception as e:
        print(f"\n❌ Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
