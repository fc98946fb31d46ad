#!/usr/bin/env python3
"""
Example demonstrating token storage across several backends.

This shows read preference, replication into a backend that lost its copy,
and removal from every backend.
"""

import tempfile
import time
from pathlib import Path

from spid_client import AccessToken, TokenStorage, TokenStoreBackend


def safe_display_token(token: str, prefix_len: int = 20, suffix_len: int = 6) -> str:
    """Safely display a token with most characters redacted."""
    if len(token) <= prefix_len + suffix_len:
        return f"{token[:10]}..."

    prefix = token[:prefix_len]
    suffix = token[-suffix_len:]
    redacted_len = len(token) - prefix_len - suffix_len

    return f"{prefix}...{'*' * min(redacted_len, 20)}...{suffix}"


def print_section(title: str):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def main():
    print_section("Token Storage Examples")

    example_token = AccessToken(
        access_token="example_access_token_12345",
        refresh_token="example_refresh_token_67890",
        expires_at=time.time() + 3600,
        user_id="12345",
    )

    token_dir = Path(tempfile.mkdtemp()) / "tokens"

    # Example 1: Read from the keychain first, write to both backends
    print_section("Example 1: Keychain preferred, file as fallback")

    storage = TokenStorage(
        read_backends=[TokenStoreBackend.KEYCHAIN, TokenStoreBackend.FILE],
        write_backends=[TokenStoreBackend.KEYCHAIN, TokenStoreBackend.FILE],
        token_dir=token_dir,
        service_name="spid-client-example",
    )

    if storage.store(example_token):
        print("✅ Token stored in every backend")
    else:
        print("⚠️  Token stored in some backends only")

    loaded = storage.load()
    if loaded:
        print(f"✅ Token loaded: {safe_display_token(loaded.access_token)}")

    # Example 2: Heal a backend that lost its copy
    print_section("Example 2: Replication")

    keychain = storage.backends[TokenStoreBackend.KEYCHAIN]
    keychain.remove(storage.identifier)
    print("Removed token from keychain only")

    loaded = storage.load_and_replicate()
    if loaded and keychain.get(storage.identifier) == loaded:
        print("✅ Keychain copy restored from file backend")

    # Example 3: Remove everywhere
    print_section("Example 3: Removal")

    storage.remove()
    print(f"Token after remove: {storage.load()}")


if __name__ == "__main__":
    main()
