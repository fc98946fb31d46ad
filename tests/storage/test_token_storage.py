"""Tests for TokenStorage."""

import pytest

from helpers import MemoryTokenStore, make_token
from spid_client.errors import StorageFailure
from spid_client.file_token_store import FileTokenStore
from spid_client.token_storage import ACCESS_TOKEN_IDENTIFIER, TokenStorage
from spid_client.token_store_factory import TokenStoreBackend


class FailingReadStore(MemoryTokenStore):
    """Backend whose reads raise StorageFailure."""

    def get(self, identifier):
        self.calls.append(("get", identifier))
        raise StorageFailure("disk unavailable")


class TestTokenStorage:
    """Test read preference and write fan-out."""

    @pytest.fixture
    def secure(self):
        return MemoryTokenStore("secure")

    @pytest.fixture
    def simple(self):
        return MemoryTokenStore("simple")

    @pytest.fixture
    def storage(self, secure, simple):
        """Read from secure first, write to both."""
        return TokenStorage(
            read_backends=["secure", "simple"],
            write_backends=["secure", "simple"],
            backends={"secure": secure, "simple": simple},
        )

    def test_missing_backend_instance_rejected(self, secure):
        with pytest.raises(ValueError, match="simple"):
            TokenStorage(
                read_backends=["secure"],
                write_backends=["simple"],
                backends={"secure": secure},
            )

    def test_default_backends_are_deduplicated(self, tmp_path, keyring_backend):
        """Test a tag in both lists gets a single shared instance."""
        storage = TokenStorage(
            read_backends=[TokenStoreBackend.KEYCHAIN, TokenStoreBackend.FILE],
            write_backends=[TokenStoreBackend.FILE, TokenStoreBackend.KEYCHAIN],
            token_dir=tmp_path,
            keyring_backend=keyring_backend,
        )
        assert len(storage.backends) == 2
        assert storage.read_backends[0] is storage.write_backends[1]
        assert storage.read_backends[1] is storage.write_backends[0]

    def test_load_empty(self, storage):
        assert storage.load() is None

    def test_load_prefers_first_read_backend(self, storage, secure, simple):
        secure.records[ACCESS_TOKEN_IDENTIFIER] = make_token(access_token="secure")
        simple.records[ACCESS_TOKEN_IDENTIFIER] = make_token(access_token="simple")

        assert storage.load().access_token == "secure"
        # Stops at the first hit
        assert simple.calls == []

    def test_load_falls_back_to_later_backend(self, storage, secure, simple):
        simple.records[ACCESS_TOKEN_IDENTIFIER] = make_token(access_token="simple")

        assert storage.load().access_token == "simple"
        assert secure.call_names() == ["get"]

    @pytest.mark.parametrize(
        "read_order,expected",
        [
            (["secure", "simple"], "secure"),
            (["simple", "secure"], "simple"),
            (["simple"], "simple"),
        ],
    )
    def test_load_follows_configured_order(self, secure, simple, read_order, expected):
        secure.records[ACCESS_TOKEN_IDENTIFIER] = make_token(access_token="secure")
        simple.records[ACCESS_TOKEN_IDENTIFIER] = make_token(access_token="simple")
        storage = TokenStorage(
            read_backends=read_order,
            write_backends=["secure", "simple"],
            backends={"secure": secure, "simple": simple},
        )

        assert storage.load().access_token == expected

    def test_load_skips_failing_backend(self, simple):
        broken = FailingReadStore("broken")
        simple.records[ACCESS_TOKEN_IDENTIFIER] = make_token(access_token="simple")
        storage = TokenStorage(
            read_backends=["broken", "simple"],
            write_backends=["simple"],
            backends={"broken": broken, "simple": simple},
        )

        assert storage.load().access_token == "simple"

    def test_load_does_not_write(self, storage, secure, simple):
        simple.records[ACCESS_TOKEN_IDENTIFIER] = make_token()

        storage.load()

        assert "put" not in secure.call_names()

    def test_load_and_replicate_heals_other_write_backends(
        self, storage, secure, simple
    ):
        token = make_token()
        simple.records[ACCESS_TOKEN_IDENTIFIER] = token

        assert storage.load_and_replicate() == token

        assert secure.records[ACCESS_TOKEN_IDENTIFIER] == token
        # Source backend is not rewritten
        assert simple.call_names() == ["get"]

    def test_load_and_replicate_skips_backends_outside_write_list(self, secure, simple):
        token = make_token()
        secure.records[ACCESS_TOKEN_IDENTIFIER] = token
        storage = TokenStorage(
            read_backends=["secure", "simple"],
            write_backends=["secure"],
            backends={"secure": secure, "simple": simple},
        )

        storage.load_and_replicate()

        assert simple.calls == []
        assert secure.call_names() == ["get"]

    def test_load_and_replicate_ignores_replication_failure(self, secure):
        failing = MemoryTokenStore("failing", put_result=False)
        token = make_token()
        secure.records[ACCESS_TOKEN_IDENTIFIER] = token
        storage = TokenStorage(
            read_backends=["secure"],
            write_backends=["secure", "failing"],
            backends={"secure": secure, "failing": failing},
        )

        assert storage.load_and_replicate() == token
        assert failing.call_names() == ["put"]

    def test_load_and_replicate_empty(self, storage, secure, simple):
        assert storage.load_and_replicate() is None
        assert "put" not in secure.call_names() + simple.call_names()

    def test_store_writes_every_backend(self, storage, secure, simple):
        token = make_token()

        assert storage.store(token) is True

        assert secure.records[ACCESS_TOKEN_IDENTIFIER] == token
        assert simple.records[ACCESS_TOKEN_IDENTIFIER] == token

    def test_store_attempts_all_backends_after_failure(self, simple):
        failing = MemoryTokenStore("failing", put_result=False)
        last = MemoryTokenStore("last")
        storage = TokenStorage(
            read_backends=["simple"],
            write_backends=["failing", "simple", "last"],
            backends={"failing": failing, "simple": simple, "last": last},
        )
        token = make_token()

        assert storage.store(token) is False

        assert failing.call_names() == ["put"]
        assert simple.records[ACCESS_TOKEN_IDENTIFIER] == token
        assert last.records[ACCESS_TOKEN_IDENTIFIER] == token

    def test_damaged_token_file_does_not_block_other_backends(self, tmp_path, secure):
        file_store = FileTokenStore(token_dir=tmp_path)
        file_store.path.write_bytes(b"\xff\xfe{not json")
        storage = TokenStorage(
            read_backends=["file", "secure"],
            write_backends=["file", "secure"],
            backends={"file": file_store, "secure": secure},
        )
        token = make_token()

        assert storage.load() is None
        assert storage.store(token) is True

        assert secure.records[ACCESS_TOKEN_IDENTIFIER] == token
        assert storage.load() == token

    def test_store_is_idempotent(self, storage, secure, simple):
        token = make_token()

        storage.store(token)
        once = (dict(secure.records), dict(simple.records))
        storage.store(token)

        assert (secure.records, simple.records) == once

    def test_update_uses_backend_update(self, storage, secure, simple):
        token = make_token(access_token="refreshed")

        assert storage.update(token) is True

        assert secure.call_names() == ["update"]
        assert simple.call_names() == ["update"]
        assert simple.records[ACCESS_TOKEN_IDENTIFIER] == token

    def test_update_aggregates_failure(self, secure):
        failing = MemoryTokenStore("failing", put_result=False)
        storage = TokenStorage(
            read_backends=["secure"],
            write_backends=["failing", "secure"],
            backends={"failing": failing, "secure": secure},
        )

        assert storage.update(make_token()) is False
        assert secure.call_names() == ["update"]

    def test_remove_clears_read_only_backends(self, secure, simple):
        """Test remove reaches backends outside the write list."""
        secure.records[ACCESS_TOKEN_IDENTIFIER] = make_token()
        simple.records[ACCESS_TOKEN_IDENTIFIER] = make_token()
        storage = TokenStorage(
            read_backends=["secure", "simple"],
            write_backends=["secure"],
            backends={"secure": secure, "simple": simple},
        )

        storage.remove()

        assert secure.records == {}
        assert simple.records == {}
        assert storage.load() is None

    def test_custom_identifier(self, secure):
        storage = TokenStorage(
            read_backends=["secure"],
            write_backends=["secure"],
            identifier="OtherToken",
            backends={"secure": secure},
        )
        storage.store(make_token())

        assert list(secure.records) == ["OtherToken"]
