# spid_client/file_token_store.py
"""Token backend using a plain JSON key-value file."""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from .access_token import AccessToken
from .errors import StorageFailure
from .secure_token_store import SecureTokenStore

logger = logging.getLogger(__name__)


class FileTokenStore(SecureTokenStore):
    """Keeps all token records in one JSON file readable only by the user."""

    def __init__(self, token_dir: Optional[Path] = None, filename: str = "tokens.json"):
        if token_dir is None:
            token_dir = Path.home() / ".spid_client" / "tokens"

        self.token_dir = Path(token_dir)
        self.path = self.token_dir / filename
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError:
            # JSONDecodeError and UnicodeDecodeError
            logger.warning(f"Ignoring corrupt token file {self.path}")
            return {}
        except OSError as e:
            raise StorageFailure(f"Cannot read {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, Any]) -> None:
        self.token_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

        # Set file permissions to user-only read/write
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self.path)

    def get(self, identifier: str) -> Optional[AccessToken]:
        with self._lock:
            record = self._read_all().get(identifier)
        if not isinstance(record, dict):
            return None
        return AccessToken.from_record(record)

    def put(self, identifier: str, token: AccessToken) -> bool:
        with self._lock:
            try:
                data = self._read_all()
                data[identifier] = token.to_record()
                self._write_all(data)
            except (OSError, StorageFailure) as e:
                logger.warning(f"Token file write failed for {identifier}: {e}")
                return False
        return True

    def remove(self, identifier: str) -> None:
        with self._lock:
            try:
                data = self._read_all()
                if identifier in data:
                    del data[identifier]
                    self._write_all(data)
            except (OSError, StorageFailure) as e:
                logger.warning(f"Token file delete failed for {identifier}: {e}")
