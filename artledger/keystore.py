# artledger/keystore.py
"""
Write-once storage of decryption secrets.

Secrets live apart from the ledger, which is public. Each asset id gets at
most one secret; a put is durable (fsync'd) before it returns.

Structure:
    store_dir/
        secrets.json      # {asset_id: {key_material, nonce}} base64, mode 0600
"""

import base64
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from .errors import AlreadyExists, KeyStoreError, SecretNotFound
from .storage import atomic_write_json, file_version, read_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecryptionSecret:
    """Symmetric key and nonce for one asset's content."""
    key_material: bytes = field(repr=False)
    nonce: bytes = field(repr=False)

    def __repr__(self) -> str:
        return "DecryptionSecret(<redacted>)"

    __str__ = __repr__

    def to_dict(self) -> Dict[str, str]:
        return {
            "key_material": base64.b64encode(self.key_material).decode("ascii"),
            "nonce": base64.b64encode(self.nonce).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecryptionSecret":
        return cls(
            key_material=base64.b64decode(data["key_material"]),
            nonce=base64.b64decode(data["nonce"]),
        )


class KeyStore:
    """
    Durable write-once mapping asset_id -> DecryptionSecret.

    put() checks and inserts under one lock, so of two concurrent puts for
    the same id exactly one succeeds.
    """

    def __init__(self, store_dir: Path | str):
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self._secrets: Dict[int, DecryptionSecret] = {}
        self._lock = threading.Lock()
        self._version = None
        self._load()

    def _index_path(self) -> Path:
        return self.store_dir / "secrets.json"

    def _load(self):
        """Load secrets from disk."""
        version = file_version(self._index_path())
        data = read_json(self._index_path())
        self._version = version
        if data:
            self._secrets = {
                int(asset_id): DecryptionSecret.from_dict(secret)
                for asset_id, secret in data.get("secrets", {}).items()
            }
            logger.debug(f"Loaded {len(self._secrets)} secrets")

    def _save(self):
        """Save secrets to disk, durably."""
        data = {
            "version": "1.0",
            "secrets": {
                str(asset_id): secret.to_dict()
                for asset_id, secret in self._secrets.items()
            },
        }
        atomic_write_json(self._index_path(), data)
        self._version = file_version(self._index_path())

    def reload_if_changed(self) -> bool:
        """Pick up secrets written by another process. Returns True if reloaded."""
        with self._lock:
            if file_version(self._index_path()) == self._version:
                return False
            self._load()
            return True

    def put(self, asset_id: int, secret: DecryptionSecret) -> None:
        """
        Store the secret for an asset.

        Raises:
            AlreadyExists: the asset already has a secret
            KeyStoreError: the write could not be made durable; nothing stored
        """
        if not isinstance(secret, DecryptionSecret):
            raise TypeError("secret must be a DecryptionSecret")

        with self._lock:
            if file_version(self._index_path()) != self._version:
                self._load()
            if asset_id in self._secrets:
                raise AlreadyExists(f"Secret for asset {asset_id} already exists")
            self._secrets[asset_id] = secret
            try:
                self._save()
            except OSError as e:
                del self._secrets[asset_id]
                logger.error(f"Failed to persist secret for asset {asset_id}: {e}")
                raise KeyStoreError(f"Secret for asset {asset_id} could not be persisted") from e

        logger.info(f"Stored secret for asset {asset_id}")

    def get(self, asset_id: int) -> DecryptionSecret:
        """
        Get the secret for an asset.

        Raises:
            SecretNotFound: no secret stored for the asset
        """
        secret = self._secrets.get(asset_id)
        if secret is None:
            raise SecretNotFound(f"No secret for asset {asset_id}")
        return secret

    def has(self, asset_id: int) -> bool:
        return asset_id in self._secrets

    def __contains__(self, asset_id: int) -> bool:
        return asset_id in self._secrets

    def __len__(self) -> int:
        return len(self._secrets)
