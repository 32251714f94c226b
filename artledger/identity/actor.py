# artledger/identity/actor.py
"""
Identity management.

An Identity is a ledger participant with:
- Username and display name
- RSA key pair; the private half is optional so the access service can hold
  public keys only
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..errors import AlreadyExists
from ..storage import atomic_write_json, file_version, read_json

logger = logging.getLogger(__name__)


def _generate_keypair() -> tuple[bytes, bytes]:
    """Generate RSA key pair for signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


@dataclass
class Identity:
    """
    A ledger participant.

    Attributes:
        username: Unique identity name, used as the holder key on the ledger
        display_name: Human-readable name
        public_key: PEM-encoded public key
        private_key: PEM-encoded private key, None for public-only records
        created_at: Timestamp of creation
    """
    username: str
    display_name: str
    public_key: bytes
    private_key: Optional[bytes] = field(default=None, repr=False)
    created_at: float = field(default_factory=time.time)

    @property
    def can_sign(self) -> bool:
        return self.private_key is not None

    def public_view(self) -> "Identity":
        """Copy of this identity without the private key."""
        return Identity(
            username=self.username,
            display_name=self.display_name,
            public_key=self.public_key,
            created_at=self.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage."""
        data = {
            "username": self.username,
            "display_name": self.display_name,
            "public_key": self.public_key.decode("utf-8"),
            "created_at": self.created_at,
        }
        if self.private_key is not None:
            data["private_key"] = self.private_key.decode("utf-8")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        """Deserialize from storage."""
        private_key = data.get("private_key")
        return cls(
            username=data["username"],
            display_name=data.get("display_name", data["username"]),
            public_key=data["public_key"].encode("utf-8"),
            private_key=private_key.encode("utf-8") if private_key else None,
            created_at=data.get("created_at", time.time()),
        )

    @classmethod
    def create(cls, username: str, display_name: str = None) -> "Identity":
        """Create a new identity with generated keys."""
        private_pem, public_pem = _generate_keypair()
        return cls(
            username=username,
            display_name=display_name or username,
            public_key=public_pem,
            private_key=private_pem,
        )


class IdentityStore:
    """
    Persistent storage for identities.

    Structure:
        store_dir/
            identities.json   # Index of all identities
    """

    def __init__(self, store_dir: Path | str):
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self._identities: Dict[str, Identity] = {}
        self._version = None
        self._load()

    def _index_path(self) -> Path:
        return self.store_dir / "identities.json"

    def _load(self):
        """Load identities from disk."""
        version = file_version(self._index_path())
        data = read_json(self._index_path())
        self._version = version
        if data:
            self._identities = {
                username: Identity.from_dict(identity_data)
                for username, identity_data in data.get("identities", {}).items()
            }

    def _save(self):
        """Save identities to disk."""
        data = {
            "version": "1.0",
            "identities": {
                username: identity.to_dict()
                for username, identity in self._identities.items()
            },
        }
        atomic_write_json(self._index_path(), data)
        self._version = file_version(self._index_path())

    def reload_if_changed(self) -> bool:
        """Pick up identities written by another process."""
        if file_version(self._index_path()) == self._version:
            return False
        self._load()
        return True

    def create(self, username: str, display_name: str = None) -> Identity:
        """Create and store a new identity with a fresh key pair."""
        self.reload_if_changed()
        if username in self._identities:
            raise AlreadyExists(f"Identity {username} already exists")

        identity = Identity.create(username, display_name)
        self._identities[username] = identity
        self._save()
        logger.info(f"Created identity {username}")
        return identity

    def register(self, username: str, public_key: bytes, display_name: str = None) -> Identity:
        """Store a public-only identity (key generated elsewhere)."""
        self.reload_if_changed()
        if username in self._identities:
            raise AlreadyExists(f"Identity {username} already exists")

        identity = Identity(
            username=username,
            display_name=display_name or username,
            public_key=public_key,
        )
        self._identities[username] = identity
        self._save()
        logger.info(f"Registered public key for {username}")
        return identity

    def get(self, username: str) -> Optional[Identity]:
        """Get an identity by username."""
        return self._identities.get(username)

    def public_key_of(self, username: str) -> Optional[bytes]:
        """PEM public key of an identity, or None if unknown."""
        identity = self._identities.get(username)
        return identity.public_key if identity else None

    def list(self) -> List[Identity]:
        """List all identities."""
        return list(self._identities.values())

    def __contains__(self, username: str) -> bool:
        return username in self._identities

    def __len__(self) -> int:
        return len(self._identities)
