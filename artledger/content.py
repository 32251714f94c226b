# artledger/content.py
"""
Content encryption and content-addressed storage.

Each asset's content is encrypted once with its own key and nonce
(ChaCha20-Poly1305). The ciphertext is stored under its SHA-3-256 digest;
the digest is the content_ref recorded on the ledger.
"""

import hashlib
import logging
import os
import re
from pathlib import Path

from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .errors import NotFoundError, ValidationError
from .keystore import DecryptionSecret

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12

_REF_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def generate_secret() -> DecryptionSecret:
    """Fresh single-use key and nonce."""
    return DecryptionSecret(
        key_material=ChaCha20Poly1305.generate_key(),
        nonce=os.urandom(NONCE_SIZE),
    )


def encrypt_content(plaintext: bytes, secret: DecryptionSecret) -> bytes:
    """Encrypt and authenticate content."""
    return ChaCha20Poly1305(secret.key_material).encrypt(secret.nonce, plaintext, None)


def decrypt_content(ciphertext: bytes, secret: DecryptionSecret) -> bytes:
    """
    Decrypt content.

    Raises:
        cryptography.exceptions.InvalidTag: wrong secret or tampered content
    """
    return ChaCha20Poly1305(secret.key_material).decrypt(secret.nonce, ciphertext, None)


def content_hash(data: bytes, algorithm: str = "sha3_256") -> str:
    """
    Content hash of a blob.

    Uses SHA-3 (Keccak) by default. Full hex digest, no truncation.
    """
    hasher = hashlib.new(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


class ContentStore:
    """
    Local content-addressed blob store.

    Structure:
        store_dir/
            <hash[:2]>/
                <hash>
    """

    def __init__(self, store_dir: Path | str):
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)

    def _blob_path(self, content_ref: str) -> Path:
        if not _REF_PATTERN.match(content_ref or ""):
            raise ValidationError(f"Invalid content reference: {content_ref!r}")
        return self.store_dir / content_ref[:2] / content_ref

    def put(self, data: bytes) -> str:
        """Store a blob, return its content reference."""
        content_ref = content_hash(data)
        path = self._blob_path(content_ref)
        if path.exists():
            logger.debug(f"Content {content_ref[:16]}... already stored")
            return content_ref

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
        logger.debug(f"Stored content {content_ref[:16]}... ({len(data)} bytes)")
        return content_ref

    def get(self, content_ref: str) -> bytes:
        """
        Fetch a blob by reference.

        Raises:
            NotFoundError: nothing stored under the reference
        """
        path = self._blob_path(content_ref)
        if not path.exists():
            raise NotFoundError(f"Content {content_ref} not found")
        return path.read_bytes()

    def has(self, content_ref: str) -> bool:
        try:
            return self._blob_path(content_ref).exists()
        except ValidationError:
            return False
