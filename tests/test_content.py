# tests/test_content.py
"""Tests for content encryption and the blob store."""

import hashlib

import pytest
from cryptography.exceptions import InvalidTag

from artledger import ContentStore, DecryptionSecret, decrypt_content, encrypt_content, generate_secret
from artledger.content import KEY_SIZE, NONCE_SIZE, content_hash
from artledger.errors import NotFoundError, ValidationError


@pytest.fixture
def store(temp_dir):
    """Create a content store instance."""
    return ContentStore(temp_dir / "content")


class TestEncryption:
    """Test the AEAD helpers."""

    def test_secret_sizes(self):
        secret = generate_secret()
        assert len(secret.key_material) == KEY_SIZE
        assert len(secret.nonce) == NONCE_SIZE

    def test_secrets_are_fresh(self):
        assert generate_secret() != generate_secret()

    def test_decrypt(self):
        secret = generate_secret()
        assert decrypt_content(encrypt_content(b"hello", secret), secret) == b"hello"

    def test_wrong_secret(self):
        ciphertext = encrypt_content(b"hello", generate_secret())
        with pytest.raises(InvalidTag):
            decrypt_content(ciphertext, generate_secret())

    def test_tampered_ciphertext(self):
        secret = generate_secret()
        ciphertext = bytearray(encrypt_content(b"hello", secret))
        ciphertext[0] ^= 1
        with pytest.raises(InvalidTag):
            decrypt_content(bytes(ciphertext), secret)

    def test_fixed_secret_is_deterministic(self):
        secret = DecryptionSecret(key_material=b"\x01" * KEY_SIZE, nonce=b"\x02" * NONCE_SIZE)
        assert encrypt_content(b"abc", secret) == encrypt_content(b"abc", secret)


class TestContentHash:
    """Test content addressing."""

    def test_sha3_default(self):
        assert content_hash(b"data") == hashlib.sha3_256(b"data").hexdigest()

    def test_full_length(self):
        assert len(content_hash(b"data")) == 64


class TestContentStore:
    """Test the blob store."""

    def test_put_get(self, store):
        ref = store.put(b"blob")
        assert ref == content_hash(b"blob")
        assert store.get(ref) == b"blob"
        assert store.has(ref)

    def test_sharded_layout(self, store):
        ref = store.put(b"blob")
        assert (store.store_dir / ref[:2] / ref).exists()

    def test_put_is_idempotent(self, store):
        assert store.put(b"blob") == store.put(b"blob")

    def test_missing(self, store):
        with pytest.raises(NotFoundError):
            store.get(content_hash(b"never stored"))

    @pytest.mark.parametrize("ref", ["", "../etc/passwd", "ABC", "a" * 63, "g" * 64])
    def test_invalid_ref(self, store, ref):
        with pytest.raises(ValidationError):
            store.get(ref)
        assert not store.has(ref)
