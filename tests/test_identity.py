# tests/test_identity.py
"""Tests for identities and ownership signatures."""

import base64

import pytest

from artledger import IdentityStore, SignatureVerifier
from artledger.errors import AlreadyExists
from artledger.identity import ownership_message, sign_message, signatures, verify_signature


class TestIdentityStore:
    """Test identity persistence."""

    def test_create_and_reload(self, temp_dir):
        store = IdentityStore(temp_dir / "ids")
        identity = store.create("erin", "Erin")

        assert identity.can_sign
        reopened = IdentityStore(temp_dir / "ids")
        assert reopened.get("erin").public_key == identity.public_key
        assert reopened.get("erin").display_name == "Erin"

    def test_duplicate_username(self, identities, keypairs):
        with pytest.raises(AlreadyExists):
            identities.register("alice", keypairs["alice"].public_key)

    def test_register_is_public_only(self, identities):
        assert not identities.get("alice").can_sign
        assert "alice" in identities
        assert identities.public_key_of("nobody") is None

    def test_public_view(self, keypairs):
        view = keypairs["alice"].public_view()
        assert view.private_key is None
        assert "private_key" not in view.to_dict()


class TestSignatures:
    """Test signing and verification."""

    def test_ownership_message(self):
        assert ownership_message(12, 1700000000) == "prove-ownership:12:1700000000"

    def test_sign_verify(self, keypairs):
        alice = keypairs["alice"]
        signature = sign_message("prove-ownership:1:100", alice)
        assert verify_signature("prove-ownership:1:100", signature, alice.public_key)

    def test_tampered_message(self, keypairs):
        alice = keypairs["alice"]
        signature = sign_message("prove-ownership:1:100", alice)
        assert not verify_signature("prove-ownership:2:100", signature, alice.public_key)

    def test_tampered_signature(self, keypairs):
        alice = keypairs["alice"]
        raw = bytearray(base64.b64decode(sign_message("m", alice)))
        raw[0] ^= 0xFF
        assert not verify_signature("m", base64.b64encode(bytes(raw)).decode(), alice.public_key)

    def test_wrong_key(self, keypairs):
        signature = sign_message("m", keypairs["alice"])
        assert not verify_signature("m", signature, keypairs["bob"].public_key)

    @pytest.mark.parametrize("signature", ["", "not base64!!", "AAAA", None])
    def test_malformed_signature(self, keypairs, signature):
        assert not verify_signature("m", signature, keypairs["alice"].public_key)

    def test_malformed_key(self):
        assert not verify_signature("m", "AAAA", b"not a pem key")

    def test_sign_without_private_key(self, keypairs):
        with pytest.raises(ValueError):
            sign_message("m", keypairs["alice"].public_view())


class TestSignatureVerifier:
    """Test verification against the identity store."""

    def test_known_identity(self, identities, keypairs):
        verifier = SignatureVerifier(identities)
        signature = sign_message("m", keypairs["carol"])
        assert verifier.verify("m", signature, "carol")

    def test_claimed_identity_mismatch(self, identities, keypairs):
        verifier = SignatureVerifier(identities)
        signature = sign_message("m", keypairs["mallory"])
        assert not verifier.verify("m", signature, "carol")

    def test_unknown_identity(self, identities, keypairs):
        verifier = SignatureVerifier(identities)
        signature = sign_message("m", keypairs["carol"])
        assert not verifier.verify("m", signature, "stranger")

    def test_unknown_identity_still_verifies(self, identities, keypairs, monkeypatch):
        """An unknown identity costs a full signature check like a known one."""
        calls = []
        real_verify = signatures.verify_signature

        def counting_verify(message, signature, public_key):
            calls.append(public_key)
            return real_verify(message, signature, public_key)

        monkeypatch.setattr(signatures, "verify_signature", counting_verify)
        verifier = SignatureVerifier(identities)
        signature = sign_message("m", keypairs["carol"])

        assert not verifier.verify("m", signature, "stranger")
        assert len(calls) == 1
        assert calls[0] != identities.get("carol").public_key
