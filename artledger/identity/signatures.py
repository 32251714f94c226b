# artledger/identity/signatures.py
"""
Message signatures for ownership proofs.

RSA-SHA256 with PKCS#1 v1.5 padding. Signatures travel as base64 text.
Signing belongs to the client side; the ledger side only verifies.
"""

import base64
import binascii
import logging
from functools import lru_cache
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from .actor import Identity, IdentityStore, _generate_keypair

logger = logging.getLogger(__name__)

OWNERSHIP_PREFIX = "prove-ownership"


def ownership_message(asset_id: int, timestamp: int) -> str:
    """Canonical message signed to prove ownership of an asset."""
    return f"{OWNERSHIP_PREFIX}:{int(asset_id)}:{int(timestamp)}"


def sign_message(message: str, identity: Identity) -> str:
    """
    Sign a message with the identity's private key.

    Args:
        message: Text to sign (UTF-8 encoded before signing)
        identity: Identity holding a private key

    Returns:
        Base64-encoded signature
    """
    if identity.private_key is None:
        raise ValueError(f"Identity {identity.username} has no private key")

    private_key = serialization.load_pem_private_key(
        identity.private_key,
        password=None,
    )
    signature_bytes = private_key.sign(
        message.encode("utf-8"),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    return base64.b64encode(signature_bytes).decode("utf-8")


def verify_signature(message: str, signature: str, public_key_pem: bytes) -> bool:
    """
    Verify a message signature.

    Args:
        message: The signed text
        signature: Base64-encoded signature
        public_key_pem: PEM-encoded public key

    Returns:
        True if the signature is valid; False for any malformed input
    """
    if not signature or not public_key_pem:
        return False

    try:
        public_key = serialization.load_pem_public_key(public_key_pem)
        signature_bytes = base64.b64decode(signature, validate=True)
        public_key.verify(
            signature_bytes,
            message.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return True

    except (InvalidSignature, ValueError, TypeError, binascii.Error):
        return False


@lru_cache(maxsize=1)
def _placeholder_public_key() -> bytes:
    """Public half of a key pair generated once per process and never stored."""
    _, public_pem = _generate_keypair()
    return public_pem


class SignatureVerifier:
    """
    Verifies signatures against identities known to an IdentityStore.

    Unknown identities never verify. They are checked against a throwaway
    key so they cost the same RSA work as a known identity.
    """

    def __init__(self, identities: IdentityStore):
        self.identities = identities

    def verify(self, message: str, signature: str, identity: str) -> bool:
        """True if signature over message was produced by identity's key."""
        public_key: Optional[bytes] = self.identities.public_key_of(identity)
        if public_key is None:
            logger.debug(f"No public key registered for {identity}")
            verify_signature(message, signature, _placeholder_public_key())
            return False
        return verify_signature(message, signature, public_key)
