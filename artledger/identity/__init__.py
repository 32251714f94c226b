# artledger/identity/__init__.py
"""
Identities and signatures for artledger.

Core concepts:
- Identity: a ledger participant with an RSA key pair
- IdentityStore: persisted identities, resolves public keys by username
- SignatureVerifier: checks a signature against a claimed identity
"""

from .actor import Identity, IdentityStore
from .signatures import (
    SignatureVerifier,
    ownership_message,
    sign_message,
    verify_signature,
)

__all__ = [
    "Identity",
    "IdentityStore",
    "SignatureVerifier",
    "ownership_message",
    "sign_message",
    "verify_signature",
]
