# artledger/access/__init__.py
"""
Ownership-gated release of decryption secrets.
"""

from .request import OwnershipProofRequest
from .service import AccessService

__all__ = ["OwnershipProofRequest", "AccessService"]
