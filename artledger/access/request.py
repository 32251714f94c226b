# artledger/access/request.py
"""
Ownership proof requests.

A request claims "identity holds asset_id at timestamp" and carries a
signature over ownership_message(asset_id, timestamp). Requests are never
stored.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict

from ..errors import ValidationError
from ..identity import Identity, ownership_message, sign_message


@dataclass(frozen=True)
class OwnershipProofRequest:
    """
    Attributes:
        identity: Claimed holder
        asset_id: Asset whose secret is requested
        timestamp: Unix seconds when the proof was made
        signature: Base64 signature over the canonical message
    """
    identity: str
    asset_id: int
    timestamp: int
    signature: str

    @property
    def message(self) -> str:
        return ownership_message(self.asset_id, self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "asset_id": self.asset_id,
            "timestamp": self.timestamp,
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OwnershipProofRequest":
        """
        Parse a request body.

        Raises:
            ValidationError: missing fields or wrong types
        """
        if not isinstance(data, dict):
            raise ValidationError("Request body must be an object")
        missing = [k for k in ("identity", "asset_id", "timestamp", "signature") if k not in data]
        if missing:
            raise ValidationError(f"Missing fields: {', '.join(missing)}")

        identity, asset_id = data["identity"], data["asset_id"]
        timestamp, signature = data["timestamp"], data["signature"]
        if not isinstance(identity, str) or not identity:
            raise ValidationError("identity must be a non-empty string")
        if not isinstance(signature, str):
            raise ValidationError("signature must be a string")
        for name, value in (("asset_id", asset_id), ("timestamp", timestamp)):
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValidationError(f"{name} must be an integer")

        return cls(identity=identity, asset_id=asset_id, timestamp=timestamp, signature=signature)

    @classmethod
    def create(cls, identity: Identity, asset_id: int, timestamp: int = None) -> "OwnershipProofRequest":
        """Build and sign a fresh request (client side)."""
        if timestamp is None:
            timestamp = int(time.time())
        signature = sign_message(ownership_message(asset_id, timestamp), identity)
        return cls(
            identity=identity.username,
            asset_id=asset_id,
            timestamp=timestamp,
            signature=signature,
        )
