# artledger/ledger/models.py
"""
Ledger records: assets, payees, listings and disbursements.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Payee:
    """A royalty recipient and its share in basis points."""
    identity: str
    share_bps: int

    def to_dict(self) -> Dict[str, Any]:
        return {"identity": self.identity, "share_bps": self.share_bps}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Payee":
        return cls(identity=data["identity"], share_bps=data["share_bps"])


@dataclass
class Asset:
    """
    A published work.

    content_ref and metadata_ref are opaque content-addressed locators.
    Everything except minted_supply and active is fixed at creation.

    Attributes:
        asset_id: Ledger-assigned identifier (monotonic)
        creator: Identity that created the asset
        content_ref: Locator of the encrypted content
        metadata_ref: Locator of the metadata document
        unit_price: Primary sale price in the smallest currency unit
        max_supply: Maximum units mintable; 0 means unbounded
        payees: Ordered royalty recipients, shares summing to 10000
        minted_supply: Units sold so far
        active: False once deactivated; primary sales stop
        created_at: Timestamp of creation
    """
    asset_id: int
    creator: str
    content_ref: str
    metadata_ref: str
    unit_price: int
    max_supply: int
    payees: Tuple[Payee, ...]
    minted_supply: int = 0
    active: bool = True
    created_at: float = field(default_factory=time.time)

    @property
    def unbounded(self) -> bool:
        return self.max_supply == 0

    @property
    def remaining_supply(self) -> Optional[int]:
        """Units still mintable, None when unbounded."""
        if self.unbounded:
            return None
        return self.max_supply - self.minted_supply

    @property
    def sold_out(self) -> bool:
        return not self.unbounded and self.minted_supply >= self.max_supply

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "creator": self.creator,
            "content_ref": self.content_ref,
            "metadata_ref": self.metadata_ref,
            "unit_price": self.unit_price,
            "max_supply": self.max_supply,
            "payees": [p.to_dict() for p in self.payees],
            "minted_supply": self.minted_supply,
            "active": self.active,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        return cls(
            asset_id=data["asset_id"],
            creator=data["creator"],
            content_ref=data["content_ref"],
            metadata_ref=data["metadata_ref"],
            unit_price=data["unit_price"],
            max_supply=data["max_supply"],
            payees=tuple(Payee.from_dict(p) for p in data["payees"]),
            minted_supply=data.get("minted_supply", 0),
            active=data.get("active", True),
            created_at=data.get("created_at", time.time()),
        )


class ListingStatus(Enum):
    """Listing lifecycle. ACTIVE is the only non-terminal state."""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    SOLD = "sold"


@dataclass
class Listing:
    """One escrowed unit of an asset offered for resale."""
    listing_id: int
    asset_id: int
    seller: str
    ask_price: int
    status: ListingStatus = ListingStatus.ACTIVE
    buyer: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    closed_at: Optional[float] = None

    @property
    def active(self) -> bool:
        return self.status is ListingStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "asset_id": self.asset_id,
            "seller": self.seller,
            "ask_price": self.ask_price,
            "status": self.status.value,
            "buyer": self.buyer,
            "created_at": self.created_at,
            "closed_at": self.closed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Listing":
        return cls(
            listing_id=data["listing_id"],
            asset_id=data["asset_id"],
            seller=data["seller"],
            ask_price=data["ask_price"],
            status=ListingStatus(data.get("status", "active")),
            buyer=data.get("buyer"),
            created_at=data.get("created_at", time.time()),
            closed_at=data.get("closed_at"),
        )


@dataclass(frozen=True)
class Transfer:
    """Value moved to an external recipient."""
    recipient: str
    amount: int


@dataclass
class Disbursement:
    """
    How a single payment was divided.

    platform_fee includes any rounding residual, so total always equals the
    payment exactly.
    """
    payment: int
    platform_fee: int
    payee_amounts: List[Tuple[str, int]] = field(default_factory=list)
    seller: Optional[str] = None
    seller_amount: int = 0

    @property
    def total(self) -> int:
        return self.platform_fee + sum(a for _, a in self.payee_amounts) + self.seller_amount

    def amount_for(self, identity: str) -> int:
        """Total this disbursement pays to identity (payee and/or seller)."""
        amount = sum(a for who, a in self.payee_amounts if who == identity)
        if self.seller == identity:
            amount += self.seller_amount
        return amount

    def transfers(self) -> List[Transfer]:
        """External transfers; the platform fee stays on the ledger."""
        out = [Transfer(who, amount) for who, amount in self.payee_amounts if amount > 0]
        if self.seller is not None and self.seller_amount > 0:
            out.append(Transfer(self.seller, self.seller_amount))
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payment": self.payment,
            "platform_fee": self.platform_fee,
            "payee_amounts": [[who, amount] for who, amount in self.payee_amounts],
            "seller": self.seller,
            "seller_amount": self.seller_amount,
        }
