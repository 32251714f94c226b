# artledger/ledger/__init__.py
"""
The ledger contract: assets, ownership, resale escrow and royalty payouts.

Example:
    ledger = Ledger("/path/to/state")
    asset_id = ledger.create_asset("alice", content_ref, metadata_ref,
                                   unit_price=1000, max_supply=0,
                                   payees=[("alice", 6000), ("bob", 4000)])
    ledger.purchase("carol", asset_id, 1000)
    ledger.balance_of("carol", asset_id)  # 1
"""

from .contract import Ledger
from .models import Asset, Disbursement, Listing, ListingStatus, Payee, Transfer
from .settlement import InMemoryBank, SettlementBackend
from .splits import split_primary, split_resale, validate_payees

__all__ = [
    "Ledger",
    "Asset",
    "Disbursement",
    "Listing",
    "ListingStatus",
    "Payee",
    "Transfer",
    "InMemoryBank",
    "SettlementBackend",
    "split_primary",
    "split_resale",
    "validate_payees",
]
