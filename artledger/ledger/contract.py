# artledger/ledger/contract.py
"""
The ledger contract.

Owns assets, supply, ownership balances, resale escrow and the platform fee
balance. Every mutating operation is one transaction:

1. Validate against the current state (nothing changes on failure)
2. Apply all state changes
3. Persist the new state
4. Settle external transfers

If persistence or settlement fails the pre-transaction state is restored.
Asset and listing counters survive a rollback, so an identifier that was
ever handed out is never reused.
"""

import logging
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..config import LedgerConfig
from ..errors import (
    AssetInactive,
    AssetNotFound,
    DisbursementFailed,
    ExcessPayment,
    InsufficientBalance,
    InsufficientPayment,
    IntegrityFault,
    ListingInactive,
    ListingNotFound,
    NotCreator,
    NotPlatform,
    NotSeller,
    NothingToWithdraw,
    SelfPurchase,
    SupplyExhausted,
)
from ..storage import atomic_write_json, file_version, read_json
from .models import Asset, Disbursement, Listing, ListingStatus, Transfer
from .settlement import InMemoryBank, SettlementBackend
from .splits import require_amount, split_primary, split_resale, validate_payees

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0"


def _check_payment(payment_amount: Any, price: int) -> int:
    """Exact-payment policy: anything but the price is rejected."""
    payment_amount = require_amount(payment_amount, "payment_amount")
    if payment_amount < price:
        raise InsufficientPayment(f"Payment {payment_amount} is below price {price}")
    if payment_amount > price:
        raise ExcessPayment(f"Payment {payment_amount} exceeds price {price}")
    return payment_amount


class Ledger:
    """
    Asset and marketplace state machine.

    Usage:
        ledger = Ledger("/var/lib/artledger", config=LedgerConfig())
        asset_id = ledger.create_asset("alice", "ref-content", "ref-meta",
                                       1000, 10, [("alice", 6000), ("bob", 4000)])
        ledger.purchase("carol", asset_id, 1000)
        listing_id = ledger.list_for_resale("carol", asset_id, 500)
        ledger.buy_resale("dave", listing_id, 500)

    Args:
        state_dir: Directory for ledger.json; None keeps state in memory only
        config: Fees, platform identity and payee bound
        settlement: Backend receiving payouts (defaults to InMemoryBank)
    """

    def __init__(
        self,
        state_dir: Path | str = None,
        config: LedgerConfig = None,
        settlement: SettlementBackend = None,
    ):
        self.config = config or LedgerConfig()
        self.settlement = settlement if settlement is not None else InMemoryBank()
        self.state_dir = Path(state_dir) if state_dir is not None else None
        if self.state_dir is not None:
            self.state_dir.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._assets: Dict[int, Asset] = {}
        self._listings: Dict[int, Listing] = {}
        self._balances: Dict[str, Dict[int, int]] = {}
        self._escrow: Dict[int, int] = {}
        self._earnings: Dict[str, int] = {}
        self._platform_balance = 0
        self._next_asset_id = 1
        self._next_listing_id = 1
        self._version: Optional[tuple] = None
        self._load()

    @property
    def platform_identity(self) -> str:
        return self.config.platform_identity

    # ------------------------------------------------------------------
    # Persistence

    def _index_path(self) -> Optional[Path]:
        if self.state_dir is None:
            return None
        return self.state_dir / "ledger.json"

    def _to_state(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "next_asset_id": self._next_asset_id,
            "next_listing_id": self._next_listing_id,
            "platform_balance": self._platform_balance,
            "assets": [a.to_dict() for a in self._assets.values()],
            "listings": [listing.to_dict() for listing in self._listings.values()],
            "balances": {
                holder: {str(asset_id): count for asset_id, count in held.items()}
                for holder, held in self._balances.items()
            },
            "escrow": {str(asset_id): count for asset_id, count in self._escrow.items()},
            "earnings": dict(self._earnings),
        }

    def _from_state(self, data: Dict[str, Any]):
        self._assets = {a["asset_id"]: Asset.from_dict(a) for a in data.get("assets", [])}
        self._listings = {entry["listing_id"]: Listing.from_dict(entry) for entry in data.get("listings", [])}
        self._balances = {
            holder: {int(asset_id): count for asset_id, count in held.items()}
            for holder, held in data.get("balances", {}).items()
        }
        self._escrow = {int(asset_id): count for asset_id, count in data.get("escrow", {}).items()}
        self._earnings = dict(data.get("earnings", {}))
        self._platform_balance = data.get("platform_balance", 0)
        # Counters only move forward, even across a rollback
        self._next_asset_id = max(self._next_asset_id, data.get("next_asset_id", 1))
        self._next_listing_id = max(self._next_listing_id, data.get("next_listing_id", 1))

    def _load(self):
        """Load ledger state from disk."""
        path = self._index_path()
        if path is None:
            return
        version = file_version(path)
        data = read_json(path)
        self._version = version
        if data:
            self._from_state(data)
            logger.debug(f"Loaded ledger: {len(self._assets)} assets, {len(self._listings)} listings")

    def _save(self):
        """Save ledger state to disk."""
        path = self._index_path()
        if path is None:
            return
        atomic_write_json(path, self._to_state())
        self._version = file_version(path)

    def reload_if_changed(self) -> bool:
        """Reload state written by another process. Returns True if reloaded."""
        path = self._index_path()
        if path is None:
            return False
        with self._lock:
            if file_version(path) == self._version:
                return False
            self._load()
            return True

    @contextmanager
    def _transaction(self) -> Iterator[List[Transfer]]:
        """
        Run a block as one atomic ledger operation.

        Yields a list the block appends external transfers to. They are
        settled only after the new state has been persisted.
        """
        with self._lock:
            self.reload_if_changed()
            snapshot = self._to_state()
            transfers: List[Transfer] = []
            try:
                yield transfers
                self._save()
            except BaseException:
                self._rollback(snapshot)
                raise

            if not transfers:
                return
            try:
                self.settlement.settle(transfers)
            except Exception as e:
                logger.error(f"Settlement failed, rolling back: {e}")
                self._rollback(snapshot, persist=True)
                raise DisbursementFailed(f"Settlement failed: {e}") from e

    def _rollback(self, snapshot: Dict[str, Any], persist: bool = False):
        counters = (self._next_asset_id, self._next_listing_id)
        self._from_state(snapshot)
        # Advanced counters are persisted so a burned id stays burned
        if not persist and counters == (snapshot["next_asset_id"], snapshot["next_listing_id"]):
            return
        try:
            self._save()
        except OSError as e:
            logger.error(f"Failed to persist rolled-back ledger state: {e}")

    # ------------------------------------------------------------------
    # Internal helpers (lock held)

    def _asset(self, asset_id: int) -> Asset:
        asset = self._assets.get(asset_id)
        if asset is None:
            raise AssetNotFound(f"Asset {asset_id} not found")
        return asset

    def _listing(self, listing_id: int) -> Listing:
        listing = self._listings.get(listing_id)
        if listing is None:
            raise ListingNotFound(f"Listing {listing_id} not found")
        return listing

    def _held(self, holder: str, asset_id: int) -> int:
        return self._balances.get(holder, {}).get(asset_id, 0)

    def _adjust(self, holder: str, asset_id: int, delta: int):
        count = self._balances.get(holder, {}).get(asset_id, 0) + delta
        if count < 0:
            raise IntegrityFault(f"Balance of {holder} for asset {asset_id} would go negative")
        held = self._balances.setdefault(holder, {})
        if count == 0:
            held.pop(asset_id, None)
            if not held:
                del self._balances[holder]
        else:
            held[asset_id] = count

    def _book(self, disbursement: Disbursement, transfers: List[Transfer]):
        """Record a disbursement: fee retained, everything else paid out."""
        self._platform_balance += disbursement.platform_fee
        for transfer in disbursement.transfers():
            self._earnings[transfer.recipient] = (
                self._earnings.get(transfer.recipient, 0) + transfer.amount
            )
            transfers.append(transfer)

    # ------------------------------------------------------------------
    # Mutating operations

    def create_asset(
        self,
        caller: str,
        content_ref: str,
        metadata_ref: str,
        unit_price: int,
        max_supply: int,
        payees,
        before_commit: Callable[[int], None] = None,
    ) -> int:
        """
        Register a new asset.

        Args:
            caller: Creating identity
            content_ref: Locator of the (encrypted) content
            metadata_ref: Locator of the metadata document
            unit_price: Primary sale price
            max_supply: Mintable units, 0 for unbounded
            payees: (identity, share_bps) pairs summing to 10000
            before_commit: Called with the new asset id before the asset is
                persisted; raising aborts the creation

        Returns:
            The new asset id
        """
        payees = validate_payees(payees, self.config.max_payees)
        unit_price = require_amount(unit_price, "unit_price")
        max_supply = require_amount(max_supply, "max_supply")

        with self._transaction():
            asset_id = self._next_asset_id
            self._next_asset_id += 1
            self._assets[asset_id] = Asset(
                asset_id=asset_id,
                creator=caller,
                content_ref=content_ref,
                metadata_ref=metadata_ref,
                unit_price=unit_price,
                max_supply=max_supply,
                payees=payees,
            )
            if before_commit is not None:
                before_commit(asset_id)

        logger.info(f"Asset {asset_id} created by {caller} ({len(payees)} payees)")
        return asset_id

    def purchase(self, caller: str, asset_id: int, payment_amount: int) -> Disbursement:
        """
        Mint one unit of an asset to caller.

        Returns:
            How the payment was divided
        """
        with self._transaction() as transfers:
            asset = self._asset(asset_id)
            if not asset.active:
                raise AssetInactive(f"Asset {asset_id} is inactive")
            if asset.sold_out:
                raise SupplyExhausted(f"Asset {asset_id} has minted all {asset.max_supply} units")
            payment_amount = _check_payment(payment_amount, asset.unit_price)

            disbursement = split_primary(payment_amount, asset.payees, self.config.platform_fee_bps)
            asset.minted_supply += 1
            self._adjust(caller, asset_id, 1)
            self._book(disbursement, transfers)

        logger.info(f"{caller} purchased asset {asset_id} for {payment_amount}")
        return disbursement

    def list_for_resale(self, caller: str, asset_id: int, ask_price: int) -> int:
        """
        Move one unit from caller into escrow and offer it for sale.

        Returns:
            The new listing id
        """
        ask_price = require_amount(ask_price, "ask_price")

        with self._transaction():
            self._asset(asset_id)
            if self._held(caller, asset_id) < 1:
                raise InsufficientBalance(f"{caller} holds no units of asset {asset_id}")

            listing_id = self._next_listing_id
            self._next_listing_id += 1
            self._adjust(caller, asset_id, -1)
            self._escrow[asset_id] = self._escrow.get(asset_id, 0) + 1
            self._listings[listing_id] = Listing(
                listing_id=listing_id,
                asset_id=asset_id,
                seller=caller,
                ask_price=ask_price,
            )

        logger.info(f"{caller} listed asset {asset_id} as listing {listing_id} at {ask_price}")
        return listing_id

    def _close_listing(self, listing: Listing, status: ListingStatus, holder: str, buyer: str = None):
        self._escrow[listing.asset_id] -= 1
        if self._escrow[listing.asset_id] == 0:
            del self._escrow[listing.asset_id]
        self._adjust(holder, listing.asset_id, 1)
        listing.status = status
        listing.buyer = buyer
        listing.closed_at = time.time()

    def cancel_listing(self, caller: str, listing_id: int) -> None:
        """Return an escrowed unit to its seller."""
        with self._transaction():
            listing = self._listing(listing_id)
            if not listing.active:
                raise ListingInactive(f"Listing {listing_id} is {listing.status.value}")
            if listing.seller != caller:
                raise NotSeller(f"{caller} is not the seller of listing {listing_id}")
            self._close_listing(listing, ListingStatus.CANCELLED, holder=listing.seller)

        logger.info(f"{caller} cancelled listing {listing_id}")

    def buy_resale(self, caller: str, listing_id: int, payment_amount: int) -> Disbursement:
        """
        Buy an escrowed unit.

        Returns:
            How the payment was divided
        """
        with self._transaction() as transfers:
            listing = self._listing(listing_id)
            if not listing.active:
                raise ListingInactive(f"Listing {listing_id} is {listing.status.value}")
            if listing.seller == caller:
                raise SelfPurchase(f"{caller} cannot buy their own listing {listing_id}")
            payment_amount = _check_payment(payment_amount, listing.ask_price)

            asset = self._asset(listing.asset_id)
            disbursement = split_resale(
                payment_amount,
                asset.payees,
                listing.seller,
                self.config.platform_fee_bps,
                self.config.resale_royalty_bps,
            )
            self._close_listing(listing, ListingStatus.SOLD, holder=caller, buyer=caller)
            self._book(disbursement, transfers)

        logger.info(f"{caller} bought listing {listing_id} for {payment_amount}")
        return disbursement

    def withdraw(self, caller: str) -> int:
        """
        Pay the accumulated platform fees out to the platform identity.

        Returns:
            The amount withdrawn
        """
        with self._transaction() as transfers:
            if caller != self.platform_identity:
                raise NotPlatform(f"{caller} is not the platform identity")
            amount = self._platform_balance
            if amount == 0:
                raise NothingToWithdraw("Platform balance is zero")
            self._platform_balance = 0
            transfers.append(Transfer(caller, amount))

        logger.info(f"Platform withdrew {amount}")
        return amount

    def deactivate_asset(self, caller: str, asset_id: int) -> None:
        """Stop primary sales of an asset. There is no way back."""
        with self._transaction():
            asset = self._asset(asset_id)
            if caller not in (asset.creator, self.platform_identity):
                raise NotCreator(f"{caller} may not deactivate asset {asset_id}")
            if not asset.active:
                raise AssetInactive(f"Asset {asset_id} is already inactive")
            asset.active = False

        logger.info(f"Asset {asset_id} deactivated by {caller}")

    # ------------------------------------------------------------------
    # Reads

    def get_asset(self, asset_id: int) -> Asset:
        with self._lock:
            return Asset.from_dict(self._asset(asset_id).to_dict())

    def get_listing(self, listing_id: int) -> Listing:
        with self._lock:
            return Listing.from_dict(self._listing(listing_id).to_dict())

    def balance_of(self, holder: str, asset_id: int) -> int:
        """Spendable units of asset_id held by holder (escrow excluded)."""
        with self._lock:
            self._asset(asset_id)
            return self._held(holder, asset_id)

    def escrow_of(self, asset_id: int) -> int:
        """Units of asset_id held by the ledger for active listings."""
        with self._lock:
            self._asset(asset_id)
            return self._escrow.get(asset_id, 0)

    def holdings_of(self, holder: str) -> Dict[int, int]:
        with self._lock:
            return dict(self._balances.get(holder, {}))

    def platform_balance(self) -> int:
        with self._lock:
            return self._platform_balance

    def earnings_of(self, identity: str) -> int:
        """Total paid out to identity as payee or seller."""
        with self._lock:
            return self._earnings.get(identity, 0)

    def list_assets(self) -> List[Asset]:
        with self._lock:
            return [Asset.from_dict(a.to_dict()) for a in self._assets.values()]

    def list_listings(self, asset_id: int = None, active_only: bool = False) -> List[Listing]:
        with self._lock:
            return [
                Listing.from_dict(listing.to_dict())
                for listing in self._listings.values()
                if (asset_id is None or listing.asset_id == asset_id)
                and (not active_only or listing.active)
            ]

    def __contains__(self, asset_id: int) -> bool:
        with self._lock:
            return asset_id in self._assets

    def __len__(self) -> int:
        with self._lock:
            return len(self._assets)
