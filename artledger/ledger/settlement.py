# artledger/ledger/settlement.py
"""
Settlement backends.

The ledger finalizes its own state first and then hands the resulting
transfers to a backend in one batch. A backend must apply the whole batch or
none of it; raising from settle() makes the ledger roll the operation back.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List

from .models import Transfer

logger = logging.getLogger(__name__)


class SettlementBackend(ABC):
    """Moves value to external recipients."""

    @abstractmethod
    def settle(self, transfers: List[Transfer]) -> None:
        """
        Apply all transfers atomically.

        Raises:
            Exception: any failure; no transfer of the batch may remain applied
        """
        pass


class InMemoryBank(SettlementBackend):
    """
    Credits internal accounts.

    The whole batch is validated before any account changes, so a bad
    transfer leaves every account untouched.
    """

    def __init__(self):
        self._accounts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def settle(self, transfers: List[Transfer]) -> None:
        for transfer in transfers:
            if not transfer.recipient:
                raise ValueError("Transfer recipient is empty")
            if transfer.amount < 0:
                raise ValueError(f"Negative transfer to {transfer.recipient}: {transfer.amount}")

        with self._lock:
            for transfer in transfers:
                self._accounts[transfer.recipient] = (
                    self._accounts.get(transfer.recipient, 0) + transfer.amount
                )
        logger.debug(f"Settled {len(transfers)} transfers")

    def balance_of(self, identity: str) -> int:
        with self._lock:
            return self._accounts.get(identity, 0)

    def accounts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._accounts)
