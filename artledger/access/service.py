# artledger/access/service.py
"""
Key-release service.

Releases an asset's decryption secret to a requester who proves, with a
fresh signed request, that they currently hold at least one unit.

Checks:
1. Freshness: the request timestamp is within the freshness window
2. Authenticity: the signature verifies against the claimed identity
3. Ownership: the ledger shows a non-zero spendable balance

All three are evaluated for every request before any denial is raised, so
the work done does not depend on which check fails. A proof can be replayed
within the freshness window; no nonces are tracked.

The service is trusted with every secret. It keeps no state of its own.
"""

import logging
import time
from typing import Callable, Optional

from ..config import LedgerConfig
from ..errors import (
    AccessDenied,
    AssetNotFound,
    DanglingAsset,
    InvalidSignature,
    NotOwner,
    SecretNotFound,
    StaleRequest,
)
from ..identity import SignatureVerifier
from ..keystore import DecryptionSecret, KeyStore
from ..ledger import Ledger
from .request import OwnershipProofRequest

logger = logging.getLogger(__name__)
integrity_logger = logging.getLogger("artledger.access.integrity")


class AccessService:
    """
    Args:
        ledger: Ledger used for balance_of reads only
        keystore: Secret storage
        verifier: Signature verifier resolving identities to public keys
        config: Freshness window and clock skew
        clock: Returns the current Unix time (injectable for tests)
    """

    def __init__(
        self,
        ledger: Ledger,
        keystore: KeyStore,
        verifier: SignatureVerifier,
        config: LedgerConfig = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ledger = ledger
        self.keystore = keystore
        self.verifier = verifier
        self.config = config or LedgerConfig()
        self._clock = clock

    def _is_stale(self, timestamp: int, now: float) -> bool:
        # Integer arithmetic: the timestamp is an arbitrary client integer
        age = int(now) - timestamp
        return age > self.config.freshness_window or age < -self.config.clock_skew

    def _owned_units(self, identity: str, asset_id: int) -> int:
        try:
            return self.ledger.balance_of(identity, asset_id)
        except AssetNotFound:
            return 0

    def check(self, request: OwnershipProofRequest) -> None:
        """
        Run the freshness, signature and ownership checks.

        Raises:
            StaleRequest, InvalidSignature, NotOwner: first failed check
        """
        now = self._clock()
        stale = self._is_stale(request.timestamp, now)
        signature_ok = self.verifier.verify(request.message, request.signature, request.identity)
        units = self._owned_units(request.identity, request.asset_id)

        denial: Optional[AccessDenied] = None
        if stale:
            denial = StaleRequest(f"Request timestamp {request.timestamp} outside window at {now:.0f}")
        elif not signature_ok:
            denial = InvalidSignature(f"Signature does not verify for {request.identity}")
        elif units == 0:
            denial = NotOwner(f"{request.identity} holds no units of asset {request.asset_id}")

        if denial is not None:
            logger.warning(
                f"Access denied ({denial.code}): identity={request.identity} "
                f"asset={request.asset_id} timestamp={request.timestamp}: {denial.message}"
            )
            raise denial

    def release_secret(self, request: OwnershipProofRequest) -> DecryptionSecret:
        """
        Verify an ownership proof and return the asset's secret.

        Raises:
            StaleRequest, InvalidSignature, NotOwner: proof rejected
            DanglingAsset: the asset is owned but has no stored secret (an
                IntegrityFault, also catchable as SecretNotFound)
        """
        self.check(request)

        try:
            secret = self.keystore.get(request.asset_id)
        except SecretNotFound as e:
            integrity_logger.error(
                f"Asset {request.asset_id} is held by {request.identity} but has no secret"
            )
            raise DanglingAsset(f"Asset {request.asset_id} has no stored secret") from e

        logger.info(f"Released secret for asset {request.asset_id} to {request.identity}")
        return secret
