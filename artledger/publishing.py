# artledger/publishing.py
"""
Asset creation flow.

Publishing writes the ledger and the key store together: the secret is put
from inside the ledger transaction that creates the asset, so if the put
fails (duplicate, or not durable) the asset is never committed.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .content import ContentStore, encrypt_content, generate_secret
from .keystore import DecryptionSecret, KeyStore
from .ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass
class PublishedAsset:
    """Result of publish_content."""
    asset_id: int
    content_ref: str
    metadata_ref: str


class Publisher:
    """
    Creates assets with their secrets.

    Args:
        ledger: The ledger contract
        keystore: Secret storage
        content_store: Blob store for encrypted content and metadata
            (only needed for publish_content)
    """

    def __init__(self, ledger: Ledger, keystore: KeyStore, content_store: Optional[ContentStore] = None):
        self.ledger = ledger
        self.keystore = keystore
        self.content_store = content_store

    def publish(
        self,
        creator: str,
        content_ref: str,
        metadata_ref: str,
        unit_price: int,
        max_supply: int,
        payees,
        secret: DecryptionSecret,
    ) -> int:
        """
        Create an asset and store its secret.

        Returns:
            The new asset id

        Raises:
            Any ledger validation error, AlreadyExists or KeyStoreError;
            in every case no asset was created
        """
        def store_secret(asset_id: int):
            self.keystore.put(asset_id, secret)

        asset_id = self.ledger.create_asset(
            creator,
            content_ref,
            metadata_ref,
            unit_price,
            max_supply,
            payees,
            before_commit=store_secret,
        )
        logger.info(f"Published asset {asset_id} for {creator}")
        return asset_id

    def publish_content(
        self,
        creator: str,
        plaintext: bytes,
        metadata: Dict[str, Any],
        unit_price: int,
        max_supply: int,
        payees,
    ) -> PublishedAsset:
        """
        Encrypt content with a fresh secret, store it, and publish the asset.
        """
        if self.content_store is None:
            raise ValueError("Publisher has no content store")

        secret = generate_secret()
        content_ref = self.content_store.put(encrypt_content(plaintext, secret))
        metadata_doc = json.dumps(metadata or {}, sort_keys=True, separators=(",", ":"))
        metadata_ref = self.content_store.put(metadata_doc.encode("utf-8"))

        asset_id = self.publish(
            creator,
            content_ref,
            metadata_ref,
            unit_price,
            max_supply,
            payees,
            secret,
        )
        return PublishedAsset(asset_id=asset_id, content_ref=content_ref, metadata_ref=metadata_ref)
