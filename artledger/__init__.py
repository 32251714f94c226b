# artledger - Royalty-splitting asset ledger with ownership-gated decryption
#
# Creators publish encrypted works as assets with bounded or unbounded
# supply. Units are sold and resold on the ledger, every payment is split
# between the platform, the asset's payees and (on resale) the seller, and
# the decryption secret is released only to a current holder.
#
# Core concepts:
# - Ledger: assets, ownership balances, resale escrow and payouts
# - KeyStore: write-once storage of decryption secrets, apart from the ledger
# - AccessService: releases a secret for a fresh signed proof of ownership
# - Publisher: creates an asset and its secret together

from .config import LedgerConfig
from .errors import LedgerError
from .identity import Identity, IdentityStore, SignatureVerifier
from .ledger import Asset, Disbursement, InMemoryBank, Ledger, Listing, ListingStatus, Payee
from .keystore import DecryptionSecret, KeyStore
from .access import AccessService, OwnershipProofRequest
from .publishing import Publisher, PublishedAsset
from .content import ContentStore, decrypt_content, encrypt_content, generate_secret

__all__ = [
    # Config and errors
    "LedgerConfig",
    "LedgerError",
    # Identity
    "Identity",
    "IdentityStore",
    "SignatureVerifier",
    # Ledger
    "Ledger",
    "Asset",
    "Listing",
    "ListingStatus",
    "Payee",
    "Disbursement",
    "InMemoryBank",
    # Secrets and access
    "DecryptionSecret",
    "KeyStore",
    "AccessService",
    "OwnershipProofRequest",
    # Publishing and content
    "Publisher",
    "PublishedAsset",
    "ContentStore",
    "encrypt_content",
    "decrypt_content",
    "generate_secret",
]

__version__ = "0.1.0"
