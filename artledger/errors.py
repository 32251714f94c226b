# artledger/errors.py
"""
Error kinds raised by the ledger, key store and access service.

Every error carries a stable ``code`` naming its kind, so callers (the CLI,
the HTTP handler, tests) can branch on the kind without string matching.

Families:
- ValidationError: caller-correctable input problems
- StateConflictError: a race lost against current state; re-read and retry
- NotFoundError: unknown identifiers
- PermissionDenied: caller is not allowed to perform the operation
- AccessDenied: ownership proof rejected by the access service
- IntegrityFault: internal data-integrity alarm, never a normal denial
"""


class LedgerError(Exception):
    """Base class for all artledger errors."""

    code = "LedgerError"

    def __init__(self, message: str = None):
        super().__init__(message or self.code)
        self.message = message or self.code


# Validation

class ValidationError(LedgerError, ValueError):
    code = "ValidationError"


class InvalidRoyaltySplit(ValidationError):
    code = "InvalidRoyaltySplit"


class EmptyPayeeList(ValidationError):
    code = "EmptyPayeeList"


class DuplicatePayee(ValidationError):
    code = "DuplicatePayee"


class TooManyPayees(ValidationError):
    code = "TooManyPayees"


class InvalidAmount(ValidationError):
    code = "InvalidAmount"


class InsufficientPayment(ValidationError):
    code = "InsufficientPayment"


class ExcessPayment(ValidationError):
    code = "ExcessPayment"


class SelfPurchase(ValidationError):
    code = "SelfPurchase"


# State conflicts

class StateConflictError(LedgerError):
    code = "StateConflict"


class SupplyExhausted(StateConflictError):
    code = "SupplyExhausted"


class AssetInactive(StateConflictError):
    code = "AssetInactive"


class ListingInactive(StateConflictError):
    code = "ListingInactive"


class AlreadyExists(StateConflictError):
    code = "AlreadyExists"


class InsufficientBalance(StateConflictError):
    code = "InsufficientBalance"


class NothingToWithdraw(StateConflictError):
    code = "NothingToWithdraw"


# Not found

class NotFoundError(LedgerError, LookupError):
    code = "NotFound"


class AssetNotFound(NotFoundError):
    code = "AssetNotFound"


class ListingNotFound(NotFoundError):
    code = "ListingNotFound"


class SecretNotFound(NotFoundError):
    code = "SecretNotFound"


# Permissions

class PermissionDenied(LedgerError):
    code = "PermissionDenied"


class NotSeller(PermissionDenied):
    code = "NotSeller"


class NotPlatform(PermissionDenied):
    code = "NotPlatform"


class NotCreator(PermissionDenied):
    code = "NotCreator"


# Access control

class AccessDenied(LedgerError):
    """Ownership proof rejected. Subclasses name the failed check."""
    code = "AccessDenied"


class StaleRequest(AccessDenied):
    code = "StaleRequest"


class InvalidSignature(AccessDenied):
    code = "InvalidSignature"


class NotOwner(AccessDenied):
    code = "NotOwner"


# Integrity and infrastructure

class IntegrityFault(LedgerError):
    """Stored state contradicts itself (e.g. an asset with no secret)."""
    code = "IntegrityFault"


class DisbursementFailed(LedgerError):
    """Settlement of an operation's transfers failed; state was rolled back."""
    code = "DisbursementFailed"


class KeyStoreError(LedgerError):
    """A key store write could not be made durable."""
    code = "KeyStoreError"


class DanglingAsset(IntegrityFault, SecretNotFound):
    """An asset exists and is owned, but its secret is missing."""
    code = "SecretNotFound"
