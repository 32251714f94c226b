# artledger/ledger/splits.py
"""
Royalty split arithmetic.

All amounts are integers in the smallest currency unit and every share is
computed by floor division. Whatever floor division leaves behind is added
to the platform fee, so a disbursement always sums to the payment exactly.
With N payees the residual is at most N units (plus one for the seller on
resale).
"""

from typing import Any, Iterable, List, Tuple

from ..config import BPS_DENOMINATOR
from ..errors import (
    DuplicatePayee,
    EmptyPayeeList,
    InvalidAmount,
    InvalidRoyaltySplit,
    TooManyPayees,
    ValidationError,
)
from .models import Disbursement, Payee


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_amount(value: Any, name: str) -> int:
    """Return value if it is a non-negative integer, else raise InvalidAmount."""
    if not _is_int(value) or value < 0:
        raise InvalidAmount(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _coerce_payee(entry: Any) -> Payee:
    if isinstance(entry, Payee):
        return entry
    if isinstance(entry, dict):
        return Payee(identity=entry.get("identity"), share_bps=entry.get("share_bps"))
    try:
        identity, share_bps = entry
    except (TypeError, ValueError):
        raise ValidationError(f"Payee must be (identity, share_bps), got {entry!r}")
    return Payee(identity=identity, share_bps=share_bps)


def validate_payees(payees: Iterable[Any], max_payees: int = 16) -> Tuple[Payee, ...]:
    """
    Normalize and validate a payee list.

    Accepts Payee objects, (identity, share_bps) pairs or dicts.

    Raises:
        EmptyPayeeList: no payees
        TooManyPayees: more than max_payees entries
        InvalidRoyaltySplit: a share is not a positive integer, or the
            shares do not sum to 10000
        DuplicatePayee: an identity appears twice
    """
    entries = [_coerce_payee(p) for p in (payees or [])]
    if not entries:
        raise EmptyPayeeList("Payee list is empty")
    if len(entries) > max_payees:
        raise TooManyPayees(f"{len(entries)} payees exceeds the limit of {max_payees}")

    seen = set()
    for payee in entries:
        if not isinstance(payee.identity, str) or not payee.identity:
            raise ValidationError(f"Payee identity must be a non-empty string, got {payee.identity!r}")
        if not _is_int(payee.share_bps) or payee.share_bps <= 0:
            raise InvalidRoyaltySplit(
                f"Share for {payee.identity} must be a positive integer, got {payee.share_bps!r}"
            )
        if payee.identity in seen:
            raise DuplicatePayee(f"Payee {payee.identity} appears more than once")
        seen.add(payee.identity)

    total = sum(p.share_bps for p in entries)
    if total != BPS_DENOMINATOR:
        raise InvalidRoyaltySplit(f"Payee shares sum to {total}, expected {BPS_DENOMINATOR}")

    return tuple(entries)


def _split_pool(pool: int, payees: Tuple[Payee, ...]) -> List[Tuple[str, int]]:
    return [(p.identity, pool * p.share_bps // BPS_DENOMINATOR) for p in payees]


def split_primary(payment: int, payees: Tuple[Payee, ...], platform_fee_bps: int) -> Disbursement:
    """
    Divide a primary sale.

    The platform takes platform_fee_bps of the payment; the rest is shared
    between payees by share_bps.
    """
    fee = payment * platform_fee_bps // BPS_DENOMINATOR
    payee_amounts = _split_pool(payment - fee, payees)
    residual = payment - fee - sum(a for _, a in payee_amounts)
    return Disbursement(
        payment=payment,
        platform_fee=fee + residual,
        payee_amounts=payee_amounts,
    )


def split_resale(
    payment: int,
    payees: Tuple[Payee, ...],
    seller: str,
    platform_fee_bps: int,
    royalty_bps: int,
) -> Disbursement:
    """
    Divide a resale.

    The platform takes platform_fee_bps, payees share royalty_bps by
    share_bps, and the seller gets the remaining percentage.
    """
    fee = payment * platform_fee_bps // BPS_DENOMINATOR
    pool = payment * royalty_bps // BPS_DENOMINATOR
    seller_bps = BPS_DENOMINATOR - platform_fee_bps - royalty_bps
    seller_amount = payment * seller_bps // BPS_DENOMINATOR
    payee_amounts = _split_pool(pool, payees)
    residual = payment - fee - seller_amount - sum(a for _, a in payee_amounts)
    return Disbursement(
        payment=payment,
        platform_fee=fee + residual,
        payee_amounts=payee_amounts,
        seller=seller,
        seller_amount=seller_amount,
    )
