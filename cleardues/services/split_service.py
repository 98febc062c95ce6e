"""
SPLIT SERVICE
=============

Turns an expense amount and a split type into per-member shares.

RULES:
1. 'equal'      - base share rounded to 2 decimals, the whole rounding
                  remainder goes to the FIRST participant (order matters!)
2. 'percentage' - percentages must add up to 100 (+/- 0.01), each share is
                  rounded on its own, the drift is NOT corrected
3. 'unequal'    - caller gives the amounts, they must add up to the total

Pure functions: no database access. Group membership of participants is
checked by the caller.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from cleardues.models import SplitType
from cleardues.services.money import (
    MONEY_TOLERANCE, ZERO, amounts_close, round_money, to_decimal
)

HUNDRED = Decimal('100')


# ============================================================
# CUSTOM EXCEPTIONS
# ============================================================

class SplitError(Exception):
    """Base exception for split calculation"""
    pass


class InvalidParticipantCountError(SplitError):
    """Raised when a split has no participants"""
    pass


class InvalidPercentageSumError(SplitError):
    """Raised when percentages do not add up to 100"""
    pass


class SplitSumMismatchError(SplitError):
    """Raised when split amounts do not add up to the expense amount"""
    pass


class InvalidSplitTypeError(SplitError):
    pass


class InvalidAmountError(SplitError):
    """Raised when an expense amount or a share is invalid"""
    pass


@dataclass(frozen=True)
class SplitShare:
    user_id: object
    amount: Decimal
    percentage: Optional[Decimal] = None


# ============================================================
# ENTRY POINT
# ============================================================

def compute_splits(amount, split_type, participants) -> List[SplitShare]:
    """
    Compute shares for an expense.

    participants depends on split_type:
    - equal:      [user_id, ...]
    - percentage: [(user_id, percentage), ...]
    - unequal:    [(user_id, amount), ...]
    """
    amount = _validate_total(amount)
    split_type = getattr(split_type, 'value', split_type)
    participants = list(participants or [])

    if split_type == SplitType.EQUAL.value:
        return calculate_equal_splits(amount, participants)
    if split_type == SplitType.PERCENTAGE.value:
        return calculate_percentage_splits(amount, participants)
    if split_type == SplitType.UNEQUAL.value:
        return calculate_unequal_splits(amount, participants)

    raise InvalidSplitTypeError(f"Invalid split type: {split_type}")


# ============================================================
# EQUAL
# ============================================================

def calculate_equal_splits(amount, user_ids):
    """
    100 among [A, B, C] -> A: 33.34, B: 33.33, C: 33.33
    """
    if len(user_ids) < 1:
        raise InvalidParticipantCountError("Equal split needs at least one participant")

    amount = to_decimal(amount)
    count = len(user_ids)
    base = round_money(amount / count)
    remainder = amount - base * count

    # Too small to share: the remainder would push the first share below 0
    if base + remainder < ZERO:
        raise InvalidAmountError(
            f"Amount {amount} is too small to split equally among {count} participants"
        )

    return [
        SplitShare(user_id=user_id, amount=base + remainder if index == 0 else base)
        for index, user_id in enumerate(user_ids)
    ]


# ============================================================
# PERCENTAGE
# ============================================================

def calculate_percentage_splits(amount, percentages):
    if not percentages:
        raise InvalidParticipantCountError("Percentage split needs at least one participant")

    amount = to_decimal(amount)
    parsed = []
    for user_id, percentage in _parse_pairs(percentages, 'percentage', InvalidPercentageSumError):
        if percentage < ZERO or percentage > HUNDRED:
            raise InvalidPercentageSumError(
                f"Percentage for user {user_id} must be between 0 and 100, got {percentage}"
            )
        parsed.append((user_id, percentage))

    total_percentage = sum((p for _, p in parsed), ZERO)
    if not amounts_close(total_percentage, HUNDRED, MONEY_TOLERANCE):
        raise InvalidPercentageSumError(
            f"Percentages must add up to 100, got {total_percentage}"
        )

    # No remainder correction: shares may drift from the total by a few cents
    return [
        SplitShare(
            user_id=user_id,
            amount=round_money(amount * percentage / HUNDRED),
            percentage=percentage,
        )
        for user_id, percentage in parsed
    ]


# ============================================================
# UNEQUAL (custom amounts)
# ============================================================

def calculate_unequal_splits(amount, shares):
    if not shares:
        raise InvalidParticipantCountError("Unequal split needs at least one participant")

    amount = to_decimal(amount)
    parsed = []
    for user_id, share in _parse_pairs(shares, 'amount', InvalidAmountError):
        if share < ZERO:
            raise InvalidAmountError(f"Share for user {user_id} cannot be negative")
        parsed.append(SplitShare(user_id=user_id, amount=share))

    validate_splits_total(amount, parsed)
    return parsed


# ============================================================
# VALIDATION
# ============================================================

def validate_splits_total(amount, shares):
    """Check the expense invariant: no negative share, shares add up to the amount (+/- 0.01)."""
    for share in shares:
        if to_decimal(share.amount) < ZERO:
            raise InvalidAmountError(f"Share for user {share.user_id} cannot be negative")

    total = sum((to_decimal(s.amount) for s in shares), ZERO)
    if not amounts_close(total, amount):
        raise SplitSumMismatchError(
            f"Split amounts must equal total amount. Total: {amount}, splits: {total}"
        )
    return total


def _parse_pairs(pairs, label, error_class):
    """(user_id, value) pairs with finite Decimal values."""
    parsed = []
    for entry in pairs:
        try:
            user_id, value = entry
            value = to_decimal(value)
        except (TypeError, ValueError):
            raise error_class(f"Each participant must be a (user_id, {label}) pair, got {entry!r}")

        if not value.is_finite():
            raise error_class(f"Invalid {label} for user {user_id}: {value}")
        parsed.append((user_id, value))
    return parsed


def _validate_total(amount):
    try:
        amount = to_decimal(amount)
    except ValueError as e:
        raise InvalidAmountError(str(e))

    if not amount.is_finite() or amount <= ZERO:
        raise InvalidAmountError("Expense amount must be greater than 0")

    return amount
