"""
SETTLEMENT SERVICE
==================

Lifecycle of a payment between two group members:

    pending --mark_paid--> paid --confirm--> confirmed   (counts in balances)
    pending/paid --reject--> rejected                   (never counts)

CRITICAL RULES:
1. Only CONFIRMED settlements change balances
2. 'confirmed' and 'rejected' are terminal
3. mark_paid may be repeated while 'paid' (refreshes reference + timestamp)
4. Who may call what (payer pays, receiver confirms/rejects) is checked
   by authorization_service, not here

The transition functions only mutate the object they are given; the
*_settlement helpers further down persist the result.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from flask import current_app

from cleardues.extensions import db
from cleardues.models import Group, Settlement, SettlementStatus
from cleardues.services.money import ZERO, round_money, to_decimal


# ============================================================
# CUSTOM EXCEPTIONS
# ============================================================

class SettlementError(Exception):
    """Base exception for settlement operations"""
    pass


class SelfSettlementError(SettlementError):
    """Raised when payer and receiver are the same member"""
    pass


class InvalidSettlementAmountError(SettlementError):
    pass


class InvalidStateTransitionError(SettlementError):
    """Raised when an operation is not allowed from the current status"""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move settlement from '{current}' to '{target}'"
        )


# ============================================================
# STATE MACHINE
# ============================================================

PENDING = SettlementStatus.PENDING.value
PAID = SettlementStatus.PAID.value
CONFIRMED = SettlementStatus.CONFIRMED.value
REJECTED = SettlementStatus.REJECTED.value

# target status -> statuses it can be reached from
ALLOWED_TRANSITIONS = {
    PAID: {PENDING, PAID},
    CONFIRMED: {PAID},
    REJECTED: {PENDING, PAID},
}


def _status_of(settlement):
    return getattr(settlement.status, 'value', settlement.status)


def _check_transition(settlement, target):
    current = _status_of(settlement)
    if current not in ALLOWED_TRANSITIONS[target]:
        raise InvalidStateTransitionError(current, target)


def mark_paid(settlement, reference=None, now=None):
    """Payer says the money was sent."""
    _check_transition(settlement, PAID)

    settlement.status = PAID
    settlement.paid_at = now or datetime.utcnow()
    if reference:
        settlement.payment_reference = reference
    return settlement


def confirm(settlement, now=None):
    """Receiver acknowledges the money. From here on it counts in balances."""
    _check_transition(settlement, CONFIRMED)

    settlement.status = CONFIRMED
    settlement.confirmed_at = now or datetime.utcnow()
    return settlement


def reject(settlement):
    """Receiver disputes the payment."""
    _check_transition(settlement, REJECTED)

    settlement.status = REJECTED
    settlement.paid_at = None
    settlement.payment_reference = None
    return settlement


# ============================================================
# CONSTRUCTION
# ============================================================

@dataclass
class SettlementRecord:
    """Plain (not persisted) settlement, same attributes as the model."""
    group_id: object
    from_user_id: object
    to_user_id: object
    amount: Decimal
    status: str = PENDING
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None


def validate_settlement_parties(from_user_id, to_user_id, amount):
    """Returns the amount rounded to 2 decimals."""
    if from_user_id == to_user_id:
        raise SelfSettlementError("Payer and payee cannot be the same user")

    try:
        amount = to_decimal(amount)
    except ValueError as e:
        raise InvalidSettlementAmountError(str(e))

    if not amount.is_finite() or round_money(amount) <= ZERO:
        raise InvalidSettlementAmountError("Settlement amount must be at least 0.01")

    return round_money(amount)


def new_settlement(group_id, from_user_id, to_user_id, amount):
    """Build a 'pending' settlement value after validating it."""
    amount = validate_settlement_parties(from_user_id, to_user_id, amount)
    return SettlementRecord(
        group_id=group_id,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        amount=amount,
    )


# ============================================================
# PERSISTENCE
# ============================================================

def create_settlement(group_id, from_user_id, to_user_id, amount, notes=None):
    """Create a 'pending' settlement in the database."""
    try:
        amount = validate_settlement_parties(from_user_id, to_user_id, amount)

        group = db.session.get(Group, group_id)
        if not group:
            raise SettlementError(f"Group {group_id} not found")

        settlement = Settlement(
            group_id=group_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount=amount,
            status=PENDING,
            notes=notes,
        )
        db.session.add(settlement)
        db.session.commit()

        current_app.logger.info(
            "Settlement %s created: %s -> %s amount=%s",
            settlement.id, from_user_id, to_user_id, amount
        )
        return settlement

    except SettlementError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise SettlementError(f"Failed to create settlement: {str(e)}")


def create_settlement_records(group_id, suggestions):
    """Persist a list of TransferSuggestion as 'pending' settlements."""
    try:
        records = []
        for suggestion in suggestions:
            amount = validate_settlement_parties(
                suggestion.from_user_id, suggestion.to_user_id, suggestion.amount
            )
            record = Settlement(
                group_id=group_id,
                from_user_id=suggestion.from_user_id,
                to_user_id=suggestion.to_user_id,
                amount=amount,
                status=PENDING,
            )
            db.session.add(record)
            records.append(record)

        db.session.commit()
        return records

    except SettlementError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise SettlementError(f"Failed to create settlements: {str(e)}")


def _apply_transition(settlement_id, transition, *args):
    try:
        settlement = db.session.get(Settlement, settlement_id)
        if not settlement:
            raise SettlementError(f"Settlement {settlement_id} not found")

        previous = settlement.status
        transition(settlement, *args)
        db.session.commit()

        current_app.logger.info(
            "Settlement %s: %s -> %s", settlement.id, previous, settlement.status
        )
        return settlement

    except SettlementError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise SettlementError(f"Settlement update failed: {str(e)}")


def mark_settlement_paid(settlement_id, reference=None):
    return _apply_transition(settlement_id, mark_paid, reference)


def confirm_settlement(settlement_id):
    return _apply_transition(settlement_id, confirm)


def reject_settlement(settlement_id):
    return _apply_transition(settlement_id, reject)


# ============================================================
# QUERIES
# ============================================================

def get_pending_settlements(user_id):
    """Settlements this user still has to pay (or has paid, awaiting confirmation)."""
    return Settlement.query.filter(
        Settlement.from_user_id == user_id,
        Settlement.status.in_([PENDING, PAID])
    ).order_by(Settlement.created_at.desc()).all()


def get_settlements_to_confirm(user_id):
    """Settlements paid to this user that await their confirmation."""
    return Settlement.query.filter_by(
        to_user_id=user_id,
        status=PAID
    ).order_by(Settlement.paid_at.desc()).all()


def get_group_settlements(group_id, status=None):
    query = Settlement.query.filter_by(group_id=group_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Settlement.created_at.desc()).all()
