from datetime import datetime
from decimal import Decimal

import pytest

from cleardues.services.balance_service import calculate_group_balances
from cleardues.services.settlement_service import (
    InvalidSettlementAmountError,
    InvalidStateTransitionError,
    SelfSettlementError,
    confirm,
    mark_paid,
    new_settlement,
    reject,
)
from tests.factories import expense, settlement


def test_new_settlement_is_pending():
    record = new_settlement(1, 'B', 'A', '30')

    assert record.status == 'pending'
    assert record.amount == Decimal('30.00')
    assert record.paid_at is None


def test_self_settlement_rejected():
    with pytest.raises(SelfSettlementError):
        new_settlement(1, 'A', 'A', 10)


@pytest.mark.parametrize('amount', [0, '-1', '0.004', 'x'])
def test_invalid_settlement_amount(amount):
    with pytest.raises(InvalidSettlementAmountError):
        new_settlement(1, 'B', 'A', amount)


def test_pending_paid_confirmed():
    record = new_settlement(1, 'B', 'A', 30)
    paid_at = datetime(2024, 1, 1, 12, 0)
    confirmed_at = datetime(2024, 1, 2, 9, 30)

    mark_paid(record, reference='UPI-123', now=paid_at)
    assert record.status == 'paid'
    assert record.paid_at == paid_at
    assert record.payment_reference == 'UPI-123'

    confirm(record, now=confirmed_at)
    assert record.status == 'confirmed'
    assert record.confirmed_at == confirmed_at


def test_mark_paid_again_refreshes_reference():
    record = new_settlement(1, 'B', 'A', 30)
    mark_paid(record, reference='first', now=datetime(2024, 1, 1))

    mark_paid(record, reference='second', now=datetime(2024, 1, 3))

    assert record.status == 'paid'
    assert record.payment_reference == 'second'
    assert record.paid_at == datetime(2024, 1, 3)


def test_confirm_requires_paid():
    record = new_settlement(1, 'B', 'A', 30)

    with pytest.raises(InvalidStateTransitionError) as excinfo:
        confirm(record)

    assert excinfo.value.current == 'pending'
    assert excinfo.value.target == 'confirmed'
    assert 'pending' in str(excinfo.value) and 'confirmed' in str(excinfo.value)
    assert record.status == 'pending'


def test_confirmed_is_terminal():
    record = new_settlement(1, 'B', 'A', 30)
    mark_paid(record)
    confirm(record)

    with pytest.raises(InvalidStateTransitionError):
        reject(record)
    with pytest.raises(InvalidStateTransitionError):
        mark_paid(record)
    with pytest.raises(InvalidStateTransitionError):
        confirm(record)

    assert record.status == 'confirmed'


@pytest.mark.parametrize('pay_first', [False, True])
def test_reject_clears_payment(pay_first):
    record = new_settlement(1, 'B', 'A', 30)
    if pay_first:
        mark_paid(record, reference='UPI-9')

    reject(record)

    assert record.status == 'rejected'
    assert record.paid_at is None
    assert record.payment_reference is None


def test_rejected_is_terminal():
    record = new_settlement(1, 'B', 'A', 30)
    reject(record)

    with pytest.raises(InvalidStateTransitionError):
        mark_paid(record)
    with pytest.raises(InvalidStateTransitionError):
        reject(record)


def test_settlement_counts_only_once_confirmed():
    expenses = [expense('A', 90, ['A', 'B', 'C'])]
    record = settlement('B', 'A', 30, status='pending')
    before = calculate_group_balances(expenses, [record])

    mark_paid(record)
    assert calculate_group_balances(expenses, [record]) == before

    confirm(record)
    after = calculate_group_balances(expenses, [record])

    assert before['B'] == Decimal('-30')
    assert after['B'] == Decimal('0')
    assert after['A'] == Decimal('30')
