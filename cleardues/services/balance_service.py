"""
BALANCE SERVICE
===============

Ledger computations for a group. Pure functions over already-fetched
expenses and settlements (ORM rows or any objects with the same attributes).

Sign convention:
    positive balance = member is owed money
    negative balance = member owes money

CRITICAL RULES:
1. Deleted expenses never count
2. Only CONFIRMED settlements count - 'pending' / 'paid' / 'rejected' are ignored
3. Group balances always add up to 0
"""

from dataclasses import dataclass
from decimal import Decimal

from cleardues.models import SettlementStatus
from cleardues.services.money import MONEY_TOLERANCE, ZERO, round_money, to_decimal


@dataclass(frozen=True)
class TransferSuggestion:
    """Suggested payment. Advisory only: recompute before acting on it."""
    from_user_id: object
    to_user_id: object
    amount: Decimal


def _is_active_expense(expense):
    return not getattr(expense, 'is_deleted', False)


def _is_confirmed(settlement):
    status = getattr(settlement.status, 'value', settlement.status)
    return status == SettlementStatus.CONFIRMED.value


# ============================================================
# GROUP BALANCES (LEDGER)
# ============================================================

def calculate_group_balances(expenses, settlements, member_ids=()):
    """
    Net balance for every member of a group.

    member_ids: members with no activity yet, reported with a 0 balance.
    Returns {user_id: Decimal}, not rounded.
    """
    balances = {user_id: ZERO for user_id in member_ids}

    for expense in expenses:
        if not _is_active_expense(expense):
            continue

        # Payer paid the full amount (credit)
        payer_id = expense.paid_by
        balances[payer_id] = balances.get(payer_id, ZERO) + to_decimal(expense.amount)

        # Every split owner owes their share (debit), payer included
        for split in expense.splits:
            balances[split.user_id] = balances.get(split.user_id, ZERO) - to_decimal(split.amount)

    for settlement in settlements:
        if not _is_confirmed(settlement):
            continue

        amount = to_decimal(settlement.amount)
        # Payer's debt shrinks, receiver's credit shrinks
        balances[settlement.from_user_id] = balances.get(settlement.from_user_id, ZERO) + amount
        balances[settlement.to_user_id] = balances.get(settlement.to_user_id, ZERO) - amount

    return balances


# ============================================================
# PER-USER BREAKDOWN
# ============================================================

def get_user_balance_breakdown(expenses, settlements, user_id):
    """
    Who owes this user and whom this user owes, pair by pair.

    A confirmed settlement only reduces a pair that already exists from
    expenses. calculate_group_balances stays the authoritative net figure.
    """
    owes = {}      # other user -> amount this user owes them
    owed_by = {}   # other user -> amount they owe this user

    for expense in expenses:
        if not _is_active_expense(expense):
            continue

        payer_id = expense.paid_by
        for split in expense.splits:
            split_user_id = split.user_id
            share = to_decimal(split.amount)

            if payer_id == user_id and split_user_id != user_id:
                owed_by[split_user_id] = owed_by.get(split_user_id, ZERO) + share
            elif split_user_id == user_id and payer_id != user_id:
                owes[payer_id] = owes.get(payer_id, ZERO) + share

    for settlement in settlements:
        if not _is_confirmed(settlement):
            continue

        amount = to_decimal(settlement.amount)
        if settlement.from_user_id == user_id and settlement.to_user_id in owes:
            owes[settlement.to_user_id] -= amount
        elif settlement.to_user_id == user_id and settlement.from_user_id in owed_by:
            owed_by[settlement.from_user_id] -= amount

    owes_list = _filter_buckets(owes)
    owed_by_list = _filter_buckets(owed_by)

    total_owed = sum((item['amount'] for item in owes_list), ZERO)
    total_owed_by = sum((item['amount'] for item in owed_by_list), ZERO)

    return {
        'owes': owes_list,
        'owed_by': owed_by_list,
        'total_owed': round_money(total_owed),
        'total_owed_by': round_money(total_owed_by),
        'net_balance': round_money(total_owed_by - total_owed),
    }


def _filter_buckets(buckets):
    # Drops rounding noise and over-settled pairs
    return [
        {'user_id': other_id, 'amount': round_money(amount)}
        for other_id, amount in buckets.items()
        if amount > MONEY_TOLERANCE
    ]


def get_user_overall_balance(breakdowns):
    """Sum per-group breakdowns of one user (dashboard overview)."""
    total_owed = ZERO
    total_owed_by = ZERO

    for breakdown in breakdowns:
        total_owed += to_decimal(breakdown['total_owed'])
        total_owed_by += to_decimal(breakdown['total_owed_by'])

    return {
        'total_owed': round_money(total_owed),
        'total_owed_by': round_money(total_owed_by),
        'net_balance': round_money(total_owed_by - total_owed),
    }


# ============================================================
# SETTLEMENT MINIMIZATION (greedy debt simplification)
# ============================================================

def calculate_minimized_settlements(balances):
    """
    Reduce group balances to a short list of transfers.

    1. Split members into creditors (> 0.01) and debtors (< -0.01)
    2. Sort both by amount, largest first, ties by user id
    3. Match largest debtor with largest creditor, transfer min(debt, credit)
    4. Repeat until one side is empty

    Emits at most (members with a nonzero balance - 1) transfers.
    Not guaranteed optimal, but every balance is discharged up to
    rounding residue below 0.01.
    """
    creditors = []
    debtors = []

    for user_id, balance in balances.items():
        rounded = round_money(balance)
        if rounded > MONEY_TOLERANCE:
            creditors.append([user_id, rounded])
        elif rounded < -MONEY_TOLERANCE:
            debtors.append([user_id, -rounded])

    creditors.sort(key=lambda entry: (-entry[1], entry[0]))
    debtors.sort(key=lambda entry: (-entry[1], entry[0]))

    transfers = []
    c_index = d_index = 0

    while c_index < len(creditors) and d_index < len(debtors):
        creditor = creditors[c_index]
        debtor = debtors[d_index]

        settle_amount = round_money(min(creditor[1], debtor[1]))
        if settle_amount > ZERO:
            transfers.append(TransferSuggestion(
                from_user_id=debtor[0],
                to_user_id=creditor[0],
                amount=settle_amount,
            ))

        creditor[1] -= settle_amount
        debtor[1] -= settle_amount

        if creditor[1] < MONEY_TOLERANCE:
            c_index += 1
        if debtor[1] < MONEY_TOLERANCE:
            d_index += 1

    return transfers
