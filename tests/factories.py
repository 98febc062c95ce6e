"""Plain ledger values for testing the pure services without a database."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from cleardues.services.settlement_service import SettlementRecord
from cleardues.services.split_service import SplitShare, compute_splits


@dataclass
class LedgerExpense:
    paid_by: object
    amount: Decimal
    splits: List[SplitShare] = field(default_factory=list)
    is_deleted: bool = False


def expense(paid_by, amount, participants, split_type='equal', is_deleted=False):
    amount = Decimal(str(amount))
    return LedgerExpense(
        paid_by=paid_by,
        amount=amount,
        splits=compute_splits(amount, split_type, participants),
        is_deleted=is_deleted,
    )


def settlement(from_user_id, to_user_id, amount, status='confirmed', group_id=1):
    return SettlementRecord(
        group_id=group_id,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        amount=Decimal(str(amount)),
        status=status,
    )


def apply_transfers(balances, transfers):
    after = dict(balances)
    for t in transfers:
        after[t.from_user_id] += t.amount
        after[t.to_user_id] -= t.amount
    return after
