"""
Services Package
================

Business logic layer for ClearDues.

split_service, balance_service and the state machine in settlement_service
are pure: they work on already-fetched data and never touch the database.
Routes should call these services, not manipulate models directly.
"""

from cleardues.services.split_service import (
    compute_splits,
    validate_splits_total,
    SplitShare,
    SplitError,
    InvalidParticipantCountError,
    InvalidPercentageSumError,
    SplitSumMismatchError,
    InvalidSplitTypeError,
    InvalidAmountError
)

from cleardues.services.balance_service import (
    calculate_group_balances,
    get_user_balance_breakdown,
    get_user_overall_balance,
    calculate_minimized_settlements,
    TransferSuggestion
)

from cleardues.services.settlement_service import (
    mark_paid,
    confirm,
    reject,
    new_settlement,
    create_settlement,
    create_settlement_records,
    mark_settlement_paid,
    confirm_settlement,
    reject_settlement,
    SettlementError,
    SelfSettlementError,
    InvalidStateTransitionError,
    InvalidSettlementAmountError
)

from cleardues.services.expense_service import (
    create_expense,
    update_expense_details,
    delete_expense,
    load_group_ledger,
    ExpenseError
)

from cleardues.services.group_service import (
    create_group,
    join_group,
    generate_invite_code,
    GroupError
)

from cleardues.services.authorization_service import (
    can_mark_paid,
    can_confirm,
    can_reject,
    can_update_expense,
    can_delete_expense,
    is_group_member,
    is_group_admin,
    AuthorizationError
)
