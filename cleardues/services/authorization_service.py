"""
CENTRALIZED AUTHORIZATION SERVICE
==================================

All permission checks live here.
Routes and other services call these functions.

Checks return (allowed, reason) so routes can report the reason.
"""

from cleardues.extensions import db
from cleardues.models import (
    Expense, GroupMember, Settlement, MemberRole
)


class AuthorizationError(Exception):
    """Raised when authorization fails"""
    pass


# ============================================================
# GROUP MEMBERSHIP CHECKS
# ============================================================

def is_group_member(user_id, group_id):
    membership = GroupMember.query.filter_by(
        user_id=user_id,
        group_id=group_id
    ).first()
    return membership is not None


def is_group_admin(user_id, group_id):
    membership = GroupMember.query.filter_by(
        user_id=user_id,
        group_id=group_id
    ).first()
    return membership is not None and membership.role == MemberRole.ADMIN.value


def require_group_member(user_id, group_id):
    if not is_group_member(user_id, group_id):
        raise AuthorizationError("You are not a member of this group")


# ============================================================
# EXPENSE AUTHORIZATION
# ============================================================

def can_update_expense(user_id, expense_id):
    """Only the creator can edit an expense."""
    expense = db.session.get(Expense, expense_id)
    if not expense or expense.is_deleted:
        return False, "Expense not found"

    if expense.created_by != user_id:
        return False, "Only the creator can update this expense"

    return True, None


def can_delete_expense(user_id, expense_id):
    """Creator or group admin can delete an expense."""
    expense = db.session.get(Expense, expense_id)
    if not expense or expense.is_deleted:
        return False, "Expense not found"

    if expense.created_by != user_id and not is_group_admin(user_id, expense.group_id):
        return False, "Not authorized to delete this expense"

    return True, None


# ============================================================
# SETTLEMENT AUTHORIZATION
# ============================================================

def can_mark_paid(user_id, settlement_id):
    """Only the payer ('from') can mark a settlement as paid."""
    settlement = db.session.get(Settlement, settlement_id)
    if not settlement:
        return False, "Settlement not found"

    if settlement.from_user_id != user_id:
        return False, "Only the payer can mark as paid"

    return True, None


def can_confirm(user_id, settlement_id):
    """Only the receiver ('to') can confirm."""
    settlement = db.session.get(Settlement, settlement_id)
    if not settlement:
        return False, "Settlement not found"

    if settlement.to_user_id != user_id:
        return False, "Only the receiver can confirm"

    return True, None


def can_reject(user_id, settlement_id):
    """Only the receiver ('to') can reject."""
    settlement = db.session.get(Settlement, settlement_id)
    if not settlement:
        return False, "Settlement not found"

    if settlement.to_user_id != user_id:
        return False, "Only the receiver can reject"

    return True, None
