"""
EXPENSE SERVICE
===============

Handles:
- Creating expenses (splits computed once, here)
- Editing description / notes / category (amounts and splits are frozen)
- Soft delete
- Loading a group's ledger snapshot for balance computation
"""

from flask import current_app
from sqlalchemy.orm import selectinload

from cleardues.extensions import db
from cleardues.models import (
    Expense, ExpenseCategory, ExpenseSplit, Group, Settlement,
    SettlementStatus, SplitType
)
from cleardues.services.money import round_money
from cleardues.services.split_service import (
    SplitError, compute_splits, validate_splits_total
)

EDITABLE_FIELDS = ('description', 'notes', 'category')
CATEGORIES = {c.value for c in ExpenseCategory}


class ExpenseError(Exception):
    """Base exception for expense operations"""
    pass


def _participants_for(split_type, splits, group):
    """Build SplitCalculator input from request-style split dicts."""
    if split_type == SplitType.EQUAL.value:
        # Without explicit participants the expense is shared by the whole group
        if splits:
            return [s['user_id'] for s in splits]
        return group.member_ids()

    if not splits:
        raise ExpenseError(f"Splits required for {split_type} split type")

    key = 'percentage' if split_type == SplitType.PERCENTAGE.value else 'amount'
    try:
        return [(s['user_id'], s[key]) for s in splits]
    except KeyError as e:
        raise ExpenseError(f"Every split needs 'user_id' and '{key}' (missing {e})")


def _validate_fields(description, category):
    description = (description or '').strip()
    if not description:
        raise ExpenseError("Expense description is required")
    if len(description) > 100:
        raise ExpenseError("Description cannot exceed 100 characters")
    if category is not None and category not in CATEGORIES:
        raise ExpenseError(f"Invalid category: {category}")
    return description


# ============================================================
# CREATE EXPENSE
# ============================================================

def create_expense(group_id, created_by, description, amount, paid_by,
                   split_type=SplitType.EQUAL.value, splits=None,
                   notes=None, category=None):
    """
    Create an expense with fully computed splits.

    Payer and every split owner must be members of the group.
    Raises SplitError for invalid split input, ExpenseError otherwise.
    """
    split_type = getattr(split_type, 'value', split_type)

    try:
        group = db.session.get(Group, group_id)
        if not group:
            raise ExpenseError(f"Group {group_id} not found")

        description = _validate_fields(description, category)

        if not group.is_member(paid_by):
            raise ExpenseError("Payer must be a group member")

        try:
            total = round_money(amount)
        except ValueError as e:
            raise ExpenseError(str(e))

        participants = _participants_for(split_type, splits, group)
        shares = compute_splits(total, split_type, participants)

        for share in shares:
            if not group.is_member(share.user_id):
                raise ExpenseError("All split users must be group members")

        # Percentage drift beyond one cent is rejected here
        validate_splits_total(total, shares)

        expense = Expense(
            group_id=group_id,
            description=description,
            amount=total,
            paid_by=paid_by,
            split_type=split_type,
            notes=notes,
            category=category or ExpenseCategory.OTHER.value,
            created_by=created_by,
        )
        for position, share in enumerate(shares):
            expense.splits.append(ExpenseSplit(
                user_id=share.user_id,
                amount=share.amount,
                percentage=share.percentage,
                position=position,
            ))

        db.session.add(expense)
        db.session.commit()

        current_app.logger.info(
            "Expense %s added to group %s: amount=%s split=%s",
            expense.id, group_id, total, split_type
        )
        return expense

    except (ExpenseError, SplitError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise ExpenseError(f"Failed to create expense: {str(e)}")


# ============================================================
# UPDATE / DELETE
# ============================================================

def update_expense_details(expense_id, **changes):
    """Only description, notes and category can change after creation."""
    expense = db.session.get(Expense, expense_id)
    if not expense or expense.is_deleted:
        raise ExpenseError("Expense not found")

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ExpenseError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    try:
        if 'description' in changes or 'category' in changes:
            description = _validate_fields(
                changes.get('description', expense.description),
                changes.get('category', expense.category),
            )
            expense.description = description
        for field in ('notes', 'category'):
            if field in changes:
                setattr(expense, field, changes[field])

        db.session.commit()
        return expense

    except ExpenseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise ExpenseError(f"Failed to update expense: {str(e)}")


def delete_expense(expense_id):
    """Soft delete: the expense stays in the database but leaves every balance."""
    expense = db.session.get(Expense, expense_id)
    if not expense or expense.is_deleted:
        raise ExpenseError("Expense not found")

    expense.is_deleted = True
    db.session.commit()

    current_app.logger.info("Expense %s deleted", expense_id)
    return expense


# ============================================================
# QUERIES
# ============================================================

def get_group_expenses(group_id, page=1, per_page=None):
    per_page = per_page or current_app.config.get('EXPENSES_PER_PAGE', 20)
    return Expense.query.filter_by(
        group_id=group_id,
        is_deleted=False
    ).order_by(Expense.created_at.desc(), Expense.id.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )


def load_group_ledger(group_id):
    """
    Non-deleted expenses (with splits) and confirmed settlements of a group,
    read in the same session so balances see one consistent snapshot.
    """
    expenses = Expense.query.options(selectinload(Expense.splits)).filter_by(
        group_id=group_id,
        is_deleted=False
    ).order_by(Expense.id).all()

    settlements = Settlement.query.filter_by(
        group_id=group_id,
        status=SettlementStatus.CONFIRMED.value
    ).order_by(Settlement.id).all()

    return expenses, settlements
