"""
EXPENSE ROUTES
==============

Uses expense_service for creation, edits and soft delete.
Split calculation happens in split_service.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from cleardues.extensions import db
from cleardues.models import Expense, Group
from cleardues.services.expense_service import (
    create_expense, update_expense_details, delete_expense,
    get_group_expenses, EDITABLE_FIELDS
)
from cleardues.services.authorization_service import (
    can_update_expense, can_delete_expense, require_group_member,
    AuthorizationError
)

expenses_bp = Blueprint('expenses', __name__, url_prefix='/api/expenses')


def expense_to_dict(expense):
    return {
        'id': expense.id,
        'group_id': expense.group_id,
        'description': expense.description,
        'amount': float(expense.amount),
        'paid_by': expense.paid_by,
        'split_type': expense.split_type,
        'splits': [
            {
                'user_id': split.user_id,
                'amount': float(split.amount),
                'percentage': float(split.percentage) if split.percentage is not None else None,
            }
            for split in expense.splits
        ],
        'notes': expense.notes,
        'category': expense.category,
        'created_by': expense.created_by,
        'created_at': expense.created_at.isoformat() if expense.created_at else None,
    }


def _get_live_expense(expense_id):
    expense = db.get_or_404(Expense, expense_id)
    if expense.is_deleted:
        return None
    return expense


# ============== CREATE EXPENSE ==============
@expenses_bp.route('', methods=['POST'])
@login_required
def create():
    payload = request.get_json(silent=True) or {}
    group_id = payload.get('group_id')
    if not group_id:
        return jsonify({'success': False, 'message': 'group_id is required'}), 400

    db.get_or_404(Group, group_id)
    require_group_member(current_user.id, group_id)

    expense = create_expense(
        group_id=group_id,
        created_by=current_user.id,
        description=payload.get('description'),
        amount=payload.get('amount'),
        paid_by=payload.get('paid_by', current_user.id),
        split_type=payload.get('split_type', 'equal'),
        splits=payload.get('splits'),
        notes=payload.get('notes'),
        category=payload.get('category'),
    )

    return jsonify({
        'success': True,
        'message': 'Expense added successfully',
        'data': {'expense': expense_to_dict(expense)}
    }), 201


# ============== GROUP EXPENSES (paginated) ==============
@expenses_bp.route('/group/<int:group_id>')
@login_required
def list_group_expenses(group_id):
    db.get_or_404(Group, group_id)
    require_group_member(current_user.id, group_id)

    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', None, type=int)
    pagination = get_group_expenses(group_id, page=page, per_page=limit)

    return jsonify({
        'success': True,
        'data': {
            'expenses': [expense_to_dict(e) for e in pagination.items],
            'pagination': {
                'page': pagination.page,
                'limit': pagination.per_page,
                'total': pagination.total,
                'pages': pagination.pages,
            }
        }
    })


# ============== SINGLE EXPENSE ==============
@expenses_bp.route('/<int:expense_id>')
@login_required
def view_expense(expense_id):
    expense = _get_live_expense(expense_id)
    if not expense:
        return jsonify({'success': False, 'message': 'Expense not found'}), 404

    require_group_member(current_user.id, expense.group_id)
    return jsonify({'success': True, 'data': {'expense': expense_to_dict(expense)}})


@expenses_bp.route('/<int:expense_id>', methods=['PUT'])
@login_required
def update(expense_id):
    if not _get_live_expense(expense_id):
        return jsonify({'success': False, 'message': 'Expense not found'}), 404

    allowed, reason = can_update_expense(current_user.id, expense_id)
    if not allowed:
        raise AuthorizationError(reason)

    payload = request.get_json(silent=True) or {}
    changes = {field: payload[field] for field in EDITABLE_FIELDS if field in payload}
    expense = update_expense_details(expense_id, **changes)

    return jsonify({
        'success': True,
        'message': 'Expense updated successfully',
        'data': {'expense': expense_to_dict(expense)}
    })


@expenses_bp.route('/<int:expense_id>', methods=['DELETE'])
@login_required
def delete(expense_id):
    if not _get_live_expense(expense_id):
        return jsonify({'success': False, 'message': 'Expense not found'}), 404

    allowed, reason = can_delete_expense(current_user.id, expense_id)
    if not allowed:
        raise AuthorizationError(reason)

    delete_expense(expense_id)
    return jsonify({'success': True, 'message': 'Expense deleted successfully'})
