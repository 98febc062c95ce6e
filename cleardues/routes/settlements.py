"""
SETTLEMENT ROUTES
=================

Balances and suggestions are recomputed on every request from one
ledger snapshot; nothing here is cached.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from cleardues.extensions import db
from cleardues.models import Group, Settlement, SettlementStatus, User
from cleardues.services.balance_service import (
    calculate_group_balances, get_user_balance_breakdown,
    get_user_overall_balance, calculate_minimized_settlements
)
from cleardues.services.expense_service import load_group_ledger
from cleardues.services.group_service import get_user_groups
from cleardues.services.money import round_money
from cleardues.services.settlement_service import (
    create_settlement, mark_settlement_paid, confirm_settlement,
    reject_settlement, get_pending_settlements, get_settlements_to_confirm,
    get_group_settlements
)
from cleardues.services.authorization_service import (
    can_mark_paid, can_confirm, can_reject, is_group_member,
    require_group_member, AuthorizationError
)

settlements_bp = Blueprint('settlements', __name__, url_prefix='/api/settlements')

STATUSES = {s.value for s in SettlementStatus}


def settlement_to_dict(settlement):
    return {
        'id': settlement.id,
        'group_id': settlement.group_id,
        'from_user_id': settlement.from_user_id,
        'to_user_id': settlement.to_user_id,
        'amount': float(settlement.amount),
        'status': settlement.status,
        'payment_reference': settlement.payment_reference,
        'paid_at': settlement.paid_at.isoformat() if settlement.paid_at else None,
        'confirmed_at': settlement.confirmed_at.isoformat() if settlement.confirmed_at else None,
        'notes': settlement.notes,
    }


def breakdown_to_dict(breakdown):
    user_ids = {b['user_id'] for b in breakdown['owes'] + breakdown['owed_by']}
    names = {}
    if user_ids:
        names = {u.id: u.name for u in User.query.filter(User.id.in_(user_ids))}

    def counterparty(b):
        return {'user_id': b['user_id'], 'name': names.get(b['user_id']), 'amount': float(b['amount'])}

    return {
        'owes': [counterparty(b) for b in breakdown['owes']],
        'owed_by': [counterparty(b) for b in breakdown['owed_by']],
        'total_owed': float(breakdown['total_owed']),
        'total_owed_by': float(breakdown['total_owed_by']),
        'net_balance': float(breakdown['net_balance']),
    }


def _member_group(group_id):
    group = db.get_or_404(Group, group_id)
    require_group_member(current_user.id, group_id)
    return group


# ============== GROUP BALANCES ==============
@settlements_bp.route('/balances/<int:group_id>')
@login_required
def group_balances(group_id):
    group = _member_group(group_id)
    expenses, settlements = load_group_ledger(group_id)

    user_balance = get_user_balance_breakdown(expenses, settlements, current_user.id)
    balances = calculate_group_balances(expenses, settlements, member_ids=group.member_ids())

    member_balances = [
        {'user_id': user_id, 'balance': float(round_money(balance))}
        for user_id, balance in balances.items()
    ]

    return jsonify({
        'success': True,
        'data': {
            'user_balance': breakdown_to_dict(user_balance),
            'member_balances': member_balances,
        }
    })


# ============== SUGGESTED SETTLEMENTS ==============
@settlements_bp.route('/suggest/<int:group_id>')
@login_required
def suggest(group_id):
    _member_group(group_id)
    expenses, settlements = load_group_ledger(group_id)

    transfers = calculate_minimized_settlements(
        calculate_group_balances(expenses, settlements)
    )

    return jsonify({
        'success': True,
        'data': {
            'settlements': [
                {'from_user_id': t.from_user_id, 'to_user_id': t.to_user_id, 'amount': float(t.amount)}
                for t in transfers
            ],
            'count': len(transfers),
        }
    })


# ============== CREATE SETTLEMENT ==============
@settlements_bp.route('', methods=['POST'])
@login_required
def create():
    payload = request.get_json(silent=True) or {}
    group_id = payload.get('group_id')
    to_user_id = payload.get('to_user_id')

    if not group_id or not to_user_id:
        return jsonify({'success': False, 'message': 'group_id and to_user_id are required'}), 400

    _member_group(group_id)
    if not is_group_member(to_user_id, group_id):
        return jsonify({'success': False, 'message': 'Recipient is not a member of this group'}), 400

    settlement = create_settlement(
        group_id=group_id,
        from_user_id=current_user.id,
        to_user_id=to_user_id,
        amount=payload.get('amount'),
        notes=payload.get('notes'),
    )

    return jsonify({
        'success': True,
        'message': 'Settlement created',
        'data': {'settlement': settlement_to_dict(settlement)}
    }), 201


# ============== LIFECYCLE ==============
def _authorize(check, settlement_id):
    db.get_or_404(Settlement, settlement_id)
    allowed, reason = check(current_user.id, settlement_id)
    if not allowed:
        raise AuthorizationError(reason)


@settlements_bp.route('/<int:settlement_id>/pay', methods=['PUT'])
@login_required
def pay(settlement_id):
    _authorize(can_mark_paid, settlement_id)
    payload = request.get_json(silent=True) or {}
    settlement = mark_settlement_paid(settlement_id, payload.get('payment_reference'))
    return jsonify({
        'success': True,
        'message': 'Settlement marked as paid',
        'data': {'settlement': settlement_to_dict(settlement)}
    })


@settlements_bp.route('/<int:settlement_id>/confirm', methods=['PUT'])
@login_required
def confirm(settlement_id):
    _authorize(can_confirm, settlement_id)
    settlement = confirm_settlement(settlement_id)
    return jsonify({
        'success': True,
        'message': 'Settlement confirmed',
        'data': {'settlement': settlement_to_dict(settlement)}
    })


@settlements_bp.route('/<int:settlement_id>/reject', methods=['PUT'])
@login_required
def reject(settlement_id):
    _authorize(can_reject, settlement_id)
    reject_settlement(settlement_id)
    return jsonify({'success': True, 'message': 'Settlement rejected'})


# ============== MY QUEUES ==============
@settlements_bp.route('/my/pending')
@login_required
def my_pending():
    settlements = get_pending_settlements(current_user.id)
    return jsonify({'success': True, 'data': {'settlements': [settlement_to_dict(s) for s in settlements]}})


@settlements_bp.route('/my/to-confirm')
@login_required
def my_to_confirm():
    settlements = get_settlements_to_confirm(current_user.id)
    return jsonify({'success': True, 'data': {'settlements': [settlement_to_dict(s) for s in settlements]}})


@settlements_bp.route('/group/<int:group_id>')
@login_required
def group_settlements(group_id):
    _member_group(group_id)
    status = request.args.get('status')
    if status and status not in STATUSES:
        return jsonify({'success': False, 'message': f'Invalid status: {status}'}), 400

    settlements = get_group_settlements(group_id, status=status)
    return jsonify({'success': True, 'data': {'settlements': [settlement_to_dict(s) for s in settlements]}})


# ============== DASHBOARD ==============
@settlements_bp.route('/dashboard')
@login_required
def dashboard():
    group_balances = []
    for group in get_user_groups(current_user.id):
        expenses, settlements = load_group_ledger(group.id)
        breakdown = get_user_balance_breakdown(expenses, settlements, current_user.id)
        group_balances.append((group, breakdown))

    overall = get_user_overall_balance(b for _, b in group_balances)

    pending_count = Settlement.query.filter_by(
        from_user_id=current_user.id, status=SettlementStatus.PENDING.value
    ).count()
    to_confirm_count = Settlement.query.filter_by(
        to_user_id=current_user.id, status=SettlementStatus.PAID.value
    ).count()

    return jsonify({
        'success': True,
        'data': {
            'overview': {
                'you_owe': float(overall['total_owed']),
                'you_are_owed': float(overall['total_owed_by']),
                'net_balance': float(overall['net_balance']),
            },
            'pending_settlements': pending_count,
            'settlements_to_confirm': to_confirm_count,
            'group_balances': [
                dict(breakdown_to_dict(b), group={'id': g.id, 'name': g.name})
                for g, b in group_balances
            ],
        }
    })
