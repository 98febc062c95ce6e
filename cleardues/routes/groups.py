"""
GROUP ROUTES
============
Membership itself is plain bookkeeping; see group_service.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from cleardues.extensions import db
from cleardues.models import Group, GroupMember
from cleardues.routes.auth import user_to_dict
from cleardues.services.group_service import create_group, join_group, get_user_groups
from cleardues.services.authorization_service import require_group_member

groups_bp = Blueprint('groups', __name__, url_prefix='/api/groups')


def group_to_dict(group, with_members=False):
    data = {
        'id': group.id,
        'name': group.name,
        'description': group.description,
        'invite_code': group.invite_code,
        'created_by': group.created_by,
        'member_count': group.members.count(),
    }
    if with_members:
        memberships = group.members.order_by(GroupMember.id).all()
        data['members'] = [
            dict(user_to_dict(m.user), role=m.role) for m in memberships
        ]
    return data


# ============== LIST ALL MY GROUPS ==============
@groups_bp.route('', methods=['GET'])
@login_required
def list_groups():
    groups = get_user_groups(current_user.id)
    return jsonify({'success': True, 'data': {'groups': [group_to_dict(g) for g in groups]}})


# ============== CREATE NEW GROUP ==============
@groups_bp.route('', methods=['POST'])
@login_required
def create():
    payload = request.get_json(silent=True) or {}
    group = create_group(
        name=payload.get('name'),
        created_by=current_user.id,
        description=payload.get('description'),
        member_ids=payload.get('member_ids') or (),
    )
    return jsonify({
        'success': True,
        'message': 'Group created',
        'data': {'group': group_to_dict(group, with_members=True)}
    }), 201


# ============== JOIN BY INVITE CODE ==============
@groups_bp.route('/join', methods=['POST'])
@login_required
def join():
    payload = request.get_json(silent=True) or {}
    group = join_group(payload.get('invite_code'), current_user.id)
    return jsonify({'success': True, 'data': {'group': group_to_dict(group)}})


# ============== VIEW SINGLE GROUP ==============
@groups_bp.route('/<int:group_id>')
@login_required
def view_group(group_id):
    group = db.get_or_404(Group, group_id)
    require_group_member(current_user.id, group_id)
    return jsonify({'success': True, 'data': {'group': group_to_dict(group, with_members=True)}})
