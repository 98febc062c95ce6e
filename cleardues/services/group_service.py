"""
GROUP SERVICE
=============

Handles:
- Creating groups (creator becomes admin)
- Invite codes
- Joining by invite code
"""

import random

from flask import current_app

from cleardues.extensions import db
from cleardues.models import Group, GroupMember, MemberRole, User

INVITE_CODE_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'

_system_random = random.SystemRandom()


class GroupError(Exception):
    """Base exception for group operations"""
    pass


def generate_invite_code(rng, length=8):
    """Random code from INVITE_CODE_ALPHABET. rng: any random.Random-like object."""
    return ''.join(rng.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def _unique_invite_code(rng, length, attempts=10):
    for _ in range(attempts):
        code = generate_invite_code(rng, length)
        if not Group.query.filter_by(invite_code=code).first():
            return code
    raise GroupError("Could not generate a unique invite code")


# ============================================================
# CREATE GROUP
# ============================================================

def create_group(name, created_by, description=None, member_ids=(), rng=None):
    """Create a group with its creator as admin and optional extra members."""
    try:
        name = (name or '').strip()
        if len(name) < 2 or len(name) > 50:
            raise GroupError("Group name must be between 2 and 50 characters")

        length = current_app.config.get('INVITE_CODE_LENGTH', 8)
        group = Group(
            name=name,
            description=(description or '').strip() or None,
            created_by=created_by,
            invite_code=_unique_invite_code(rng or _system_random, length),
        )
        db.session.add(group)
        db.session.flush()

        db.session.add(GroupMember(
            group_id=group.id,
            user_id=created_by,
            role=MemberRole.ADMIN.value
        ))
        for user_id in dict.fromkeys(member_ids):
            if not db.session.get(User, user_id):
                raise GroupError(f"User {user_id} not found")
            if user_id != created_by:
                db.session.add(GroupMember(group_id=group.id, user_id=user_id))

        db.session.commit()

        current_app.logger.info("Group %s created by user %s", group.id, created_by)
        return group

    except GroupError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise GroupError(f"Failed to create group: {str(e)}")


# ============================================================
# JOIN GROUP
# ============================================================

def join_group(invite_code, user_id):
    """Join an active group by its invite code. Joining twice is a no-op."""
    code = (invite_code or '').strip().upper()
    group = Group.query.filter_by(invite_code=code, is_active=True).first()
    if not group:
        raise GroupError("Invalid invite code")

    if group.is_member(user_id):
        return group

    try:
        db.session.add(GroupMember(group_id=group.id, user_id=user_id))
        db.session.commit()
        return group
    except Exception as e:
        db.session.rollback()
        raise GroupError(f"Failed to join group: {str(e)}")


def get_user_groups(user_id):
    return Group.query.join(GroupMember).filter(
        GroupMember.user_id == user_id,
        Group.is_active.is_(True)
    ).order_by(Group.name).all()
