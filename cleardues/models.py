from datetime import datetime
from enum import Enum

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from cleardues.extensions import db


# ============================================================
# ENUMS
# ============================================================

class MemberRole(Enum):
    ADMIN = 'admin'
    MEMBER = 'member'


class SplitType(Enum):
    EQUAL = 'equal'
    PERCENTAGE = 'percentage'
    UNEQUAL = 'unequal'


class ExpenseCategory(Enum):
    FOOD = 'food'
    TRANSPORT = 'transport'
    SHOPPING = 'shopping'
    ENTERTAINMENT = 'entertainment'
    UTILITIES = 'utilities'
    RENT = 'rent'
    TRAVEL = 'travel'
    OTHER = 'other'


class SettlementStatus(Enum):
    PENDING = 'pending'
    PAID = 'paid'
    CONFIRMED = 'confirmed'
    REJECTED = 'rejected'


# ============================================================
# USER MODEL
# ============================================================
class User(UserMixin, db.Model):
    """
    A registered user. Users create and join groups, add expenses
    and settle up with other members.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    memberships = db.relationship('GroupMember', backref='user', lazy='dynamic')

    def set_password(self, password):
        """Hash and set the user's password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against stored hash."""
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.name}>'


# ============================================================
# GROUP MODEL
# ============================================================
class Group(db.Model):
    """
    A group of people sharing expenses.
    Members join either on creation (creator becomes admin) or by invite code.
    """
    __tablename__ = 'groups'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(200))
    invite_code = db.Column(db.String(16), unique=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    members = db.relationship('GroupMember', backref='group', lazy='dynamic',
                              cascade='all, delete-orphan')
    expenses = db.relationship('Expense', backref='group', lazy='dynamic',
                               cascade='all, delete-orphan')
    settlements = db.relationship('Settlement', backref='group', lazy='dynamic',
                                  cascade='all, delete-orphan')

    def member_ids(self):
        """Ids of all members, in join order."""
        return [m.user_id for m in self.members.order_by(GroupMember.id).all()]

    def is_member(self, user_id):
        return self.members.filter_by(user_id=user_id).first() is not None

    def is_admin(self, user_id):
        membership = self.members.filter_by(user_id=user_id).first()
        return membership is not None and membership.role == MemberRole.ADMIN.value

    def __repr__(self):
        return f'<Group {self.name}>'


# ============================================================
# GROUP MEMBER MODEL
# ============================================================
class GroupMember(db.Model):
    __tablename__ = 'group_members'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    role = db.Column(db.String(20), default=MemberRole.MEMBER.value)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Prevent duplicate memberships
    __table_args__ = (
        db.UniqueConstraint('group_id', 'user_id', name='unique_group_member'),
    )

    def __repr__(self):
        return f'<GroupMember user={self.user_id} group={self.group_id}>'


# ============================================================
# EXPENSE MODEL
# ============================================================
class Expense(db.Model):
    """
    A payment made by one member on behalf of several.

    Splits are computed once at creation and never change afterwards.
    Only description, notes and category can be edited. Expenses are never
    hard-deleted: is_deleted removes them from every balance computation.
    """
    __tablename__ = 'expenses'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False, index=True)
    description = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)  # Must be > 0
    paid_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    split_type = db.Column(db.String(20), default=SplitType.EQUAL.value, nullable=False)
    notes = db.Column(db.String(500))
    category = db.Column(db.String(20), default=ExpenseCategory.OTHER.value, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    payer = db.relationship('User', foreign_keys=[paid_by])
    creator = db.relationship('User', foreign_keys=[created_by])

    # Ordered: the first split carries any equal-split remainder
    splits = db.relationship('ExpenseSplit', backref='expense',
                             order_by='ExpenseSplit.position',
                             cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Expense {self.description} amount={self.amount} paid_by={self.paid_by}>'


# ============================================================
# EXPENSE SPLIT MODEL
# ============================================================
class ExpenseSplit(db.Model):
    """One member's share of an expense."""
    __tablename__ = 'expense_splits'

    id = db.Column(db.Integer, primary_key=True)
    expense_id = db.Column(db.Integer, db.ForeignKey('expenses.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)  # >= 0
    percentage = db.Column(db.Numeric(5, 2), nullable=True)  # 0 - 100, percentage splits only
    position = db.Column(db.Integer, nullable=False, default=0)

    user = db.relationship('User')

    def __repr__(self):
        return f'<ExpenseSplit user={self.user_id} amount={self.amount}>'


# ============================================================
# SETTLEMENT MODEL
# ============================================================
class Settlement(db.Model):
    """
    A payment from one member to another inside a group.

    Lifecycle:
    1. Created with status='pending' (usually from a suggested transfer)
    2. Payer marks it 'paid' (optionally with an external payment reference)
    3. Receiver 'confirms' it -> from now on it counts in every balance
       or 'rejects' it -> it never counts

    Confirmed settlements are immutable.
    """
    __tablename__ = 'settlements'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False, index=True)
    from_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    to_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)  # Must be > 0
    status = db.Column(db.String(20), default=SettlementStatus.PENDING.value, nullable=False)
    payment_reference = db.Column(db.String(100), nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.String(200))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    from_user = db.relationship('User', foreign_keys=[from_user_id])
    to_user = db.relationship('User', foreign_keys=[to_user_id])

    __table_args__ = (
        db.CheckConstraint('from_user_id != to_user_id', name='settlement_distinct_parties'),
        db.Index('ix_settlement_group_status', 'group_id', 'status'),
    )

    def __repr__(self):
        return (f'<Settlement {self.from_user_id}->{self.to_user_id} '
                f'amount={self.amount} status={self.status}>')
