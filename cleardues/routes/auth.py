"""
AUTHENTICATION ROUTES
=====================
"""

from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user
from cleardues.extensions import db
from cleardues.models import User

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def user_to_dict(user):
    return {'id': user.id, 'name': user.name, 'email': user.email}


@auth_bp.route('/register', methods=['POST'])
def register():
    payload = request.get_json(silent=True) or {}
    name = (payload.get('name') or '').strip()
    email = (payload.get('email') or '').strip().lower()
    password = payload.get('password') or ''

    # Validation
    if not name or not email or not password:
        return jsonify({'success': False, 'message': 'All fields are required'}), 400

    if len(password) < 6:
        return jsonify({'success': False, 'message': 'Password must be at least 6 characters'}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({'success': False, 'message': 'Email already registered'}), 409

    new_user = User(name=name, email=email)
    new_user.set_password(password)

    db.session.add(new_user)
    db.session.commit()

    login_user(new_user)
    return jsonify({'success': True, 'data': {'user': user_to_dict(new_user)}}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    payload = request.get_json(silent=True) or {}
    email = (payload.get('email') or '').strip().lower()
    password = payload.get('password') or ''

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        return jsonify({'success': False, 'message': 'Invalid email or password'}), 401

    login_user(user, remember=bool(payload.get('remember')))
    return jsonify({'success': True, 'data': {'user': user_to_dict(user)}})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True, 'message': 'Logged out'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'success': True, 'data': {'user': user_to_dict(current_user)}})
