"""
Authentication Routes
Handles user login, logout, and authentication
"""

import logging
from flask import Blueprint, jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf
from tindapos import get_services
from tindapos.session import SESSION_KEY, PosSession, save_pos_session

bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)


@bp.route('/login', methods=['POST'])
def login():
    """User login; resumes the user's open shift if there is one"""
    data = request.get_json(silent=True) or request.form
    username = data.get('username')
    password = data.get('password')

    services = get_services()
    user = services.catalog.authenticate(username, password)
    if user is None:
        logger.info(f"Failed login attempt for username: {username}")
        return jsonify({'success': False, 'error': 'Invalid username or password'}), 401

    login_user(user)
    session['account'] = {
        'id': user.id,
        'username': user.username,
        'role': user.role,
        'employeeName': user.employee_name,
        'active': user.active,
    }

    pos = PosSession.for_user(user)
    services.shifts.resume(pos)
    save_pos_session(session, pos)
    logger.info(f"{user.username} logged in")

    return jsonify({
        'success': True,
        'user': {'username': user.username, 'role': user.role, 'employeeName': user.employee_name},
        'shift': pos.shift,
    })


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """User logout"""
    logger.info(f"{current_user.username} logged out")
    logout_user()
    session.pop('account', None)
    session.pop(SESSION_KEY, None)
    return jsonify({'success': True})


@bp.route('/me')
@login_required
def me():
    return jsonify({
        'username': current_user.username,
        'role': current_user.role,
        'employeeName': current_user.employee_name,
    })


@bp.route('/csrf-token')
def csrf_token():
    return jsonify({'csrf_token': generate_csrf()})
