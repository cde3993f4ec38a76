"""
Permission Decorators
Authentication and role checks for the JSON routes. Both decorators also load
the caller's PosSession into g.pos and save it back after the view runs.
"""

from functools import wraps
from flask import g, jsonify, session
from flask_login import current_user
from tindapos.session import load_pos_session, save_pos_session


def _with_pos_session(f, *args, **kwargs):
    g.pos = load_pos_session(session, current_user)
    try:
        return f(*args, **kwargs)
    finally:
        save_pos_session(session, g.pos)


def pos_session_required(f):
    """
    Decorator for routes that act as the logged-in cashier or admin

    Usage:
        @pos_session_required
        def checkout():
            services.sales.checkout(g.pos, ...)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        return _with_pos_session(f, *args, **kwargs)
    return decorated_function


def role_required(role_name):
    """
    Decorator to require a specific role for a route (admins pass every role check)

    Usage:
        @role_required('admin')
        def add_employee():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': 'Authentication required'}), 401

            if not current_user.has_role(role_name):
                return jsonify({'success': False, 'error': f'Role {role_name} required'}), 403

            return _with_pos_session(f, *args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    """Decorator to require admin role"""
    return role_required('admin')(f)
