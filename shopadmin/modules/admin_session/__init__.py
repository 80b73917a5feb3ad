"""
Admin Session Module
====================

Per-request admin session for the console views.

Usage:
    from shopadmin.modules.admin_session import get_admin_session, admin_required

    @bp.route('/secret')
    @admin_required
    def secret():
        admin = get_admin_session().admin_user
"""

from functools import wraps

from flask import current_app, g, jsonify, redirect, request, url_for
from flask import session as flask_session

from .session import AdminSession, Principal, STORAGE_KEY


def get_admin_session():
    """The AdminSession for this request, built and started on first use"""
    if 'admin_session' not in g:
        extension = current_app.extensions['shopadmin']
        g.admin_session = extension.build_admin_session(flask_session).start()
    return g.admin_session


def close_admin_session(exception=None):
    """teardown_request hook: drop the provider subscription"""
    admin_session = g.pop('admin_session', None)
    if admin_session is not None:
        admin_session.close()


def admin_required(f):
    """Decorator to require an admin session"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not get_admin_session().is_admin:
            if '/api/' in request.path:
                return jsonify({'error': 'Authentication required'}), 401
            return redirect(url_for('admin.login', next=request.path))
        return f(*args, **kwargs)
    return decorated_function


__all__ = [
    'AdminSession', 'Principal', 'STORAGE_KEY',
    'get_admin_session', 'close_admin_session', 'admin_required',
]
