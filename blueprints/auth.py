from functools import wraps

from flask import g, jsonify, session

from models import db, User


# Helper function - load current user
def load_current_user():
    """Load the caller set in the session by the external auth layer into g.current_user"""
    user_id = session.get('user_id')
    g.current_user = db.session.get(User, user_id) if user_id else None


def _unauthorized():
    return jsonify({'error': 'unauthorized', 'message': 'Please log in to access this resource.'}), 401


def _forbidden(message):
    return jsonify({'error': 'forbidden', 'message': message}), 403


# Decorators for authorization
def require_admin(f):
    """Require admin or super admin role"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('current_user'):
            return _unauthorized()
        if not g.current_user.is_admin:
            return _forbidden('Please use an admin account to access this resource.')
        return f(*args, **kwargs)
    return decorated_function


def require_super_admin(f):
    """Require super admin role"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('current_user'):
            return _unauthorized()
        if not g.current_user.is_super_admin:
            return _forbidden('This action requires a super admin account.')
        return f(*args, **kwargs)
    return decorated_function
