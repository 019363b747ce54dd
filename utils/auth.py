from functools import wraps
from flask import session, jsonify, request, current_app

# Roles allowed to see and change fee ledger data
FINANCE_ROLES = ('admin', 'bursar', 'accountant')


def login_required(f):
    """Decorator to require user login"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            return jsonify({'success': False, 'message': 'Please log in to access this resource.'}), 401
        return f(*args, **kwargs)
    return decorated_function


def role_required(allowed_roles):
    """Decorator to require specific user roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if 'user_id' not in session:
                return jsonify({'success': False, 'message': 'Please log in to access this resource.'}), 401

            user_role = session.get('role')
            if user_role not in allowed_roles:
                current_app.logger.warning(
                    f"User {session.get('user_id')} with role '{user_role}' attempted to access {request.path}"
                )
                return jsonify({'success': False, 'message': 'You do not have permission to access this resource.'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator

