from functools import wraps
from flask import jsonify, request
from flask_login import current_user

from campusquiz import login_manager
from campusquiz.auth.models import Role
from campusquiz.security import SecurityLogger


def role_required(*roles):
    """Decorator to require one of the given roles for an API route."""
    allowed = {role.value if isinstance(role, Role) else role for role in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            if current_user.role not in allowed:
                SecurityLogger.log_unauthorized_access(request.path, current_user.id)
                return jsonify({'success': False, 'error': 'Unauthorized'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def student_required(f):
    """Decorator to require student role for a route."""
    return role_required(Role.STUDENT)(f)


def staff_required(f):
    """Decorator to require faculty or admin role for a route."""
    return role_required(Role.FACULTY, Role.ADMIN)(f)
