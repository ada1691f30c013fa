"""Middleware for access context (admin gate)."""
from functools import wraps
from flask import session, g, current_app
from pharmastock.database import get_session
from pharmastock.models import UserAccess
from pharmastock.exceptions import UnauthorizedError


def load_access_context():
    """
    Load the current user id and role into g.

    Authentication happens elsewhere; it leaves the user id in session['user_uid'].
    The role comes from the user_access table.
    """
    g.user_uid = session.get('user_uid')
    g.user_role = None

    if not g.user_uid:
        return

    try:
        access = get_session().query(UserAccess).filter_by(uid=str(g.user_uid)).first()
        if access:
            g.user_role = access.role
    except Exception as e:
        current_app.logger.error(f"Error in load_access_context: {e}")


def is_admin() -> bool:
    return bool(g.get('user_role')) and g.get('user_role') == current_app.config.get('ADMIN_ROLE', 'admin')


def require_admin(f):
    """Decorator: reject with 403 unless the current user has the admin role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_admin():
            current_app.logger.warning(f"Admin action denied for uid={g.get('user_uid')} on {f.__name__}")
            raise UnauthorizedError('Admin access required')
        return f(*args, **kwargs)
    return decorated_function
