"""
This module contains custom decorators for handling permissions and authentication.
"""
from functools import wraps
import secrets

from flask import current_app, g, request
from flask_login import current_user

from app.models import User
from app.permissions import AccessDenied, ensure_permission


def acting_user():
    """The user authenticated by API key for this request, or the session user."""
    return g.current_user if hasattr(g, 'current_user') else current_user


def permission_required(module, action='list'):
    """
    Decorator to check if a user holds a module/action grant.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_to_check = acting_user()
            try:
                ensure_permission(user_to_check, module, action)
            except AccessDenied:
                current_app.logger.warning(
                    f"Authorization failure on {request.endpoint} "
                    f"(requires '{module}.{action}')."
                )
                raise
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def user_for_api_key(api_key):
    """Returns the user owning ``api_key``, comparing keys in constant time."""
    if not api_key:
        return None
    for user in User.query.filter(User.api_key.isnot(None)).all():
        if secrets.compare_digest(user.api_key, api_key):
            return user
    return None
