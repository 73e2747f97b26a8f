"""
Permission gate for workflow actions.

Every action checks the (module, action) grant of the acting user before it
touches the database. A missing grant raises AccessDenied, which the
application renders as a 403 response.
"""
from flask import current_app

LIST_DENIED_MESSAGE = 'You do not have permission to access this area'
ACTION_DENIED_MESSAGE = 'You do not have sufficient permissions for this action'


class AccessDenied(Exception):
    """Raised when the acting user lacks a module/action grant."""

    def __init__(self, module, action, message=None):
        if message is None:
            message = LIST_DENIED_MESSAGE if action == 'list' else ACTION_DENIED_MESSAGE
        super().__init__(message)
        self.module = module
        self.action = action
        self.message = message


def ensure_permission(user, module, action):
    """Raises AccessDenied unless ``user`` may perform ``action`` on ``module``."""
    if user is None or not getattr(user, 'is_authenticated', False):
        raise AccessDenied(module, action)
    if not user.can(module, action):
        current_app.logger.warning(
            f"Authorization failure: User {user.email} (ID: {user.id}) "
            f"attempted '{action}' on '{module}' without permission."
        )
        raise AccessDenied(module, action)
