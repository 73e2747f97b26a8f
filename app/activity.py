from datetime import date, datetime
import enum

from flask import current_app

from app import db
from app.models import ActivityLog


def _jsonable(value):
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def log_activity(user, module, action, data=None):
    """
    Adds an activity log entry to the current transaction.

    ``action`` is one of add, edit or delete. ``data`` may contain enum
    members and dates; they are stored as their JSON equivalents.
    """
    entry = ActivityLog(user_id=user.id if user is not None else None,
                        module=module, action=action, data=_jsonable(data or {}))
    db.session.add(entry)
    current_app.logger.info(
        f"Activity: {module}.{action} by user {entry.user_id}: {entry.data}")
    return entry
