"""
Helpers shared by the workflow actions.

An action either returns ``{'success': True, ...}`` or a typed failure
``{'success': False, 'error': message}``. Permission errors are not turned
into failures; they propagate as AccessDenied.
"""
from functools import wraps

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app import db


class ValidationFailed(Exception):
    """Input or state that an action refuses to process."""

    def __init__(self, message):
        super().__init__(message)
        self.message = str(message)


def success(**payload):
    return {'success': True, **payload}


def failure(message):
    return {'success': False, 'error': str(message)}


def workflow_action(f):
    """
    Runs an action in the request transaction.

    ValidationFailed rolls the session back and becomes a failure result.
    Database errors are rolled back, logged and re-raised.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationFailed as e:
            db.session.rollback()
            current_app.logger.info(f"{f.__name__} rejected: {e.message}")
            return failure(e.message)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.error(f"Database error in {f.__name__}", exc_info=True)
            raise
    return decorated


def apply_fields(obj, changes, fields):
    """Copies the keys of ``changes`` listed in ``fields`` onto ``obj``."""
    for field in fields:
        if field in changes:
            setattr(obj, field, changes[field])
