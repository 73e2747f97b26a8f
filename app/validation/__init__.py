from flask import Blueprint

bp = Blueprint('validation', __name__)

from app.validation import routes  # noqa: E402,F401
