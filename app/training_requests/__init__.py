from flask import Blueprint

bp = Blueprint('training_requests', __name__)

from app.training_requests import routes  # noqa: E402,F401
