from flask import Blueprint

bp = Blueprint('project_assignment', __name__)

from app.project_assignment import routes  # noqa: E402,F401
