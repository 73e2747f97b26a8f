from flask import Blueprint

bp = Blueprint('competencies', __name__)

from app.competencies import routes  # noqa: E402,F401
