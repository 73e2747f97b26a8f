from flask import Blueprint

bp = Blueprint('training_batches', __name__)

from app.training_batches import routes  # noqa: E402,F401
