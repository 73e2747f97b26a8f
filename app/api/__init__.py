from flask import Blueprint
from flask_restx import Api

bp = Blueprint('api', __name__)
api = Api(bp,
          title='Competency Tracker API',
          version='1.0',
          description='A RESTful API for the competency training tracker',
          authorizations={'apikey': {'type': 'apiKey', 'in': 'header', 'name': 'X-API-Key'}},
          csrf_protect=False)


from app.api import routes  # noqa: E402,F401
