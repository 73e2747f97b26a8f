import re
from functools import wraps

from flask import request, current_app, g
from flask_restx import Resource, fields
from flask_login import current_user

from app import db
from app.api import api
from app.decorators import acting_user, user_for_api_key
from app.models import CompetencyLevel, TrainingBatch, TrainingBatchLearner
from app.permissions import AccessDenied, ensure_permission

BATCH_NAME_RE = re.compile(r'^Batch\s+(\d+)$')

# API Models for marshalling

user_preview_model = api.model('UserPreview', {
    'id': fields.Integer(readOnly=True, description='The unique identifier of a user'),
    'full_name': fields.String(description='Full name of the user'),
})

session_model = api.model('TrainingBatchSession', {
    'id': fields.Integer(readOnly=True),
    'session_number': fields.Integer(description='Position of the session in the batch'),
    'session_date': fields.DateTime(dt_format='iso8601', description='Session date (ISO 8601)'),
})

batch_learner_model = api.model('TrainingBatchLearner', {
    'learner_id': fields.Integer(description='ID of the learner'),
    'learner': fields.Nested(user_preview_model),
    'training_request_id': fields.Integer(description='Training request the learner joined with'),
})

attendance_model = api.model('TrainingBatchAttendance', {
    'learner_id': fields.Integer,
    'session_id': fields.Integer,
    'attended': fields.Boolean,
})

homework_model = api.model('TrainingBatchHomework', {
    'learner_id': fields.Integer,
    'session_id': fields.Integer,
    'completed': fields.Boolean(description='Set by the trainer once reviewed'),
    'homework_url': fields.String,
    'submitted_at': fields.DateTime(dt_format='iso8601'),
})

batch_model = api.model('TrainingBatch', {
    'id': fields.Integer(readOnly=True),
    'batch_name': fields.String(description='Batch name'),
    'competency_level_id': fields.Integer,
    'competency_level': fields.String(attribute=lambda x: x.competency_level.label),
    'trainer': fields.Nested(user_preview_model),
    'session_count': fields.Integer,
    'duration_hrs': fields.Float,
    'estimated_start': fields.Date,
    'batch_start_date': fields.Date,
    'batch_finish_date': fields.Date,
    'capacity': fields.Integer,
    'current_participant': fields.Integer,
    'spot_left': fields.Integer,
})

batch_detail_model = api.inherit('TrainingBatchDetail', batch_model, {
    'sessions': fields.List(fields.Nested(session_model)),
    'learners': fields.List(fields.Nested(batch_learner_model)),
    'attendance': fields.List(fields.Nested(attendance_model)),
    'homework': fields.List(fields.Nested(homework_model)),
})

batch_count_model = api.model('TrainingBatchCount', {
    'count': fields.Integer(description='Highest N among batches named "Batch N"'),
})


def auth_required(f):
    """Accepts an X-API-Key header or a logged-in session."""
    @api.doc(security='apikey')
    @wraps(f)
    def decorated(*args, **kwargs):
        api_key = request.headers.get('X-API-Key')
        if api_key:
            user = user_for_api_key(api_key)
            if user is None:
                current_app.logger.warning(
                    f"Invalid API Key provided from IP: {request.remote_addr}.")
                api.abort(401, "Invalid API Key")
            g.current_user = user
        elif not current_user.is_authenticated:
            api.abort(401, "Unauthorized")
        return f(*args, **kwargs)
    return decorated


def api_permission_required(module, action='list'):
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            try:
                ensure_permission(acting_user(), module, action)
            except AccessDenied as e:
                api.abort(403, e.message)
            return f(*args, **kwargs)
        return decorated
    return decorator


# Namespaces
ns_batches = api.namespace('training-batches', description='Training batch operations')


@ns_batches.route('/')
class TrainingBatchList(Resource):
    @api.marshal_list_with(batch_model)
    @api.param('trainingRequestId', 'Only batches holding this training request')
    @api.param('competencyId', 'Only batches of this competency')
    @api.param('competencyLevelId', 'Only batches of this competency level')
    @auth_required
    @api_permission_required('training_batch', 'list')
    def get(self):
        """List training batches"""
        query = TrainingBatch.query
        training_request_id = request.args.get('trainingRequestId', type=int)
        if training_request_id is not None:
            query = query.filter(TrainingBatch.learners.any(
                TrainingBatchLearner.training_request_id == training_request_id))
        level_id = request.args.get('competencyLevelId', type=int)
        if level_id is not None:
            query = query.filter(TrainingBatch.competency_level_id == level_id)
        competency_id = request.args.get('competencyId', type=int)
        if competency_id is not None:
            query = query.join(TrainingBatch.competency_level).filter(
                CompetencyLevel.competency_id == competency_id)
        return query.order_by(TrainingBatch.created_at.desc()).all()


@ns_batches.route('/<int:id>')
@api.response(404, 'Training batch not found')
@api.param('id', 'The training batch identifier')
class TrainingBatchItem(Resource):
    @api.marshal_with(batch_detail_model)
    @auth_required
    @api_permission_required('training_batch', 'list')
    def get(self, id):
        """Fetch a training batch with its sessions, learners, attendance and homework"""
        batch = db.session.get(TrainingBatch, id)
        if batch is None:
            api.abort(404, "Training batch not found")
        return batch


@ns_batches.route('/count-by-competency-level')
class TrainingBatchCount(Resource):
    @api.marshal_with(batch_count_model)
    @api.param('competencyLevelId', 'The competency level identifier', required=True)
    @auth_required
    @api_permission_required('training_batch', 'list')
    def get(self):
        """Highest batch number used for a competency level, for naming the next batch"""
        level_id = request.args.get('competencyLevelId', type=int)
        if level_id is None:
            api.abort(400, "competencyLevelId is required")
        names = [batch.batch_name for batch in
                 TrainingBatch.query.filter_by(competency_level_id=level_id)]
        numbers = [int(match.group(1)) for match in map(BATCH_NAME_RE.match, names) if match]
        return {'count': max(numbers, default=0)}
