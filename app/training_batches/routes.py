from flask import abort, jsonify, request
from flask_login import login_required, current_user

from app.decorators import permission_required
from app.models import CompetencyLevel, TrainingBatch
from app.responses import action_response, form_error_response
from app.serializers import batch_dict, training_request_dict
from app.training_batches import bp
from app.training_batches import actions
from app.training_batches.forms import (DropOffForm, SessionDateForm, TrainingBatchEditForm,
                                        TrainingBatchForm)


def _session_or_404(batch, session_number):
    session = batch.session_number(session_number)
    if session is None:
        abort(404)
    return session


def _marks(key, flag):
    """Reads ``[{learner_id, <flag>}]`` from the JSON body; None when malformed."""
    body = request.get_json(silent=True) or {}
    marks = body.get(key)
    if not isinstance(marks, list):
        return None
    cleaned = []
    for mark in marks:
        if not isinstance(mark, dict) or not isinstance(mark.get('learner_id'), int):
            return None
        cleaned.append({'learner_id': mark['learner_id'], flag: bool(mark.get(flag))})
    return cleaned


@bp.route('/')
@login_required
@permission_required('training_batch', 'list')
def list_training_batches():
    query = TrainingBatch.query
    level_id = request.args.get('competency_level_id', type=int)
    if level_id is not None:
        query = query.filter(TrainingBatch.competency_level_id == level_id)
    batches = query.order_by(TrainingBatch.created_at.desc()).all()
    return jsonify([batch_dict(batch) for batch in batches])


@bp.route('/<int:batch_id>')
@login_required
@permission_required('training_batch', 'list')
def training_batch_detail(batch_id):
    return jsonify(batch_dict(TrainingBatch.query.get_or_404(batch_id), detail=True))


@bp.route('/available-learners')
@login_required
@permission_required('training_batch', 'list')
def available_learners():
    level_id = request.args.get('competency_level_id', type=int)
    if level_id is None:
        return jsonify({'success': False, 'error': 'competency_level_id is required'}), 400
    level = CompetencyLevel.query.get_or_404(level_id)
    return jsonify([training_request_dict(tr) for tr in actions.available_learners(level)])


@bp.route('/create', methods=['POST'])
@login_required
def create_training_batch():
    form = TrainingBatchForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(
        actions.create_training_batch(current_user, **form.action_kwargs()), created=True)


@bp.route('/<int:batch_id>/edit', methods=['POST'])
@login_required
def edit_training_batch(batch_id):
    batch = TrainingBatch.query.get_or_404(batch_id)
    form = TrainingBatchEditForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(actions.update_training_batch(current_user, batch, form.changes()))


@bp.route('/<int:batch_id>/delete', methods=['POST'])
@login_required
def delete_training_batch(batch_id):
    batch = TrainingBatch.query.get_or_404(batch_id)
    return action_response(actions.delete_training_batch(current_user, batch))


@bp.route('/<int:batch_id>/learners/<int:learner_id>/remove', methods=['POST'])
@login_required
def remove_learner(batch_id, learner_id):
    batch = TrainingBatch.query.get_or_404(batch_id)
    return action_response(actions.remove_learner(current_user, batch, learner_id))


@bp.route('/<int:batch_id>/learners/<int:learner_id>/drop-off', methods=['POST'])
@login_required
def drop_off_learner(batch_id, learner_id):
    batch = TrainingBatch.query.get_or_404(batch_id)
    form = DropOffForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(
        actions.drop_off_learner(current_user, batch, learner_id, form.reason.data))


@bp.route('/<int:batch_id>/sessions/<int:session_number>/date', methods=['POST'])
@login_required
def set_session_date(batch_id, session_number):
    batch = TrainingBatch.query.get_or_404(batch_id)
    form = SessionDateForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(actions.set_session_date(
        current_user, batch, session_number, form.session_date.data))


@bp.route('/<int:batch_id>/start', methods=['POST'])
@login_required
def start_batch(batch_id):
    batch = TrainingBatch.query.get_or_404(batch_id)
    return action_response(actions.start_batch(current_user, batch))


@bp.route('/<int:batch_id>/sessions/<int:session_number>/attendance', methods=['POST'])
@login_required
def update_attendance(batch_id, session_number):
    batch = TrainingBatch.query.get_or_404(batch_id)
    session = _session_or_404(batch, session_number)
    marks = _marks('attendance', 'attended')
    if marks is None:
        return jsonify({'success': False, 'error': 'An attendance list is required'}), 400
    return action_response(actions.update_attendance(current_user, batch, session, marks))


@bp.route('/<int:batch_id>/sessions/<int:session_number>/homework', methods=['POST'])
@login_required
def review_homework(batch_id, session_number):
    batch = TrainingBatch.query.get_or_404(batch_id)
    session = _session_or_404(batch, session_number)
    marks = _marks('homework', 'completed')
    if marks is None:
        return jsonify({'success': False, 'error': 'A homework list is required'}), 400
    return action_response(actions.review_homework(current_user, batch, session, marks))
