from datetime import datetime, timezone

from flask import jsonify, request
from flask_login import login_required, current_user

from app.decorators import permission_required
from app.models import (Competency, CompetencyLevel, TrainingRequest,
                        TrainingRequestStatus, User)
from app.responses import action_response, form_error_response
from app.serializers import training_request_dict
from app.training_requests import bp
from app.training_requests import actions
from app.training_requests.forms import TrainingRequestForm


def filtered_training_requests(args):
    """Training requests matching the name/competency/level/status filters."""
    query = TrainingRequest.query.join(TrainingRequest.learner).join(
        TrainingRequest.competency_level).join(CompetencyLevel.competency)
    name = args.get('name', '').strip()
    if name:
        query = query.filter(User.full_name.ilike(f'%{name}%'))
    competency_id = args.get('competency_id', type=int)
    if competency_id:
        query = query.filter(Competency.id == competency_id)
    level = args.get('level', '').strip()
    if level:
        query = query.filter(CompetencyLevel.name == level)
    status = args.get('status', type=int)
    if status is not None:
        query = query.filter(TrainingRequest.status == TrainingRequestStatus(status))
    return query.order_by(TrainingRequest.requested_date.desc()).all()


def summarize(rows, now):
    """Counters shown above the training request table."""
    summary = {'due_in_24h': 0, 'due_in_3d': 0, 'overdue': 0, 'follow_up': 0, 'blocked': 0}
    for row in rows:
        if row.is_blocked:
            summary['blocked'] += 1
        if row.response_date is not None:
            continue
        state = row.due_state(now)
        summary['due_in_24h'] += state.due_in_24h
        summary['due_in_3d'] += state.due_in_3d
        summary['overdue'] += state.overdue
        summary['follow_up'] += row.needs_follow_up
    return summary


@bp.route('/')
@login_required
@permission_required('training_request', 'list')
def list_training_requests():
    if request.args.get('status') not in (None, ''):
        try:
            TrainingRequestStatus(request.args.get('status', type=int))
        except ValueError:
            return jsonify({'success': False, 'error': 'Unknown status.'}), 400
    now = datetime.now(timezone.utc)
    rows = filtered_training_requests(request.args)
    return jsonify({
        'summary': summarize(rows, now),
        'statuses': [{'code': code, 'label': label}
                     for code, label in TrainingRequestStatus.choices()],
        'training_requests': [training_request_dict(row, now) for row in rows],
    })


@bp.route('/<int:request_id>')
@login_required
@permission_required('training_request', 'list')
def training_request_detail(request_id):
    training_request = TrainingRequest.query.get_or_404(request_id)
    return jsonify(training_request_dict(training_request))


@bp.route('/<int:request_id>/edit', methods=['POST'])
@login_required
def edit_training_request(request_id):
    training_request = TrainingRequest.query.get_or_404(request_id)
    form = TrainingRequestForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(
        actions.update_training_request(current_user, training_request, form.changes()))
