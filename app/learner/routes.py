"""
Learner self-service: the dashboard of competencies with the learner's own
requests, and the apply / homework / project submission endpoints.
"""
from flask import abort, jsonify
from flask_login import login_required, current_user

from app.learner import bp
from app.learner.forms import (HomeworkSubmissionForm, ProjectAssignmentRequestForm,
                               ProjectSubmissionForm)
from app.models import (Competency, CompetencyLevel, CompetencyStatus,
                        ProjectAssignmentRequest, TrainingBatch, TrainingBatchLearner,
                        TrainingRequestStatus, training_request_for)
from app.project_assignment.actions import request_project_assignment
from app.responses import action_response, form_error_response
from app.serializers import (iso, level_brief, par_dict, training_request_dict, vpa_dict,
                             vsr_dict)
from app.training_batches.actions import submit_homework
from app.training_requests.actions import (are_requirements_met, create_training_request,
                                           required_levels)
from app.validation.actions import project_submission_open, submit_project, vpa_for, vsr_for


def _open_level_or_404(level_id):
    level = CompetencyLevel.query.filter_by(id=level_id, is_deleted=False).first_or_404()
    if level.competency.is_deleted or level.competency.status != CompetencyStatus.PUBLISHED:
        abort(404)
    return level


def _level_overview(learner, level):
    training_request = training_request_for(learner.id, level.id)
    vpa = vpa_for(learner.id, level.id)
    vsr = vsr_for(learner.id, level.id)
    par = ProjectAssignmentRequest.query.filter_by(
        learner_id=learner.id, competency_level_id=level.id).first()
    requirements_met = are_requirements_met(learner, level)
    completed = training_request is not None and \
        training_request.status == TrainingRequestStatus.TRAINING_COMPLETED
    return {
        **level_brief(level),
        'required_levels': [level_brief(required) for required in required_levels(level)],
        'requirements_met': requirements_met,
        'can_apply': training_request is None and requirements_met,
        'project_open': training_request is not None and
        project_submission_open(training_request, vpa, vsr),
        'can_request_project': completed and par is None,
        'training_request': training_request_dict(training_request) if training_request else None,
        'project_approval': vpa_dict(vpa) if vpa else None,
        'validation_schedule': vsr_dict(vsr) if vsr else None,
        'project_assignment': par_dict(par) if par else None,
    }


def _batch_overview(learner, batch):
    homework = {record.session_id: record for record in batch.homework
                if record.learner_id == learner.id}
    attended = {record.session_id for record in batch.attendance
                if record.learner_id == learner.id and record.attended}
    return {
        'id': batch.id,
        'batch_name': batch.batch_name,
        'competency_level': level_brief(batch.competency_level),
        'sessions': [{
            'session_number': session.session_number,
            'session_date': iso(session.session_date),
            'attended': session.id in attended,
            'homework_url': homework[session.id].homework_url if session.id in homework else None,
            'homework_completed': session.id in homework and homework[session.id].completed,
        } for session in batch.sessions],
    }


@bp.route('/')
@login_required
def dashboard():
    competencies = Competency.query.filter_by(
        is_deleted=False, status=CompetencyStatus.PUBLISHED).order_by(Competency.name).all()
    batches = TrainingBatch.query.join(TrainingBatchLearner).filter(
        TrainingBatchLearner.learner_id == current_user.id).all()
    return jsonify({
        'competencies': [{
            'id': competency.id,
            'name': competency.name,
            'description': competency.description,
            'levels': [_level_overview(current_user, level)
                       for level in competency.active_levels],
        } for competency in competencies],
        'training_batches': [_batch_overview(current_user, batch) for batch in batches],
    })


@bp.route('/apply/<int:level_id>', methods=['POST'])
@login_required
def apply(level_id):
    level = _open_level_or_404(level_id)
    return action_response(create_training_request(current_user, level), created=True)


@bp.route('/homework', methods=['POST'])
@login_required
def homework():
    form = HomeworkSubmissionForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    batch = TrainingBatch.query.get_or_404(form.training_batch_id.data)
    session = batch.session_number(form.session_number.data)
    if session is None:
        abort(404)
    return action_response(submit_homework(current_user, batch, session, form.homework_url.data))


@bp.route('/project/<int:level_id>', methods=['POST'])
@login_required
def project(level_id):
    level = _open_level_or_404(level_id)
    form = ProjectSubmissionForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(submit_project(current_user, level, form.project_details.data))


@bp.route('/project-assignment/<int:level_id>', methods=['POST'])
@login_required
def project_assignment(level_id):
    level = _open_level_or_404(level_id)
    form = ProjectAssignmentRequestForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(request_project_assignment(current_user, level,
                                                      form.description.data), created=True)
