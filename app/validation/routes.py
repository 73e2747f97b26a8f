from datetime import datetime, timezone

from flask import jsonify, request
from flask_login import login_required, current_user

from app.decorators import permission_required
from app.models import (ValidationProjectApproval, ValidationScheduleRequest,
                        VPAStatus, VSRStatus)
from app.responses import action_response, form_error_response
from app.serializers import user_brief, vpa_dict, vsr_dict
from app.validation import bp
from app.validation import actions
from app.validation.forms import ProjectApprovalForm, ScheduleRequestForm


def _status_filter(enum_class):
    code = request.args.get('status', type=int)
    if code is None:
        return None
    try:
        return enum_class(code)
    except ValueError:
        return None


@bp.route('/project-approvals')
@login_required
@permission_required('validation_project_approval', 'list')
def list_project_approvals():
    query = ValidationProjectApproval.query
    status = _status_filter(VPAStatus)
    if status is not None:
        query = query.filter(ValidationProjectApproval.status == status)
    now = datetime.now(timezone.utc)
    rows = query.order_by(ValidationProjectApproval.requested_date.desc()).all()
    return jsonify([vpa_dict(row, now) for row in rows])


@bp.route('/project-approvals/<int:vpa_id>')
@login_required
@permission_required('validation_project_approval', 'list')
def project_approval_detail(vpa_id):
    vpa = ValidationProjectApproval.query.get_or_404(vpa_id)
    return jsonify(vpa_dict(vpa, with_logs=True))


@bp.route('/project-approvals/<int:vpa_id>/edit', methods=['POST'])
@login_required
def edit_project_approval(vpa_id):
    vpa = ValidationProjectApproval.query.get_or_404(vpa_id)
    form = ProjectApprovalForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(actions.update_vpa(current_user, vpa, form.changes()))


@bp.route('/schedule-requests')
@login_required
@permission_required('validation_schedule_request', 'list')
def list_schedule_requests():
    query = ValidationScheduleRequest.query
    status = _status_filter(VSRStatus)
    if status is not None:
        query = query.filter(ValidationScheduleRequest.status == status)
    now = datetime.now(timezone.utc)
    rows = query.order_by(ValidationScheduleRequest.requested_date.desc()).all()
    return jsonify([vsr_dict(row, now) for row in rows])


@bp.route('/schedule-requests/<int:vsr_id>')
@login_required
@permission_required('validation_schedule_request', 'list')
def schedule_request_detail(vsr_id):
    vsr = ValidationScheduleRequest.query.get_or_404(vsr_id)
    return jsonify(vsr_dict(vsr, with_logs=True))


@bp.route('/schedule-requests/<int:vsr_id>/eligible-validators')
@login_required
@permission_required('validation_schedule_request', 'list')
def eligible_validators(vsr_id):
    vsr = ValidationScheduleRequest.query.get_or_404(vsr_id)
    competency = vsr.competency_level.competency
    return jsonify([user_brief(user) for user in actions.eligible_validators(competency)])


@bp.route('/schedule-requests/<int:vsr_id>/edit', methods=['POST'])
@login_required
def edit_schedule_request(vsr_id):
    vsr = ValidationScheduleRequest.query.get_or_404(vsr_id)
    form = ScheduleRequestForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(actions.update_vsr(current_user, vsr, form.changes()))


@bp.route('/schedule-requests/<int:vsr_id>/delete', methods=['POST'])
@login_required
def delete_schedule_request(vsr_id):
    vsr = ValidationScheduleRequest.query.get_or_404(vsr_id)
    return action_response(actions.delete_vsr(current_user, vsr))
