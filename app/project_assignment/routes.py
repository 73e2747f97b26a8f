from datetime import datetime, timezone

from flask import jsonify, request
from flask_login import login_required, current_user

from app.decorators import permission_required
from app.models import PARStatus, ProjectAssignmentRequest
from app.project_assignment import bp
from app.project_assignment import actions
from app.project_assignment.forms import ProjectAssignmentForm
from app.responses import action_response, form_error_response
from app.serializers import par_dict


@bp.route('/')
@login_required
@permission_required('project_assignment_request', 'list')
def list_project_assignment_requests():
    query = ProjectAssignmentRequest.query
    code = request.args.get('status', type=int)
    if code is not None:
        try:
            query = query.filter(ProjectAssignmentRequest.status == PARStatus(code))
        except ValueError:
            return jsonify({'success': False, 'error': 'Unknown status.'}), 400
    now = datetime.now(timezone.utc)
    rows = query.order_by(ProjectAssignmentRequest.requested_date.desc()).all()
    return jsonify({
        'statuses': [{'code': code, 'label': label} for code, label in PARStatus.choices()],
        'project_assignment_requests': [par_dict(row, now) for row in rows],
    })


@bp.route('/<int:par_id>')
@login_required
@permission_required('project_assignment_request', 'list')
def project_assignment_request_detail(par_id):
    return jsonify(par_dict(ProjectAssignmentRequest.query.get_or_404(par_id)))


@bp.route('/<int:par_id>/edit', methods=['POST'])
@login_required
def edit_project_assignment_request(par_id):
    par = ProjectAssignmentRequest.query.get_or_404(par_id)
    form = ProjectAssignmentForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(
        actions.update_project_assignment_request(current_user, par, form.changes()))
