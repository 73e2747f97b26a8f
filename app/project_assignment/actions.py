"""
Project Assignment Request (PAR) workflow.

Learners who completed a training ask for a project; staff negotiate the
assignment with the same response-due and follow-up rules as training
requests.
"""
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app import db
from app.actions import ValidationFailed, success, workflow_action
from app.activity import log_activity
from app.due_dates import parse_date
from app.models import (PARStatus, ProjectAssignmentRequest, TrainingRequestStatus,
                        training_request_for)
from app.numbering import next_code
from app.permissions import ensure_permission
from app.text import clean_text
from app.training_requests.actions import apply_follow_up

MODULE = 'project_assignment_request'
PROJECT_NAME_MAX = 255
DESCRIPTION_MAX = 2000


@workflow_action
def request_project_assignment(learner, competency_level, description=None):
    """Opens a project assignment request once the learner's training is completed."""
    training_request = training_request_for(learner.id, competency_level.id)
    if training_request is None or \
            training_request.status != TrainingRequestStatus.TRAINING_COMPLETED:
        raise ValidationFailed('A project can only be requested once the training is completed')
    if ProjectAssignmentRequest.query.filter_by(
            learner_id=learner.id, competency_level_id=competency_level.id).first():
        raise ValidationFailed('You already requested a project for this competency level')
    description = clean_text(description)
    if description and len(description) > DESCRIPTION_MAX:
        raise ValidationFailed(f'Description cannot exceed {DESCRIPTION_MAX} characters')

    par = ProjectAssignmentRequest(par_id=next_code('par'), learner=learner,
                                   competency_level=competency_level,
                                   requested_date=datetime.now(timezone.utc),
                                   status=PARStatus.NEW, description=description)
    db.session.add(par)
    try:
        db.session.flush()
    except IntegrityError as e:
        raise ValidationFailed('You already requested a project for this competency level') from e
    log_activity(learner, MODULE, 'add', {'par_id': par.par_id, 'status': par.status})
    db.session.commit()
    current_app.logger.info(f"Project assignment request {par.par_id} opened by {learner.email}.")
    return success(id=par.id, par_id=par.par_id)


@workflow_action
def update_project_assignment_request(actor, par, changes):
    """
    Applies a partial update to a project assignment request.

    Only the keys present in ``changes`` are touched. Moving back to New
    drops any manual due date so the derived one applies.
    """
    ensure_permission(actor, MODULE, 'edit')
    before = par.status
    status = before
    if changes.get('status') is not None:
        status = PARStatus(changes['status'])

    if 'project_name' in changes:
        project_name = clean_text(changes['project_name'])
        if project_name and len(project_name) > PROJECT_NAME_MAX:
            raise ValidationFailed(f'Project name cannot exceed {PROJECT_NAME_MAX} characters')
        par.project_name = project_name
    if 'description' in changes:
        description = clean_text(changes['description'])
        if description and len(description) > DESCRIPTION_MAX:
            raise ValidationFailed(f'Description cannot exceed {DESCRIPTION_MAX} characters')
        par.description = description
    if status == PARStatus.PROJECT_ASSIGNED and not par.project_name:
        raise ValidationFailed('An assigned project needs a project name')

    if status != before and status == PARStatus.NEW:
        par.response_due = None
    elif 'response_due' in changes:
        par.response_due = parse_date(changes['response_due'])
    if 'assigned_to' in changes:
        par.assigned_to = changes['assigned_to']
    if 'response_date' in changes:
        par.response_date = parse_date(changes['response_date'])
    apply_follow_up(par, changes)
    par.status = status

    log_activity(actor, MODULE, 'edit', {
        'par_id': par.par_id,
        'before': {'status': before},
        'after': {'status': status},
        'fields': sorted(key for key in changes if key != 'status'),
    })
    db.session.commit()
    current_app.logger.info(
        f"Project assignment request {par.par_id} updated by {actor.email}: "
        f"{before.name} -> {status.name}.")
    return success(id=par.id)
