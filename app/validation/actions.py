"""
Validation Project Approval (VPA) and Validation Schedule Request (VSR)
workflows.

A learner whose training sessions are completed submits a project (VPA).
Approving it opens a validation schedule request (VSR); a passed validation
completes the training request, a failed one sends the project back for
re-validation.
"""
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app import db
from app.actions import ValidationFailed, success, workflow_action
from app.activity import log_activity
from app.due_dates import as_utc, parse_date
from app.models import (Role, TrainingRequestStatus, User, ValidationProjectApproval,
                        ValidationScheduleRequest, VPALog, VPAStatus, VSRLog, VSRStatus,
                        training_request_for)
from app.numbering import next_code
from app.permissions import ensure_permission
from app.text import clean_html, clean_text
from app.training_requests.actions import apply_follow_up

VPA_MODULE = 'validation_project_approval'
VSR_MODULE = 'validation_schedule_request'

PROJECT_ELIGIBLE_STATUSES = (
    TrainingRequestStatus.SESSIONS_COMPLETED,
    TrainingRequestStatus.TRAINING_COMPLETED,
)
EDITABLE_VPA_STATUSES = (VPAStatus.REJECTED, VPAStatus.RESUBMIT_FOR_REVALIDATION)
VSR_OUTCOMES = (VSRStatus.FAIL, VSRStatus.PASS)


def vpa_for(learner_id, competency_level_id):
    return ValidationProjectApproval.query.filter_by(
        learner_id=learner_id, competency_level_id=competency_level_id).first()


def vsr_for(learner_id, competency_level_id):
    return ValidationScheduleRequest.query.filter_by(
        learner_id=learner_id, competency_level_id=competency_level_id).first()


def project_submission_open(training_request, vpa, vsr=None):
    """
    Whether the learner may (re)submit the project for a competency level.

    The training request must have completed its sessions. A project can be
    submitted when none exists yet, after a rejection or a re-validation
    request, and again once the training is completed by a passed validation.
    """
    if training_request is None or training_request.status not in PROJECT_ELIGIBLE_STATUSES:
        return False
    if vpa is None or vpa.status in EDITABLE_VPA_STATUSES:
        return True
    return training_request.status == TrainingRequestStatus.TRAINING_COMPLETED and \
        vsr is not None and vsr.status == VSRStatus.PASS


@workflow_action
def submit_project(learner, competency_level, project_details):
    """Creates or resubmits the learner's validation project for a level."""
    training_request = training_request_for(learner.id, competency_level.id)
    if training_request is None or training_request.status not in PROJECT_ELIGIBLE_STATUSES:
        raise ValidationFailed('Project submission requires completed training sessions')
    details = clean_html(project_details)
    if details is None:
        raise ValidationFailed('Project details are required')

    vpa = vpa_for(learner.id, competency_level.id)
    vsr = vsr_for(learner.id, competency_level.id)
    if not project_submission_open(training_request, vpa, vsr):
        raise ValidationFailed('This project is awaiting review and cannot be edited')

    created = vpa is None
    if created:
        vpa = ValidationProjectApproval(vpa_id=next_code('vpa'), learner=learner,
                                        competency_level=competency_level)
        db.session.add(vpa)
    vpa.training_request = training_request
    vpa.project_details = details
    vpa.status = VPAStatus.PENDING
    vpa.response_date = None
    vpa.response_due = None
    vpa.rejection_reason = None
    vpa.requested_date = datetime.now(timezone.utc)
    vpa.logs.append(VPALog(status=VPAStatus.PENDING, project_details=details,
                           updated_by=learner))
    try:
        db.session.flush()
    except IntegrityError as e:
        raise ValidationFailed('A project was already submitted for this competency level') from e

    log_activity(learner, VPA_MODULE, 'add' if created else 'edit', {
        'vpa_id': vpa.vpa_id,
        'tr_id': training_request.tr_id,
        'status': vpa.status,
    })
    db.session.commit()
    current_app.logger.info(f"Project {vpa.vpa_id} submitted by {learner.email}.")
    return success(id=vpa.id, vpa_id=vpa.vpa_id)


def _open_validation_schedule(vpa, actor):
    """Creates the VSR of an approved project, or reopens an existing one."""
    vsr = vsr_for(vpa.learner_id, vpa.competency_level_id)
    created = vsr is None
    if created:
        vsr = ValidationScheduleRequest(vsr_id=next_code('vsr'), learner_id=vpa.learner_id,
                                        competency_level_id=vpa.competency_level_id,
                                        status=VSRStatus.PENDING_VALIDATION)
        db.session.add(vsr)
    else:
        vsr.status = VSRStatus.PENDING_REVALIDATION
        vsr.scheduled_date = None
        vsr.response_date = None
        vsr.response_due = None
        vsr.definite_answer = None
        vsr.no_follow_up_date = None
        vsr.follow_up_date = None
    vsr.training_request = vpa.training_request
    vsr.requested_date = datetime.now(timezone.utc)
    vsr.description = vpa.project_details
    vsr.logs.append(VSRLog(status=vsr.status, updated_by=actor))
    log_activity(actor, VSR_MODULE, 'add' if created else 'edit', {
        'vsr_id': vsr.vsr_id,
        'vpa_id': vpa.vpa_id,
        'status': vsr.status,
    })
    return vsr


@workflow_action
def update_vpa(actor, vpa, changes):
    """
    Reviews a submitted project.

    Approved projects are read-only. A rejection needs a reason. Approving
    opens the validation schedule request for the same learner and level.
    """
    ensure_permission(actor, VPA_MODULE, 'edit')
    before = vpa.status
    if before == VPAStatus.APPROVED:
        raise ValidationFailed('Approved project approvals are read-only')
    status = before
    if changes.get('status') is not None:
        status = VPAStatus(changes['status'])

    if 'project_details' in changes:
        details = clean_html(changes['project_details'])
        if details is None:
            raise ValidationFailed('Project details are required')
        vpa.project_details = details
    if 'rejection_reason' in changes:
        vpa.rejection_reason = clean_text(changes['rejection_reason'])
    if status == VPAStatus.REJECTED and not vpa.rejection_reason:
        raise ValidationFailed('Rejection reason is required')
    if 'response_date' in changes:
        vpa.response_date = parse_date(changes['response_date'])
    if vpa.assigned_to is None:
        vpa.assigned_to = actor

    vpa.status = status
    vpa.logs.append(VPALog(status=status, project_details=vpa.project_details,
                           rejection_reason=vpa.rejection_reason, updated_by=actor))
    vsr = None
    if status == VPAStatus.APPROVED:
        vsr = _open_validation_schedule(vpa, actor)

    log_activity(actor, VPA_MODULE, 'edit', {
        'vpa_id': vpa.vpa_id,
        'before': {'status': before},
        'after': {'status': status},
    })
    db.session.commit()
    current_app.logger.info(
        f"Project approval {vpa.vpa_id} updated by {actor.email}: {before.name} -> {status.name}.")
    if vsr is not None:
        return success(id=vpa.id, vsr_id=vsr.vsr_id)
    return success(id=vpa.id)


def eligible_validators(competency):
    """Ops users plus the trainers of ``competency`` holding the Trainer role."""
    ops = User.query.join(User.roles).filter(Role.name == 'Ops').all()
    trainers = [user for user in competency.trainers if user.has_role('Trainer')]
    eligible = {user.id: user for user in ops + trainers}
    return sorted(eligible.values(), key=lambda user: user.full_name)


def _check_validators(vsr):
    competency = vsr.competency_level.competency
    if vsr.validator_ops is not None and not vsr.validator_ops.has_role('Ops'):
        raise ValidationFailed(f'{vsr.validator_ops.full_name} is not an Ops validator')
    if vsr.validator_trainer is not None and (
            not vsr.validator_trainer.has_role('Trainer')
            or vsr.validator_trainer not in competency.trainers):
        raise ValidationFailed(
            f'{vsr.validator_trainer.full_name} is not a trainer of {competency.name}')


def _record_outcome(vsr, actor, status):
    if status == VSRStatus.PASS:
        training_request = vsr.training_request or training_request_for(
            vsr.learner_id, vsr.competency_level_id)
        if training_request is not None:
            training_request.status = TrainingRequestStatus.TRAINING_COMPLETED
    else:
        vpa = vpa_for(vsr.learner_id, vsr.competency_level_id)
        if vpa is not None:
            vpa.status = VPAStatus.RESUBMIT_FOR_REVALIDATION
            vpa.logs.append(VPALog(status=vpa.status, project_details=vpa.project_details,
                                   rejection_reason=vpa.rejection_reason, updated_by=actor))


@workflow_action
def update_vsr(actor, vsr, changes):
    """
    Schedules a validation and records its outcome.

    Scheduling needs a date and both validators. Pass and Fail can only be
    recorded for a scheduled validation and are final: Pass completes the
    training request, Fail asks the learner to resubmit the project.
    """
    ensure_permission(actor, VSR_MODULE, 'edit')
    before = vsr.status
    if before in VSR_OUTCOMES:
        raise ValidationFailed('The outcome of this validation has already been recorded')
    status = before
    if changes.get('status') is not None:
        status = VSRStatus(changes['status'])

    if 'scheduled_date' in changes:
        vsr.scheduled_date = as_utc(changes['scheduled_date'])
    if 'validator_ops' in changes:
        vsr.validator_ops = changes['validator_ops']
    if 'validator_trainer' in changes:
        vsr.validator_trainer = changes['validator_trainer']
    if 'description' in changes:
        vsr.description = clean_html(changes['description'])
    if 'response_date' in changes:
        vsr.response_date = parse_date(changes['response_date'])
    _check_validators(vsr)

    if status == VSRStatus.VALIDATION_SCHEDULED and (
            vsr.scheduled_date is None or vsr.validator_ops is None
            or vsr.validator_trainer is None):
        raise ValidationFailed('Scheduling a validation requires a date and both validators')
    if status in VSR_OUTCOMES and before != VSRStatus.VALIDATION_SCHEDULED:
        raise ValidationFailed('A validation must be scheduled before recording its outcome')

    apply_follow_up(vsr, changes)
    if changes.get('assigned_to') is not None:
        vsr.assigned_to = changes['assigned_to']
    elif vsr.assigned_to is None:
        vsr.assigned_to = actor
    vsr.status = status
    vsr.logs.append(VSRLog(status=status, updated_by=actor))
    if status != before and status in VSR_OUTCOMES:
        _record_outcome(vsr, actor, status)

    log_activity(actor, VSR_MODULE, 'edit', {
        'vsr_id': vsr.vsr_id,
        'before': {'status': before},
        'after': {'status': status},
    })
    db.session.commit()
    current_app.logger.info(
        f"Validation schedule {vsr.vsr_id} updated by {actor.email}: "
        f"{before.name} -> {status.name}.")
    return success(id=vsr.id)


@workflow_action
def delete_vsr(actor, vsr):
    """Deletes a validation schedule request and its status history."""
    ensure_permission(actor, VSR_MODULE, 'delete')
    vsr_id = vsr.vsr_id
    log_activity(actor, VSR_MODULE, 'delete', {
        'vsr_id': vsr_id,
        'learner_id': vsr.learner_id,
        'competency_level_id': vsr.competency_level_id,
        'status': vsr.status,
    })
    db.session.delete(vsr)
    db.session.commit()
    current_app.logger.info(f"Validation schedule {vsr_id} deleted by {actor.email}.")
    return success()
