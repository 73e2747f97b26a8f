"""
Training request workflow: creation by the learner, the staff-side state
machine, and requirement satisfaction for competency levels.
"""
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app import db
from app.actions import ValidationFailed, success, workflow_action
from app.activity import log_activity
from app.due_dates import no_follow_up_date, parse_date
from app.models import (CompetencyStatus, OnHoldBy, TrainingRequest,
                        TrainingRequestStatus, training_request_for)
from app.numbering import next_code
from app.permissions import ensure_permission
from app.text import clean_text

MODULE = 'training_request'
DUPLICATE_MESSAGE = 'You already have a training request for this competency level'

# Statuses in which staff owe the learner a response
RESPONSE_STATUSES = (
    TrainingRequestStatus.LOOKING_FOR_TRAINER,
    TrainingRequestStatus.IN_QUEUE,
    TrainingRequestStatus.NO_BATCH_MATCH,
)


def required_levels(competency_level):
    """
    Levels a learner must complete before applying for ``competency_level``.

    Lower levels of the same competency are derived (Competent needs Basic,
    Advanced needs Basic and Competent); cross-competency requirements come
    from the competency's stored requirements.
    """
    competency = competency_level.competency
    required = [level for level in competency.active_levels
                if level.rank < competency_level.rank]
    for requirement in competency.requirements:
        level = requirement.required_level
        if not level.is_deleted and level not in required:
            required.append(level)
    return required


def are_requirements_met(learner, competency_level):
    """True when every required level has a completed training request."""
    required_ids = [level.id for level in required_levels(competency_level)]
    if not required_ids:
        return True
    completed = {
        tr.competency_level_id for tr in TrainingRequest.query.filter(
            TrainingRequest.learner_id == learner.id,
            TrainingRequest.competency_level_id.in_(required_ids),
            TrainingRequest.status == TrainingRequestStatus.TRAINING_COMPLETED,
        )
    }
    return all(level_id in completed for level_id in required_ids)


@workflow_action
def create_training_request(learner, competency_level):
    """Applies ``learner`` for ``competency_level``; one request per level."""
    competency = competency_level.competency
    if competency_level.is_deleted or competency.is_deleted or \
            competency.status != CompetencyStatus.PUBLISHED:
        raise ValidationFailed('This competency level is not open for applications')
    if training_request_for(learner.id, competency_level.id) is not None:
        raise ValidationFailed(DUPLICATE_MESSAGE)
    if not are_requirements_met(learner, competency_level):
        raise ValidationFailed('Requirements not met')

    training_request = TrainingRequest(
        tr_id=next_code('tr'),
        requested_date=datetime.now(timezone.utc),
        learner=learner,
        competency_level=competency_level,
        status=TrainingRequestStatus.LOOKING_FOR_TRAINER,
    )
    db.session.add(training_request)
    try:
        db.session.flush()
    except IntegrityError as e:
        raise ValidationFailed(DUPLICATE_MESSAGE) from e

    log_activity(learner, MODULE, 'add', {
        'tr_id': training_request.tr_id,
        'competency_level_id': competency_level.id,
        'status': training_request.status,
    })
    db.session.commit()
    current_app.logger.info(
        f"Training request {training_request.tr_id} created by {learner.email} "
        f"for {competency_level.label}.")
    return success(id=training_request.id, tr_id=training_request.tr_id)


def _apply_on_hold(training_request, status, changes):
    if status != TrainingRequestStatus.ON_HOLD:
        training_request.on_hold_by = None
        training_request.on_hold_reason = None
        return
    on_hold_by = changes.get('on_hold_by', training_request.on_hold_by)
    reason = clean_text(changes.get('on_hold_reason', training_request.on_hold_reason))
    if on_hold_by is None or reason is None:
        raise ValidationFailed('On hold requires who put the request on hold and a reason')
    training_request.on_hold_by = OnHoldBy(on_hold_by)
    training_request.on_hold_reason = reason


def _apply_drop_off(training_request, status, changes):
    if status != TrainingRequestStatus.DROP_OFF:
        training_request.drop_off_reason = None
        return
    reason = clean_text(changes.get('drop_off_reason', training_request.drop_off_reason))
    if reason is None:
        raise ValidationFailed('Drop off reason is required')
    training_request.drop_off_reason = reason


def _apply_blocked(training_request, changes):
    is_blocked = changes.get('is_blocked', training_request.is_blocked)
    if not is_blocked:
        training_request.is_blocked = False
        training_request.blocked_reason = None
        training_request.expected_unblocked_date = None
        return
    reason = clean_text(changes.get('blocked_reason', training_request.blocked_reason))
    if reason is None:
        raise ValidationFailed('Blocked reason is required when the request is blocked')
    training_request.is_blocked = True
    training_request.blocked_reason = reason
    training_request.expected_unblocked_date = parse_date(
        changes.get('expected_unblocked_date', training_request.expected_unblocked_date))


def apply_follow_up(request_row, changes):
    """
    Applies definite answer and follow-up changes to a TR, VSR or PAR row.

    A definite answer of False derives the no-follow-up date from the
    requested date and keeps the editable follow-up date; any other answer
    clears both.
    """
    if 'definite_answer' in changes:
        request_row.definite_answer = changes['definite_answer']
    if request_row.definite_answer is False:
        request_row.no_follow_up_date = no_follow_up_date(request_row.requested_date, False)
        if 'follow_up_date' in changes:
            request_row.follow_up_date = parse_date(changes['follow_up_date'])
    else:
        request_row.no_follow_up_date = None
        request_row.follow_up_date = None


@workflow_action
def update_training_request(actor, training_request, changes):
    """
    Moves a training request through its state machine.

    ``changes`` holds only the fields to change. Entering a response status
    (Looking for trainer, In queue, No batch match) drops any manual response
    due date so the derived one applies again; assignee and response date
    are only taken while the request is in a response status.
    """
    ensure_permission(actor, MODULE, 'edit')
    before = training_request.status
    status = before
    if changes.get('status') is not None:
        status = TrainingRequestStatus(changes['status'])
    if status == TrainingRequestStatus.TRAINING_COMPLETED and \
            before != TrainingRequestStatus.TRAINING_COMPLETED:
        raise ValidationFailed('Training is completed by passing its validation')

    _apply_on_hold(training_request, status, changes)
    _apply_drop_off(training_request, status, changes)
    _apply_blocked(training_request, changes)

    if status != before and status in RESPONSE_STATUSES:
        training_request.response_due = None
    elif 'response_due' in changes:
        training_request.response_due = parse_date(changes['response_due'])

    if status in RESPONSE_STATUSES:
        if 'assigned_to' in changes:
            training_request.assigned_to = changes['assigned_to']
        if 'response_date' in changes:
            training_request.response_date = parse_date(changes['response_date'])

    training_request.status = status
    apply_follow_up(training_request, changes)
    if 'notes' in changes:
        training_request.notes = clean_text(changes['notes'])

    log_activity(actor, MODULE, 'edit', {
        'tr_id': training_request.tr_id,
        'before': {'status': before},
        'after': {'status': status},
        'is_blocked': training_request.is_blocked,
    })
    db.session.commit()
    current_app.logger.info(
        f"Training request {training_request.tr_id} updated by {actor.email}: "
        f"{before.name} -> {status.name}.")
    return success(id=training_request.id, due_date=training_request.due_date.isoformat())
