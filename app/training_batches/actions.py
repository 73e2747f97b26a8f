"""
Training batch scheduling: batches, their sessions and learners, attendance
and homework.

Learners join a batch through their training request, which must be In
Queue for the batch's competency level. Batch membership drives the
training request status: joining or starting moves it to In Progress,
attending the last session moves it to Sessions Completed, leaving the
batch puts an unfinished request back In Queue (or Drop Off).
"""
from datetime import datetime, timezone
from urllib.parse import urlparse

from flask import current_app
from sqlalchemy import select

from app import db
from app.actions import ValidationFailed, success, workflow_action
from app.activity import log_activity
from app.models import (TrainingBatch, TrainingBatchAttendance, TrainingBatchHomework,
                        TrainingBatchLearner, TrainingBatchSession, TrainingRequest,
                        TrainingRequestStatus)
from app.permissions import ensure_permission
from app.text import clean_text

MODULE = 'training_batch'
NOT_IN_BATCH_MESSAGE = 'Learner not found in batch'

# Training requests a running batch may still move forward
ACTIVE_STATUSES = (TrainingRequestStatus.IN_QUEUE, TrainingRequestStatus.IN_PROGRESS)


def _queued_requests(competency_level, learner_ids):
    learner_ids = set(learner_ids)
    if not learner_ids:
        return []
    requests = TrainingRequest.query.filter(
        TrainingRequest.competency_level_id == competency_level.id,
        TrainingRequest.status == TrainingRequestStatus.IN_QUEUE,
        TrainingRequest.learner_id.in_(learner_ids),
    ).all()
    if len(requests) != len(learner_ids):
        raise ValidationFailed('Some learners do not have training requests in queue')
    return requests


def _attach(batch, training_requests):
    for training_request in training_requests:
        batch.learners.append(TrainingBatchLearner(learner_id=training_request.learner_id,
                                                   training_request=training_request))
        training_request.training_batch = batch
        training_request.status = TrainingRequestStatus.IN_PROGRESS


def _detach(batch, entry, status):
    """
    Takes a learner out of the batch. Only a training request still in queue
    or in progress moves to ``status``; finished sessions and completed
    training keep theirs.
    """
    training_request = entry.training_request
    if training_request is not None:
        if training_request.status in ACTIVE_STATUSES:
            training_request.status = status
        training_request.training_batch = None
    batch.learners.remove(entry)
    return training_request


def _discard_records(batch, learner_id):
    """Removes the attendance and homework of a learner leaving the batch."""
    for record in [r for r in batch.attendance if r.learner_id == learner_id]:
        batch.attendance.remove(record)
    for record in [r for r in batch.homework if r.learner_id == learner_id]:
        batch.homework.remove(record)


def _check_sizes(session_count, capacity):
    if session_count is None or session_count < 1:
        raise ValidationFailed('A batch needs at least one session')
    if capacity is None or capacity < 1:
        raise ValidationFailed('Capacity must be at least 1')


@workflow_action
def create_training_batch(actor, batch_name, competency_level, trainer, session_count,
                          capacity, learner_ids=(), duration_hrs=None, estimated_start=None):
    """Creates a batch with sessions 1..N and enrolls the given queued learners."""
    ensure_permission(actor, MODULE, 'add')
    batch_name = clean_text(batch_name)
    if not batch_name:
        raise ValidationFailed('Batch name is required')
    _check_sizes(session_count, capacity)
    learner_ids = list(learner_ids)
    if len(learner_ids) > capacity:
        raise ValidationFailed('Number of learners cannot exceed capacity')

    batch = TrainingBatch(batch_name=batch_name, competency_level=competency_level,
                          trainer=trainer, session_count=session_count, capacity=capacity,
                          duration_hrs=duration_hrs, estimated_start=estimated_start)
    for number in range(1, session_count + 1):
        batch.sessions.append(TrainingBatchSession(session_number=number))
    db.session.add(batch)
    _attach(batch, _queued_requests(competency_level, learner_ids))
    batch.refresh_counts()
    db.session.flush()

    log_activity(actor, MODULE, 'add', {
        'batch_id': batch.id,
        'batch_name': batch.batch_name,
        'competency_level_id': competency_level.id,
        'learner_ids': sorted(learner_ids),
    })
    db.session.commit()
    current_app.logger.info(
        f"Training batch '{batch.batch_name}' created by {actor.email} "
        f"with {batch.current_participant} learner(s).")
    return success(id=batch.id)


def _resize_sessions(batch, session_count):
    for number in range(len(batch.sessions) + 1, session_count + 1):
        batch.sessions.append(TrainingBatchSession(session_number=number))
    extra = [s for s in batch.sessions if s.session_number > session_count]
    if not extra:
        return
    extra_ids = {s.id for s in extra}
    if any(r.session_id in extra_ids for r in batch.attendance) or \
            any(r.session_id in extra_ids for r in batch.homework):
        raise ValidationFailed('Cannot remove sessions that already have attendance or homework')
    for session in extra:
        batch.sessions.remove(session)


@workflow_action
def update_training_batch(actor, batch, changes):
    """
    Applies a partial update to a batch.

    ``learner_ids``, when given, is the complete new learner list: learners
    left out go back In Queue, new ones must be queued for the level.
    """
    ensure_permission(actor, MODULE, 'edit')
    capacity = changes.get('capacity', batch.capacity)
    session_count = changes.get('session_count', batch.session_count)
    _check_sizes(session_count, capacity)
    participants = len(batch.learners)
    if capacity < participants:
        raise ValidationFailed(
            f'Cannot set capacity below current participant count ({participants})')

    if 'batch_name' in changes:
        batch_name = clean_text(changes['batch_name'])
        if not batch_name:
            raise ValidationFailed('Batch name is required')
        batch.batch_name = batch_name
    for field in ('trainer', 'duration_hrs', 'estimated_start',
                  'batch_start_date', 'batch_finish_date'):
        if field in changes:
            setattr(batch, field, changes[field])
    batch.capacity = capacity
    if session_count != batch.session_count:
        _resize_sessions(batch, session_count)
        batch.session_count = session_count

    if 'learner_ids' in changes:
        wanted = set(changes['learner_ids'])
        if len(wanted) > capacity:
            raise ValidationFailed('Number of learners cannot exceed capacity')
        current = {entry.learner_id for entry in batch.learners}
        for entry in [e for e in batch.learners if e.learner_id not in wanted]:
            _detach(batch, entry, TrainingRequestStatus.IN_QUEUE)
            _discard_records(batch, entry.learner_id)
        _attach(batch, _queued_requests(batch.competency_level, wanted - current))
    batch.refresh_counts()

    log_activity(actor, MODULE, 'edit', {
        'batch_id': batch.id,
        'batch_name': batch.batch_name,
        'fields': sorted(changes),
    })
    db.session.commit()
    current_app.logger.info(f"Training batch {batch.id} updated by {actor.email}.")
    return success(id=batch.id)


@workflow_action
def delete_training_batch(actor, batch):
    """Deletes a batch; unfinished training requests of its learners go back In Queue."""
    ensure_permission(actor, MODULE, 'delete')
    batch_id, batch_name = batch.id, batch.batch_name
    for entry in list(batch.learners):
        _detach(batch, entry, TrainingRequestStatus.IN_QUEUE)
    db.session.delete(batch)
    log_activity(actor, MODULE, 'delete', {'batch_id': batch_id, 'batch_name': batch_name})
    db.session.commit()
    current_app.logger.info(f"Training batch {batch_id} deleted by {actor.email}.")
    return success(id=batch_id)


@workflow_action
def remove_learner(actor, batch, learner_id):
    ensure_permission(actor, MODULE, 'edit')
    entry = batch.learner_entry(learner_id)
    if entry is None:
        raise ValidationFailed(NOT_IN_BATCH_MESSAGE)
    _detach(batch, entry, TrainingRequestStatus.IN_QUEUE)
    _discard_records(batch, learner_id)
    batch.refresh_counts()
    log_activity(actor, MODULE, 'edit', {
        'batch_id': batch.id, 'action': 'remove_learner', 'learner_id': learner_id})
    db.session.commit()
    return success(id=batch.id, spot_left=batch.spot_left)


@workflow_action
def drop_off_learner(actor, batch, learner_id, reason):
    """Takes a learner out of the batch and marks the training request Drop Off."""
    ensure_permission(actor, MODULE, 'edit')
    reason = clean_text(reason)
    if not reason:
        raise ValidationFailed('Drop off reason is required')
    entry = batch.learner_entry(learner_id)
    if entry is None:
        raise ValidationFailed(NOT_IN_BATCH_MESSAGE)
    training_request = _detach(batch, entry, TrainingRequestStatus.DROP_OFF)
    if training_request is not None and \
            training_request.status == TrainingRequestStatus.DROP_OFF:
        training_request.drop_off_reason = reason
    batch.refresh_counts()
    log_activity(actor, MODULE, 'edit', {
        'batch_id': batch.id, 'action': 'drop_off_learner',
        'learner_id': learner_id, 'reason': reason})
    db.session.commit()
    return success(id=batch.id, spot_left=batch.spot_left)


@workflow_action
def set_session_date(actor, batch, session_number, session_date):
    """Sets (or clears) the date of a session, creating the session if missing."""
    ensure_permission(actor, MODULE, 'edit')
    if session_number is None or not 1 <= session_number <= batch.session_count:
        raise ValidationFailed(f'Session number must be between 1 and {batch.session_count}')
    session = batch.session_number(session_number)
    if session is None:
        session = TrainingBatchSession(session_number=session_number)
        batch.sessions.append(session)
    session.session_date = session_date
    log_activity(actor, MODULE, 'edit', {
        'batch_id': batch.id, 'action': 'set_session_date',
        'session_number': session_number, 'session_date': session_date})
    db.session.commit()
    return success(id=session.id)


def _set_learner_status(batch, learner_ids, status, from_statuses=ACTIVE_STATUSES):
    updated = 0
    for entry in batch.learners:
        training_request = entry.training_request
        if entry.learner_id not in learner_ids or training_request is None:
            continue
        if training_request.status in from_statuses and training_request.status != status:
            training_request.status = status
            updated += 1
    return updated


@workflow_action
def start_batch(actor, batch):
    """Starts session 1: dates it now if undated and moves learners In Progress."""
    ensure_permission(actor, MODULE, 'edit')
    first = batch.session_number(1)
    now = datetime.now(timezone.utc)
    if first is not None and first.session_date is None:
        first.session_date = now
    if batch.batch_start_date is None:
        batch.batch_start_date = now.date()
    updated = _set_learner_status(batch, {e.learner_id for e in batch.learners},
                                  TrainingRequestStatus.IN_PROGRESS)
    log_activity(actor, MODULE, 'edit', {'batch_id': batch.id, 'action': 'start_batch'})
    db.session.commit()
    return success(id=batch.id, updated=updated)


def _attendance(batch, learner_id, session):
    return db.session.get(TrainingBatchAttendance, (batch.id, learner_id, session.id))


def _homework(batch, learner_id, session):
    return db.session.get(TrainingBatchHomework, (batch.id, learner_id, session.id))


def _check_session(batch, session):
    if session is None or session.training_batch_id != batch.id:
        raise ValidationFailed('Session not found in batch')


@workflow_action
def update_attendance(actor, batch, session, marks):
    """
    Records attendance for one session.

    ``marks`` is a list of ``{'learner_id': ..., 'attended': bool}``. A
    learner can only attend a session after attending the previous one.
    Attending session 1 moves the training request In Progress; attending
    the last session moves it to Sessions Completed.
    """
    ensure_permission(actor, MODULE, 'edit')
    _check_session(batch, session)
    previous = batch.session_number(session.session_number - 1)
    last_number = max(s.session_number for s in batch.sessions)
    attended_ids, absent_ids = set(), set()

    for mark in marks:
        learner_id = mark['learner_id']
        attended = bool(mark.get('attended'))
        if batch.learner_entry(learner_id) is None:
            raise ValidationFailed(NOT_IN_BATCH_MESSAGE)
        if attended and previous is not None:
            before = _attendance(batch, learner_id, previous)
            if before is None or not before.attended:
                raise ValidationFailed(
                    f'Cannot mark attendance for Session {session.session_number}. '
                    f'Learner must attend Session {previous.session_number} first.')
        record = _attendance(batch, learner_id, session)
        if record is None:
            record = TrainingBatchAttendance(learner_id=learner_id, session=session)
            batch.attendance.append(record)
            db.session.flush()
        record.attended = attended
        (attended_ids if attended else absent_ids).add(learner_id)

    if session.session_number == last_number:
        _set_learner_status(batch, attended_ids, TrainingRequestStatus.SESSIONS_COMPLETED)
        _set_learner_status(batch, absent_ids, TrainingRequestStatus.IN_PROGRESS,
                            (TrainingRequestStatus.SESSIONS_COMPLETED,))
    elif session.session_number == 1:
        _set_learner_status(batch, attended_ids, TrainingRequestStatus.IN_PROGRESS)

    log_activity(actor, MODULE, 'edit', {
        'batch_id': batch.id, 'batch_name': batch.batch_name,
        'action': 'update_attendance', 'session_number': session.session_number,
        'attendance_count': len(marks)})
    db.session.commit()
    return success(id=batch.id)


@workflow_action
def review_homework(actor, batch, session, marks):
    """Sets the trainer-controlled ``completed`` flag of homework submissions."""
    ensure_permission(actor, MODULE, 'edit')
    _check_session(batch, session)
    for mark in marks:
        learner_id = mark['learner_id']
        if batch.learner_entry(learner_id) is None:
            raise ValidationFailed(NOT_IN_BATCH_MESSAGE)
        record = _homework(batch, learner_id, session)
        if record is None:
            record = TrainingBatchHomework(learner_id=learner_id, session=session)
            batch.homework.append(record)
            db.session.flush()
        record.completed = bool(mark.get('completed'))
    log_activity(actor, MODULE, 'edit', {
        'batch_id': batch.id, 'action': 'review_homework',
        'session_number': session.session_number, 'homework_count': len(marks)})
    db.session.commit()
    return success(id=batch.id)


def is_valid_url(value):
    parsed = urlparse(value or '')
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


@workflow_action
def submit_homework(learner, batch, session, homework_url):
    """
    Stores a learner's homework link for a session.

    The first submission creates the record with ``completed`` False;
    resubmitting replaces the URL only. Reviewed homework is locked.
    """
    homework_url = clean_text(homework_url)
    if not is_valid_url(homework_url):
        raise ValidationFailed('Please enter a valid URL')
    if batch.learner_entry(learner.id) is None:
        raise ValidationFailed('You are not enrolled in this training batch')
    _check_session(batch, session)

    record = _homework(batch, learner.id, session)
    if record is None:
        record = TrainingBatchHomework(learner_id=learner.id, session=session,
                                       completed=False)
        batch.homework.append(record)
    elif record.completed:
        raise ValidationFailed('This homework has already been reviewed and cannot be changed')
    record.homework_url = homework_url
    record.submitted_at = datetime.now(timezone.utc)

    log_activity(learner, MODULE, 'edit', {
        'batch_id': batch.id, 'action': 'submit_homework',
        'session_number': session.session_number})
    db.session.commit()
    current_app.logger.info(
        f"Homework for session {session.session_number} of batch {batch.id} "
        f"submitted by {learner.email}.")
    return success(id=batch.id)


def available_learners(competency_level):
    """Training requests In Queue for the level whose learner has no batch of that level."""
    enrolled = select(TrainingBatchLearner.learner_id).join(TrainingBatchLearner.batch).where(
        TrainingBatch.competency_level_id == competency_level.id)
    return TrainingRequest.query.filter(
        TrainingRequest.competency_level_id == competency_level.id,
        TrainingRequest.status == TrainingRequestStatus.IN_QUEUE,
        TrainingRequest.learner_id.not_in(enrolled),
    ).order_by(TrainingRequest.requested_date).all()
