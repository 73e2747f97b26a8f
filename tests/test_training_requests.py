from datetime import date, datetime, timedelta, timezone

import pytest

from app import db
from app.due_dates import as_utc
from app.models import (CompetencyRequirement, CompetencyStatus, OnHoldBy, TrainingRequest,
                        TrainingRequestStatus)
from app.permissions import AccessDenied
from app.training_requests.actions import (DUPLICATE_MESSAGE, are_requirements_met,
                                           create_training_request, update_training_request)

NOV_10 = datetime(2025, 11, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def basic_level(competency_factory):
    return competency_factory().level_named('Basic')


def test_create_training_request(learner, basic_level):
    result = create_training_request(learner, basic_level)
    assert result['success']
    assert result['tr_id'] == 'TR01'
    tr = db.session.get(TrainingRequest, result['id'])
    assert tr.status == TrainingRequestStatus.LOOKING_FOR_TRAINER
    assert tr.due_date == as_utc(tr.requested_date) + timedelta(days=1)


def test_duplicate_training_request_is_rejected(learner, basic_level):
    assert create_training_request(learner, basic_level)['success']
    result = create_training_request(learner, basic_level)
    assert result == {'success': False, 'error': DUPLICATE_MESSAGE}
    assert TrainingRequest.query.count() == 1


def test_draft_competency_is_not_open(learner, competency_factory):
    level = competency_factory(status=CompetencyStatus.DRAFT).level_named('Basic')
    result = create_training_request(learner, level)
    assert result['error'] == 'This competency level is not open for applications'


def test_lower_levels_are_required(learner, competency_factory, training_request_factory):
    competency = competency_factory()
    competent = competency.level_named('Competent')
    assert not are_requirements_met(learner, competent)
    assert create_training_request(learner, competent)['error'] == 'Requirements not met'

    basic = training_request_factory(learner, competency.level_named('Basic'))
    assert not are_requirements_met(learner, competent)
    basic.status = TrainingRequestStatus.TRAINING_COMPLETED
    db.session.commit()
    assert are_requirements_met(learner, competent)
    assert create_training_request(learner, competent)['success']
    assert not are_requirements_met(learner, competency.level_named('Advanced'))


def test_cross_competency_requirements(learner, competency_factory, training_request_factory):
    service = competency_factory(name='Customer Service')
    incidents = competency_factory(name='Incident Management')
    incidents.requirements.append(
        CompetencyRequirement(required_level=service.level_named('Basic')))
    db.session.commit()
    target = incidents.level_named('Basic')
    assert not are_requirements_met(learner, target)
    training_request_factory(learner, service.level_named('Basic'),
                             status=TrainingRequestStatus.TRAINING_COMPLETED)
    assert are_requirements_met(learner, target)


def test_no_batch_match_moves_due_date(ops_user, learner, basic_level, training_request_factory):
    tr = training_request_factory(learner, basic_level, requested_date=NOV_10,
                                  response_due=date(2025, 11, 30))
    result = update_training_request(ops_user, tr, {'status': 3})
    assert result == {'success': True, 'id': tr.id, 'due_date': '2025-11-15T09:00:00+00:00'}
    assert tr.response_due is None
    assert tr.status == TrainingRequestStatus.NO_BATCH_MATCH


def test_assignee_only_applies_in_response_statuses(ops_user, learner, basic_level,
                                                    training_request_factory):
    tr = training_request_factory(learner, basic_level)
    update_training_request(ops_user, tr, {'status': 4, 'assigned_to': ops_user,
                                           'response_date': date(2025, 11, 11)})
    assert tr.assigned_to is None and tr.response_date is None

    update_training_request(ops_user, tr, {'status': 2, 'assigned_to': ops_user,
                                           'response_date': date(2025, 11, 11)})
    assert tr.assigned_to == ops_user
    assert tr.response_date == date(2025, 11, 11)
    assert not any(tr.due_state())


def test_on_hold_requires_who_and_why(ops_user, learner, basic_level, training_request_factory):
    tr = training_request_factory(learner, basic_level)
    result = update_training_request(ops_user, tr, {'status': 6, 'on_hold_by': 1})
    assert result['error'] == 'On hold requires who put the request on hold and a reason'
    db.session.expire_all()
    assert tr.status == TrainingRequestStatus.LOOKING_FOR_TRAINER

    assert update_training_request(ops_user, tr, {'status': 6, 'on_hold_by': 1,
                                                  'on_hold_reason': 'Busy season'})['success']
    assert tr.on_hold_by == OnHoldBy.TRAINER

    update_training_request(ops_user, tr, {'status': 2})
    assert tr.on_hold_by is None and tr.on_hold_reason is None


def test_drop_off_requires_reason(ops_user, learner, basic_level, training_request_factory):
    tr = training_request_factory(learner, basic_level)
    assert update_training_request(ops_user, tr, {'status': 7})['error'] == \
        'Drop off reason is required'
    assert update_training_request(ops_user, tr, {'status': 7,
                                                  'drop_off_reason': 'Left team'})['success']


def test_blocked_requires_reason(ops_user, learner, basic_level, training_request_factory):
    tr = training_request_factory(learner, basic_level)
    assert update_training_request(ops_user, tr, {'is_blocked': True})['error'] == \
        'Blocked reason is required when the request is blocked'
    update_training_request(ops_user, tr, {'is_blocked': True, 'blocked_reason': 'No laptop',
                                           'expected_unblocked_date': '2025-12-01'})
    assert tr.expected_unblocked_date == date(2025, 12, 1)
    update_training_request(ops_user, tr, {'is_blocked': False})
    assert tr.blocked_reason is None and tr.expected_unblocked_date is None


def test_definite_answer_drives_follow_up(ops_user, learner, basic_level,
                                          training_request_factory):
    tr = training_request_factory(learner, basic_level, requested_date=NOV_10)
    update_training_request(ops_user, tr, {'definite_answer': False})
    assert tr.no_follow_up_date == date(2025, 11, 13)
    assert tr.needs_follow_up
    update_training_request(ops_user, tr, {'follow_up_date': date(2025, 11, 14)})
    assert tr.follow_up_date == date(2025, 11, 14)
    assert not tr.needs_follow_up
    update_training_request(ops_user, tr, {'definite_answer': True})
    assert tr.no_follow_up_date is None and tr.follow_up_date is None


def test_training_completed_cannot_be_set_by_hand(ops_user, learner, basic_level,
                                                  training_request_factory):
    tr = training_request_factory(learner, basic_level)
    result = update_training_request(ops_user, tr, {'status': 8})
    assert result['error'] == 'Training is completed by passing its validation'


def test_update_requires_edit_grant(trainer_user, learner, basic_level,
                                    training_request_factory):
    tr = training_request_factory(learner, basic_level)
    with pytest.raises(AccessDenied):
        update_training_request(trainer_user, tr, {'status': 2})


def test_list_route_summary(login_client, ops_user, learner, user_factory, basic_level,
                            training_request_factory):
    other = user_factory(full_name='Otto Other')
    training_request_factory(learner, basic_level,
                             requested_date=datetime.now(timezone.utc) - timedelta(days=5))
    training_request_factory(other, basic_level, is_blocked=True, blocked_reason='Waiting')

    response = login_client(ops_user).get('/training-requests/')
    assert response.status_code == 200
    payload = response.get_json()
    assert payload['summary']['overdue'] == 1
    assert payload['summary']['blocked'] == 1
    assert len(payload['statuses']) == 9

    response = login_client(ops_user).get('/training-requests/?name=otto')
    rows = response.get_json()['training_requests']
    assert [row['learner']['full_name'] for row in rows] == ['Otto Other']


def test_edit_route_applies_only_submitted_fields(login_client, ops_user, learner, basic_level,
                                                  training_request_factory):
    tr = training_request_factory(learner, basic_level, notes='Keep me')
    response = login_client(ops_user).post(f'/training-requests/{tr.id}/edit',
                                           data={'status': '2'})
    assert response.status_code == 200, response.get_json()
    db.session.expire_all()
    tr = db.session.get(TrainingRequest, tr.id)
    assert tr.status == TrainingRequestStatus.IN_QUEUE
    assert tr.notes == 'Keep me'
