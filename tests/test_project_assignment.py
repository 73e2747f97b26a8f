from datetime import date, datetime, timezone

import pytest

from app import db
from app.models import ActivityLog, PARStatus, ProjectAssignmentRequest, TrainingRequestStatus
from app.permissions import AccessDenied
from app.project_assignment.actions import (request_project_assignment,
                                            update_project_assignment_request)


@pytest.fixture
def level(competency_factory):
    return competency_factory().level_named('Basic')


@pytest.fixture
def par(learner, level, training_request_factory):
    training_request_factory(learner, level, status=TrainingRequestStatus.TRAINING_COMPLETED)
    result = request_project_assignment(learner, level, 'Something with dashboards')
    assert result['success'], result
    return db.session.get(ProjectAssignmentRequest, result['id'])


def test_request_needs_completed_training(learner, level, training_request_factory):
    error = 'A project can only be requested once the training is completed'
    assert request_project_assignment(learner, level)['error'] == error
    training_request_factory(learner, level, status=TrainingRequestStatus.SESSIONS_COMPLETED)
    assert request_project_assignment(learner, level)['error'] == error


def test_request_project_assignment(learner, level, par):
    assert par.par_id == 'PAR01'
    assert par.status == PARStatus.NEW
    assert par.description == 'Something with dashboards'
    assert request_project_assignment(learner, level)['error'] == \
        'You already requested a project for this competency level'


def test_project_name_is_needed_to_assign(ops_user, par):
    result = update_project_assignment_request(ops_user, par, {'status': 2})
    assert result['error'] == 'An assigned project needs a project name'
    result = update_project_assignment_request(ops_user, par, {'status': 2,
                                                               'project_name': 'Churn model'})
    assert result['success']
    assert par.status == PARStatus.PROJECT_ASSIGNED


def test_length_limits(ops_user, par):
    result = update_project_assignment_request(ops_user, par, {'project_name': 'x' * 256})
    assert result['error'] == 'Project name cannot exceed 255 characters'
    result = update_project_assignment_request(ops_user, par, {'description': 'x' * 2001})
    assert result['error'] == 'Description cannot exceed 2000 characters'


def test_partial_update_keeps_other_fields(ops_user, par):
    update_project_assignment_request(ops_user, par, {'project_name': 'Churn model'})
    update_project_assignment_request(ops_user, par, {'response_date': date(2025, 11, 12),
                                                      'assigned_to': ops_user})
    assert par.project_name == 'Churn model'
    assert par.description == 'Something with dashboards'
    assert par.assigned_to == ops_user
    assert not any(par.due_state())


def test_back_to_new_clears_manual_due_date(ops_user, par):
    par.requested_date = datetime(2025, 11, 10, tzinfo=timezone.utc)
    db.session.commit()
    update_project_assignment_request(ops_user, par, {'status': 1,
                                                      'response_due': date(2025, 11, 20)})
    assert par.due_date == date(2025, 11, 20)
    update_project_assignment_request(ops_user, par, {'status': 0})
    assert par.response_due is None
    assert par.due_date == datetime(2025, 11, 11, tzinfo=timezone.utc)


def test_follow_up(ops_user, par):
    par.requested_date = datetime(2025, 11, 10, tzinfo=timezone.utc)
    db.session.commit()
    update_project_assignment_request(ops_user, par, {'definite_answer': False})
    assert par.no_follow_up_date == date(2025, 11, 13)


def test_update_is_logged(ops_user, par):
    update_project_assignment_request(ops_user, par, {'status': 1})
    entry = ActivityLog.query.filter_by(module='project_assignment_request',
                                        action='edit').one()
    assert entry.data['before'] == {'status': 0}
    assert entry.data['after'] == {'status': 1}


def test_update_requires_edit_grant(trainer_user, par):
    with pytest.raises(AccessDenied):
        update_project_assignment_request(trainer_user, par, {'status': 1})


def test_routes(login_client, ops_user, trainer_user, par):
    client = login_client(ops_user)
    payload = client.get('/project-assignments/?status=0').get_json()
    assert [row['par_id'] for row in payload['project_assignment_requests']] == ['PAR01']
    assert client.get('/project-assignments/?status=9').status_code == 400

    response = client.post(f'/project-assignments/{par.id}/edit',
                           data={'status': '2', 'project_name': 'Churn model'})
    assert response.status_code == 200, response.get_json()
    assert client.get(f'/project-assignments/{par.id}').get_json()['project_name'] == \
        'Churn model'

    assert login_client(trainer_user).get('/project-assignments/').status_code == 403
