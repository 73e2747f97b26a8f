import io
from datetime import datetime, timedelta, timezone

import openpyxl
import pytest

from app import db
from app.models import TrainingRequest, TrainingRequestStatus
from app.training_requests.actions import create_training_request, update_training_request

NOW = datetime.now(timezone.utc)


@pytest.fixture
def level(competency_factory):
    return competency_factory().level_named('Basic')


@pytest.fixture
def requests_by_status(learner, user_factory, level, training_request_factory):
    """One training request per status, the oldest first."""
    rows = {}
    for offset, status in enumerate(TrainingRequestStatus):
        user = learner if offset == 0 else user_factory()
        rows[status] = training_request_factory(
            user, level, status=status, requested_date=NOW - timedelta(days=20 - offset))
    return rows


def test_waitlist_statuses_and_order(login_client, ops_user, requests_by_status):
    payload = login_client(ops_user).get('/reports/waitlist').get_json()
    assert [row['status']['code'] for row in payload['training_requests']] == [1, 2, 3, 6, 7]
    assert payload['project_approvals'] == []
    assert payload['schedule_requests'] == []


def test_waitlist_filters(login_client, ops_user, requests_by_status, competency_factory,
                          training_request_factory, learner):
    other = competency_factory(name='Incident Management').level_named('Basic')
    training_request_factory(learner, other)
    client = login_client(ops_user)
    payload = client.get(f'/reports/waitlist?competency_level_id={other.id}').get_json()
    assert len(payload['training_requests']) == 1
    payload = client.get(f'/reports/waitlist?competency_id={other.competency_id}').get_json()
    assert len(payload['training_requests']) == 1


def test_request_log_is_newest_first(login_client, ops_user, requests_by_status):
    payload = login_client(ops_user).get('/reports/request-log').get_json()
    codes = [row['status']['code'] for row in payload['training_requests']]
    assert codes == [8, 7, 6, 5, 4, 3, 2, 1, 0]
    assert payload['project_assignment_requests'] == []


def test_waitlist_export(login_client, ops_user, requests_by_status):
    response = login_client(ops_user).get('/reports/waitlist.xlsx')
    assert response.status_code == 200
    assert response.mimetype == \
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    workbook = openpyxl.load_workbook(io.BytesIO(response.data))
    assert workbook.sheetnames == ['Training Requests', 'Project Approvals',
                                   'Validation Schedules']
    sheet = workbook['Training Requests']
    assert sheet['A1'].value == 'ID'
    assert sheet['A1'].font.bold
    assert sheet.max_row == 6
    # Overdue looking-for-trainer request
    assert sheet['A2'].fill.start_color.rgb.endswith('F8CBAD')


def test_reports_require_list_grant(login_client, learner):
    client = login_client(learner)
    assert client.get('/reports/waitlist').status_code == 403
    assert client.get('/reports/activity-log').status_code == 403


def test_activity_log(login_client, admin_user, ops_user, learner, level):
    tr_id = create_training_request(learner, level)['id']
    update_training_request(ops_user, db.session.get(TrainingRequest, tr_id), {'status': 2})

    client = login_client(ops_user)
    payload = client.get('/reports/activity-log?module=training_request').get_json()
    assert payload['total'] == 2
    assert [entry['action'] for entry in payload['entries']] == ['edit', 'add']
    assert payload['entries'][0]['user']['email'] == 'ops@example.com'
    assert payload['entries'][0]['data']['after'] == {'status': 2}

    payload = client.get('/reports/activity-log?module=competencies').get_json()
    assert payload['total'] == 0
