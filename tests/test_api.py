import json

import pytest

from app import db
from app.models import TrainingBatch, TrainingRequestStatus
from app.training_batches.actions import create_training_batch, update_attendance


@pytest.fixture
def level(competency_factory, trainer_user):
    return competency_factory(trainers=[trainer_user]).level_named('Basic')


@pytest.fixture
def batch(ops_user, trainer_user, learner, level, training_request_factory):
    tr = training_request_factory(learner, level, status=TrainingRequestStatus.IN_QUEUE)
    result = create_training_batch(ops_user, 'Batch 2', level, trainer_user, 2, 4,
                                   [tr.learner_id])
    batch = db.session.get(TrainingBatch, result['id'])
    update_attendance(ops_user, batch, batch.session_number(1),
                      [{'learner_id': learner.id, 'attended': True}])
    return batch


def test_api_key_authentication(client, ops_user, batch):
    headers = {'X-API-Key': ops_user.api_key}
    response = client.get('/api/training-batches/', headers=headers)
    assert response.status_code == 200

    headers = {'X-API-Key': 'invalid_key'}
    response = client.get('/api/training-batches/', headers=headers)
    assert response.status_code == 401

    response = client.get('/api/training-batches/')
    assert response.status_code == 401


def test_api_session_authentication(login_client, ops_user, batch):
    response = login_client(ops_user).get('/api/training-batches/')
    assert response.status_code == 200


def test_api_requires_list_grant(client, learner, batch):
    response = client.get('/api/training-batches/', headers={'X-API-Key': learner.api_key})
    assert response.status_code == 403


def test_api_list_batches(client, ops_user, trainer_user, level, batch, competency_factory,
                          learner):
    other_level = competency_factory(name='Incident Management').level_named('Basic')
    create_training_batch(ops_user, 'Batch 1', other_level, trainer_user, 1, 2)
    headers = {'X-API-Key': ops_user.api_key}

    data = json.loads(client.get('/api/training-batches/', headers=headers).data)
    assert len(data) == 2

    response = client.get(f'/api/training-batches/?competencyLevelId={level.id}',
                          headers=headers)
    data = json.loads(response.data)
    assert [row['batch_name'] for row in data] == ['Batch 2']
    assert data[0]['competency_level'] == 'Customer Service - Basic'
    assert data[0]['trainer']['full_name'] == 'Tom Trainer'
    assert data[0]['current_participant'] == 1

    response = client.get(
        f'/api/training-batches/?competencyId={other_level.competency_id}', headers=headers)
    assert [row['batch_name'] for row in json.loads(response.data)] == ['Batch 1']

    training_request_id = batch.learners[0].training_request_id
    response = client.get(f'/api/training-batches/?trainingRequestId={training_request_id}',
                          headers=headers)
    assert [row['id'] for row in json.loads(response.data)] == [batch.id]


def test_api_get_batch(client, ops_user, learner, batch):
    headers = {'X-API-Key': ops_user.api_key}
    response = client.get(f'/api/training-batches/{batch.id}', headers=headers)
    assert response.status_code == 200
    data = json.loads(response.data)
    assert [s['session_number'] for s in data['sessions']] == [1, 2]
    assert data['learners'][0]['learner_id'] == learner.id
    assert data['attendance'] == [{'learner_id': learner.id,
                                   'session_id': batch.session_number(1).id,
                                   'attended': True}]
    assert data['homework'] == []

    response = client.get('/api/training-batches/999', headers=headers)
    assert response.status_code == 404


def test_api_count_by_competency_level(client, ops_user, trainer_user, level, batch):
    create_training_batch(ops_user, 'Batch 10 (evening)', level, trainer_user, 1, 2)
    create_training_batch(ops_user, 'Batch 7', level, trainer_user, 1, 2)
    headers = {'X-API-Key': ops_user.api_key}

    response = client.get('/api/training-batches/count-by-competency-level', headers=headers)
    assert response.status_code == 400

    response = client.get(
        f'/api/training-batches/count-by-competency-level?competencyLevelId={level.id}',
        headers=headers)
    assert json.loads(response.data) == {'count': 7}

    response = client.get(
        '/api/training-batches/count-by-competency-level?competencyLevelId=999',
        headers=headers)
    assert json.loads(response.data) == {'count': 0}
