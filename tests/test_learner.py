from app import db
from app.models import (CompetencyStatus, TrainingBatchHomework, TrainingRequest,
                        TrainingRequestStatus)
from app.training_batches.actions import create_training_batch


def level_overview(payload, competency_name, level_name):
    competency = next(c for c in payload['competencies'] if c['name'] == competency_name)
    return next(level for level in competency['levels'] if level['name'] == level_name)


def test_dashboard_lists_published_competencies(login_client, learner, competency_factory):
    competency_factory(name='Customer Service')
    competency_factory(name='Hidden Draft', status=CompetencyStatus.DRAFT)
    payload = login_client(learner).get('/learner/').get_json()
    assert [c['name'] for c in payload['competencies']] == ['Customer Service']

    basic = level_overview(payload, 'Customer Service', 'Basic')
    assert basic['can_apply'] and basic['requirements_met']
    assert basic['training_request'] is None
    competent = level_overview(payload, 'Customer Service', 'Competent')
    assert not competent['can_apply']
    assert [level['name'] for level in competent['required_levels']] == ['Basic']


def test_apply(login_client, learner, competency_factory):
    level = competency_factory().level_named('Basic')
    client = login_client(learner)
    response = client.post(f'/learner/apply/{level.id}')
    assert response.status_code == 201
    assert response.get_json()['tr_id'] == 'TR01'

    response = client.post(f'/learner/apply/{level.id}')
    assert response.status_code == 400
    assert TrainingRequest.query.count() == 1

    payload = client.get('/learner/').get_json()
    basic = level_overview(payload, 'Customer Service', 'Basic')
    assert basic['training_request']['status']['code'] == 1
    assert not basic['can_apply']


def test_apply_to_draft_is_not_found(login_client, learner, competency_factory):
    level = competency_factory(status=CompetencyStatus.DRAFT).level_named('Basic')
    assert login_client(learner).post(f'/learner/apply/{level.id}').status_code == 404


def test_homework_submission(login_client, ops_user, trainer_user, learner, competency_factory,
                             training_request_factory):
    level = competency_factory().level_named('Basic')
    training_request_factory(learner, level, status=TrainingRequestStatus.IN_QUEUE)
    batch_id = create_training_batch(ops_user, 'Batch 1', level, trainer_user, 2, 3,
                                     [learner.id])['id']
    client = login_client(learner)

    response = client.post('/learner/homework', data={
        'training_batch_id': str(batch_id), 'session_number': '1', 'homework_url': 'nope'})
    assert response.status_code == 400
    assert 'homework_url' in response.get_json()['errors']

    response = client.post('/learner/homework', data={
        'training_batch_id': str(batch_id), 'session_number': '1',
        'homework_url': 'https://example.com/homework'})
    assert response.status_code == 200, response.get_json()
    assert TrainingBatchHomework.query.one().homework_url == 'https://example.com/homework'

    response = client.post('/learner/homework', data={
        'training_batch_id': str(batch_id), 'session_number': '5',
        'homework_url': 'https://example.com/homework'})
    assert response.status_code == 404

    payload = client.get('/learner/').get_json()
    [overview] = payload['training_batches']
    assert overview['sessions'][0]['homework_url'] == 'https://example.com/homework'
    assert overview['sessions'][0]['homework_completed'] is False


def test_project_routes(login_client, learner, competency_factory, training_request_factory):
    level = competency_factory().level_named('Basic')
    tr = training_request_factory(learner, level,
                                  status=TrainingRequestStatus.SESSIONS_COMPLETED)
    client = login_client(learner)
    response = client.post(f'/learner/project/{level.id}', data={'project_details': ''})
    assert response.status_code == 400
    response = client.post(f'/learner/project/{level.id}',
                           data={'project_details': 'Automated the weekly report'})
    assert response.status_code == 200, response.get_json()
    assert response.get_json()['vpa_id'] == 'VPA01'

    response = client.post(f'/learner/project-assignment/{level.id}')
    assert response.status_code == 400

    tr.status = TrainingRequestStatus.TRAINING_COMPLETED
    db.session.commit()
    response = client.post(f'/learner/project-assignment/{level.id}',
                           data={'description': 'Anything with data'})
    assert response.status_code == 201, response.get_json()
    assert response.get_json()['par_id'] == 'PAR01'
