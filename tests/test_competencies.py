import pytest

from app import db
from app.competencies.actions import create_competency, delete_competency, update_competency
from app.models import ActivityLog, Competency, CompetencyStatus
from app.permissions import AccessDenied

LEVEL = {
    'training_plan_document': '<p>Plan</p>',
    'team_knowledge': 'Knowledge',
    'eligibility_criteria': 'Everyone',
    'verification': 'Observation',
}


def test_create_competency(admin_user, trainer_user):
    result = create_competency(admin_user, 'Incident Management', {'Basic': LEVEL},
                               [trainer_user], status=CompetencyStatus.PUBLISHED)
    assert result['success']
    competency = db.session.get(Competency, result['id'])
    assert [level.name for level in competency.active_levels] == ['Basic']
    assert competency.trainers == [trainer_user]
    assert ActivityLog.query.filter_by(module='competencies', action='add').count() == 1


def test_create_competency_requires_basic_level(admin_user, trainer_user):
    result = create_competency(admin_user, 'Incident Management',
                               {'Basic': dict(LEVEL, verification='<p><br></p>')},
                               [trainer_user])
    assert result == {'success': False, 'error': 'Basic level requires all fields to be filled'}


def test_create_competency_requires_trainer(admin_user):
    result = create_competency(admin_user, 'Incident Management', {'Basic': LEVEL}, [])
    assert result['error'] == 'At least one trainer is required'


def test_create_competency_needs_permission(trainer_user):
    with pytest.raises(AccessDenied):
        create_competency(trainer_user, 'Incident Management', {'Basic': LEVEL}, [trainer_user])


def test_update_competency_levels_and_requirements(admin_user, trainer_user,
                                                    competency_factory):
    other = competency_factory(name='Data Analysis')
    competency = competency_factory(trainers=[trainer_user])
    result = update_competency(admin_user, competency, 'Customer Care',
                               {'Basic': LEVEL, 'Competent': LEVEL}, [trainer_user],
                               requirements=[other.level_named('Basic')])
    assert result['success']
    assert competency.name == 'Customer Care'
    assert [level.name for level in competency.active_levels] == ['Basic', 'Competent']
    assert [r.required_level for r in competency.requirements] == [other.level_named('Basic')]

    # Re-saving the same requirement keeps the row
    requirement_id = competency.requirements[0].id
    update_competency(admin_user, competency, 'Customer Care', {'Basic': LEVEL},
                      [trainer_user], requirements=[other.level_named('Basic')])
    assert competency.requirements[0].id == requirement_id


def test_competency_cannot_require_itself(admin_user, trainer_user, competency_factory):
    competency = competency_factory(trainers=[trainer_user])
    result = update_competency(admin_user, competency, competency.name, {'Basic': LEVEL},
                               [trainer_user], requirements=[competency.level_named('Basic')])
    assert result['error'] == 'A competency cannot require one of its own levels'


def test_delete_competency_is_soft(admin_user, competency_factory):
    competency = competency_factory()
    assert delete_competency(admin_user, competency)['success']
    assert competency.is_deleted
    assert all(level.is_deleted for level in competency.levels)
    assert delete_competency(admin_user, competency)['error'] == 'Competency not found'


def test_competency_routes(login_client, admin_user, trainer_user, competency_factory):
    competency_factory(name='Data Analysis')
    client = login_client(admin_user)
    data = {'name': 'Incident Management', 'status': '1', 'trainers': [str(trainer_user.id)]}
    data.update({f'basic-{field}': value for field, value in LEVEL.items()})
    response = client.post('/competencies/create', data=data)
    assert response.status_code == 201, response.get_json()

    response = client.get('/competencies/?status=published')
    names = [c['name'] for c in response.get_json()]
    assert names == ['Data Analysis', 'Incident Management']

    response = client.get('/competencies/?q=incident')
    assert len(response.get_json()) == 1


def test_competency_list_requires_permission(login_client, learner):
    response = login_client(learner).get('/competencies/', headers={'Accept': 'application/json'})
    assert response.status_code == 403
    assert response.get_json()['error'] == 'You do not have permission to access this area'
