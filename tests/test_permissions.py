import pytest

from app.models import Permission, Role
from app.permissions import (ACTION_DENIED_MESSAGE, LIST_DENIED_MESSAGE, AccessDenied,
                             ensure_permission)


def test_permission_matrix_is_seeded(app):
    assert Permission.query.count() == 9 * 4
    assert {role.name for role in Role.query} == {'Admin', 'Ops', 'Trainer', 'Learner'}
    assert Role.query.filter_by(name='Learner').one().permissions.count() == 0


def test_access_denied_messages(learner):
    with pytest.raises(AccessDenied) as excinfo:
        ensure_permission(learner, 'training_request', 'list')
    assert excinfo.value.message == LIST_DENIED_MESSAGE

    with pytest.raises(AccessDenied) as excinfo:
        ensure_permission(learner, 'training_request', 'edit')
    assert excinfo.value.message == ACTION_DENIED_MESSAGE


def test_admin_passes_every_gate(admin_user):
    ensure_permission(admin_user, 'roles', 'delete')


def test_anonymous_requests_get_401(client):
    response = client.get('/training-requests/')
    assert response.status_code == 401


def test_access_denied_renders_html_page(login_client, learner):
    response = login_client(learner).get('/training-requests/', headers={'Accept': 'text/html'})
    assert response.status_code == 403
    assert b'Access denied' in response.data


def test_denied_action_returns_403_json(login_client, trainer_user, learner,
                                        competency_factory, training_request_factory):
    tr = training_request_factory(learner, competency_factory().level_named('Basic'))
    response = login_client(trainer_user).post(f'/training-requests/{tr.id}/edit',
                                               data={'status': '2'},
                                               headers={'Accept': 'application/json'})
    assert response.status_code == 403
    assert response.get_json()['error'] == ACTION_DENIED_MESSAGE


def test_unknown_rows_are_404(login_client, admin_user):
    response = login_client(admin_user).get('/training-requests/999',
                                            headers={'Accept': 'application/json'})
    assert response.status_code == 404
