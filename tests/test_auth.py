def test_login_and_logout(client, learner):
    response = client.post('/auth/login', data={'email': 'learner@example.com',
                                                'password': 'password'})
    assert response.status_code == 200
    assert response.get_json()['user']['roles'] == ['Learner']

    response = client.get('/auth/me')
    assert response.get_json()['email'] == 'learner@example.com'

    assert client.post('/auth/logout').status_code == 200
    assert client.get('/auth/me').status_code == 401


def test_login_with_wrong_password(client, learner):
    response = client.post('/auth/login', data={'email': 'learner@example.com',
                                                'password': 'wrong'})
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Invalid username or password'


def test_login_form_errors(client):
    response = client.post('/auth/login', data={'email': 'not-an-email'})
    assert response.status_code == 400
    assert set(response.get_json()['errors']) == {'email', 'password'}


def test_protected_routes_need_login(client):
    response = client.get('/training-requests/')
    assert response.status_code == 401
