import sys
import os
import tempfile
from datetime import datetime, timezone

import pytest
from faker import Faker
from flask import g
from flask_login import FlaskLoginClient

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
os.environ.setdefault('SECRET_KEY', 'test-secret-key')

from app import create_app, db
from app.models import (Competency, CompetencyLevel, CompetencyStatus, LEVEL_NAMES, Role,
                        TrainingRequest, TrainingRequestStatus, User,
                        init_roles_and_permissions)
from app.numbering import next_code
from config import Config

import logging


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False  # Disable CSRF for easier testing
    RATELIMIT_ENABLED = False
    MAIL_ENABLED = False
    LOG_DIR = os.path.join(tempfile.gettempdir(), 'competency_tracker_test_logs')


@pytest.fixture(scope='session')
def app():
    app = create_app(TestConfig)
    app.test_client_class = FlaskLoginClient

    @app.before_request
    def forget_request_user():
        # Requests reuse the app context pushed below, and with it ``g``
        g.pop('_login_user', None)
        g.pop('current_user', None)

    with app.app_context():
        # Configure logging for tests
        app.logger.handlers = []  # Clear existing handlers
        app.logger.addHandler(logging.StreamHandler(sys.stderr))
        app.logger.setLevel(logging.ERROR)
        yield app


@pytest.fixture(autouse=True)
def database(app):
    db.create_all()
    init_roles_and_permissions()
    yield db
    db.session.remove()
    db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture(scope='function')
def login_client(app):
    """Returns a test client logged in as the given user."""
    def _login_client(user):
        return app.test_client(user=user)
    return _login_client


@pytest.fixture(scope='function')
def user_factory(app):
    fake = Faker()

    def _user_factory(roles=(), **kwargs):
        user = User(
            full_name=kwargs.get('full_name', fake.name()),
            email=kwargs.get('email', fake.unique.email()),
            is_admin=kwargs.get('is_admin', False),
        )
        user.set_password(kwargs.get('password', 'password'))
        db.session.add(user)
        db.session.flush()
        for role_name in roles:
            user.roles.append(Role.query.filter_by(name=role_name).one())
        db.session.commit()
        return user
    return _user_factory


@pytest.fixture(scope='function')
def admin_user(user_factory):
    return user_factory(full_name='Admin User', email='admin@example.com', is_admin=True)


@pytest.fixture(scope='function')
def ops_user(user_factory):
    return user_factory(roles=['Ops'], full_name='Olivia Ops', email='ops@example.com')


@pytest.fixture(scope='function')
def trainer_user(user_factory):
    return user_factory(roles=['Trainer'], full_name='Tom Trainer', email='trainer@example.com')


@pytest.fixture(scope='function')
def learner(user_factory):
    return user_factory(roles=['Learner'], full_name='Lea Learner', email='learner@example.com')


@pytest.fixture(scope='function')
def competency_factory(app):
    """Creates a published competency with the three levels."""
    def _competency_factory(name='Customer Service', trainers=(),
                            status=CompetencyStatus.PUBLISHED):
        competency = Competency(name=name, status=status)
        for level_name in LEVEL_NAMES:
            competency.levels.append(CompetencyLevel(
                name=level_name, training_plan_document=f'{level_name} plan',
                team_knowledge='Team knowledge', eligibility_criteria='Everyone',
                verification='Observation'))
        competency.trainers.extend(trainers)
        db.session.add(competency)
        db.session.commit()
        return competency
    return _competency_factory


@pytest.fixture(scope='function')
def training_request_factory(app):
    def _training_request_factory(learner, level, status=TrainingRequestStatus.LOOKING_FOR_TRAINER,
                                  requested_date=None, **kwargs):
        training_request = TrainingRequest(
            tr_id=next_code('tr'),
            requested_date=requested_date or datetime.now(timezone.utc),
            learner=learner,
            competency_level=level,
            status=status,
            **kwargs,
        )
        db.session.add(training_request)
        db.session.commit()
        return training_request
    return _training_request_factory


@pytest.fixture(scope='function')
def runner(app):
    return app.test_cli_runner()
