"""
Synthetic data for trying the application: users in every role, a few
published competencies and training requests spread over the workflow.
"""
from datetime import timezone
import random

from faker import Faker

from app import db
from app.models import (Competency, CompetencyLevel, CompetencyStatus, LEVEL_NAMES, OnHoldBy,
                        Role, TrainingRequest, TrainingRequestStatus, User)
from app.numbering import next_code

DEMO_PASSWORD = 'demo1234'
DEMO_COMPETENCIES = {
    'Customer Service': 'Handling customer conversations end to end.',
    'Incident Management': 'Triage, escalation and post-mortems.',
    'Data Analysis': 'Querying, cleaning and presenting operational data.',
}
# Statuses a fresh demo request may start in
DEMO_STATUSES = (
    TrainingRequestStatus.LOOKING_FOR_TRAINER,
    TrainingRequestStatus.IN_QUEUE,
    TrainingRequestStatus.NO_BATCH_MATCH,
    TrainingRequestStatus.ON_HOLD,
)


def get_or_create_user(fake, email, role_name, full_name=None):
    user = User.query.filter_by(email=email).first()
    if user:
        return user, False
    user = User(full_name=full_name or fake.name(), email=email)
    user.set_password(DEMO_PASSWORD)
    role = Role.query.filter_by(name=role_name).first()
    if role is not None:
        user.roles.append(role)
    db.session.add(user)
    return user, True


def create_competency(name, description, trainers):
    competency = Competency.query.filter_by(name=name, is_deleted=False).first()
    if competency:
        return competency
    competency = Competency(name=name, description=description,
                            status=CompetencyStatus.PUBLISHED)
    for level_name in LEVEL_NAMES:
        competency.levels.append(CompetencyLevel(
            name=level_name,
            training_plan_document=f'{level_name} training plan for {name}',
            team_knowledge=f'What the team knows about {name.lower()}',
            eligibility_criteria='Open to all staff',
            verification='Observed practice and a short project',
        ))
    competency.trainers.extend(trainers)
    db.session.add(competency)
    return competency


def create_demo_data(learner_count=10, seed=None):
    """Creates the demo rows and returns a dict of counts."""
    fake = Faker()
    if seed is not None:
        Faker.seed(seed)
        random.seed(seed)

    created_users = 0
    ops, created = get_or_create_user(fake, 'ops_demo@example.com', 'Ops', 'Demo Ops')
    created_users += created
    trainers = []
    for index in range(2):
        trainer, created = get_or_create_user(fake, f'trainer{index + 1}_demo@example.com',
                                              'Trainer')
        trainers.append(trainer)
        created_users += created
    learners = []
    for index in range(learner_count):
        learner, created = get_or_create_user(fake, f'learner{index + 1}_demo@example.com',
                                              'Learner')
        learners.append(learner)
        created_users += created
    db.session.flush()

    competencies = [create_competency(name, description, trainers)
                    for name, description in DEMO_COMPETENCIES.items()]
    db.session.flush()

    created_requests = 0
    basic_levels = [competency.level_named('Basic') for competency in competencies]
    for learner in learners:
        for level in random.sample(basic_levels, k=2):
            if TrainingRequest.query.filter_by(learner_id=learner.id,
                                               competency_level_id=level.id).first():
                continue
            status = random.choice(DEMO_STATUSES)
            training_request = TrainingRequest(
                tr_id=next_code('tr'),
                requested_date=fake.date_time_between(start_date='-20d', tzinfo=timezone.utc),
                learner=learner,
                competency_level=level,
                status=status,
            )
            if status == TrainingRequestStatus.ON_HOLD:
                training_request.on_hold_by = OnHoldBy.LEARNER
                training_request.on_hold_reason = 'Waiting for manager approval'
            db.session.add(training_request)
            created_requests += 1

    db.session.commit()
    return {
        'users': created_users,
        'competencies': len(competencies),
        'training_requests': created_requests,
    }
