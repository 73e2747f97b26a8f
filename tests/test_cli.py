from app import db
from app.models import (CustomNumbering, Role, TrainingRequest, User, ValidationProjectApproval,
                        VPAStatus)
from app.numbering import next_code


def counter_value(module):
    db.session.expire_all()
    counter = db.session.get(CustomNumbering, module)
    return counter.running_number if counter is not None else None


def test_reset_requests(runner, learner, competency_factory, training_request_factory):
    level = competency_factory().level_named('Basic')
    tr = training_request_factory(learner, level)
    db.session.add(ValidationProjectApproval(vpa_id=next_code('vpa'), learner=learner,
                                             competency_level=level, training_request=tr,
                                             status=VPAStatus.PENDING))
    db.session.commit()

    result = runner.invoke(args=['maintenance', 'reset-requests', '--yes'])
    assert result.exit_code == 0, result.output
    assert 'Deleted 1 TR row(s)' in result.output
    db.session.expire_all()
    assert TrainingRequest.query.count() == 0
    assert ValidationProjectApproval.query.count() == 0
    assert counter_value('tr') == 0
    assert counter_value('vpa') == 0


def test_reset_requests_single_module(runner, learner, competency_factory,
                                      training_request_factory):
    level = competency_factory().level_named('Basic')
    training_request_factory(learner, level)
    result = runner.invoke(args=['maintenance', 'reset-requests', '--module', 'par', '--yes'])
    assert result.exit_code == 0, result.output
    db.session.expire_all()
    assert TrainingRequest.query.count() == 1
    assert counter_value('tr') == 1


def test_reset_requests_needs_typed_confirmation(runner, learner, competency_factory,
                                                 training_request_factory):
    training_request_factory(learner, competency_factory().level_named('Basic'))
    result = runner.invoke(args=['maintenance', 'reset-requests'], input='reset\n')
    assert result.exit_code == 1
    assert 'Confirmation did not match' in result.output
    db.session.expire_all()
    assert TrainingRequest.query.count() == 1

    result = runner.invoke(args=['maintenance', 'reset-requests'], input='RESET\n')
    assert result.exit_code == 0, result.output
    db.session.expire_all()
    assert TrainingRequest.query.count() == 0


def test_reset_counter(runner):
    next_code('vsr')
    db.session.commit()
    result = runner.invoke(args=['maintenance', 'reset-counter', 'vsr', '--value', '7', '--yes'])
    assert result.exit_code == 0, result.output
    assert counter_value('vsr') == 7
    assert next_code('vsr') == 'VSR08'

    result = runner.invoke(args=['maintenance', 'reset-counter', 'xyz', '--yes'])
    assert result.exit_code == 2


def test_init_roles(runner):
    result = runner.invoke(args=['maintenance', 'init-roles'])
    assert result.exit_code == 0, result.output
    assert {role.name for role in Role.query} == {'Admin', 'Ops', 'Trainer', 'Learner'}


def test_demo_data(runner):
    result = runner.invoke(args=['maintenance', 'demo-data', '--learners', '3', '--seed', '42'])
    assert result.exit_code == 0, result.output
    db.session.expire_all()
    learners = User.query.join(User.roles).filter(Role.name == 'Learner').count()
    assert learners == 3
    assert TrainingRequest.query.count() > 0
