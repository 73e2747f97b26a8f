"""
Maintenance commands, registered on the Flask CLI as ``flask maintenance``.
"""
import click
from flask import current_app
from flask.cli import AppGroup
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.cli.demo_data import create_demo_data
from app.cli.utils import confirm_typed, console, print_banner
from app.models import (ProjectAssignmentRequest, TrainingBatchLearner, TrainingRequest,
                        ValidationProjectApproval, ValidationScheduleRequest, VPALog, VSRLog,
                        init_roles_and_permissions)
from app.numbering import PREFIXES, reset_counter

maintenance = AppGroup('maintenance', help='Maintenance and data reset commands.')

CONFIRM_PHRASE = 'RESET'
# Delete order respects the references between workflow tables
RESET_ORDER = ('vsr', 'par', 'vpa', 'tr')


def _delete_rows(module):
    if module == 'vsr':
        db.session.query(VSRLog).delete(synchronize_session=False)
        return db.session.query(ValidationScheduleRequest).delete(synchronize_session=False)
    if module == 'vpa':
        db.session.query(VPALog).delete(synchronize_session=False)
        return db.session.query(ValidationProjectApproval).delete(synchronize_session=False)
    if module == 'par':
        return db.session.query(ProjectAssignmentRequest).delete(synchronize_session=False)
    db.session.query(TrainingBatchLearner).update({'training_request_id': None},
                                                  synchronize_session=False)
    db.session.query(ValidationScheduleRequest).update({'training_request_id': None},
                                                       synchronize_session=False)
    db.session.query(ValidationProjectApproval).update({'training_request_id': None},
                                                       synchronize_session=False)
    return db.session.query(TrainingRequest).delete(synchronize_session=False)


def _run(description, operation):
    """Runs ``operation`` in one transaction; database errors exit non-zero."""
    try:
        result = operation()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"{description} failed", exc_info=True)
        raise click.ClickException(f"{description} failed: {e}") from e
    return result


@maintenance.command('reset-requests')
@click.option('--module', 'modules', multiple=True, type=click.Choice(RESET_ORDER),
              help='Workflow to reset; repeat for several. Defaults to all of them.')
@click.option('--yes', is_flag=True, help='Skip the typed confirmation.')
def reset_requests(modules, yes):
    """Delete workflow requests and reset their numbering counters."""
    selected = [module for module in RESET_ORDER if not modules or module in modules]
    print_banner('Reset workflow requests')
    if not yes and not confirm_typed(
            CONFIRM_PHRASE,
            f"This permanently deletes all {', '.join(PREFIXES[m] for m in selected)} rows."):
        console.print('[error]Confirmation did not match. Nothing was changed.[/error]')
        raise click.Abort()

    def operation():
        counts = {}
        for module in selected:
            counts[module] = _delete_rows(module)
            reset_counter(module)
        return counts

    counts = _run('Reset of workflow requests', operation)
    for module, count in counts.items():
        console.print(f"[success]Deleted {count} {PREFIXES[module]} row(s); counter reset.[/success]")
    current_app.logger.warning(f"Workflow requests reset from the CLI: {counts}")


@maintenance.command('reset-counter')
@click.argument('module', type=click.Choice(sorted(PREFIXES)))
@click.option('--value', default=0, show_default=True, type=click.IntRange(min=0),
              help='Value the counter is set to; the next code uses value + 1.')
@click.option('--yes', is_flag=True, help='Skip the typed confirmation.')
def reset_counter_command(module, value, yes):
    """Set the numbering counter of a workflow."""
    if not yes and not confirm_typed(
            CONFIRM_PHRASE, f"Resetting the {PREFIXES[module]} counter can reissue codes."):
        console.print('[error]Confirmation did not match. Nothing was changed.[/error]')
        raise click.Abort()
    _run(f'Reset of the {module} counter', lambda: reset_counter(module, value))
    console.print(f"[success]{PREFIXES[module]} counter set to {value}.[/success]")
    current_app.logger.warning(f"Counter {module} set to {value} from the CLI.")


@maintenance.command('init-roles')
def init_roles():
    """Create the permissions and default roles."""
    _run('Initialization of roles', init_roles_and_permissions)
    console.print('[success]Roles and permissions initialized.[/success]')


@maintenance.command('demo-data')
@click.option('--learners', default=10, show_default=True, type=click.IntRange(min=1))
@click.option('--seed', type=int, help='Seed for reproducible data.')
def demo_data(learners, seed):
    """Generate demo users, competencies and training requests."""
    print_banner('Demo data')
    _run('Initialization of roles', init_roles_and_permissions)
    counts = _run('Demo data generation', lambda: create_demo_data(learners, seed))
    console.print(
        f"[success]Created {counts['users']} user(s), {counts['competencies']} "
        f"competencies and {counts['training_requests']} training request(s).[/success]")
