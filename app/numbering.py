"""
Sequential human readable codes (TR01, VPA01, ...) backed by CustomNumbering.
"""
from sqlalchemy import select, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from app import db
from app.models import CustomNumbering

PREFIXES = {
    'tr': 'TR',
    'vpa': 'VPA',
    'vsr': 'VSR',
    'par': 'PAR',
}


def _ensure_counter(module):
    """Creates the counter row at 0 unless it already exists."""
    dialect = db.session.get_bind().dialect.name
    values = {'module': module, 'running_number': 0}
    if dialect == 'postgresql':
        stmt = pg_insert(CustomNumbering).values(**values).on_conflict_do_nothing(
            index_elements=['module'])
    elif dialect == 'sqlite':
        stmt = sqlite_insert(CustomNumbering).values(**values).on_conflict_do_nothing(
            index_elements=['module'])
    elif dialect in ('mysql', 'mariadb'):
        stmt = mysql_insert(CustomNumbering).values(**values).prefix_with('IGNORE')
    else:
        if db.session.get(CustomNumbering, module) is None:
            db.session.add(CustomNumbering(**values))
            db.session.flush()
        return
    db.session.execute(stmt)


def reserve_next_number(module):
    """
    Atomically increments the counter of ``module`` and returns the new value.

    The increment is a single UPDATE ... RETURNING, so the row lock taken by
    the update serialises concurrent callers until their transaction ends.
    Backends without UPDATE ... RETURNING lock the row with SELECT ... FOR
    UPDATE before incrementing it.
    """
    _ensure_counter(module)
    if db.session.get_bind().dialect.update_returning:
        stmt = (
            update(CustomNumbering)
            .where(CustomNumbering.module == module)
            .values(running_number=CustomNumbering.running_number + 1)
            .returning(CustomNumbering.running_number)
            .execution_options(synchronize_session=False)
        )
        return db.session.execute(stmt).scalar_one()

    counter = db.session.execute(
        select(CustomNumbering).where(CustomNumbering.module == module).with_for_update()
    ).scalar_one()
    counter.running_number += 1
    db.session.flush()
    return counter.running_number


def format_code(module, number):
    return f"{PREFIXES[module]}{number:02d}"


def next_code(module):
    """Reserves the next number of ``module`` and formats it, e.g. ``TR07``."""
    return format_code(module, reserve_next_number(module))


def reset_counter(module, value=0):
    """Sets the counter of ``module`` back to ``value``."""
    _ensure_counter(module)
    db.session.execute(
        update(CustomNumbering)
        .where(CustomNumbering.module == module)
        .values(running_number=value)
        .execution_options(synchronize_session=False)
    )
