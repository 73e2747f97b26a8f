"""
Form helpers shared by the workflow blueprints.
"""
from flask import request
from flask_wtf import FlaskForm

TRI_STATE_CHOICES = [('', '-'), ('true', 'Yes'), ('false', 'No')]


def tri_state(value):
    """Coerces a yes/no/blank select value to True, False or None."""
    if value in (None, '', 'None'):
        return None
    if isinstance(value, bool):
        return value
    return str(value).lower() in ('true', '1', 'yes')


def optional_int(value):
    if value in (None, '', 'None'):
        return None
    return int(value)


class PartialUpdateForm(FlaskForm):
    """
    A form whose submission only changes the fields it actually carries.
    """

    def changes(self):
        submitted = request.form
        return {name: field.data for name, field in self._fields.items()
                if name != 'csrf_token' and name in submitted}
