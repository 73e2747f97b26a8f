from wtforms import DateField, SelectField, StringField, TextAreaField
from wtforms.validators import Length, Optional
from wtforms_sqlalchemy.fields import QuerySelectField
from flask_babel import lazy_gettext as _

from app.forms import PartialUpdateForm, TRI_STATE_CHOICES, optional_int, tri_state
from app.models import PARStatus, User


def get_users():
    return User.query.order_by(User.full_name).all()


class ProjectAssignmentForm(PartialUpdateForm):
    status = SelectField(_('Status'), coerce=optional_int, validators=[Optional()])
    assigned_to = QuerySelectField(_('Assigned To'), query_factory=get_users,
                                   get_label='full_name', allow_blank=True,
                                   validators=[Optional()])
    response_due = DateField(_('Response Due'), validators=[Optional()])
    response_date = DateField(_('Response Date'), validators=[Optional()])
    project_name = StringField(_('Project Name'), validators=[Optional(), Length(max=255)])
    description = TextAreaField(_('Description'), validators=[Optional(), Length(max=2000)])
    definite_answer = SelectField(_('Definite Answer'), coerce=tri_state,
                                  choices=TRI_STATE_CHOICES, validators=[Optional()])
    follow_up_date = DateField(_('Follow Up Date'), validators=[Optional()])

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.status.choices = [('', '-')] + PARStatus.choices()
