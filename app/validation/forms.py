from wtforms import DateField, DateTimeLocalField, SelectField, TextAreaField
from wtforms.validators import Optional
from wtforms_sqlalchemy.fields import QuerySelectField
from flask_babel import lazy_gettext as _

from app.forms import PartialUpdateForm, TRI_STATE_CHOICES, optional_int, tri_state
from app.models import User, VPAStatus, VSRStatus


def get_users():
    return User.query.order_by(User.full_name).all()


class ProjectApprovalForm(PartialUpdateForm):
    status = SelectField(_('Status'), coerce=optional_int, validators=[Optional()])
    project_details = TextAreaField(_('Project Details'), validators=[Optional()])
    rejection_reason = TextAreaField(_('Rejection Reason'), validators=[Optional()])
    response_date = DateField(_('Response Date'), validators=[Optional()])

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.status.choices = [('', '-')] + VPAStatus.choices()


class ScheduleRequestForm(PartialUpdateForm):
    status = SelectField(_('Status'), coerce=optional_int, validators=[Optional()])
    scheduled_date = DateTimeLocalField(_('Scheduled Date'), format='%Y-%m-%dT%H:%M',
                                        validators=[Optional()])
    validator_ops = QuerySelectField(_('Ops Validator'), query_factory=get_users,
                                     get_label='full_name', allow_blank=True,
                                     validators=[Optional()])
    validator_trainer = QuerySelectField(_('Trainer Validator'), query_factory=get_users,
                                         get_label='full_name', allow_blank=True,
                                         validators=[Optional()])
    description = TextAreaField(_('Description'), validators=[Optional()])
    response_date = DateField(_('Response Date'), validators=[Optional()])
    definite_answer = SelectField(_('Definite Answer'), coerce=tri_state,
                                  choices=TRI_STATE_CHOICES, validators=[Optional()])
    follow_up_date = DateField(_('Follow Up Date'), validators=[Optional()])
    assigned_to = QuerySelectField(_('Assigned To'), query_factory=get_users,
                                   get_label='full_name', allow_blank=True,
                                   validators=[Optional()])

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.status.choices = [('', '-')] + VSRStatus.choices()
