from wtforms import BooleanField, DateField, SelectField, TextAreaField
from wtforms.validators import Optional
from wtforms_sqlalchemy.fields import QuerySelectField
from flask_babel import lazy_gettext as _

from app.forms import PartialUpdateForm, TRI_STATE_CHOICES, optional_int, tri_state
from app.models import OnHoldBy, TrainingRequestStatus, User


def get_users():
    return User.query.order_by(User.full_name).all()


class TrainingRequestForm(PartialUpdateForm):
    status = SelectField(_('Status'), coerce=optional_int, validators=[Optional()])
    on_hold_by = SelectField(_('On Hold By'), coerce=optional_int, validators=[Optional()],
                             choices=[('', '-')] + [(o.value, o.name.title()) for o in OnHoldBy])
    on_hold_reason = TextAreaField(_('On Hold Reason'), validators=[Optional()])
    drop_off_reason = TextAreaField(_('Drop Off Reason'), validators=[Optional()])
    is_blocked = BooleanField(_('Blocked'))
    blocked_reason = TextAreaField(_('Blocked Reason'), validators=[Optional()])
    expected_unblocked_date = DateField(_('Expected Unblocked Date'), validators=[Optional()])
    notes = TextAreaField(_('Notes'), validators=[Optional()])
    assigned_to = QuerySelectField(_('Assigned To'), query_factory=get_users,
                                   get_label='full_name', allow_blank=True,
                                   validators=[Optional()])
    response_due = DateField(_('Response Due'), validators=[Optional()])
    response_date = DateField(_('Response Date'), validators=[Optional()])
    definite_answer = SelectField(_('Definite Answer'), coerce=tri_state,
                                  choices=TRI_STATE_CHOICES, validators=[Optional()])
    follow_up_date = DateField(_('Follow Up Date'), validators=[Optional()])

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.status.choices = [('', '-')] + TrainingRequestStatus.choices()
