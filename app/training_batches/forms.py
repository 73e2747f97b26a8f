from flask_wtf import FlaskForm
from wtforms import (DateField, DateTimeLocalField, FloatField, IntegerField, StringField,
                     TextAreaField)
from wtforms.validators import DataRequired, Length, NumberRange, Optional
from wtforms_sqlalchemy.fields import QuerySelectField, QuerySelectMultipleField
from flask_babel import lazy_gettext as _

from app.forms import PartialUpdateForm
from app.models import Competency, CompetencyLevel, User


def get_users():
    return User.query.order_by(User.full_name).all()


def get_levels():
    return CompetencyLevel.query.join(Competency).filter(
        CompetencyLevel.is_deleted.is_(False),
        Competency.is_deleted.is_(False),
    ).order_by(Competency.name, CompetencyLevel.id).all()


class TrainingBatchForm(FlaskForm):
    batch_name = StringField(_('Batch Name'), validators=[DataRequired(), Length(max=255)])
    competency_level = QuerySelectField(_('Competency Level'), query_factory=get_levels,
                                        get_label='label', validators=[DataRequired()])
    trainer = QuerySelectField(_('Trainer'), query_factory=get_users,
                               get_label='full_name', validators=[DataRequired()])
    session_count = IntegerField(_('Sessions'), validators=[DataRequired(), NumberRange(min=1)])
    capacity = IntegerField(_('Capacity'), validators=[DataRequired(), NumberRange(min=1)])
    duration_hrs = FloatField(_('Duration (hours)'), validators=[Optional()])
    estimated_start = DateField(_('Estimated Start'), validators=[Optional()])
    learners = QuerySelectMultipleField(_('Learners'), query_factory=get_users,
                                        get_label='full_name', validators=[Optional()])

    def action_kwargs(self):
        return {
            'batch_name': self.batch_name.data,
            'competency_level': self.competency_level.data,
            'trainer': self.trainer.data,
            'session_count': self.session_count.data,
            'capacity': self.capacity.data,
            'duration_hrs': self.duration_hrs.data,
            'estimated_start': self.estimated_start.data,
            'learner_ids': [user.id for user in self.learners.data],
        }


class TrainingBatchEditForm(PartialUpdateForm):
    batch_name = StringField(_('Batch Name'), validators=[Optional(), Length(max=255)])
    trainer = QuerySelectField(_('Trainer'), query_factory=get_users,
                               get_label='full_name', validators=[Optional()])
    session_count = IntegerField(_('Sessions'), validators=[Optional(), NumberRange(min=1)])
    capacity = IntegerField(_('Capacity'), validators=[Optional(), NumberRange(min=1)])
    duration_hrs = FloatField(_('Duration (hours)'), validators=[Optional()])
    estimated_start = DateField(_('Estimated Start'), validators=[Optional()])
    batch_start_date = DateField(_('Start Date'), validators=[Optional()])
    batch_finish_date = DateField(_('Finish Date'), validators=[Optional()])
    learners = QuerySelectMultipleField(_('Learners'), query_factory=get_users,
                                        get_label='full_name', validators=[Optional()])

    def changes(self):
        changes = super().changes()
        if 'learners' in changes:
            changes['learner_ids'] = [user.id for user in changes.pop('learners')]
        for field in ('capacity', 'session_count', 'trainer'):
            if changes.get(field) is None:
                changes.pop(field, None)
        return changes


class SessionDateForm(FlaskForm):
    session_date = DateTimeLocalField(_('Session Date'), format='%Y-%m-%dT%H:%M',
                                      validators=[Optional()])


class DropOffForm(FlaskForm):
    reason = TextAreaField(_('Drop Off Reason'), validators=[DataRequired()])

