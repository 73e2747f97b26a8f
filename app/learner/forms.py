from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField, TextAreaField
from wtforms.validators import URL, DataRequired, Length, NumberRange, Optional
from flask_babel import lazy_gettext as _


class HomeworkSubmissionForm(FlaskForm):
    training_batch_id = IntegerField(_('Training Batch'), validators=[DataRequired()])
    session_number = IntegerField(_('Session'), validators=[DataRequired(), NumberRange(min=1)])
    homework_url = StringField(_('Homework URL'),
                               validators=[DataRequired(), URL(), Length(max=1024)])


class ProjectSubmissionForm(FlaskForm):
    project_details = TextAreaField(_('Project Details'), validators=[DataRequired()])


class ProjectAssignmentRequestForm(FlaskForm):
    description = TextAreaField(_('Description'), validators=[Optional(), Length(max=2000)])
