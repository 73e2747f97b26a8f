from flask_wtf import FlaskForm
from wtforms import Form, FormField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional
from wtforms_sqlalchemy.fields import QuerySelectMultipleField
from flask_babel import lazy_gettext as _

from app.models import Competency, CompetencyLevel, CompetencyStatus, User


def get_users():
    return User.query.order_by(User.full_name).all()


def get_levels():
    return CompetencyLevel.query.join(Competency).filter(
        CompetencyLevel.is_deleted.is_(False),
        Competency.is_deleted.is_(False),
    ).order_by(Competency.name, CompetencyLevel.id).all()


class LevelForm(Form):
    training_plan_document = TextAreaField(_('Training Plan Document'), validators=[Optional()])
    team_knowledge = TextAreaField(_('Team Knowledge'), validators=[Optional()])
    eligibility_criteria = TextAreaField(_('Eligibility Criteria'), validators=[Optional()])
    verification = TextAreaField(_('Verification'), validators=[Optional()])


class CompetencyForm(FlaskForm):
    name = StringField(_('Name'), validators=[DataRequired(), Length(max=255)])
    description = TextAreaField(_('Description'), validators=[Optional()])
    status = SelectField(_('Status'), coerce=int, default=CompetencyStatus.DRAFT.value,
                         choices=[(s.value, s.name.title()) for s in CompetencyStatus])
    relevant_links = TextAreaField(_('Relevant Links'), validators=[Optional()])
    basic = FormField(LevelForm)
    competent = FormField(LevelForm)
    advanced = FormField(LevelForm)
    trainers = QuerySelectMultipleField(_('Trainers'), query_factory=get_users,
                                        get_label='full_name')
    requirements = QuerySelectMultipleField(_('Requirements'), query_factory=get_levels,
                                            get_label='label', validators=[Optional()])

    def levels(self):
        """Level content keyed by level name."""
        return {
            'Basic': self.basic.data,
            'Competent': self.competent.data,
            'Advanced': self.advanced.data,
        }

    def action_kwargs(self):
        return {
            'name': self.name.data,
            'description': self.description.data,
            'status': self.status.data,
            'relevant_links': self.relevant_links.data,
            'levels': self.levels(),
            'trainers': self.trainers.data,
            'requirements': self.requirements.data,
        }
