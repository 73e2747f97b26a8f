"""
This module defines the database models for the competency tracker,
including users, roles, permissions, the competency catalog, the four
request workflows (training, project approval, validation schedule and
project assignment), training batches and the activity log. It also
includes the role and permission initialization routine.
"""
import enum
import secrets
from datetime import datetime, timezone

from flask import current_app, has_app_context
from flask_login import UserMixin
from sqlalchemy.types import TypeDecorator
from werkzeug.security import generate_password_hash, check_password_hash

from app import db, login
from app.due_dates import NOT_DUE, classify_due, response_due_date


def _now():
    return datetime.now(timezone.utc)


class StatusEnum(enum.Enum):
    """
    Base class for workflow status codes.

    Members are stored as their integer value. Display labels are read from
    the application configuration key registered in STATUS_LABEL_SETTINGS.
    """

    @property
    def label(self):
        if has_app_context():
            labels = current_app.config.get(STATUS_LABEL_SETTINGS.get(type(self)))
            if labels:
                return labels[self.value]
        return self.name.replace('_', ' ').title()

    @classmethod
    def choices(cls):
        return [(member.value, member.label) for member in cls]


class IntEnumType(TypeDecorator):
    """Stores an enum member as its integer value."""
    impl = db.Integer
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)


class TrainingRequestStatus(StatusEnum):
    NOT_STARTED = 0
    LOOKING_FOR_TRAINER = 1
    IN_QUEUE = 2
    NO_BATCH_MATCH = 3
    IN_PROGRESS = 4
    SESSIONS_COMPLETED = 5
    ON_HOLD = 6
    DROP_OFF = 7
    TRAINING_COMPLETED = 8


class VPAStatus(StatusEnum):
    PENDING = 0
    APPROVED = 1
    REJECTED = 2
    RESUBMIT_FOR_REVALIDATION = 3


class VSRStatus(StatusEnum):
    PENDING_VALIDATION = 0
    PENDING_REVALIDATION = 1
    VALIDATION_SCHEDULED = 2
    FAIL = 3
    PASS = 4


class PARStatus(StatusEnum):
    NEW = 0
    PENDING_PROJECT_ASSIGNMENT = 1
    PROJECT_ASSIGNED = 2
    REJECTED_PROJECT = 3
    NO_PROJECT_MATCH = 4


STATUS_LABEL_SETTINGS = {
    TrainingRequestStatus: 'TRAINING_REQUEST_STATUS',
    VPAStatus: 'VALIDATION_PROJECT_APPROVAL_STATUS',
    VSRStatus: 'VALIDATION_SCHEDULE_REQUEST_STATUS',
    PARStatus: 'PROJECT_ASSIGNMENT_REQUEST_STATUS',
}


def check_status_labels(config):
    """
    Validates configured status labels against the status enums.

    Raises ValueError when a label list does not have exactly one label per
    status code, so a drifted configuration fails at startup instead of
    relabelling stored rows.
    """
    for enum_class, key in STATUS_LABEL_SETTINGS.items():
        labels = config.get(key)
        if labels is None:
            continue
        if len(labels) != len(enum_class) or not all(labels):
            raise ValueError(
                f"{key} must list {len(enum_class)} non-empty labels "
                f"({', '.join(m.name for m in enum_class)}), got {len(labels)}."
            )


class CompetencyStatus(enum.Enum):
    DRAFT = 0
    PUBLISHED = 1


class OnHoldBy(enum.Enum):
    LEARNER = 0
    TRAINER = 1


LEVEL_NAMES = ('Basic', 'Competent', 'Advanced')

# Training requests in these states are not waiting on a staff response
DUE_EXEMPT_STATUSES = (TrainingRequestStatus.ON_HOLD, TrainingRequestStatus.DROP_OFF)

# Permission matrix
MODULES = (
    'roles', 'users', 'activity_log', 'competencies', 'training_batch',
    'training_request', 'validation_project_approval',
    'validation_schedule_request', 'project_assignment_request',
)
ACTIONS = ('list', 'add', 'edit', 'delete')

# Many-to-Many relationship tables
role_permission_association = db.Table('role_permission_association',
    db.Column('role_id', db.Integer, db.ForeignKey('role.id'), primary_key=True),
    db.Column('permission_id', db.Integer, db.ForeignKey('permission.id'), primary_key=True)
)

user_role_association = db.Table('user_role_association',
    db.Column('user_id', db.Integer, db.ForeignKey('user.id'), primary_key=True),
    db.Column('role_id', db.Integer, db.ForeignKey('role.id'), primary_key=True)
)

competency_trainer = db.Table('competency_trainer',
    db.Column('competency_id', db.Integer, db.ForeignKey('competency.id', ondelete='CASCADE'),
              primary_key=True),
    db.Column('trainer_id', db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'),
              primary_key=True)
)


class User(UserMixin, db.Model):
    """
    Represents a user in the system.
    """
    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(120), index=True, nullable=False)
    email = db.Column(db.String(120), index=True, unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    is_admin = db.Column(db.Boolean, default=False)
    api_key = db.Column(db.String(64), unique=True, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)

    roles = db.relationship('Role', secondary=user_role_association,
                            back_populates='users', lazy='dynamic')
    trained_competencies = db.relationship('Competency', secondary=competency_trainer,
                                           back_populates='trainers')
    training_requests = db.relationship('TrainingRequest', back_populates='learner',
                                        lazy='dynamic',
                                        foreign_keys='TrainingRequest.learner_id')

    def __init__(self, **kwargs):
        """
        Initializes a new User instance and generates an API key if not provided.
        """
        super().__init__(**kwargs)
        if self.api_key is None:
            self.generate_api_key()

    def has_role(self, role_name):
        """
        Checks if the user has a specific role.
        """
        return self.roles.filter_by(name=role_name).first() is not None

    def can(self, module, action='list'):
        """
        Checks if the user holds the grant for an action on a module.
        """
        if self.is_admin:
            return True
        permission_name = f'{module}.{action}'
        for role in self.roles:
            if role.permissions.filter_by(name=permission_name).first() is not None:
                return True
        return False

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def generate_api_key(self):
        """
        Generates a new API key for the user.
        """
        new_key = secrets.token_hex(32)
        self.api_key = new_key
        return new_key

    @classmethod
    def create_admin_user(cls, email, password, full_name="Admin User"):
        """
        Creates a new admin user.
        """
        admin_user = cls(full_name=full_name, email=email, is_admin=True)
        admin_user.set_password(password)
        db.session.add(admin_user)
        db.session.flush()
        admin_role = Role.query.filter_by(name='Admin').first()
        if admin_role:
            admin_user.roles.append(admin_role)
        db.session.commit()
        return admin_user

    def __repr__(self):
        return f'<User {self.full_name}>'


class Permission(db.Model):
    """
    A single (module, action) grant that can be assigned to roles.
    """
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    module = db.Column(db.String(64), nullable=False)
    action = db.Column(db.String(16), nullable=False)
    description = db.Column(db.Text)

    def __repr__(self):
        return f'<Permission {self.name}>'


class Role(db.Model):
    """
    Represents a user role with associated permissions.
    """
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    description = db.Column(db.Text)

    permissions = db.relationship('Permission', secondary=role_permission_association,
                                  backref='roles', lazy='dynamic')
    users = db.relationship('User', secondary=user_role_association,
                            back_populates='roles', lazy='dynamic')

    def __repr__(self):
        return f'<Role {self.name}>'


WORKFLOW_MODULES = (
    'training_request', 'validation_project_approval',
    'validation_schedule_request', 'project_assignment_request',
)


def init_roles_and_permissions():
    """
    Initializes default roles and permissions in the database.
    """
    for module in MODULES:
        for action in ACTIONS:
            name = f'{module}.{action}'
            if not Permission.query.filter_by(name=name).first():
                db.session.add(Permission(
                    name=name, module=module, action=action,
                    description=f'{action.capitalize()} {module.replace("_", " ")}'))
    db.session.flush()

    ops_grants = [f'{module}.{action}' for module in WORKFLOW_MODULES + ('training_batch',)
                  for action in ('list', 'add', 'edit')]
    ops_grants += ['competencies.list', 'activity_log.list', 'users.list']
    roles_data = {
        'Admin': [f'{module}.{action}' for module in MODULES for action in ACTIONS],
        'Ops': ops_grants,
        'Trainer': ['competencies.list', 'training_batch.list', 'training_batch.edit',
                    'training_request.list', 'validation_schedule_request.list'],
        'Learner': [],
    }

    for r_name, p_names in roles_data.items():
        role = Role.query.filter_by(name=r_name).first()
        if not role:
            role = Role(name=r_name, description=f'{r_name} role')
            db.session.add(role)
            db.session.flush()

        # Clear existing permissions and re-add to ensure consistency
        role.permissions = []
        for p_name in p_names:
            permission = Permission.query.filter_by(name=p_name).first()
            if permission:
                role.permissions.append(permission)
    db.session.commit()


@login.user_loader
def load_user(id_val):
    """
    Loads a user from the database given their ID.
    """
    return db.session.get(User, int(id_val))


class ActivityLog(db.Model):
    """
    Audit trail entry for a mutation performed through a workflow action.
    """
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'))
    module = db.Column(db.String(64), nullable=False, index=True)
    action = db.Column(db.String(16), nullable=False)
    data = db.Column(db.JSON)
    timestamp = db.Column(db.DateTime(timezone=True), index=True, default=_now)

    user = db.relationship('User')

    def __repr__(self):
        return f'<ActivityLog {self.module}.{self.action} by {self.user_id}>'


class CustomNumbering(db.Model):
    """
    Running counter per module used for human readable request codes.
    """
    __tablename__ = 'custom_numbering'
    module = db.Column(db.String(32), primary_key=True)
    running_number = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f'<CustomNumbering {self.module}={self.running_number}>'


class Competency(db.Model):
    """
    A competency from the catalog, with up to three levels.
    """
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text)
    status = db.Column(IntEnumType(CompetencyStatus), nullable=False,
                       default=CompetencyStatus.DRAFT)
    relevant_links = db.Column(db.Text)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    levels = db.relationship('CompetencyLevel', back_populates='competency',
                             cascade='all, delete-orphan')
    trainers = db.relationship('User', secondary=competency_trainer,
                               back_populates='trained_competencies')
    requirements = db.relationship('CompetencyRequirement', back_populates='competency',
                                   cascade='all, delete-orphan',
                                   foreign_keys='CompetencyRequirement.competency_id')

    @property
    def active_levels(self):
        """Non-deleted levels in Basic, Competent, Advanced order."""
        levels = [level for level in self.levels if not level.is_deleted]
        return sorted(levels, key=lambda level: level.rank)

    def level_named(self, name):
        for level in self.levels:
            if level.name == name and not level.is_deleted:
                return level
        return None

    def __repr__(self):
        return f'<Competency {self.name}>'


class CompetencyLevel(db.Model):
    """
    One of the Basic, Competent or Advanced levels of a competency.
    """
    __table_args__ = (db.UniqueConstraint('competency_id', 'name',
                                          name='uq_competency_level_name'),)

    id = db.Column(db.Integer, primary_key=True)
    competency_id = db.Column(db.Integer, db.ForeignKey('competency.id', ondelete='CASCADE'),
                              nullable=False)
    name = db.Column(db.String(32), nullable=False)
    training_plan_document = db.Column(db.Text)
    team_knowledge = db.Column(db.Text)
    eligibility_criteria = db.Column(db.Text)
    verification = db.Column(db.Text)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    competency = db.relationship('Competency', back_populates='levels')

    @property
    def rank(self):
        return LEVEL_NAMES.index(self.name) if self.name in LEVEL_NAMES else len(LEVEL_NAMES)

    @property
    def label(self):
        return f'{self.competency.name} - {self.name}'

    def __repr__(self):
        return f'<CompetencyLevel {self.label}>'


class CompetencyRequirement(db.Model):
    """
    A cross-competency prerequisite: the competency requires another
    competency's level to be completed first.
    """
    __table_args__ = (db.UniqueConstraint('competency_id', 'required_level_id',
                                          name='uq_competency_requirement'),)

    id = db.Column(db.Integer, primary_key=True)
    competency_id = db.Column(db.Integer, db.ForeignKey('competency.id', ondelete='CASCADE'),
                              nullable=False)
    required_level_id = db.Column(db.Integer,
                                  db.ForeignKey('competency_level.id', ondelete='CASCADE'),
                                  nullable=False)

    competency = db.relationship('Competency', back_populates='requirements',
                                 foreign_keys=[competency_id])
    required_level = db.relationship('CompetencyLevel')

    def __repr__(self):
        return f'<CompetencyRequirement {self.competency_id} needs {self.required_level_id}>'


class TrainingRequest(db.Model):
    """
    A learner's application to be trained on a competency level.
    """
    __table_args__ = (db.UniqueConstraint('learner_id', 'competency_level_id',
                                          name='uq_training_request_learner_level'),)

    id = db.Column(db.Integer, primary_key=True)
    tr_id = db.Column(db.String(16), unique=True, nullable=False)
    requested_date = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
    learner_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'),
                           nullable=False)
    competency_level_id = db.Column(db.Integer,
                                    db.ForeignKey('competency_level.id', ondelete='CASCADE'),
                                    nullable=False)
    training_batch_id = db.Column(db.Integer,
                                  db.ForeignKey('training_batch.id', ondelete='SET NULL'))
    status = db.Column(IntEnumType(TrainingRequestStatus), nullable=False,
                       default=TrainingRequestStatus.LOOKING_FOR_TRAINER, index=True)
    on_hold_by = db.Column(IntEnumType(OnHoldBy))
    on_hold_reason = db.Column(db.Text)
    drop_off_reason = db.Column(db.Text)
    is_blocked = db.Column(db.Boolean, nullable=False, default=False)
    blocked_reason = db.Column(db.Text)
    expected_unblocked_date = db.Column(db.Date)
    notes = db.Column(db.Text)
    assigned_to_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'))
    response_due = db.Column(db.Date)
    response_date = db.Column(db.Date)
    definite_answer = db.Column(db.Boolean)
    no_follow_up_date = db.Column(db.Date)
    follow_up_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    learner = db.relationship('User', back_populates='training_requests',
                              foreign_keys=[learner_id])
    assigned_to = db.relationship('User', foreign_keys=[assigned_to_id])
    competency_level = db.relationship('CompetencyLevel')
    training_batch = db.relationship('TrainingBatch')

    @property
    def due_date(self):
        """Effective response due date (override or derived)."""
        return response_due_date(self.requested_date,
                                 self.status == TrainingRequestStatus.NO_BATCH_MATCH,
                                 self.response_due)

    def due_state(self, now=None):
        if self.status in DUE_EXEMPT_STATUSES:
            return NOT_DUE
        return classify_due(self.due_date, self.response_date, now)

    @property
    def needs_follow_up(self):
        return self.definite_answer is False and self.follow_up_date is None

    def __repr__(self):
        return f'<TrainingRequest {self.tr_id} {self.status.name}>'


class ValidationProjectApproval(db.Model):
    """
    A learner's validation project, submitted for staff approval.
    """
    __tablename__ = 'validation_project_approval'
    __table_args__ = (db.UniqueConstraint('learner_id', 'competency_level_id',
                                          name='uq_vpa_learner_level'),)

    id = db.Column(db.Integer, primary_key=True)
    vpa_id = db.Column(db.String(16), unique=True, nullable=False)
    training_request_id = db.Column(db.Integer,
                                    db.ForeignKey('training_request.id', ondelete='SET NULL'))
    requested_date = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
    learner_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'),
                           nullable=False)
    competency_level_id = db.Column(db.Integer,
                                    db.ForeignKey('competency_level.id', ondelete='CASCADE'),
                                    nullable=False)
    project_details = db.Column(db.Text)
    status = db.Column(IntEnumType(VPAStatus), nullable=False, default=VPAStatus.PENDING,
                       index=True)
    assigned_to_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'))
    response_due = db.Column(db.Date)
    response_date = db.Column(db.Date)
    rejection_reason = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    training_request = db.relationship('TrainingRequest')
    learner = db.relationship('User', foreign_keys=[learner_id])
    assigned_to = db.relationship('User', foreign_keys=[assigned_to_id])
    competency_level = db.relationship('CompetencyLevel')
    logs = db.relationship('VPALog', back_populates='vpa', cascade='all, delete-orphan',
                           order_by='VPALog.id')

    @property
    def due_date(self):
        return response_due_date(self.requested_date, override=self.response_due)

    def due_state(self, now=None):
        return classify_due(self.due_date, self.response_date, now)

    def __repr__(self):
        return f'<ValidationProjectApproval {self.vpa_id} {self.status.name}>'


class VPALog(db.Model):
    """
    Append-only snapshot of a project approval at each submission or review.
    """
    __tablename__ = 'vpa_log'

    id = db.Column(db.Integer, primary_key=True)
    vpa_id = db.Column(db.Integer,
                       db.ForeignKey('validation_project_approval.id', ondelete='CASCADE'),
                       nullable=False)
    status = db.Column(IntEnumType(VPAStatus), nullable=False)
    project_details = db.Column(db.Text)
    rejection_reason = db.Column(db.Text)
    updated_by_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime(timezone=True), default=_now)

    vpa = db.relationship('ValidationProjectApproval', back_populates='logs')
    updated_by = db.relationship('User')

    def __repr__(self):
        return f'<VPALog {self.vpa_id} {self.status.name}>'


class ValidationScheduleRequest(db.Model):
    """
    Scheduling of the validation session that follows an approved project.
    """
    __tablename__ = 'validation_schedule_request'
    __table_args__ = (db.UniqueConstraint('learner_id', 'competency_level_id',
                                          name='uq_vsr_learner_level'),)

    id = db.Column(db.Integer, primary_key=True)
    vsr_id = db.Column(db.String(16), unique=True, nullable=False)
    training_request_id = db.Column(db.Integer,
                                    db.ForeignKey('training_request.id', ondelete='SET NULL'))
    requested_date = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
    learner_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'),
                           nullable=False)
    competency_level_id = db.Column(db.Integer,
                                    db.ForeignKey('competency_level.id', ondelete='CASCADE'),
                                    nullable=False)
    description = db.Column(db.Text)
    status = db.Column(IntEnumType(VSRStatus), nullable=False,
                       default=VSRStatus.PENDING_VALIDATION, index=True)
    response_due = db.Column(db.Date)
    response_date = db.Column(db.Date)
    definite_answer = db.Column(db.Boolean)
    no_follow_up_date = db.Column(db.Date)
    follow_up_date = db.Column(db.Date)
    scheduled_date = db.Column(db.DateTime(timezone=True))
    validator_ops_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'))
    validator_trainer_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'))
    assigned_to_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    training_request = db.relationship('TrainingRequest')
    learner = db.relationship('User', foreign_keys=[learner_id])
    validator_ops = db.relationship('User', foreign_keys=[validator_ops_id])
    validator_trainer = db.relationship('User', foreign_keys=[validator_trainer_id])
    assigned_to = db.relationship('User', foreign_keys=[assigned_to_id])
    competency_level = db.relationship('CompetencyLevel')
    logs = db.relationship('VSRLog', back_populates='vsr', cascade='all, delete-orphan',
                           order_by='VSRLog.id')

    @property
    def due_date(self):
        return response_due_date(self.requested_date, override=self.response_due)

    def due_state(self, now=None):
        return classify_due(self.due_date, self.response_date, now)

    def __repr__(self):
        return f'<ValidationScheduleRequest {self.vsr_id} {self.status.name}>'


class VSRLog(db.Model):
    """
    Append-only status history of a validation schedule request.
    """
    __tablename__ = 'vsr_log'

    id = db.Column(db.Integer, primary_key=True)
    vsr_id = db.Column(db.Integer,
                       db.ForeignKey('validation_schedule_request.id', ondelete='CASCADE'),
                       nullable=False)
    status = db.Column(IntEnumType(VSRStatus), nullable=False)
    updated_by_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime(timezone=True), default=_now)

    vsr = db.relationship('ValidationScheduleRequest', back_populates='logs')
    updated_by = db.relationship('User')

    def __repr__(self):
        return f'<VSRLog {self.vsr_id} {self.status.name}>'


class ProjectAssignmentRequest(db.Model):
    """
    A learner's request to be assigned a project once trained.
    """
    __tablename__ = 'project_assignment_request'
    __table_args__ = (db.UniqueConstraint('learner_id', 'competency_level_id',
                                          name='uq_par_learner_level'),)

    id = db.Column(db.Integer, primary_key=True)
    par_id = db.Column(db.String(16), unique=True, nullable=False)
    requested_date = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
    learner_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'),
                           nullable=False)
    competency_level_id = db.Column(db.Integer,
                                    db.ForeignKey('competency_level.id', ondelete='CASCADE'),
                                    nullable=False)
    status = db.Column(IntEnumType(PARStatus), nullable=False, default=PARStatus.NEW,
                       index=True)
    assigned_to_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'))
    response_due = db.Column(db.Date)
    response_date = db.Column(db.Date)
    project_name = db.Column(db.String(255))
    description = db.Column(db.String(2000))
    definite_answer = db.Column(db.Boolean)
    no_follow_up_date = db.Column(db.Date)
    follow_up_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    learner = db.relationship('User', foreign_keys=[learner_id])
    assigned_to = db.relationship('User', foreign_keys=[assigned_to_id])
    competency_level = db.relationship('CompetencyLevel')

    @property
    def due_date(self):
        return response_due_date(self.requested_date, override=self.response_due)

    def due_state(self, now=None):
        return classify_due(self.due_date, self.response_date, now)

    def __repr__(self):
        return f'<ProjectAssignmentRequest {self.par_id} {self.status.name}>'


class TrainingBatch(db.Model):
    """
    A group of learners trained together on one competency level by one trainer.
    """
    id = db.Column(db.Integer, primary_key=True)
    batch_name = db.Column(db.String(255), nullable=False)
    competency_level_id = db.Column(db.Integer,
                                    db.ForeignKey('competency_level.id', ondelete='CASCADE'),
                                    nullable=False)
    trainer_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'),
                           nullable=False)
    session_count = db.Column(db.Integer, nullable=False)
    duration_hrs = db.Column(db.Float)
    estimated_start = db.Column(db.Date)
    batch_start_date = db.Column(db.Date)
    batch_finish_date = db.Column(db.Date)
    capacity = db.Column(db.Integer, nullable=False)
    current_participant = db.Column(db.Integer, nullable=False, default=0)
    spot_left = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    competency_level = db.relationship('CompetencyLevel')
    trainer = db.relationship('User')
    sessions = db.relationship('TrainingBatchSession', back_populates='batch',
                               cascade='all, delete-orphan',
                               order_by='TrainingBatchSession.session_number')
    learners = db.relationship('TrainingBatchLearner', back_populates='batch',
                               cascade='all, delete-orphan')
    attendance = db.relationship('TrainingBatchAttendance', back_populates='batch',
                                 cascade='all, delete-orphan')
    homework = db.relationship('TrainingBatchHomework', back_populates='batch',
                               cascade='all, delete-orphan')

    def refresh_counts(self):
        """Recomputes participant counters from the attached learners."""
        self.current_participant = len(self.learners)
        self.spot_left = max(self.capacity - self.current_participant, 0)

    def session_number(self, number):
        for session in self.sessions:
            if session.session_number == number:
                return session
        return None

    def learner_entry(self, learner_id):
        for entry in self.learners:
            if entry.learner_id == learner_id:
                return entry
        return None

    def __repr__(self):
        return f'<TrainingBatch {self.batch_name}>'


class TrainingBatchSession(db.Model):
    __table_args__ = (db.UniqueConstraint('training_batch_id', 'session_number',
                                          name='uq_batch_session_number'),)

    id = db.Column(db.Integer, primary_key=True)
    training_batch_id = db.Column(db.Integer,
                                  db.ForeignKey('training_batch.id', ondelete='CASCADE'),
                                  nullable=False)
    session_number = db.Column(db.Integer, nullable=False)
    session_date = db.Column(db.DateTime(timezone=True))

    batch = db.relationship('TrainingBatch', back_populates='sessions')

    def __repr__(self):
        return f'<TrainingBatchSession {self.training_batch_id}#{self.session_number}>'


class TrainingBatchLearner(db.Model):
    training_batch_id = db.Column(db.Integer,
                                  db.ForeignKey('training_batch.id', ondelete='CASCADE'),
                                  primary_key=True)
    learner_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'),
                           primary_key=True)
    training_request_id = db.Column(db.Integer,
                                    db.ForeignKey('training_request.id', ondelete='SET NULL'))

    batch = db.relationship('TrainingBatch', back_populates='learners')
    learner = db.relationship('User')
    training_request = db.relationship('TrainingRequest')

    def __repr__(self):
        return f'<TrainingBatchLearner {self.training_batch_id}:{self.learner_id}>'


class TrainingBatchAttendance(db.Model):
    training_batch_id = db.Column(db.Integer,
                                  db.ForeignKey('training_batch.id', ondelete='CASCADE'),
                                  primary_key=True)
    learner_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'),
                           primary_key=True)
    session_id = db.Column(db.Integer,
                           db.ForeignKey('training_batch_session.id', ondelete='CASCADE'),
                           primary_key=True)
    attended = db.Column(db.Boolean, nullable=False, default=False)

    batch = db.relationship('TrainingBatch', back_populates='attendance')
    session = db.relationship('TrainingBatchSession')

    def __repr__(self):
        return f'<TrainingBatchAttendance {self.learner_id}@{self.session_id}={self.attended}>'


class TrainingBatchHomework(db.Model):
    training_batch_id = db.Column(db.Integer,
                                  db.ForeignKey('training_batch.id', ondelete='CASCADE'),
                                  primary_key=True)
    learner_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'),
                           primary_key=True)
    session_id = db.Column(db.Integer,
                           db.ForeignKey('training_batch_session.id', ondelete='CASCADE'),
                           primary_key=True)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    homework_url = db.Column(db.String(1024))
    submitted_at = db.Column(db.DateTime(timezone=True), default=_now)

    batch = db.relationship('TrainingBatch', back_populates='homework')
    session = db.relationship('TrainingBatchSession')

    def __repr__(self):
        return f'<TrainingBatchHomework {self.learner_id}@{self.session_id}>'


def training_request_for(learner_id, competency_level_id):
    return TrainingRequest.query.filter_by(learner_id=learner_id,
                                           competency_level_id=competency_level_id).first()
