import os
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv()


def _labels(env_name, default):
    """Splits a comma-separated label list from the environment."""
    raw = os.environ.get(env_name) or default
    return [label.strip() for label in raw.split(',')]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        raise ValueError("No SECRET_KEY set for Flask application. Set it in .env file.")

    # Database Configuration
    DB_TYPE = os.environ.get('DB_TYPE', 'sqlite').lower()
    DB_HOST = os.environ.get('DB_HOST', 'localhost')
    DB_PORT = os.environ.get('DB_PORT', '5432')
    DB_NAME = os.environ.get('DB_NAME', 'competency_tracker')
    DB_USER = os.environ.get('DB_USER', 'appuser')
    DB_PASSWORD = os.environ.get('DB_PASSWORD', '')

    db_url = os.environ.get('DATABASE_URL')
    if db_url:
        SQLALCHEMY_DATABASE_URI = db_url
    elif DB_TYPE == 'mysql':
        SQLALCHEMY_DATABASE_URI = f"mysql+pymysql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    elif DB_TYPE == 'postgresql':
        SQLALCHEMY_DATABASE_URI = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    else:
        # Default to SQLite
        db_path = os.path.join(basedir, 'instance', 'app.db')
        SQLALCHEMY_DATABASE_URI = 'sqlite:///' + db_path

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Mail is only used to forward ERROR log records to ADMINS
    MAIL_SERVER = os.environ.get('MAIL_SERVER')
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS', 'true').lower() == 'true'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME') or None
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD') or None
    MAIL_ENABLED = bool(MAIL_SERVER)

    # ADMINS should be a list of email addresses
    ADMINS = [email.strip() for email in os.environ.get('ADMIN_EMAILS', '').split(',') if email.strip()]

    LANGUAGES = ['en']

    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD')

    # Session Cookie Settings for Security
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'False').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = os.environ.get('SESSION_COOKIE_HTTPONLY', 'True').lower() == 'true'
    SESSION_COOKIE_SAMESITE = os.environ.get('SESSION_COOKIE_SAMESITE', 'Lax')
    if SESSION_COOKIE_SAMESITE.lower() == 'none':
        SESSION_COOKIE_SAMESITE = None

    # Logging Level
    LOG_LEVEL = os.environ.get('APP_LOG_LEVEL') or os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')

    # Rate limiting (Flask-Limiter)
    RATELIMIT_ENABLED = os.environ.get('RATELIMIT_ENABLED', 'true').lower() == 'true'
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

    # Status labels, one per status code in code order
    TRAINING_REQUEST_STATUS = _labels(
        'TRAINING_REQUEST_STATUS',
        'Not Started,Looking for trainer,In Queue,No batch match,In Progress,'
        'Sessions Completed,On Hold,Drop Off,Training Completed')
    VALIDATION_PROJECT_APPROVAL_STATUS = _labels(
        'VALIDATION_PROJECT_APPROVAL_STATUS',
        'Pending Validation Project Approval,Approved,Rejected,Resubmit for Re-validation')
    VALIDATION_SCHEDULE_REQUEST_STATUS = _labels(
        'VALIDATION_SCHEDULE_REQUEST_STATUS',
        'Pending Validation,Pending Re-validation,Validation Scheduled,Fail,Pass')
    PROJECT_ASSIGNMENT_REQUEST_STATUS = _labels(
        'PROJECT_ASSIGNMENT_REQUEST_STATUS',
        'New,Pending Project Assignment,Project Assigned,Rejected Project,No project match')
