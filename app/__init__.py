"""This module initializes the Flask application."""

import os
import logging
from logging.handlers import RotatingFileHandler, SMTPHandler

from dotenv import load_dotenv
from flask import Flask, request, current_app, session, render_template, jsonify
from flask_babel import Babel, lazy_gettext as _l
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect, CSRFError

from config import Config

db = SQLAlchemy()
migrate = Migrate()
login = LoginManager()
csrf = CSRFProtect()
login.login_view = 'auth.login'
login.login_message = _l('Please log in to access this page.')


def wants_json():
    """True for XHR and JSON clients, which get JSON error documents."""
    if request.headers.get('X-Requested-With') == 'XMLHttpRequest' or request.is_json:
        return True
    best = request.accept_mimetypes.best_match(['application/json', 'text/html'])
    return best == 'application/json' and \
        request.accept_mimetypes[best] > request.accept_mimetypes['text/html']


@login.unauthorized_handler
def unauthorized():
    """Handle unauthorized access attempts."""
    return jsonify({'success': False, 'error': 'Unauthorized: Please log in.'}), 401


babel = Babel()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["2000 per day", "500 per hour"],
)


def get_locale():
    """Get the best matching language for the user."""
    if 'language' in session:
        return session['language']
    return request.accept_languages.best_match(current_app.config['LANGUAGES'])


def configure_logging(app):
    """Attach the rotating file handler and, when mail is set up, the error mailer."""
    app.logger.setLevel(app.config['LOG_LEVEL'])

    log_dir = app.config.get('LOG_DIR', 'logs')
    if not os.path.exists(log_dir):
        os.mkdir(log_dir)
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, 'competency_tracker.log'), maxBytes=10240, backupCount=10
    )
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'))
    file_handler.setLevel(logging.DEBUG)
    app.logger.addHandler(file_handler)

    # Configure email logging for ERROR level
    if not app.debug and app.config.get('MAIL_ENABLED') and app.config['ADMINS']:
        auth = None
        if app.config['MAIL_USERNAME'] or app.config['MAIL_PASSWORD']:
            auth = (app.config['MAIL_USERNAME'], app.config['MAIL_PASSWORD'])
        secure = None
        if app.config['MAIL_USE_TLS']:
            secure = ()
        mail_handler = SMTPHandler(
            mailhost=(app.config['MAIL_SERVER'], app.config['MAIL_PORT']),
            fromaddr='no-reply@' + app.config['MAIL_SERVER'],
            toaddrs=app.config['ADMINS'], subject='Competency Tracker Failure',
            credentials=auth, secure=secure)
        mail_handler.setLevel(logging.ERROR)
        app.logger.addHandler(mail_handler)


def register_error_handlers(app):
    # pylint: disable=import-outside-toplevel
    from app.permissions import AccessDenied

    @app.errorhandler(AccessDenied)
    def access_denied(e):
        if wants_json():
            return jsonify({'success': False, 'error': e.message}), 403
        return render_template('errors/403.html', message=e.message), 403

    @app.errorhandler(403)
    def forbidden_error(_):
        if wants_json():
            return jsonify({'success': False, 'error': 'Forbidden.'}), 403
        return render_template('errors/403.html', message=None), 403

    @app.errorhandler(404)
    def not_found_error(_):
        if wants_json():
            return jsonify({'success': False, 'error': 'Resource not found.'}), 404
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def internal_error(_):
        db.session.rollback()
        if wants_json():
            return jsonify({'success': False, 'error': 'Internal server error.'}), 500
        return render_template('errors/500.html'), 500

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        current_app.logger.warning(f"CSRF failure on {request.path}: {e.description}")
        return jsonify({'success': False, 'error': e.description}), 400


# pylint: disable=too-many-locals
def create_app(config_class=Config):
    """Create and configure the Flask application."""
    load_dotenv()  # Load environment variables
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)
    app.secret_key = app.config['SECRET_KEY']

    configure_logging(app)

    # ensure the instance folder exists
    try:
        os.makedirs(app.instance_path)
    except OSError:
        pass

    db.init_app(app)
    migrate.init_app(app, db)
    login.init_app(app)
    csrf.init_app(app)
    babel.init_app(app, locale_selector=get_locale)
    limiter.init_app(app)

    # Import models after db is initialized to avoid circular imports
    # pylint: disable=import-outside-toplevel
    from app.models import User, Role, check_status_labels, init_roles_and_permissions
    check_status_labels(app.config)

    from app.auth import bp as auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    from app.competencies import bp as competencies_bp
    app.register_blueprint(competencies_bp, url_prefix='/competencies')

    from app.training_requests import bp as training_requests_bp
    app.register_blueprint(training_requests_bp, url_prefix='/training-requests')

    from app.validation import bp as validation_bp
    app.register_blueprint(validation_bp, url_prefix='/validation')

    from app.project_assignment import bp as project_assignment_bp
    app.register_blueprint(project_assignment_bp, url_prefix='/project-assignments')

    from app.training_batches import bp as training_batches_bp
    app.register_blueprint(training_batches_bp, url_prefix='/training-batches')

    from app.learner import bp as learner_bp
    app.register_blueprint(learner_bp, url_prefix='/learner')

    from app.reports import bp as reports_bp
    app.register_blueprint(reports_bp, url_prefix='/reports')

    from app.api import bp as api_bp
    app.register_blueprint(api_bp, url_prefix='/api')
    csrf.exempt(api_bp)

    from app.cli import maintenance
    app.cli.add_command(maintenance)

    register_error_handlers(app)

    with app.app_context():
        from sqlalchemy import inspect
        inspector = inspect(db.engine)
        if not inspector.has_table("user"):
            db.create_all()
            app.logger.info("Database tables created.")
            init_roles_and_permissions()
            app.logger.info("Roles and permissions initialized.")
        elif not Role.query.filter_by(name='Admin').first():
            app.logger.info("Admin role not found. Initializing roles and permissions.")
            init_roles_and_permissions()

        if User.query.first() is None:
            admin_email = app.config.get('ADMIN_EMAIL')
            admin_password = app.config.get('ADMIN_PASSWORD')
            if admin_email and admin_password:
                User.create_admin_user(admin_email, admin_password)
                app.logger.info("Admin user created.")
            else:
                app.logger.info("Admin user not created. ADMIN_EMAIL and ADMIN_PASSWORD not set.")

    return app
