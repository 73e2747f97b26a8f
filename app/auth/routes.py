from flask import jsonify, current_app
from flask_login import current_user, login_user, logout_user, login_required

from app import limiter
from app.auth import bp
from app.auth.forms import LoginForm
from app.models import User


def _user_summary(user):
    return {
        'id': user.id,
        'full_name': user.full_name,
        'email': user.email,
        'is_admin': user.is_admin,
        'roles': [role.name for role in user.roles],
    }


@bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    if current_user.is_authenticated:
        return jsonify({'success': True, 'user': _user_summary(current_user)})
    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({'success': False, 'error': 'Invalid login form.',
                        'errors': form.errors}), 400
    user = User.query.filter_by(email=form.email.data).first()
    if user is None or not user.check_password(form.password.data):
        current_app.logger.warning(f"Failed login attempt for {form.email.data}.")
        return jsonify({'success': False, 'error': 'Invalid username or password'}), 401
    login_user(user, remember=form.remember_me.data)
    current_app.logger.info(f"User {user.email} (ID: {user.id}) logged in.")
    return jsonify({'success': True, 'user': _user_summary(user)})


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    current_app.logger.info(f"User {current_user.email} (ID: {current_user.id}) logged out.")
    logout_user()
    return jsonify({'success': True})


@bp.route('/me')
@login_required
def me():
    return jsonify(_user_summary(current_user))
