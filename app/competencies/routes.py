from flask import jsonify, request
from flask_login import login_required, current_user

from app.competencies import bp
from app.competencies import actions
from app.competencies.forms import CompetencyForm
from app.decorators import permission_required
from app.responses import action_response, form_error_response
from app.models import Competency, CompetencyStatus
from app.serializers import competency_dict


def _get_competency_or_404(competency_id):
    return Competency.query.filter_by(id=competency_id, is_deleted=False).first_or_404()


@bp.route('/')
@login_required
@permission_required('competencies', 'list')
def list_competencies():
    query = Competency.query.filter_by(is_deleted=False)
    search = request.args.get('q', '').strip()
    if search:
        query = query.filter(Competency.name.ilike(f'%{search}%'))
    status = request.args.get('status')
    if status in ('draft', 'published'):
        query = query.filter(Competency.status == CompetencyStatus[status.upper()])
    competencies = query.order_by(Competency.name).all()
    return jsonify([competency_dict(c, with_levels=False) for c in competencies])


@bp.route('/<int:competency_id>')
@login_required
@permission_required('competencies', 'list')
def competency_detail(competency_id):
    return jsonify(competency_dict(_get_competency_or_404(competency_id)))


@bp.route('/create', methods=['POST'])
@login_required
def create_competency():
    form = CompetencyForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(actions.create_competency(current_user, **form.action_kwargs()),
                           created=True)


@bp.route('/<int:competency_id>/edit', methods=['POST'])
@login_required
def edit_competency(competency_id):
    competency = _get_competency_or_404(competency_id)
    form = CompetencyForm()
    if not form.validate_on_submit():
        return form_error_response(form)
    return action_response(actions.update_competency(current_user, competency,
                                                     **form.action_kwargs()))


@bp.route('/<int:competency_id>/delete', methods=['POST'])
@login_required
def delete_competency(competency_id):
    competency = _get_competency_or_404(competency_id)
    return action_response(actions.delete_competency(current_user, competency))
