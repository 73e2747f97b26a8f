from datetime import datetime, timezone
import io

import openpyxl
from openpyxl.styles import Font, PatternFill
from flask import jsonify, request, send_file, current_app
from flask_login import login_required

from app.decorators import permission_required
from app.due_dates import highlight
from app.models import ActivityLog
from app.reports import bp
from app.reports.queries import request_log, waitlist
from app.serializers import (iso, par_dict, training_request_dict, user_brief, vpa_dict,
                             vsr_dict)

HIGHLIGHT_FILLS = {
    'red': PatternFill(start_color='F8CBAD', end_color='F8CBAD', fill_type='solid'),
    'yellow': PatternFill(start_color='FFF2CC', end_color='FFF2CC', fill_type='solid'),
}


def _filters():
    return {
        'competency_id': request.args.get('competency_id', type=int),
        'competency_level_id': request.args.get('competency_level_id', type=int),
    }


@bp.route('/waitlist')
@login_required
@permission_required('training_request', 'list')
def waitlist_view():
    rows = waitlist(**_filters())
    now = datetime.now(timezone.utc)
    return jsonify({
        'training_requests': [training_request_dict(tr, now) for tr in rows['training_requests']],
        'project_approvals': [vpa_dict(vpa, now) for vpa in rows['project_approvals']],
        'schedule_requests': [vsr_dict(vsr, now) for vsr in rows['schedule_requests']],
    })


def _append_rows(sheet, headers, rows, now):
    sheet.append(headers)
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for code, row in rows:
        state = row.due_state(now)
        sheet.append([
            code,
            row.learner.full_name,
            row.learner.email,
            row.competency_level.label,
            row.status.label,
            row.requested_date.strftime('%Y-%m-%d'),
            row.due_date.strftime('%Y-%m-%d'),
            row.response_date.strftime('%Y-%m-%d') if row.response_date else '',
            row.assigned_to.full_name if row.assigned_to else '',
        ])
        fill = HIGHLIGHT_FILLS.get(highlight(state))
        if fill is not None:
            for cell in sheet[sheet.max_row]:
                cell.fill = fill


@bp.route('/waitlist.xlsx')
@login_required
@permission_required('training_request', 'list')
def export_waitlist():
    """Exports the three waitlists to one workbook, one sheet per workflow."""
    rows = waitlist(**_filters())
    now = datetime.now(timezone.utc)
    headers = ['ID', 'Learner', 'Email', 'Competency Level', 'Status', 'Requested',
               'Due', 'Responded', 'Assigned To']

    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = 'Training Requests'
    _append_rows(sheet, headers, [(tr.tr_id, tr) for tr in rows['training_requests']], now)
    _append_rows(workbook.create_sheet('Project Approvals'), headers,
                 [(vpa.vpa_id, vpa) for vpa in rows['project_approvals']], now)
    _append_rows(workbook.create_sheet('Validation Schedules'), headers,
                 [(vsr.vsr_id, vsr) for vsr in rows['schedule_requests']], now)

    output = io.BytesIO()
    workbook.save(output)
    output.seek(0)
    current_app.logger.info(
        f"Waitlist exported ({len(rows['training_requests'])} training requests).")
    return send_file(
        output,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        as_attachment=True,
        download_name=f'waitlist_{now.strftime("%Y%m%d%H%M%S")}.xlsx'
    )


@bp.route('/request-log')
@login_required
@permission_required('training_request', 'list')
def request_log_view():
    rows = request_log(**_filters())
    now = datetime.now(timezone.utc)
    return jsonify({
        'training_requests': [training_request_dict(tr, now) for tr in rows['training_requests']],
        'project_approvals': [vpa_dict(vpa, now) for vpa in rows['project_approvals']],
        'schedule_requests': [vsr_dict(vsr, now) for vsr in rows['schedule_requests']],
        'project_assignment_requests': [par_dict(par, now)
                                        for par in rows['project_assignment_requests']],
    })


@bp.route('/activity-log')
@login_required
@permission_required('activity_log', 'list')
def activity_log():
    query = ActivityLog.query
    module = request.args.get('module')
    if module:
        query = query.filter(ActivityLog.module == module)
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 50, type=int), 200)
    pagination = query.order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc()) \
        .paginate(page=page, per_page=per_page, error_out=False)
    return jsonify({
        'page': pagination.page,
        'pages': pagination.pages,
        'total': pagination.total,
        'entries': [{
            'id': entry.id,
            'user': user_brief(entry.user),
            'module': entry.module,
            'action': entry.action,
            'data': entry.data,
            'timestamp': iso(entry.timestamp),
        } for entry in pagination.items],
    })
