"""
JSON representations shared by the blueprints.
"""
from app.due_dates import highlight


def iso(value):
    return value.isoformat() if value is not None else None


def user_brief(user):
    if user is None:
        return None
    return {'id': user.id, 'full_name': user.full_name, 'email': user.email}


def level_brief(level):
    if level is None:
        return None
    return {
        'id': level.id,
        'name': level.name,
        'competency_id': level.competency_id,
        'competency_name': level.competency.name,
    }


def status_dict(status):
    return {'code': status.value, 'label': status.label}


def due_dict(row, now=None):
    state = row.due_state(now)
    return {
        'due_date': iso(row.due_date),
        'overdue': state.overdue,
        'due_in_24h': state.due_in_24h,
        'due_in_3d': state.due_in_3d,
        'highlight': highlight(state),
    }


def competency_dict(competency, with_levels=True):
    data = {
        'id': competency.id,
        'name': competency.name,
        'description': competency.description,
        'status': competency.status.name.lower(),
        'relevant_links': competency.relevant_links,
        'trainers': [user_brief(trainer) for trainer in competency.trainers],
        'requirements': [level_brief(req.required_level) for req in competency.requirements],
    }
    if with_levels:
        data['levels'] = [{
            'id': level.id,
            'name': level.name,
            'training_plan_document': level.training_plan_document,
            'team_knowledge': level.team_knowledge,
            'eligibility_criteria': level.eligibility_criteria,
            'verification': level.verification,
        } for level in competency.active_levels]
    return data


def training_request_dict(tr, now=None):
    return {
        'id': tr.id,
        'tr_id': tr.tr_id,
        'requested_date': iso(tr.requested_date),
        'learner': user_brief(tr.learner),
        'competency_level': level_brief(tr.competency_level),
        'training_batch_id': tr.training_batch_id,
        'status': status_dict(tr.status),
        'on_hold_by': tr.on_hold_by.name.lower() if tr.on_hold_by is not None else None,
        'on_hold_reason': tr.on_hold_reason,
        'drop_off_reason': tr.drop_off_reason,
        'is_blocked': tr.is_blocked,
        'blocked_reason': tr.blocked_reason,
        'expected_unblocked_date': iso(tr.expected_unblocked_date),
        'notes': tr.notes,
        'assigned_to': user_brief(tr.assigned_to),
        'response_date': iso(tr.response_date),
        'definite_answer': tr.definite_answer,
        'no_follow_up_date': iso(tr.no_follow_up_date),
        'follow_up_date': iso(tr.follow_up_date),
        'needs_follow_up': tr.needs_follow_up,
        **due_dict(tr, now),
    }


def vpa_dict(vpa, now=None, with_logs=False):
    data = {
        'id': vpa.id,
        'vpa_id': vpa.vpa_id,
        'tr_id': vpa.training_request.tr_id if vpa.training_request else None,
        'requested_date': iso(vpa.requested_date),
        'learner': user_brief(vpa.learner),
        'competency_level': level_brief(vpa.competency_level),
        'project_details': vpa.project_details,
        'status': status_dict(vpa.status),
        'assigned_to': user_brief(vpa.assigned_to),
        'response_date': iso(vpa.response_date),
        'rejection_reason': vpa.rejection_reason,
        **due_dict(vpa, now),
    }
    if with_logs:
        data['logs'] = [{
            'status': status_dict(log.status),
            'project_details': log.project_details,
            'rejection_reason': log.rejection_reason,
            'updated_by': user_brief(log.updated_by),
            'created_at': iso(log.created_at),
        } for log in vpa.logs]
    return data


def vsr_dict(vsr, now=None, with_logs=False):
    data = {
        'id': vsr.id,
        'vsr_id': vsr.vsr_id,
        'tr_id': vsr.training_request.tr_id if vsr.training_request else None,
        'requested_date': iso(vsr.requested_date),
        'learner': user_brief(vsr.learner),
        'competency_level': level_brief(vsr.competency_level),
        'description': vsr.description,
        'status': status_dict(vsr.status),
        'response_date': iso(vsr.response_date),
        'definite_answer': vsr.definite_answer,
        'no_follow_up_date': iso(vsr.no_follow_up_date),
        'follow_up_date': iso(vsr.follow_up_date),
        'scheduled_date': iso(vsr.scheduled_date),
        'validator_ops': user_brief(vsr.validator_ops),
        'validator_trainer': user_brief(vsr.validator_trainer),
        'assigned_to': user_brief(vsr.assigned_to),
        **due_dict(vsr, now),
    }
    if with_logs:
        data['logs'] = [{
            'status': status_dict(log.status),
            'updated_by': user_brief(log.updated_by),
            'created_at': iso(log.created_at),
        } for log in vsr.logs]
    return data


def par_dict(par, now=None):
    return {
        'id': par.id,
        'par_id': par.par_id,
        'requested_date': iso(par.requested_date),
        'learner': user_brief(par.learner),
        'competency_level': level_brief(par.competency_level),
        'status': status_dict(par.status),
        'assigned_to': user_brief(par.assigned_to),
        'response_date': iso(par.response_date),
        'project_name': par.project_name,
        'description': par.description,
        'definite_answer': par.definite_answer,
        'no_follow_up_date': iso(par.no_follow_up_date),
        'follow_up_date': iso(par.follow_up_date),
        **due_dict(par, now),
    }


def batch_dict(batch, detail=False):
    data = {
        'id': batch.id,
        'batch_name': batch.batch_name,
        'competency_level': level_brief(batch.competency_level),
        'trainer': user_brief(batch.trainer),
        'session_count': batch.session_count,
        'duration_hrs': batch.duration_hrs,
        'estimated_start': iso(batch.estimated_start),
        'batch_start_date': iso(batch.batch_start_date),
        'batch_finish_date': iso(batch.batch_finish_date),
        'capacity': batch.capacity,
        'current_participant': batch.current_participant,
        'spot_left': batch.spot_left,
    }
    if not detail:
        return data
    data['sessions'] = [{
        'id': session.id,
        'session_number': session.session_number,
        'session_date': iso(session.session_date),
    } for session in batch.sessions]
    data['learners'] = [{
        'learner': user_brief(entry.learner),
        'training_request_id': entry.training_request_id,
        'tr_id': entry.training_request.tr_id if entry.training_request else None,
        'status': status_dict(entry.training_request.status)
        if entry.training_request else None,
    } for entry in batch.learners]
    data['attendance'] = [{
        'learner_id': record.learner_id,
        'session_number': record.session.session_number,
        'attended': record.attended,
    } for record in batch.attendance]
    data['homework'] = [{
        'learner_id': record.learner_id,
        'session_number': record.session.session_number,
        'completed': record.completed,
        'homework_url': record.homework_url,
        'submitted_at': iso(record.submitted_at),
    } for record in batch.homework]
    return data
