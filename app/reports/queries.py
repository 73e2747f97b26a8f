"""
Queries behind the waitlist and request log.

The waitlist holds the requests still waiting on staff: training requests
that are not yet in a batch nor finished, project approvals awaiting
review and validations not yet decided.
"""
from app.models import (CompetencyLevel, ProjectAssignmentRequest, TrainingRequest,
                        TrainingRequestStatus, ValidationProjectApproval,
                        ValidationScheduleRequest, VPAStatus, VSRStatus)

WAITLIST_TR_STATUSES = (
    TrainingRequestStatus.LOOKING_FOR_TRAINER,
    TrainingRequestStatus.IN_QUEUE,
    TrainingRequestStatus.NO_BATCH_MATCH,
    TrainingRequestStatus.ON_HOLD,
    TrainingRequestStatus.DROP_OFF,
)
WAITLIST_VPA_STATUSES = (VPAStatus.PENDING, VPAStatus.RESUBMIT_FOR_REVALIDATION)
WAITLIST_VSR_STATUSES = (
    VSRStatus.PENDING_VALIDATION,
    VSRStatus.PENDING_REVALIDATION,
    VSRStatus.VALIDATION_SCHEDULED,
)


def _filtered(model, competency_id=None, competency_level_id=None):
    query = model.query
    if competency_level_id is not None:
        query = query.filter(model.competency_level_id == competency_level_id)
    if competency_id is not None:
        query = query.join(CompetencyLevel, model.competency_level_id == CompetencyLevel.id) \
            .filter(CompetencyLevel.competency_id == competency_id)
    return query


def waitlist(competency_id=None, competency_level_id=None):
    """The three waitlists, each oldest request first."""
    return {
        'training_requests': _filtered(TrainingRequest, competency_id, competency_level_id)
        .filter(TrainingRequest.status.in_(WAITLIST_TR_STATUSES))
        .order_by(TrainingRequest.requested_date.asc()).all(),
        'project_approvals': _filtered(ValidationProjectApproval, competency_id,
                                       competency_level_id)
        .filter(ValidationProjectApproval.status.in_(WAITLIST_VPA_STATUSES))
        .order_by(ValidationProjectApproval.requested_date.asc()).all(),
        'schedule_requests': _filtered(ValidationScheduleRequest, competency_id,
                                       competency_level_id)
        .filter(ValidationScheduleRequest.status.in_(WAITLIST_VSR_STATUSES))
        .order_by(ValidationScheduleRequest.requested_date.asc()).all(),
    }


def request_log(competency_id=None, competency_level_id=None):
    """Every request of every workflow, newest first."""
    return {
        'training_requests': _filtered(TrainingRequest, competency_id, competency_level_id)
        .order_by(TrainingRequest.requested_date.desc()).all(),
        'project_approvals': _filtered(ValidationProjectApproval, competency_id,
                                       competency_level_id)
        .order_by(ValidationProjectApproval.requested_date.desc()).all(),
        'schedule_requests': _filtered(ValidationScheduleRequest, competency_id,
                                       competency_level_id)
        .order_by(ValidationScheduleRequest.requested_date.desc()).all(),
        'project_assignment_requests': _filtered(ProjectAssignmentRequest, competency_id,
                                                 competency_level_id)
        .order_by(ProjectAssignmentRequest.requested_date.desc()).all(),
    }
