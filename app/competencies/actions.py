"""
Competency catalog actions: create, update and soft-delete competencies
together with their levels, trainers and cross-competency requirements.
"""
from flask import current_app

from app import db
from app.actions import ValidationFailed, success, workflow_action
from app.activity import log_activity
from app.models import (Competency, CompetencyLevel, CompetencyRequirement,
                        CompetencyStatus, LEVEL_NAMES)
from app.permissions import ensure_permission
from app.text import clean_html, strip_tags

MODULE = 'competencies'
LEVEL_FIELDS = ('training_plan_document', 'team_knowledge', 'eligibility_criteria',
                'verification')


def _level_has_content(data):
    return bool(data) and any(clean_html(data.get(field)) for field in LEVEL_FIELDS)


def _validate(name, levels, trainers, requirements, competency=None):
    name = strip_tags(name)
    if not name:
        raise ValidationFailed('Competency name is required')
    unknown = set(levels) - set(LEVEL_NAMES)
    if unknown:
        raise ValidationFailed(f"Unknown competency level: {', '.join(sorted(unknown))}")
    basic = levels.get('Basic') or {}
    if any(clean_html(basic.get(field)) is None for field in LEVEL_FIELDS):
        raise ValidationFailed('Basic level requires all fields to be filled')
    if not trainers:
        raise ValidationFailed('At least one trainer is required')
    for level in requirements:
        if level.is_deleted or level.competency.is_deleted:
            raise ValidationFailed(f'Required level {level.label} no longer exists')
        if competency is not None and level.competency_id == competency.id:
            raise ValidationFailed('A competency cannot require one of its own levels')
    return name


def _apply_levels(competency, levels):
    """Upserts levels by name; levels without content are soft-deleted."""
    existing = {level.name: level for level in competency.levels}
    for level_name in LEVEL_NAMES:
        data = levels.get(level_name)
        level = existing.get(level_name)
        if _level_has_content(data):
            if level is None:
                level = CompetencyLevel(name=level_name)
                competency.levels.append(level)
            for field in LEVEL_FIELDS:
                setattr(level, field, clean_html(data.get(field)))
            level.is_deleted = False
        elif level is not None:
            level.is_deleted = True


def _apply_requirements(competency, requirements):
    wanted = {level.id: level for level in requirements}
    for requirement in list(competency.requirements):
        if requirement.required_level_id not in wanted:
            competency.requirements.remove(requirement)
        else:
            wanted.pop(requirement.required_level_id)
    for level in wanted.values():
        competency.requirements.append(CompetencyRequirement(required_level=level))


@workflow_action
def create_competency(actor, name, levels, trainers, requirements=(), description=None,
                      status=CompetencyStatus.DRAFT, relevant_links=None):
    """
    Creates a competency.

    ``levels`` maps a level name (Basic, Competent, Advanced) to a dict of the
    level content fields. The Basic level and at least one trainer are
    mandatory.
    """
    ensure_permission(actor, MODULE, 'add')
    name = _validate(name, levels, trainers, requirements)

    competency = Competency(name=name, description=clean_html(description),
                            status=CompetencyStatus(status),
                            relevant_links=clean_html(relevant_links))
    _apply_levels(competency, levels)
    competency.trainers = list(trainers)
    db.session.add(competency)
    db.session.flush()
    _apply_requirements(competency, requirements)

    log_activity(actor, MODULE, 'add', {
        'competency_id': competency.id,
        'name': competency.name,
        'status': competency.status,
        'levels': [level.name for level in competency.active_levels],
        'trainer_ids': [trainer.id for trainer in competency.trainers],
    })
    db.session.commit()
    current_app.logger.info(f"Competency '{competency.name}' (ID: {competency.id}) created.")
    return success(id=competency.id)


@workflow_action
def update_competency(actor, competency, name, levels, trainers, requirements=(),
                      description=None, status=None, relevant_links=None):
    """Replaces the content, levels, trainers and requirements of a competency."""
    ensure_permission(actor, MODULE, 'edit')
    if competency.is_deleted:
        raise ValidationFailed('Competency not found')
    name = _validate(name, levels, trainers, requirements, competency)

    before = {'name': competency.name, 'status': competency.status}
    competency.name = name
    competency.description = clean_html(description)
    competency.relevant_links = clean_html(relevant_links)
    if status is not None:
        competency.status = CompetencyStatus(status)
    _apply_levels(competency, levels)
    competency.trainers = list(trainers)
    _apply_requirements(competency, requirements)

    log_activity(actor, MODULE, 'edit', {
        'competency_id': competency.id,
        'before': before,
        'after': {'name': competency.name, 'status': competency.status},
        'levels': [level.name for level in competency.active_levels],
    })
    db.session.commit()
    current_app.logger.info(f"Competency '{competency.name}' (ID: {competency.id}) updated.")
    return success(id=competency.id)


@workflow_action
def delete_competency(actor, competency):
    """Soft-deletes a competency and all of its levels."""
    ensure_permission(actor, MODULE, 'delete')
    if competency.is_deleted:
        raise ValidationFailed('Competency not found')
    competency.is_deleted = True
    for level in competency.levels:
        level.is_deleted = True
    log_activity(actor, MODULE, 'delete', {'competency_id': competency.id,
                                           'name': competency.name})
    db.session.commit()
    current_app.logger.info(f"Competency '{competency.name}' (ID: {competency.id}) deleted.")
    return success()
