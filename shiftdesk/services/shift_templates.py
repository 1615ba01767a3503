"""
Weekly shift templates and their expansion into concrete shifts.
"""
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

import structlog

from ..errors import Conflict, DuplicateName, Forbidden, NotFound, ValidationFailed
from ..models.models import Shift, ShiftTemplate, ShiftTemplateItem, User
from ..repositories.tenant import TenantRepository
from .audit import create_audit_log
from .shifts import check_position_reference, check_user_reference
from .time_rules import combine_date_time, parse_hhmm

logger = structlog.get_logger(__name__)

DUPLICATE_MESSAGE = "Template with this name already exists"


def break_minutes(start: datetime, end: datetime) -> int:
    """Unpaid break added on top of a shift: more than 9h gets 45 minutes, more than 6h gets 30."""
    hours = (end - start).total_seconds() / 3600
    if hours > 9:
        return 45
    if hours > 6:
        return 30
    return 0


@dataclass
class PlannedSlot:
    start_time: datetime
    end_time: datetime
    user_id: Optional[uuid.UUID]
    position_id: Optional[uuid.UUID]
    notes: Optional[str]
    status: str


def expand_template(items: Iterable, week_start: date, timezone_str: str) -> List[PlannedSlot]:
    """
    Turn template items into concrete UTC intervals for the week starting at
    ``week_start``. Wall-clock times are read in ``timezone_str``; an end at or
    before the start rolls over to the next day.
    """
    slots = []
    for item in items:
        day = week_start + timedelta(days=item.day_of_week)
        start = combine_date_time(day, parse_hhmm(item.start_time), timezone_str)
        end = combine_date_time(day, parse_hhmm(item.end_time), timezone_str)
        if end <= start:
            end = combine_date_time(day + timedelta(days=1), parse_hhmm(item.end_time), timezone_str)
        end = end + timedelta(minutes=break_minutes(start, end))
        slots.append(PlannedSlot(
            start_time=start,
            end_time=end,
            user_id=item.user_id,
            position_id=item.position_id,
            notes=item.notes,
            status=item.status or "scheduled",
        ))
    return slots


def _get_owned(repo: TenantRepository, template_id) -> ShiftTemplate:
    template = repo.get_template(template_id)
    if template is None:
        raise NotFound("Template not found")
    if template.organization_id != repo.organization_id:
        raise Forbidden("Permission denied")
    return template


def _build_items(repo: TenantRepository, items: list) -> List[ShiftTemplateItem]:
    if not items:
        raise ValidationFailed("Name and items are required")
    built = []
    for index, item in enumerate(items):
        check_user_reference(repo, item.get("user_id"))
        check_position_reference(repo, item.get("position_id"))
        built.append(ShiftTemplateItem(
            id=uuid.uuid4(),
            day_of_week=item["day_of_week"],
            start_time=item["start_time"],
            end_time=item["end_time"],
            user_id=item.get("user_id"),
            position_id=item.get("position_id"),
            notes=item.get("notes"),
            status=item.get("status") or "scheduled",
            sort_order=index,
        ))
    return built


def get_template(repo: TenantRepository, template_id) -> ShiftTemplate:
    return _get_owned(repo, template_id)


def create_template(repo: TenantRepository, actor: User, data: dict, now: datetime) -> ShiftTemplate:
    name = data["name"].strip()
    if repo.find_template_by_name(name) is not None:
        raise DuplicateName(DUPLICATE_MESSAGE)

    template = ShiftTemplate(
        id=uuid.uuid4(),
        organization_id=repo.organization_id,
        name=name,
        description=data.get("description"),
        created_by=actor.id,
        created_at=now,
    )
    template.items = _build_items(repo, data.get("items") or [])
    repo.add(template)
    try:
        repo.commit(DUPLICATE_MESSAGE)
    except Conflict:
        raise DuplicateName(DUPLICATE_MESSAGE)
    repo.refresh(template)
    logger.info("template_created", template_id=str(template.id), items=len(template.items))
    return template


def update_template(repo: TenantRepository, template_id, changes: dict, now: datetime) -> ShiftTemplate:
    """Items, when given, replace the template's items wholesale."""
    template = _get_owned(repo, template_id)
    if changes.get("name") is not None:
        name = changes["name"].strip()
        existing = repo.find_template_by_name(name)
        if existing is not None and existing.id != template.id:
            raise DuplicateName(DUPLICATE_MESSAGE)
        template.name = name
    if "description" in changes:
        template.description = changes["description"]
    if changes.get("items") is not None:
        template.items = _build_items(repo, changes["items"])
    template.updated_at = now
    try:
        repo.commit(DUPLICATE_MESSAGE)
    except Conflict:
        raise DuplicateName(DUPLICATE_MESSAGE)
    repo.refresh(template)
    logger.info("template_updated", template_id=str(template.id), items=len(template.items))
    return template


def delete_template(repo: TenantRepository, template_id) -> None:
    template = _get_owned(repo, template_id)
    repo.delete(template)
    repo.commit()
    logger.info("template_deleted", template_id=str(template_id))


def apply_template(repo: TenantRepository, actor: User, template_id, week_start: date, now: datetime) -> List[Shift]:
    """Create one shift per template item for the given week, all in one transaction."""
    template = _get_owned(repo, template_id)
    shifts = []
    for slot in expand_template(template.items, week_start, repo.timezone):
        shift = Shift(
            id=uuid.uuid4(),
            organization_id=repo.organization_id,
            user_id=slot.user_id,
            position_id=slot.position_id,
            start_time=slot.start_time,
            end_time=slot.end_time,
            status=slot.status,
            notes=slot.notes,
            created_by=actor.id,
            created_at=now,
        )
        repo.add(shift)
        create_audit_log(
            db=repo.db,
            organization_id=repo.organization_id,
            entity_type="shift",
            entity_id=shift.id,
            action="CREATE",
            actor_id=actor.id,
            actor_role=actor.role,
            source="api",
            changes_json={"after": {
                "user_id": str(slot.user_id) if slot.user_id else None,
                "start_time": slot.start_time.isoformat(),
                "end_time": slot.end_time.isoformat(),
                "status": slot.status,
            }},
            context={"template_id": str(template.id), "week_start_date": week_start.isoformat()},
            timestamp_utc=now,
        )
        shifts.append(shift)

    repo.commit()
    for shift in shifts:
        repo.refresh(shift)
    logger.info("template_applied", template_id=str(template.id), week_start=week_start.isoformat(), count=len(shifts))
    return shifts
