"""
Tenant-scoped data access.

One repository per request, bound to the request's session and the caller's
organization. Reads are filtered by organization_id, so a row belonging to
another tenant is indistinguishable from a missing one. Reference lookups
(users, positions, templates) are unscoped: writes naming a foreign row
answer 403 rather than 404.
"""
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

import structlog
from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..db import get_db
from ..auth.security import get_current_user
from ..errors import Conflict
from ..models.models import (
    Organization, User, Position, Shift, ShiftTemplate, ShiftTemplateItem,
    TimeClockEntry, TimeClockBreak, MATCHABLE_SHIFT_STATUSES, to_uuid,
)

logger = structlog.get_logger(__name__)


class TenantRepository:
    def __init__(self, db: Session, organization: Organization):
        self.db = db
        self.organization = organization

    @property
    def organization_id(self) -> uuid.UUID:
        return self.organization.id

    @property
    def timezone(self) -> str:
        return self.organization.timezone

    # Unit of work

    def add(self, obj):
        self.db.add(obj)
        return obj

    def delete(self, obj) -> None:
        self.db.delete(obj)

    def commit(self, conflict_message: str = "Conflicting change") -> None:
        """Commit, turning unique-constraint violations into Conflict."""
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("commit_conflict", organization_id=str(self.organization_id), error=str(e.orig))
            raise Conflict(conflict_message)

    def refresh(self, obj):
        self.db.refresh(obj)
        return obj

    # Users & positions

    def get_user(self, user_id) -> Optional[User]:
        return self.db.query(User).filter(User.id == to_uuid(user_id)).first()

    def get_position(self, position_id) -> Optional[Position]:
        return self.db.query(Position).filter(Position.id == to_uuid(position_id)).first()

    def list_positions(self) -> List[Position]:
        return (
            self.db.query(Position)
            .filter(Position.organization_id == self.organization_id)
            .order_by(Position.name.asc())
            .all()
        )

    def find_position_by_name(self, name: str) -> Optional[Position]:
        return (
            self.db.query(Position)
            .filter(Position.organization_id == self.organization_id, Position.name == name)
            .first()
        )

    # Shifts

    def get_shift(self, shift_id) -> Optional[Shift]:
        return (
            self.db.query(Shift)
            .filter(Shift.id == to_uuid(shift_id), Shift.organization_id == self.organization_id)
            .first()
        )

    def list_shifts(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,  # exclusive
        user_id=None,
        status: Optional[str] = None,
    ) -> List[Shift]:
        query = (
            self.db.query(Shift)
            .options(selectinload(Shift.time_clock_entries), selectinload(Shift.position), selectinload(Shift.user))
            .filter(Shift.organization_id == self.organization_id)
        )
        if user_id:
            query = query.filter(Shift.user_id == to_uuid(user_id))
        if start is not None:
            query = query.filter(Shift.start_time >= start)
        if end is not None:
            query = query.filter(Shift.start_time < end)
        if status:
            query = query.filter(Shift.status == status)
        return query.order_by(Shift.start_time.asc()).all()

    def shifts_for_day(self, user_id, day_start: datetime, day_end: datetime) -> List[Shift]:
        """Matchable shifts of a worker starting in [day_start, day_end)."""
        return (
            self.db.query(Shift)
            .filter(
                Shift.organization_id == self.organization_id,
                Shift.user_id == to_uuid(user_id),
                Shift.start_time >= day_start,
                Shift.start_time < day_end,
                Shift.status.in_(MATCHABLE_SHIFT_STATUSES),
            )
            .order_by(Shift.start_time.asc())
            .all()
        )

    def detach_entries_from_shift(self, shift_id) -> None:
        self.db.query(TimeClockEntry).filter(
            TimeClockEntry.organization_id == self.organization_id,
            TimeClockEntry.shift_id == to_uuid(shift_id),
        ).update({TimeClockEntry.shift_id: None}, synchronize_session=False)

    def clear_position_references(self, position_id) -> None:
        position_id = to_uuid(position_id)
        self.db.query(Shift).filter(
            Shift.organization_id == self.organization_id,
            Shift.position_id == position_id,
        ).update({Shift.position_id: None}, synchronize_session=False)
        template_ids = self.db.query(ShiftTemplate.id).filter(ShiftTemplate.organization_id == self.organization_id)
        self.db.query(ShiftTemplateItem).filter(
            ShiftTemplateItem.template_id.in_(template_ids),
            ShiftTemplateItem.position_id == position_id,
        ).update({ShiftTemplateItem.position_id: None}, synchronize_session=False)

    # Shift templates

    def get_template(self, template_id) -> Optional[ShiftTemplate]:
        """Unscoped lookup: callers distinguish missing (404) from foreign (403)."""
        return (
            self.db.query(ShiftTemplate)
            .options(selectinload(ShiftTemplate.items))
            .filter(ShiftTemplate.id == to_uuid(template_id))
            .first()
        )

    def list_templates(self) -> List[ShiftTemplate]:
        return (
            self.db.query(ShiftTemplate)
            .options(selectinload(ShiftTemplate.items))
            .filter(ShiftTemplate.organization_id == self.organization_id)
            .order_by(ShiftTemplate.created_at.desc())
            .all()
        )

    def find_template_by_name(self, name: str) -> Optional[ShiftTemplate]:
        return (
            self.db.query(ShiftTemplate)
            .filter(ShiftTemplate.organization_id == self.organization_id, ShiftTemplate.name == name)
            .first()
        )

    # Time clock

    def find_open_entry(self, user_id) -> Optional[TimeClockEntry]:
        return (
            self.db.query(TimeClockEntry)
            .filter(
                TimeClockEntry.organization_id == self.organization_id,
                TimeClockEntry.user_id == to_uuid(user_id),
                TimeClockEntry.clock_out.is_(None),
                TimeClockEntry.is_rejected.is_(False),
            )
            .order_by(TimeClockEntry.clock_in.desc())
            .first()
        )

    def find_open_break(self, entry_id) -> Optional[TimeClockBreak]:
        return (
            self.db.query(TimeClockBreak)
            .filter(
                TimeClockBreak.organization_id == self.organization_id,
                TimeClockBreak.time_clock_entry_id == to_uuid(entry_id),
                TimeClockBreak.break_end.is_(None),
            )
            .order_by(TimeClockBreak.break_start.desc())
            .first()
        )

    def get_entry(self, entry_id) -> Optional[TimeClockEntry]:
        return (
            self.db.query(TimeClockEntry)
            .filter(TimeClockEntry.id == to_uuid(entry_id), TimeClockEntry.organization_id == self.organization_id)
            .first()
        )

    def entries_by_ids(self, entry_ids: Iterable) -> List[TimeClockEntry]:
        ids = [to_uuid(i) for i in entry_ids]
        if not ids:
            return []
        return (
            self.db.query(TimeClockEntry)
            .filter(TimeClockEntry.id.in_(ids), TimeClockEntry.organization_id == self.organization_id)
            .order_by(TimeClockEntry.clock_in.desc())
            .all()
        )

    def list_entries(
        self,
        user_id=None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,  # exclusive
        include_rejected: bool = False,
        limit: int = 100,
    ) -> List[TimeClockEntry]:
        query = (
            self.db.query(TimeClockEntry)
            .options(
                selectinload(TimeClockEntry.user),
                selectinload(TimeClockEntry.shift),
                selectinload(TimeClockEntry.approver),
            )
            .filter(TimeClockEntry.organization_id == self.organization_id)
        )
        if user_id:
            query = query.filter(TimeClockEntry.user_id == to_uuid(user_id))
        if start is not None:
            query = query.filter(TimeClockEntry.clock_in >= start)
        if end is not None:
            query = query.filter(TimeClockEntry.clock_in < end)
        if not include_rejected:
            query = query.filter(TimeClockEntry.is_rejected.is_(False))
        return query.order_by(TimeClockEntry.clock_in.desc()).limit(limit).all()


def get_repository(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TenantRepository:
    return TenantRepository(db, user.organization)
