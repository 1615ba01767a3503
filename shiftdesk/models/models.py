import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    JSON,
    UniqueConstraint,
    Text,
    Index,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


ROLE_OWNER = "owner"
ROLE_MANAGER = "manager"
ROLE_STAFF = "staff"
SUPERVISOR_ROLES = (ROLE_OWNER, ROLE_MANAGER)

SHIFT_STATUSES = ("scheduled", "confirmed", "completed", "cancelled")
MATCHABLE_SHIFT_STATUSES = ("scheduled", "confirmed")


class Organization(Base):
    """Tenant boundary: every other row hangs off an organization."""
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)  # IANA name, defines the calendar day
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    users = relationship("User", back_populates="organization")


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_STAFF)  # owner|manager|staff
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    organization = relationship("Organization", back_populates="users")


class Position(Base):
    """Job position (bar, kitchen, service...) a shift is planned for"""
    __tablename__ = "positions"

    id: Mapped[uuid.UUID] = uuid_pk()
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_position_org_name"),
    )


class Shift(Base):
    """Planned work interval. user_id NULL means an open shift."""
    __tablename__ = "shifts"

    id: Mapped[uuid.UUID] = uuid_pk()
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    position_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("positions.id", ondelete="SET NULL"))
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)  # UTC
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)  # UTC
    status: Mapped[str] = mapped_column(String(20), default="scheduled")  # scheduled|confirmed|completed|cancelled
    notes: Mapped[Optional[str]] = mapped_column(Text)
    hourly_rate: Mapped[Optional[float]] = mapped_column(Numeric(10, 2))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    user = relationship("User", foreign_keys=[user_id])
    position = relationship("Position")
    time_clock_entries = relationship("TimeClockEntry", back_populates="shift")

    __table_args__ = (
        Index("idx_shifts_org_start", "organization_id", "start_time"),
        Index("idx_shifts_user_start", "user_id", "start_time"),
    )


class ShiftTemplate(Base):
    """Reusable weekly plan, expanded into concrete shifts for a given week"""
    __tablename__ = "shift_templates"

    id: Mapped[uuid.UUID] = uuid_pk()
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    items = relationship(
        "ShiftTemplateItem",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="ShiftTemplateItem.sort_order",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_shift_template_org_name"),
    )


class ShiftTemplateItem(Base):
    __tablename__ = "shift_template_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    template_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("shift_templates.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0 = first day of the applied week
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM local
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM local
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    position_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("positions.id", ondelete="SET NULL"))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="scheduled")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    template = relationship("ShiftTemplate", back_populates="items")


class TimeClockEntry(Base):
    """Actual worked interval, reconciled against the matched shift"""
    __tablename__ = "time_clock_entries"

    id: Mapped[uuid.UUID] = uuid_pk()
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    shift_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("shifts.id", ondelete="SET NULL"), index=True)
    clock_in: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    clock_out: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    # Snapshot of the matched shift at clock-in
    shift_start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    shift_end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    clock_in_deviation_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    clock_out_deviation_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    has_warning: Mapped[bool] = mapped_column(Boolean, default=False)
    is_sick: Mapped[bool] = mapped_column(Boolean, default=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    is_rejected: Mapped[bool] = mapped_column(Boolean, default=False)
    rejected_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    user = relationship("User", foreign_keys=[user_id])
    approver = relationship("User", foreign_keys=[approved_by])
    shift = relationship("Shift", back_populates="time_clock_entries")
    breaks = relationship("TimeClockBreak", back_populates="entry", order_by="TimeClockBreak.break_start")

    __table_args__ = (
        Index("idx_time_clock_org_clock_in", "organization_id", "clock_in"),
        # One open entry per worker
        Index(
            "uq_time_clock_open_entry",
            "user_id",
            unique=True,
            sqlite_where=text("clock_out IS NULL AND is_rejected = 0"),
            postgresql_where=text("clock_out IS NULL AND is_rejected = false"),
        ),
    )


class TimeClockBreak(Base):
    __tablename__ = "time_clock_breaks"

    id: Mapped[uuid.UUID] = uuid_pk()
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    time_clock_entry_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("time_clock_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    break_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    break_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    entry = relationship("TimeClockEntry", back_populates="breaks")

    __table_args__ = (
        # One open break per entry
        Index(
            "uq_time_clock_open_break",
            "time_clock_entry_id",
            unique=True,
            sqlite_where=text("break_end IS NULL"),
            postgresql_where=text("break_end IS NULL"),
        ),
    )


class AuditLog(Base):
    """Append-only audit log for shift and time clock actions"""
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # shift|time_clock_entry|time_clock_break
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # CREATE|UPDATE|DELETE|CLOCK_IN|CLOCK_OUT|BREAK_START|BREAK_END|APPROVE|REJECT
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    actor_role: Mapped[Optional[str]] = mapped_column(String(50))  # owner|manager|staff|system
    source: Mapped[Optional[str]] = mapped_column(String(50))  # api|system|script
    changes_json: Mapped[Optional[dict]] = mapped_column(JSON)  # Before/after diff
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    context: Mapped[Optional[dict]] = mapped_column(JSON)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 hash for integrity verification

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_actor", "actor_id", "timestamp_utc"),
    )


def to_uuid(value) -> Optional[uuid.UUID]:
    """Coerce str/UUID ids before binding them to Uuid columns."""
    if value is None or isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))
