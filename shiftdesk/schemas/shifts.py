import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

ShiftStatus = Literal["scheduled", "confirmed", "completed", "cancelled"]


class ShiftCreate(BaseModel):
    user_id: Optional[uuid.UUID] = None  # None creates an open shift
    position_id: Optional[uuid.UUID] = None
    start_time: datetime
    end_time: datetime
    status: ShiftStatus = "scheduled"
    notes: Optional[str] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)


class ShiftUpdate(BaseModel):
    """Partial update; fields left out are untouched, explicit nulls clear."""
    user_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[ShiftStatus] = None
    notes: Optional[str] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)


class PositionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=20)


class PositionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=20)


class TemplateItemIn(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    user_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    status: ShiftStatus = "scheduled"

    @field_validator("start_time", "end_time")
    @classmethod
    def _hhmm(cls, v: str) -> str:
        parts = v.strip().split(":")
        if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
            raise ValueError("time must be HH:MM")
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError("time must be HH:MM")
        return f"{hour:02d}:{minute:02d}"


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    items: List[TemplateItemIn]


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    items: Optional[List[TemplateItemIn]] = None


class ApplyTemplateRequest(BaseModel):
    template_id: uuid.UUID
    week_start_date: date
