import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import get_current_user, require_supervisor
from ..models.models import User
from ..repositories.tenant import TenantRepository, get_repository
from ..schemas.shifts import ShiftCreate, ShiftStatus, ShiftUpdate
from ..services import shifts as shift_service
from ..services.serializers import shift_to_dict
from ..services.time_rules import utc_now


router = APIRouter(prefix="/shifts", tags=["shifts"])


@router.get("")
def list_shifts(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: Optional[uuid.UUID] = None,
    status: Optional[ShiftStatus] = None,
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    """
    Shifts of the caller's organization ordered by start time.
    Date filters apply to the local calendar day of start_time, both ends inclusive.
    """
    shifts = shift_service.list_shifts(repo, start_date=start_date, end_date=end_date, user_id=user_id, status=status)
    return {"shifts": [shift_to_dict(s, with_entries=True) for s in shifts]}


@router.post("", status_code=201)
def create_shift(
    payload: ShiftCreate,
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    shift = shift_service.create_shift(repo, actor, payload.model_dump(), now)
    return {"shift": shift_to_dict(shift)}


@router.get("/{shift_id}")
def get_shift(
    shift_id: uuid.UUID,
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    shift = shift_service.get_shift(repo, user, shift_id)
    return {"shift": shift_to_dict(shift, with_entries=True)}


@router.put("/{shift_id}")
def update_shift(
    shift_id: uuid.UUID,
    payload: ShiftUpdate,
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    # Only the fields the client sent; explicit nulls are kept
    changes = payload.model_dump(include=payload.model_fields_set)
    shift = shift_service.update_shift(repo, actor, shift_id, changes, now)
    return {"shift": shift_to_dict(shift)}


@router.delete("/{shift_id}")
def delete_shift(
    shift_id: uuid.UUID,
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    shift_service.delete_shift(repo, actor, shift_id, now)
    return {"status": "ok"}
