import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends

from ..auth.security import get_current_user, require_supervisor
from ..config import settings
from ..models.models import User
from ..repositories.tenant import TenantRepository, get_repository
from ..schemas.time_clock import ApproveRequest, ClockInRequest, RejectRequest, UpdateEntryRequest
from ..services import time_clock
from ..services.serializers import break_to_dict, entry_to_dict
from ..services.time_rules import utc_now


router = APIRouter(prefix="/time-clock", tags=["time-clock"])


@router.post("/clock-in")
def clock_in(
    payload: Optional[ClockInRequest] = Body(default=None),
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    is_sick = payload.is_sick if payload else False
    result = time_clock.clock_in(repo, user, now, is_sick=is_sick)
    return {"entry": entry_to_dict(result.entry), "warning": result.warning}


@router.post("/clock-out")
def clock_out(
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    result = time_clock.clock_out(repo, user, now)
    return {"entry": entry_to_dict(result.entry), "warning": result.warning}


@router.post("/break/start")
def break_start(
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    return {"break": break_to_dict(time_clock.break_start(repo, user, now))}


@router.post("/break/end")
def break_end(
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    return {"break": break_to_dict(time_clock.break_end(repo, user, now))}


@router.get("/break/status")
def break_status(
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    return {"break": break_to_dict(time_clock.break_status(repo, user))}


@router.get("/entries")
def list_entries(
    user_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    include_rejected: bool = False,
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    """Newest first. Staff only ever get their own entries."""
    entries = time_clock.list_entries(
        repo,
        user,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
        include_rejected=include_rejected,
        limit=settings.entries_page_limit,
    )
    return {"entries": [entry_to_dict(e, expand=True) for e in entries]}


@router.post("/approve")
def approve(
    payload: ApproveRequest,
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    entries = time_clock.approve_entries(repo, actor, payload.ids(), now)
    return {"entries": [entry_to_dict(e) for e in entries], "count": len(entries)}


@router.post("/reject")
def reject(
    payload: RejectRequest,
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    entry = time_clock.reject_entry(repo, actor, payload.entry_id, payload.reason, now)
    return {"entry": entry_to_dict(entry)}


@router.put("/update")
def update(
    payload: UpdateEntryRequest,
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    entry = time_clock.update_entry(repo, actor, payload.entry_id, payload.clock_in, payload.clock_out, now)
    return {"entry": entry_to_dict(entry)}
