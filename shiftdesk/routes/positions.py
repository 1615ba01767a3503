import uuid
from datetime import datetime

from fastapi import APIRouter, Depends

from ..auth.security import get_current_user, require_supervisor
from ..models.models import User
from ..repositories.tenant import TenantRepository, get_repository
from ..schemas.shifts import PositionCreate, PositionUpdate
from ..services import positions as position_service
from ..services.serializers import position_to_dict
from ..services.time_rules import utc_now


router = APIRouter(prefix="/positions", tags=["positions"])


@router.get("")
def list_positions(
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    return {"positions": [position_to_dict(p) for p in repo.list_positions()]}


@router.post("", status_code=201)
def create_position(
    payload: PositionCreate,
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    position = position_service.create_position(repo, payload.name, payload.color, now)
    return {"position": position_to_dict(position)}


@router.put("/{position_id}")
def update_position(
    position_id: uuid.UUID,
    payload: PositionUpdate,
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    changes = payload.model_dump(include=payload.model_fields_set)
    position = position_service.update_position(repo, position_id, changes)
    return {"position": position_to_dict(position)}


@router.delete("/{position_id}")
def delete_position(
    position_id: uuid.UUID,
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    position_service.delete_position(repo, position_id)
    return {"status": "ok"}
