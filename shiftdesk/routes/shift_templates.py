import uuid
from datetime import datetime

from fastapi import APIRouter, Depends

from ..auth.security import get_current_user, require_supervisor
from ..models.models import User
from ..repositories.tenant import TenantRepository, get_repository
from ..schemas.shifts import ApplyTemplateRequest, TemplateCreate, TemplateUpdate
from ..services import shift_templates as template_service
from ..services.serializers import shift_to_dict, template_to_dict
from ..services.time_rules import utc_now


router = APIRouter(prefix="/shift-templates", tags=["shift-templates"])


@router.get("")
def list_templates(
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    return {"templates": [template_to_dict(t) for t in repo.list_templates()]}


@router.post("", status_code=201)
def create_template(
    payload: TemplateCreate,
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    template = template_service.create_template(repo, actor, payload.model_dump(), now)
    return {"template": template_to_dict(template)}


@router.post("/apply")
def apply_template(
    payload: ApplyTemplateRequest,
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    shifts = template_service.apply_template(repo, actor, payload.template_id, payload.week_start_date, now)
    return {"shifts": [shift_to_dict(s) for s in shifts], "count": len(shifts)}


@router.get("/{template_id}")
def get_template(
    template_id: uuid.UUID,
    repo: TenantRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    return {"template": template_to_dict(template_service.get_template(repo, template_id))}


@router.put("/{template_id}")
def update_template(
    template_id: uuid.UUID,
    payload: TemplateUpdate,
    now: datetime = Depends(utc_now),
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    changes = payload.model_dump(include=payload.model_fields_set)
    template = template_service.update_template(repo, template_id, changes, now)
    return {"template": template_to_dict(template)}


@router.delete("/{template_id}")
def delete_template(
    template_id: uuid.UUID,
    repo: TenantRepository = Depends(get_repository),
    actor: User = Depends(require_supervisor),
):
    template_service.delete_template(repo, template_id)
    return {"status": "ok"}
