import uuid
from datetime import datetime
from typing import Optional

import structlog

from ..errors import NotFound, ValidationFailed
from ..models.models import Position
from ..repositories.tenant import TenantRepository

logger = structlog.get_logger(__name__)

DUPLICATE_MESSAGE = "A position with this name already exists"


def _get_owned(repo: TenantRepository, position_id) -> Position:
    position = repo.get_position(position_id)
    if position is None or position.organization_id != repo.organization_id:
        raise NotFound("Position not found")
    return position


def create_position(repo: TenantRepository, name: str, color: Optional[str], now: datetime) -> Position:
    name = name.strip()
    if not name:
        raise ValidationFailed("name is required")
    if repo.find_position_by_name(name) is not None:
        raise ValidationFailed(DUPLICATE_MESSAGE)

    position = Position(
        id=uuid.uuid4(),
        organization_id=repo.organization_id,
        name=name,
        color=color,
        created_at=now,
    )
    repo.add(position)
    repo.commit(DUPLICATE_MESSAGE)
    repo.refresh(position)
    logger.info("position_created", position_id=str(position.id), name=name)
    return position


def update_position(repo: TenantRepository, position_id, changes: dict) -> Position:
    position = _get_owned(repo, position_id)
    if changes.get("name") is not None:
        name = changes["name"].strip()
        if not name:
            raise ValidationFailed("name is required")
        existing = repo.find_position_by_name(name)
        if existing is not None and existing.id != position.id:
            raise ValidationFailed(DUPLICATE_MESSAGE)
        position.name = name
    if "color" in changes:
        position.color = changes["color"]
    repo.commit(DUPLICATE_MESSAGE)
    repo.refresh(position)
    return position


def delete_position(repo: TenantRepository, position_id) -> None:
    """Shifts and template items planned for the position keep existing without one."""
    position = _get_owned(repo, position_id)
    repo.clear_position_references(position.id)
    repo.delete(position)
    repo.commit()
    logger.info("position_deleted", position_id=str(position_id))
