import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClockInRequest(BaseModel):
    is_sick: bool = False


class ApproveRequest(BaseModel):
    """Single (``entryId``) or bulk (``entryIds``) approval."""
    model_config = ConfigDict(populate_by_name=True)

    entry_id: Optional[uuid.UUID] = Field(default=None, alias="entryId")
    entry_ids: Optional[List[uuid.UUID]] = Field(default=None, alias="entryIds")

    def ids(self) -> List[uuid.UUID]:
        if self.entry_ids:
            return list(dict.fromkeys(self.entry_ids))
        return [self.entry_id] if self.entry_id else []


class RejectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entry_id: uuid.UUID = Field(alias="entryId")
    reason: Optional[str] = None


class UpdateEntryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entry_id: uuid.UUID = Field(alias="entryId")
    clock_in: datetime
    clock_out: Optional[datetime] = None
