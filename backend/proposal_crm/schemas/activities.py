from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from proposal_crm.models import ActivityKind


class ActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    proposal_id: int
    kind: ActivityKind
    description: str
    details: Optional[str] = None
    created_at: datetime


class CommentCreate(BaseModel):
    comment: str = Field(..., min_length=1)
