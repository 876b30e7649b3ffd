"""
Audit Domain Model
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AuditEntry(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    action: str
    entity_type: str
    entity_id: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
