"""
Pydantic schemas for audit log reads.
"""
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict

from memberhub.utils import UtcDatetime


class AuditLogResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)
