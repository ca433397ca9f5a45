"""
Pydantic schemas for public verification.

The payload is a plain mapping on purpose: contact keys a member has not
agreed to share are absent, and a fixed model would render them as null.
"""
from typing import Any, Dict, Optional
from pydantic import BaseModel

from memberhub.features.verification.service import VerificationKind


class VerificationResult(BaseModel):
    kind: VerificationKind
    payload: Optional[Dict[str, Any]] = None
