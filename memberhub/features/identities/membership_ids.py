"""
Membership id format: {PREFIX}-{PRANT_CODE}-{YEAR}-{NNNN}, e.g. SAV-GUJ-2026-0042.

Uniqueness is enforced by the profiles.membership_id constraint; the
generator only has to make collisions unlikely.
"""
import secrets
from datetime import datetime
from typing import Optional

from memberhub.core import config
from memberhub.features.identities.prants import prant_code


def generate_membership_id(state: Optional[str], issued_at: datetime) -> str:
    serial = secrets.randbelow(10000)
    return f"{config.MEMBERSHIP_ID_PREFIX}-{prant_code(state)}-{issued_at.year}-{serial:04d}"
