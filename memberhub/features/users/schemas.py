"""
Schemas for the authentication boundary.
"""
from pydantic import BaseModel, ConfigDict


class ActorContext(BaseModel):
    """Who is asking, as reported by the authentication provider."""
    user_id: str
    authenticated_email: str | None = None

    model_config = ConfigDict(frozen=True)


class ProvisionedAccount(BaseModel):
    user_id: str
    email: str
