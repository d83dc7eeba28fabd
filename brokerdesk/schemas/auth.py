"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from brokerdesk.db.enums import Role


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # actor_id
    role: str


class ActorSession(BaseModel):
    """
    Identity of the caller for an engine operation.

    Returned by the get_current_session dependency and threaded explicitly
    through every service call; there is no ambient current user.
    """
    actor_id: UUID
    role: Role  # Validated enum

    model_config = {"frozen": True}
