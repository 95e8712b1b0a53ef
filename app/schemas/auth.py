"""Authentication-related Pydantic schemas."""

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: int  # user_id
    token_version: int


class ActorSession(BaseModel):
    """
    Authenticated actor for the current request.

    Returned by the get_current_actor dependency. ``is_admin`` is the
    capability resolved from the identity directory, not from the token.
    """
    user_id: int
    email: str
    display_name: str | None = None
    is_admin: bool = False
