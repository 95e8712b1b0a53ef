"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator

import jwt
from fastapi import Depends, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.core.security import decode_session_token
from app.db.session import SessionLocal
from app.schemas.auth import ActorSession, TokenPayload
from app.services import identity_service
from app.services.notification_dispatcher import (
    NotificationDispatcher,
    get_dispatcher,
)
from app.services.order_errors import Forbidden


# Cookie and header names
COOKIE_NAME = "order_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_actor(
    request: Request,
    db: Session = Depends(get_db),
) -> ActorSession:
    """
    Resolve the authenticated actor from the session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except (jwt.InvalidTokenError, PydanticValidationError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = identity_service.get_user(db, payload.sub)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if user.token_version != payload.token_version:
        raise HTTPException(status_code=401, detail="Session revoked")

    actor = ActorSession(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        is_admin=identity_service.is_admin(user),
    )
    # Used by the request rate limiter key
    request.state.actor = actor
    return actor


def require_admin(actor: ActorSession = Depends(get_current_actor)) -> ActorSession:
    """
    Admin-only routes.

    Raises:
        Forbidden: Actor lacks the admin capability
    """
    if not actor.is_admin:
        raise Forbidden("Admin access required")
    return actor


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        Forbidden: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise Forbidden(f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'")


def get_notification_dispatcher() -> NotificationDispatcher:
    """Process-wide notification dispatcher (overridden in tests)."""
    return get_dispatcher()
