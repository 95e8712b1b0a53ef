"""Identity directory lookups.

The admin capability is provisioned upstream on the user row. Callers go
through ``is_admin`` so the source can change without touching the
authorization checks.
"""

from sqlalchemy.orm import Session

from app.db.models import User
from app.utils.normalization import normalize_email


def get_user(db: Session, user_id: int) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def is_admin(user: User | None) -> bool:
    return bool(user and user.is_active and user.is_admin)


def get_active_admin(db: Session, user_id: int) -> User | None:
    """Return the user if it exists, is active and holds the admin capability."""
    user = get_user(db, user_id)
    return user if is_admin(user) else None


def create_user(
    db: Session,
    email: str,
    display_name: str | None = None,
    is_admin: bool = False,
) -> User:
    """Create a directory entry (used by the CLI and tests)."""
    user = User(
        email=normalize_email(email),
        display_name=display_name,
        is_admin=is_admin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def set_admin(db: Session, user: User, is_admin: bool) -> User:
    """Grant or revoke the admin capability and revoke existing sessions."""
    user.is_admin = is_admin
    user.token_version = (user.token_version or 1) + 1
    db.commit()
    db.refresh(user)
    return user
