"""CLI tools for order desk administration."""

import click

from app.core.deps import COOKIE_NAME
from app.core.security import create_session_token
from app.db.session import SessionLocal
from app.services import identity_service


@click.group()
def cli():
    """Order desk CLI tools."""
    pass


@cli.command()
@click.option("--email", required=True, help="User email address")
@click.option("--name", "display_name", default=None, help="Display name")
@click.option("--admin", is_flag=True, default=False, help="Grant the admin capability")
def create_user(email: str, display_name: str | None, admin: bool):
    """
    Create a user in the identity directory.

    Example:
        python -m app.cli create-user --email staff@example.com --admin
    """
    db = SessionLocal()
    try:
        if identity_service.get_user_by_email(db, email):
            click.echo(f"❌ User already exists: {email}")
            return

        user = identity_service.create_user(db, email, display_name=display_name, is_admin=admin)
        role = "admin" if user.is_admin else "customer"
        click.echo(f"✓ Created {role} user #{user.id}: {user.email}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email address")
@click.option("--revoke", is_flag=True, default=False, help="Remove the admin capability instead")
def grant_admin(email: str, revoke: bool):
    """
    Grant (or revoke) the admin capability. Existing sessions are invalidated.
    """
    db = SessionLocal()
    try:
        user = identity_service.get_user_by_email(db, email)
        if not user:
            click.echo(f"❌ User not found: {email}")
            return

        identity_service.set_admin(db, user, not revoke)
        verb = "Revoked admin from" if revoke else "Granted admin to"
        click.echo(f"✓ {verb} user #{user.id}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email address")
def issue_token(email: str):
    """
    Mint a session cookie value for local testing.

    Example:
        curl -b "order_session=$(python -m app.cli issue-token --email a@b.com)" ...
    """
    db = SessionLocal()
    try:
        user = identity_service.get_user_by_email(db, email)
        if not user:
            raise click.ClickException(f"User not found: {email}")
        if not user.is_active:
            raise click.ClickException(f"User is disabled: {email}")

        token = create_session_token(user.id, user.token_version)
        click.echo(token)
        click.echo(f"→ Send as cookie '{COOKIE_NAME}'", err=True)
    finally:
        db.close()


if __name__ == "__main__":
    cli()
