"""
User Service
Links identity-provider sessions and guest checkouts to local User rows
"""
import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from trendify.core.database import utcnow
from trendify.models import User

logger = logging.getLogger(__name__)


def find_by_email(db: Session, email: str) -> Optional[User]:
    stmt = select(User).where(func.lower(User.email) == email.strip().lower())
    return db.scalars(stmt).first()


def resolve_local_user(db: Session, token_user) -> User:
    """
    Find or create the local account for an authenticated identity

    Lookup order:
    1. external_id (the token subject)
    2. e-mail (a guest who later signs up keeps their order history)
    3. create a new row

    The role always follows the token; the caller commits.
    """
    user = db.scalars(select(User).where(User.external_id == token_user.id)).first()

    if user is None:
        user = find_by_email(db, token_user.email)
        if user is not None:
            logger.info(f"Linking identity {token_user.id} to existing user {user.id}")
            user.external_id = token_user.id

    if user is None:
        user = User(
            external_id=token_user.id,
            email=token_user.email.strip().lower(),
            name=token_user.name,
            role=token_user.role,
            is_active=True,
        )
        db.add(user)
        logger.info(f"Created local user for identity {token_user.id}")

    user.role = token_user.role
    if token_user.name and not user.name:
        user.name = token_user.name
    user.last_login_at = utcnow()
    db.flush()
    return user


def find_or_create_guest(db: Session, email: str, name: Optional[str] = None) -> User:
    """Customer row for a guest checkout (no external identity yet)"""
    user = find_by_email(db, email)
    if user is not None:
        return user

    user = User(email=email.strip().lower(), name=name, role="customer", is_active=True)
    db.add(user)
    db.flush()
    logger.info(f"Created guest customer {user.id}")
    return user
