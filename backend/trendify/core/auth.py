"""
Authentication dependencies for the Trendify backend

Sessions are issued by the external identity provider as HS256 JWTs signed
with AUTH_SECRET. This module verifies them and maps the identity to a local
User row; it never issues tokens.
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.orm import Session

from trendify.core.config import get_settings
from trendify.core.database import get_db
from trendify.services.user_service import resolve_local_user

bearer_scheme = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"

ROLE_LEVELS = {"customer": 1, "staff": 2, "admin": 3}


class TokenUser(BaseModel):
    """Identity carried by a verified session token"""
    id: str
    email: str
    name: Optional[str] = None
    role: str = "customer"

    def has_role(self, role: str) -> bool:
        return ROLE_LEVELS.get(self.role, 0) >= ROLE_LEVELS.get(role, 0)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> dict:
    """
    Verify a session JWT and return its claims

    Claims used: sub (or id), email, name, role, exp.

    Raises:
        HTTPException: 401 for expired or invalid tokens, 500 when
            AUTH_SECRET is not configured
    """
    secret = get_settings().AUTH_SECRET
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="AUTH_SECRET is not configured",
        )

    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], options={"verify_aud": False})
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError as e:
        raise _unauthorized(f"Invalid token: {e}")


def user_from_claims(claims: dict) -> Optional[TokenUser]:
    """TokenUser for the claims, or None when the id or e-mail is missing"""
    subject = claims.get("id") or claims.get("sub")
    if not subject or not claims.get("email"):
        return None
    return TokenUser(
        id=str(subject),
        email=claims["email"],
        name=claims.get("name"),
        role=claims.get("role") or "customer",
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> TokenUser:
    """
    Verified identity of the caller (401 without a valid bearer token)

    Usage:
        @router.get("/me")
        async def me(user: TokenUser = Depends(get_current_user)):
            return {"email": user.email}
    """
    if credentials is None:
        raise _unauthorized("Authentication required")

    user = user_from_claims(decode_token(credentials.credentials))
    if user is None:
        raise _unauthorized("Invalid token payload: missing user id or email")
    return user


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[TokenUser]:
    """Identity when a valid token is sent; guests and bad tokens get None"""
    if credentials is None:
        return None
    try:
        return user_from_claims(decode_token(credentials.credentials))
    except HTTPException:
        return None


def require_role(required_role: str):
    """
    Dependency factory: the caller's role must be at least required_role
    (admin > staff > customer)
    """
    async def role_checker(user: TokenUser = Depends(get_current_user)) -> TokenUser:
        if not user.has_role(required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {required_role}, your role: {user.role}",
            )
        return user

    return role_checker


def _local_account(db: Session, user: TokenUser):
    account = resolve_local_user(db, user)
    db.commit()
    return account


def get_current_account(
    user: TokenUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Local User row of the caller, created or linked by e-mail on first use"""
    return _local_account(db, user)


def get_current_account_optional(
    user: Optional[TokenUser] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
):
    return _local_account(db, user) if user is not None else None


def require_account(required_role: str):
    """Like require_role, but yields the local User row (the audit actor)"""
    checker = require_role(required_role)

    def dependency(user: TokenUser = Depends(checker), db: Session = Depends(get_db)):
        return _local_account(db, user)

    return dependency


require_admin_account = require_account("admin")
require_staff_account = require_account("staff")
