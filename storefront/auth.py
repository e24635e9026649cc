"""
Bearer tokens for the two caller kinds: the store admin and delivery workers.
Every failed check raises the same AuthorizationError.
"""
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Header
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from storefront.config import settings
from storefront.errors import AuthorizationError
from storefront.order_state import ADMIN, DELIVERY

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth", auto_error=False)


def create_access_token(subject: str, role: str, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=settings.token_ttl_hours))
    claims = {"sub": subject, "role": role, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> dict | None:
    """Decodes and verifies the JWT. Returns payload if valid, None if invalid/expired."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def verify_admin_password(password: str) -> bool:
    return secrets.compare_digest(password.encode(), settings.admin_password.encode())


def issue_admin_token() -> str:
    return create_access_token(ADMIN, ADMIN)


def issue_delivery_token(delivery_man_id: str) -> str:
    return create_access_token(delivery_man_id, DELIVERY)


def _claims_for(token: str | None, role: str) -> dict:
    if not token:
        raise AuthorizationError()
    payload = verify_access_token(token.removeprefix("Bearer ").strip())
    if payload is None or payload.get("role") != role or not payload.get("sub"):
        raise AuthorizationError()
    return payload


def _bearer_or_header(
    bearer: str | None = Depends(oauth2_scheme),
    x_auth_token: str | None = Header(default=None),
) -> str | None:
    return bearer or x_auth_token


async def require_admin(token: str | None = Depends(_bearer_or_header)) -> str:
    """Dependency for admin routes. Returns the token subject."""
    return _claims_for(token, ADMIN)["sub"]


async def require_delivery(token: str | None = Depends(_bearer_or_header)) -> str:
    """Dependency for delivery routes. Returns the caller's deliveryManId."""
    return _claims_for(token, DELIVERY)["sub"]
