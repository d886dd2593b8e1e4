"""
Identity provider adapter.

Customers, operators and admins authenticate with the hosted identity
platform, which issues HS256 bearer tokens carrying the user id in ``sub``
and the portal role in ``role``. This module only verifies those tokens and
exposes the caller as a ``CurrentUser``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from charter.core.config import get_settings
from charter.core.exceptions import AuthenticationError, AuthorizationError

ROLE_CUSTOMER = "customer"
ROLE_OPERATOR = "operator"
ROLE_ADMIN = "admin"
ROLE_SYSTEM = "system"

KNOWN_ROLES = {ROLE_CUSTOMER, ROLE_OPERATOR, ROLE_ADMIN}

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str = ROLE_CUSTOMER

    @property
    def is_staff(self) -> bool:
        return self.role in (ROLE_OPERATOR, ROLE_ADMIN)


# Identity used when the payment gateway calls back after signature checks.
PAYMENT_GATEWAY_IDENTITY = CurrentUser(id="payment-gateway", role=ROLE_SYSTEM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Mint a token the way the identity platform does. Used by tests and local tooling."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    to_encode.setdefault("role", ROLE_CUSTOMER)
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> CurrentUser:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as exc:
        raise AuthenticationError("Invalid or expired token") from exc

    user_id = payload.get("sub")
    role = payload.get("role", ROLE_CUSTOMER)
    if not user_id or role not in KNOWN_ROLES:
        raise AuthenticationError("Token is missing a subject or carries an unknown role")
    return CurrentUser(id=str(user_id), role=role)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[CurrentUser]:
    """
    Resolve the caller. Returns None when no token was sent so the lifecycle
    services raise AuthenticationError themselves before any other check.
    """
    if credentials is None:
        return None
    return decode_access_token(credentials.credentials)


def require_identity(actor: Optional[CurrentUser]) -> CurrentUser:
    if actor is None:
        raise AuthenticationError("No authenticated identity")
    return actor


def require_role(actor: Optional[CurrentUser], *roles: str) -> CurrentUser:
    actor = require_identity(actor)
    if actor.role not in roles:
        raise AuthorizationError(f"Role {actor.role} may not perform this action")
    return actor
