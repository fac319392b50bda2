# questportal/auth/credentials.py
from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic

from questportal.core.errors import ForbiddenError
from questportal.dependencies import get_ledger
from questportal.schemas.user_schema import Role, UserRecord
from questportal.services.ledger import UserLedger, verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialsOk:
    user: UserRecord


@dataclass(frozen=True)
class CredentialsUnauthorized:
    reason: str


@dataclass(frozen=True)
class CredentialsMalformed:
    reason: str


CredentialsResult = Union[CredentialsOk, CredentialsUnauthorized, CredentialsMalformed]


class BasicAuthHeader(HTTPBasic):
    """HTTP Basic in OpenAPI; the raw header is left to ``extract_credentials``
    so a malformed header can be told apart from a missing one."""

    async def __call__(self, request: Request) -> Optional[str]:  # type: ignore[override]
        return request.headers.get("Authorization")


security = BasicAuthHeader(auto_error=False)  # missing header is handled by the guard


def parse_basic_header(authorization: str) -> Optional[tuple[str, str]]:
    scheme, _, encoded = authorization.strip().partition(" ")
    if scheme.lower() != "basic" or not encoded.strip():
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep or not username:
        return None
    return username, password


def extract_credentials(authorization: Optional[str], ledger: UserLedger) -> CredentialsResult:
    """Resolve ``Authorization: Basic base64(username:password)`` to a user."""
    if not authorization:
        return CredentialsUnauthorized("Not authenticated")

    parsed = parse_basic_header(authorization)
    if parsed is None:
        return CredentialsMalformed("Malformed Authorization header")

    username, password = parsed
    user = ledger.get_by_username(username)
    if user is None or not verify_password(password, user.password_hash):
        return CredentialsUnauthorized("Invalid credentials")
    return CredentialsOk(user)


def require_roles(*roles: Role) -> Callable[..., UserRecord]:
    """Dependency factory: the caller must hold one of ``roles``."""
    allowed = {Role(r).value for r in roles}

    def dependency(
        request: Request,
        authorization: Optional[str] = Depends(security),
        ledger: UserLedger = Depends(get_ledger),
    ) -> UserRecord:
        result = extract_credentials(authorization, ledger)
        if isinstance(result, CredentialsMalformed):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.reason)
        if isinstance(result, CredentialsUnauthorized):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=result.reason,
                headers={"WWW-Authenticate": "Basic"},
            )
        if result.user.role not in allowed:
            logger.warning("User %s (role=%s) denied access to %s", result.user.username, result.user.role, request.url.path)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return result.user

    return dependency


def ensure_can_assign_role(actor: UserRecord, target: UserRecord, new_role: Role) -> None:
    """Only owners grant ``owner``; admins manage users and admins."""
    new_role = Role(new_role)
    if actor.role == Role.owner:
        return
    if actor.role != Role.admin:
        raise ForbiddenError("Only admins can change roles")
    if new_role == Role.owner:
        raise ForbiddenError("Only owners can assign the owner role")
    if target.role == Role.owner:
        raise ForbiddenError("Only owners can change an owner's role")
