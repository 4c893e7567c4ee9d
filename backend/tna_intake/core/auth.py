"""
Authentication and authorisation dependencies for FastAPI routes.

Provides:
- get_current_user: verifies the JWT bearer token and its revocation state
- has_role: pure role check
- require_role(*roles): factory returning a dependency enforcing role membership
- TokenBlacklist: revoked-token store (Redis with an in-process mirror)

Every rejection is audited: 401s as UNAUTHORIZED, 403s as
UNAUTHORIZED_ACCESS_ATTEMPT with the caller's address.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .config import Settings
from .context import RequestContext, get_parameters, get_request_context
from .database import get_db
from .errors import AuthenticationError, AuthorizationError
from .security import decode_token, token_fingerprint
from .transactions import safe_commit
from ..models.audit_log import AuditAction
from ..models.user import UserRole
from ..services.audit import AuditLogger
from ..services.cache import CacheService


logger = logging.getLogger(__name__)

# The tokenUrl is informational (used by Swagger UI); actual login is POST /api/auth/login
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Identity carried by a verified access token."""

    id: str
    role: str
    email: Optional[str] = None
    token: Optional[str] = None
    expires_at: Optional[float] = None


# =============================================================================
# Revocation
# =============================================================================

class TokenBlacklist:
    """
    Revoked tokens, keyed by SHA-256 fingerprint.

    Entries live in Redis with a TTL equal to the token's remaining lifetime
    and are mirrored locally so revocation still holds while Redis is down.
    """

    def __init__(self, cache: Optional[CacheService] = None, clock: Callable[[], float] = time.time):
        self.cache = cache
        self._clock = clock
        self._local: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _key(self, fingerprint: str) -> str:
        return f"{CacheService.PREFIX_BLACKLIST}{fingerprint}"

    def revoke(self, token: str, expires_at: Optional[float]) -> None:
        now = self._clock()
        expires_at = expires_at or now + 3600
        fingerprint = token_fingerprint(token)

        with self._lock:
            self._local[fingerprint] = expires_at
            # Drop entries whose tokens have expired anyway
            for key in [k for k, exp in self._local.items() if exp <= now]:
                del self._local[key]

        if self.cache is not None:
            ttl = max(1, int(expires_at - now))
            self.cache.set(self._key(fingerprint), True, ttl=ttl)

    def is_revoked(self, token: str) -> bool:
        fingerprint = token_fingerprint(token)
        with self._lock:
            expires_at = self._local.get(fingerprint)
        if expires_at is not None and expires_at > self._clock():
            return True

        if self.cache is not None and self.cache.exists(self._key(fingerprint)):
            return True
        return False


async def get_blacklist(request: Request) -> TokenBlacklist:
    return request.app.state.blacklist


# =============================================================================
# Authentication
# =============================================================================

def _reject(db: Session, ctx: RequestContext, reason: str, message: str) -> AuthenticationError:
    AuditLogger(db).record(
        None,
        AuditAction.UNAUTHORIZED,
        ctx.path,
        {"reason": reason, "method": ctx.method},
        ip_address=ctx.ip_address,
        request_id=ctx.request_id,
    )
    safe_commit(db)
    return AuthenticationError(message)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    params: Settings = Depends(get_parameters),
    blacklist: TokenBlacklist = Depends(get_blacklist),
    ctx: RequestContext = Depends(get_request_context),
) -> CurrentUser:
    """
    Verify the bearer token and return the caller's identity.

    Raises 401 if the token is missing, invalid, expired or revoked.
    """
    if not token:
        raise _reject(db, ctx, "missing_token", "Authentication required")

    payload = decode_token(token, params.secret_key)
    if payload is None or payload.get("type") != "access" or not payload.get("sub"):
        raise _reject(db, ctx, "invalid_token", "Invalid or expired token")

    if await run_in_threadpool(blacklist.is_revoked, token):
        raise _reject(db, ctx, "revoked_token", "Token revoked")

    return CurrentUser(
        id=str(payload["sub"]),
        role=payload.get("role", UserRole.USER.value),
        email=payload.get("email"),
        token=token,
        expires_at=payload.get("exp"),
    )


# =============================================================================
# Authorisation
# =============================================================================

STAFF_ROLES = (UserRole.ADMIN.value, UserRole.STAFF.value)
ADMIN_ROLES = (UserRole.ADMIN.value,)


def has_role(user: CurrentUser, allowed_roles: Iterable[str]) -> bool:
    return user.role in {getattr(role, "value", role) for role in allowed_roles}


def require_role(*allowed_roles: str):
    """
    Factory: returns a FastAPI dependency that checks the current user's role.

    Usage:
        @router.get("", dependencies=[Depends(require_role("staff", "admin"))])
    """
    async def _check(
        user: CurrentUser = Depends(get_current_user),
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(get_request_context),
    ) -> CurrentUser:
        if not has_role(user, allowed_roles):
            AuditLogger(db).record(
                user.id,
                AuditAction.UNAUTHORIZED_ACCESS_ATTEMPT,
                ctx.path,
                {
                    "role": user.role,
                    "required": list(allowed_roles),
                    "method": ctx.method,
                },
                ip_address=ctx.ip_address,
                request_id=ctx.request_id,
            )
            safe_commit(db)
            raise AuthorizationError()
        return user

    return _check
