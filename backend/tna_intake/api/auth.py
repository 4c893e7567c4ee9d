"""
Authentication endpoints: login and logout.
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.auth import CurrentUser, TokenBlacklist, get_blacklist, get_current_user
from ..core.config import Settings
from ..core.context import RequestContext, get_parameters, get_request_context
from ..core.database import get_db
from ..core.errors import AuthenticationError
from ..core.security import create_access_token, verify_password
from ..core.transactions import safe_commit, transaction
from ..models.audit_log import AuditAction
from ..models.user import User
from ..schemas.common import ErrorResponse
from ..schemas.user import LoginRequest, LoginResponse, LogoutResponse
from ..services.audit import AuditLogger
from .deps import get_audit


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["Authentication"])


# =============================================================================
# Login
# =============================================================================


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse}},
)
async def login(
    credentials: LoginRequest,
    db: Session = Depends(get_db),
    params: Settings = Depends(get_parameters),
    audit: AuditLogger = Depends(get_audit),
    ctx: RequestContext = Depends(get_request_context),
) -> LoginResponse:
    """
    Authenticate with email + password. Returns a JWT access token.

    Unknown email, wrong password and deactivated accounts share one
    message so the response does not reveal which accounts exist.
    """
    email = credentials.email.lower()
    user = db.query(User).filter(func.lower(User.email) == email).first()

    reason = None
    if user is None or not verify_password(credentials.password, user.password_hash):
        reason = "invalid_credentials"
    elif not user.is_active:
        reason = "inactive_account"

    if reason:
        logger.warning(f"Failed login attempt reason={reason} ip={ctx.ip_address or 'unknown'}")
        audit.record(
            user.id if user else None,
            AuditAction.LOGIN_FAILED,
            "users",
            {"email": email, "reason": reason},
            ip_address=ctx.ip_address,
            request_id=ctx.request_id,
        )
        safe_commit(db)
        raise AuthenticationError("Invalid email or password")

    expires_delta = timedelta(minutes=params.access_token_expire_minutes)
    expires_at = datetime.now(timezone.utc) + expires_delta
    token = create_access_token(
        {"sub": str(user.id), "role": user.role, "email": user.email},
        params.secret_key,
        expires_delta,
    )

    with transaction(db):
        user.last_login = datetime.now(timezone.utc)
        audit.record(
            user.id,
            AuditAction.LOGIN,
            "users",
            {"role": user.role},
            ip_address=ctx.ip_address,
            request_id=ctx.request_id,
        )

    logger.info(f"User {user.id} logged in (role={user.role})")
    return LoginResponse(token=token, expiresAt=expires_at, role=user.role)


# =============================================================================
# Logout
# =============================================================================


@router.post(
    "/logout",
    response_model=LogoutResponse,
    responses={401: {"model": ErrorResponse}},
)
async def logout(
    user: CurrentUser = Depends(get_current_user),
    blacklist: TokenBlacklist = Depends(get_blacklist),
    db: Session = Depends(get_db),
    audit: AuditLogger = Depends(get_audit),
    ctx: RequestContext = Depends(get_request_context),
) -> LogoutResponse:
    """Revoke the presented token for the rest of its lifetime."""
    await run_in_threadpool(blacklist.revoke, user.token, user.expires_at)

    audit.record(
        user.id,
        AuditAction.LOGOUT,
        "users",
        None,
        ip_address=ctx.ip_address,
        request_id=ctx.request_id,
    )
    safe_commit(db)

    return LogoutResponse(success=True)
