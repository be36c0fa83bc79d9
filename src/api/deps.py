"""
FastAPI Dependencies
Caller identity, role guard and report service wiring
Source: https://fastapi.tiangolo.com/tutorial/dependencies/
"""

from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.api.config import settings
from src.db.connection import get_session_maker
from src.services.readers import (
    ActorContext,
    SqlActivityReader,
    SqlActivitySink,
    SqlDirectoryReader,
    SqlLedgerReader,
)
from src.services.reporting.service import ReportService
from src.utils.auth import decode_token
from src.utils.errors import AuthenticationError, PermissionDeniedError

security = HTTPBearer()


async def get_current_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> ActorContext:
    """
    Resolve the caller from a bearer token.

    The token carries the user id (`sub`), display name and role; the
    request contributes client address and user agent for audit entries.

    Raises:
        AuthenticationError: If the token is invalid, expired or malformed
    """
    payload = decode_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Invalid or expired token.")

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    user_id_str: str | None = payload.get("sub")
    role: str | None = payload.get("role")
    if user_id_str is None or role is None:
        raise AuthenticationError("Invalid token payload")

    try:
        user_id = UUID(user_id_str)
    except ValueError as err:
        raise AuthenticationError("Invalid user ID in token") from err

    return ActorContext(
        user_id=user_id,
        name=payload.get("name") or "System",
        role=role,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


async def require_report_access(
    actor: ActorContext = Depends(get_current_actor),
) -> ActorContext:
    """
    Allow only elevated roles to read reports.

    Raises:
        PermissionDeniedError: If the caller's role is not in REPORT_ALLOWED_ROLES
    """
    if actor.role not in settings.REPORT_ALLOWED_ROLES:
        raise PermissionDeniedError()
    return actor


def get_report_service() -> ReportService:
    """Report service over the SQL readers, sharing one session factory."""
    session_maker = get_session_maker()
    return ReportService(
        ledger=SqlLedgerReader(session_maker),
        directory=SqlDirectoryReader(session_maker),
        activity=SqlActivityReader(session_maker),
        activity_sink=SqlActivitySink(session_maker),
        query_timeout=settings.REPORT_QUERY_TIMEOUT_SECONDS,
        recent_activity_limit=settings.REPORT_RECENT_ACTIVITY_LIMIT,
        top_contributors_limit=settings.REPORT_TOP_CONTRIBUTORS_LIMIT,
    )
