"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from collections.abc import Callable
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, Request, status

from app.core.config import Settings
from app.core.errors import AccessDeniedError, FormatError
from app.db.session import get_db
from app.domain.access import Principal, UserRole
from app.domain.identifiers import create_user_id
from app.services.appointments import clinic_timezone
from app.services.reminders import TaskSender
from app.services.sms_client import SMSClient
from app.services.storage import DocumentStorage

__all__ = [
    "get_clinic_timezone",
    "get_current_principal",
    "get_db",
    "get_settings",
    "get_sms_client",
    "get_storage",
    "get_task_sender",
    "require_roles",
]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_clinic_timezone(settings: Settings = Depends(get_settings)) -> ZoneInfo:
    return clinic_timezone(settings)


def get_sms_client(request: Request) -> SMSClient:
    return request.app.state.sms_client


def get_storage(request: Request) -> DocumentStorage:
    return request.app.state.storage


def get_task_sender(request: Request) -> TaskSender | None:
    return request.app.state.task_sender


def get_current_principal(request: Request) -> Principal:
    """Read the principal forwarded by the upstream auth layer."""

    user_id = request.headers.get("X-User-ID")
    raw_role = request.headers.get("X-User-Role")
    if not user_id or not raw_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    try:
        role = UserRole(raw_role.upper())
        principal_id = create_user_id(user_id)
    except (ValueError, FormatError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication headers",
        ) from exc

    return Principal(
        id=principal_id,
        role=role,
        email=request.headers.get("X-User-Email"),
        phone_number=request.headers.get("X-User-Phone"),
    )


def require_roles(*roles: UserRole) -> Callable[..., Principal]:
    """Dependency factory restricting a route to the given roles."""

    allowed = frozenset(roles)

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise AccessDeniedError(
                "Insufficient permissions",
                details={"required": sorted(role.value for role in allowed)},
            )
        return principal

    return dependency
