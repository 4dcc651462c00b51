"""
Request dependencies shared by the routers.

Authentication happens upstream; the gateway forwards the caller as
trusted headers (X-User-ID, X-User-Role, X-Department-ID).
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException

from app.core.logging import get_logger, set_caller_context
from app.models.domain import Caller

logger = get_logger(__name__)


async def get_caller(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_department_id: Optional[str] = Header(None),
) -> Caller:
    if not x_user_id or not x_user_id.strip():
        logger.warning("caller_missing_user_id")
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")

    caller = Caller(
        id=x_user_id.strip(),
        role=(x_user_role or "user").strip().lower() or "user",
        department_id=x_department_id or None,
    )
    set_caller_context(caller.id, caller.role)
    return caller


async def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        logger.warning("admin_access_denied", user_id=caller.id, role=caller.role)
        raise HTTPException(status_code=403, detail="Admin role required")
    return caller
