"""Principal resolution and role gating for FastAPI routes.

Authentication itself (sign-in, sessions, tokens) happens upstream; that
layer stores the resolved ``Principal`` on ``request.state.principal``. This
module only reads it and enforces role requirements.

Usage:
    @router.post("/operations", dependencies=[Depends(require_roles(Role.OPERATOR))])
    async def create_operation(principal: Principal = Depends(get_principal)):
        ...
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from rtap.core.errors import AuthenticationAppError, AuthorizationAppError
from rtap.schemas.access import Principal, Role

logger = logging.getLogger(__name__)


async def get_principal(request: Request) -> Principal:
    """Return the authenticated principal for the current request.

    Raises:
        AuthenticationAppError: If the request carries no principal.
    """
    principal = getattr(request.state, "principal", None)
    if not isinstance(principal, Principal):
        logger.warning(
            "auth.missing_principal",
            extra={"request_path": request.url.path},
        )
        raise AuthenticationAppError(
            code="unauthorized",
            message="Authentication required",
        )
    return principal


def require_roles(*roles: Role):
    """Dependency factory admitting principals holding one of ``roles``.

    ADMIN always passes.
    """
    allowed = frozenset(roles)

    async def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.is_admin or principal.role in allowed:
            return principal
        logger.warning(
            "access.denied",
            extra={
                "reason": "insufficient_role",
                "actor_id": principal.id,
                "role": principal.role.value,
            },
        )
        raise AuthorizationAppError(
            code="insufficient_role",
            message="Insufficient role",
            details={"role": principal.role.value, "required_roles": sorted(r.value for r in allowed)},
        )

    return _dep
