"""Operation endpoints.

Listing applies the access predicate in the repository; single-item routes
load the operation first (404 when absent) and then ask the access service
(403 when denied). Mutations are limited to OPERATOR and ADMIN roles.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request, Response, status

from rtap.adapters.operations.base import AbstractOperationRepository
from rtap.core.auth import get_principal, require_roles
from rtap.core.errors import AuthorizationAppError, NotFoundAppError
from rtap.core.logging import audit_event
from rtap.core.rate_limit import enforce_api_rate_limit
from rtap.schemas.access import AccessAction, Operation, OperationStatus, Principal, Role, Visibility
from rtap.schemas.operations import (
    OperationCreateRequest,
    OperationListResponse,
    OperationResponse,
    OperationUpdateRequest,
)
from rtap.services.access_service import AccessFilterService
from rtap.services.predicates import Equals, LessThan, and_

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/operations",
    tags=["Operations"],
    dependencies=[Depends(enforce_api_rate_limit)],
)

_operator = require_roles(Role.OPERATOR)


def get_operation_repository(request: Request) -> AbstractOperationRepository:
    return request.app.state.operation_repository


def get_access_service(request: Request) -> AccessFilterService:
    return request.app.state.access_service


def _load_authorized(
    operation_id: int,
    principal: Principal,
    action: AccessAction,
    repository: AbstractOperationRepository,
    access: AccessFilterService,
) -> Operation:
    operation = repository.get(operation_id)
    if operation is None:
        raise NotFoundAppError(
            code="operation_not_found",
            message="Operation not found",
            details={"operation_id": operation_id},
        )
    if not access.check_access(principal, operation, action):
        logger.warning(
            "access.denied",
            extra={
                "reason": "operation_access",
                "actor_id": principal.id,
                "operation_id": operation_id,
                "action": action.value,
            },
        )
        verb = "access" if action == AccessAction.VIEW else "modify"
        raise AuthorizationAppError(
            code="operation_forbidden",
            message=f"You don't have permission to {verb} this operation",
            details={"operation_id": operation_id, "action": action.value},
        )
    return operation


@router.get("", response_model=OperationListResponse)
async def list_operations(
    status_filter: OperationStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=100),
    cursor: int | None = Query(default=None, ge=1),
    principal: Principal = Depends(get_principal),
    repository: AbstractOperationRepository = Depends(get_operation_repository),
    access: AccessFilterService = Depends(get_access_service),
) -> OperationListResponse:
    """List operations the caller may view, newest first.

    Fetches one extra row to tell whether another page exists.
    """
    where = and_(
        access.build_list_filter(principal),
        Equals("status", status_filter) if status_filter else None,
        LessThan("id", cursor) if cursor else None,
    )
    operations = repository.list(where, limit=limit + 1)

    next_cursor = None
    if len(operations) > limit:
        operations = operations[:limit]
        next_cursor = operations[-1].id

    return OperationListResponse(
        operations=[OperationResponse.from_operation(op) for op in operations],
        next_cursor=next_cursor,
    )


@router.get("/{operation_id}", response_model=OperationResponse)
async def get_operation(
    operation_id: int,
    principal: Principal = Depends(get_principal),
    repository: AbstractOperationRepository = Depends(get_operation_repository),
    access: AccessFilterService = Depends(get_access_service),
) -> OperationResponse:
    operation = _load_authorized(operation_id, principal, AccessAction.VIEW, repository, access)
    return OperationResponse.from_operation(operation)


@router.post("", response_model=OperationResponse, status_code=status.HTTP_201_CREATED)
async def create_operation(
    body: OperationCreateRequest,
    request: Request,
    principal: Principal = Depends(_operator),
    repository: AbstractOperationRepository = Depends(get_operation_repository),
    access: AccessFilterService = Depends(get_access_service),
) -> OperationResponse:
    group_ids: list[str] = []
    if body.visibility == Visibility.GROUPS_ONLY:
        groups = repository.resolve_groups(body.access_group_ids)
        access.ensure_can_restrict(principal, groups)
        group_ids = [group.id for group in groups]

    operation = repository.create(
        name=body.name,
        description=body.description,
        owner_id=principal.id,
        visibility=body.visibility,
        access_group_ids=group_ids,
    )
    logger.info(
        "sec.operation.create",
        extra=audit_event(
            "sec.operation.create",
            actor_id=principal.id,
            client_ip=getattr(request.state, "client_ip", None),
            operation_id=operation.id,
            operation_name=operation.name,
            visibility=operation.visibility.value,
        ),
    )
    return OperationResponse.from_operation(operation)


@router.patch("/{operation_id}", response_model=OperationResponse)
async def update_operation(
    operation_id: int,
    body: OperationUpdateRequest,
    request: Request,
    principal: Principal = Depends(_operator),
    repository: AbstractOperationRepository = Depends(get_operation_repository),
    access: AccessFilterService = Depends(get_access_service),
) -> OperationResponse:
    existing = _load_authorized(operation_id, principal, AccessAction.MODIFY, repository, access)

    changes = {
        field: value
        for field, value in body.model_dump(exclude_unset=True, exclude={"access_group_ids"}).items()
        if value is not None
    }
    next_visibility = body.visibility or existing.visibility
    if next_visibility == Visibility.GROUPS_ONLY:
        # Unknown group ids are a 400 before any membership decision.
        groups = (
            repository.resolve_groups(body.access_group_ids)
            if body.access_group_ids is not None
            else existing.access_groups or []
        )
        access.ensure_can_restrict(principal, groups)

    operation = repository.update(
        operation_id,
        access_group_ids=body.access_group_ids,
        **changes,
    )
    logger.info(
        "sec.operation.update",
        extra=audit_event(
            "sec.operation.update",
            actor_id=principal.id,
            client_ip=getattr(request.state, "client_ip", None),
            operation_id=operation.id,
            operation_name=operation.name,
            changed_fields=sorted(body.model_fields_set),
        ),
    )
    return OperationResponse.from_operation(operation)


@router.delete("/{operation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_operation(
    operation_id: int,
    request: Request,
    principal: Principal = Depends(_operator),
    repository: AbstractOperationRepository = Depends(get_operation_repository),
    access: AccessFilterService = Depends(get_access_service),
) -> Response:
    operation = _load_authorized(operation_id, principal, AccessAction.MODIFY, repository, access)
    repository.delete(operation_id)
    logger.info(
        "sec.operation.delete",
        extra=audit_event(
            "sec.operation.delete",
            actor_id=principal.id,
            client_ip=getattr(request.state, "client_ip", None),
            operation_id=operation_id,
            operation_name=operation.name,
        ),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
