"""Pydantic schemas for the operations API."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from rtap.schemas.access import Operation, OperationStatus, Visibility


class OperationCreateRequest(BaseModel):
    """Payload for creating an operation."""

    name: str = Field(..., min_length=1, description="Operation name.")
    description: str = Field(..., min_length=1, description="What the engagement covers.")
    visibility: Visibility = Field(
        default=Visibility.EVERYONE,
        description="EVERYONE, or GROUPS_ONLY to restrict to access groups.",
    )
    access_group_ids: List[str] = Field(
        default_factory=list,
        description="Groups granted access; required when visibility is GROUPS_ONLY.",
    )


class OperationUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    status: OperationStatus | None = None
    visibility: Visibility | None = None
    access_group_ids: List[str] | None = Field(
        default=None,
        description="When provided, replaces the set of access groups.",
    )


class AccessGroupSummary(BaseModel):
    id: str
    name: str


class OperationResponse(BaseModel):
    """Operation as returned to clients (group membership is not exposed)."""

    id: int
    name: str
    description: str
    status: OperationStatus
    owner_id: str
    visibility: Visibility
    access_groups: List[AccessGroupSummary] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_operation(cls, operation: Operation) -> "OperationResponse":
        return cls(
            id=operation.id,
            name=operation.name,
            description=operation.description,
            status=operation.status,
            owner_id=operation.owner_id,
            visibility=operation.visibility,
            access_groups=[
                AccessGroupSummary(id=group.id, name=group.name)
                for group in operation.access_groups or ()
            ],
            created_at=operation.created_at,
        )


class OperationListResponse(BaseModel):
    operations: List[OperationResponse]
    next_cursor: int | None = Field(
        default=None,
        description="Pass as ``cursor`` to fetch the next page; null on the last page.",
    )
