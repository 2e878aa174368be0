"""Pydantic models for principals and access-controlled operations."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class Role(enum.StrEnum):
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    VIEWER = "VIEWER"


class Visibility(enum.StrEnum):
    EVERYONE = "EVERYONE"
    GROUPS_ONLY = "GROUPS_ONLY"


class AccessAction(enum.StrEnum):
    VIEW = "view"
    MODIFY = "modify"


class OperationStatus(enum.StrEnum):
    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Principal(BaseModel):
    """Authenticated caller, resolved by the upstream authentication layer.

    Immutable for the duration of a request.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="User identifier.")
    role: Role = Field(..., description="ADMIN, OPERATOR or VIEWER.")
    group_ids: frozenset[str] = Field(
        default_factory=frozenset,
        description="Identifiers of the groups the user belongs to.",
    )

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class Group(BaseModel):
    """User group; members of an access group may see GROUPS_ONLY operations."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    member_ids: frozenset[str] = Field(default_factory=frozenset)


class Operation(BaseModel):
    """A recorded red-team engagement, as seen by access control.

    ``access_groups`` is ``None`` when the association was not loaded; access
    checks treat that as an empty set.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str = ""
    status: OperationStatus = OperationStatus.PLANNING
    owner_id: str
    visibility: Visibility = Visibility.EVERYONE
    access_groups: list[Group] | None = None
    created_at: datetime = Field(default_factory=_utcnow)
