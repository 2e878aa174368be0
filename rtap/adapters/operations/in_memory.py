"""In-memory operation repository.

Predicates are evaluated directly against hydrated ``Operation`` models, which
is also the reference behaviour other backends must reproduce.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from rtap.adapters.operations.base import AbstractOperationRepository
from rtap.core.errors import NotFoundAppError, ValidationAppError
from rtap.schemas.access import Group, Operation, OperationStatus, Visibility
from rtap.services.predicates import Predicate, matches


@dataclass
class _OperationRow:
    id: int
    name: str
    description: str
    status: OperationStatus
    owner_id: str
    visibility: Visibility
    access_group_ids: tuple[str, ...]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryOperationRepository(AbstractOperationRepository):
    """Thread-safe dict-backed store. Contents are lost on restart."""

    def __init__(self, groups: Iterable[Group] = ()) -> None:
        self._lock = threading.RLock()
        self._groups: dict[str, Group] = {group.id: group for group in groups}
        self._rows: dict[int, _OperationRow] = {}
        self._ids = itertools.count(1)

    def add_group(self, group: Group) -> None:
        """Insert or replace a group (membership changes apply immediately)."""
        with self._lock:
            self._groups[group.id] = group

    def resolve_groups(self, group_ids: Iterable[str]) -> list[Group]:
        with self._lock:
            return [self._groups[gid] for gid in self._checked_group_ids(group_ids)]

    def _hydrate(self, row: _OperationRow) -> Operation:
        return Operation(
            id=row.id,
            name=row.name,
            description=row.description,
            status=row.status,
            owner_id=row.owner_id,
            visibility=row.visibility,
            access_groups=[self._groups[gid] for gid in row.access_group_ids if gid in self._groups],
            created_at=row.created_at,
        )

    def _checked_group_ids(self, group_ids: Iterable[str]) -> tuple[str, ...]:
        requested = tuple(dict.fromkeys(group_ids))
        missing = [gid for gid in requested if gid not in self._groups]
        if missing:
            raise ValidationAppError(
                code="groups_not_found",
                message="One or more groups not found",
                details={"group_ids": missing},
            )
        return requested

    def get(self, operation_id: int) -> Operation | None:
        with self._lock:
            row = self._rows.get(operation_id)
            return self._hydrate(row) if row else None

    def list(self, where: Predicate, *, limit: int) -> list[Operation]:
        with self._lock:
            operations = [self._hydrate(row) for row in self._rows.values()]
        operations.sort(key=lambda op: op.id, reverse=True)
        return [op for op in operations if matches(where, op)][:limit]

    def create(
        self,
        *,
        name: str,
        description: str,
        owner_id: str,
        visibility: Visibility,
        access_group_ids: Iterable[str] = (),
        status: OperationStatus = OperationStatus.PLANNING,
    ) -> Operation:
        with self._lock:
            row = _OperationRow(
                id=next(self._ids),
                name=name,
                description=description,
                status=status,
                owner_id=owner_id,
                visibility=visibility,
                access_group_ids=self._checked_group_ids(access_group_ids),
            )
            self._rows[row.id] = row
            return self._hydrate(row)

    def update(
        self,
        operation_id: int,
        *,
        access_group_ids: Iterable[str] | None = None,
        **changes: Any,
    ) -> Operation:
        with self._lock:
            row = self._rows.get(operation_id)
            if row is None:
                raise NotFoundAppError(code="operation_not_found", message="Operation not found")
            if access_group_ids is not None:
                changes["access_group_ids"] = self._checked_group_ids(access_group_ids)
            row = replace(row, **changes)
            self._rows[operation_id] = row
            return self._hydrate(row)

    def delete(self, operation_id: int) -> None:
        with self._lock:
            if self._rows.pop(operation_id, None) is None:
                raise NotFoundAppError(code="operation_not_found", message="Operation not found")
