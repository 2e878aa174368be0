"""Operation repository interface.

Routes depend on this abstraction; adapters translate the access predicate
into whatever their storage understands.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from rtap.schemas.access import Group, Operation, OperationStatus, Visibility
from rtap.services.predicates import Predicate


class AbstractOperationRepository(ABC):
    """Storage for operations and the groups referenced by them."""

    @abstractmethod
    def get(self, operation_id: int) -> Operation | None:
        """Load one operation with its access groups and their members."""
        raise NotImplementedError

    @abstractmethod
    def list(self, where: Predicate, *, limit: int) -> list[Operation]:
        """Return up to ``limit`` operations matching ``where``, newest id first."""
        raise NotImplementedError

    @abstractmethod
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
        raise NotImplementedError

    @abstractmethod
    def update(
        self,
        operation_id: int,
        *,
        access_group_ids: Iterable[str] | None = None,
        **changes: Any,
    ) -> Operation:
        """Apply field changes; ``access_group_ids`` replaces the whole set."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, operation_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def resolve_groups(self, group_ids: Iterable[str]) -> list[Group]:
        """Load the groups named by ``group_ids`` with their members.

        Raises:
            ValidationAppError: If any of the ids does not exist.
        """
        raise NotImplementedError
