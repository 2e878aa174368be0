"""Visibility and permission rules for operations.

Two entry points share the same rule definitions:
- ``build_list_filter`` returns a predicate a repository can apply in bulk.
- ``check_access`` decides on a single, already loaded operation.

For non-admins an operation is visible when its visibility is EVERYONE, or
when it is GROUPS_ONLY and the principal is a member of one of its access
groups. Modifying additionally requires the OPERATOR role and ownership;
VIEWERs never modify. ADMINs bypass every rule.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from rtap.core.errors import AuthorizationAppError, ValidationAppError
from rtap.schemas.access import AccessAction, Group, Operation, Principal, Role, Visibility
from rtap.services.predicates import AnyEquals, And, Equals, MatchAll, Or, Predicate

logger = logging.getLogger(__name__)

# Dotted path from an operation to the user ids of its access-group members
ACCESS_GROUP_MEMBERS_PATH = "access_groups.member_ids"


def _is_member_of_any(principal: Principal, groups: Sequence[Group]) -> bool:
    return any(principal.id in group.member_ids for group in groups)


def _is_access_group_member(principal: Principal, operation: Operation) -> bool:
    # Missing association data counts as no groups (fail closed).
    return _is_member_of_any(principal, operation.access_groups or ())


class AccessFilterService:
    """Row-level visibility and action-level permission checks."""

    def build_list_filter(self, principal: Principal) -> Predicate:
        """Predicate selecting the operations ``principal`` may list or view."""

        if principal.is_admin:
            return MatchAll()

        return Or(
            (
                Equals("visibility", Visibility.EVERYONE),
                And(
                    (
                        Equals("visibility", Visibility.GROUPS_ONLY),
                        AnyEquals(ACCESS_GROUP_MEMBERS_PATH, principal.id),
                    )
                ),
            )
        )

    def check_access(
        self,
        principal: Principal,
        operation: Operation,
        action: AccessAction = AccessAction.VIEW,
    ) -> bool:
        """Whether ``principal`` may perform ``action`` on ``operation``.

        The operation must already be loaded with its access groups; a missing
        operation is the caller's not-found case.
        """

        if principal.is_admin:
            return True

        if operation.visibility == Visibility.GROUPS_ONLY and not _is_access_group_member(
            principal, operation
        ):
            return False

        if action == AccessAction.VIEW:
            return True

        if principal.role == Role.OPERATOR:
            return principal.id == operation.owner_id
        return False

    def ensure_can_restrict(self, principal: Principal, groups: Sequence[Group]) -> None:
        """Validate the access groups chosen for a GROUPS_ONLY operation.

        ``groups`` must be loaded with their members, so the check reads the
        same membership as ``check_access``. At least one group is required,
        and a non-admin must be a member of one of them so they do not lock
        themselves out.

        Raises:
            ValidationAppError: If no group is selected.
            AuthorizationAppError: If a non-admin belongs to none of the groups.
        """

        if not groups:
            raise ValidationAppError(
                code="access_groups_required",
                message="At least one group must be provided when visibility is GROUPS_ONLY",
            )
        if principal.is_admin:
            return
        if not _is_member_of_any(principal, groups):
            group_ids = sorted({group.id for group in groups})
            logger.warning(
                "access.denied",
                extra={
                    "reason": "not_member_of_selected_groups",
                    "actor_id": principal.id,
                    "group_count": len(group_ids),
                },
            )
            raise AuthorizationAppError(
                code="not_member_of_selected_groups",
                message="You must belong to at least one selected group to restrict visibility",
                details={"group_ids": group_ids},
            )
