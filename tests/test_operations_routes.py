"""Tests for the operations API.

Principals are injected by overriding ``get_principal`` (see ``login_as`` in
conftest.py); authentication itself is handled upstream.
"""

import logging

import pytest
from fastapi.testclient import TestClient

from rtap.adapters.operations.in_memory import InMemoryOperationRepository
from rtap.schemas.access import Group, OperationStatus, Principal, Role, Visibility


@pytest.fixture
def seeded(repository: InMemoryOperationRepository) -> dict[str, int]:
    """Three operations: public, Red Team only, Blue Team only."""
    public = repository.create(
        name="Public", description="Visible to all", owner_id="op-1", visibility=Visibility.EVERYONE
    )
    red = repository.create(
        name="Red only",
        description="Restricted",
        owner_id="op-1",
        visibility=Visibility.GROUPS_ONLY,
        access_group_ids=["g-red"],
    )
    blue = repository.create(
        name="Blue only",
        description="Restricted",
        owner_id="op-2",
        visibility=Visibility.GROUPS_ONLY,
        access_group_ids=["g-blue"],
    )
    return {"public": public.id, "red": red.id, "blue": blue.id}


def _names(response) -> list[str]:
    return [op["name"] for op in response.json()["operations"]]


class TestListOperations:
    def test_requires_principal(self, client: TestClient) -> None:
        response = client.get("/v1/operations")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthorized"

    def test_admin_sees_everything(self, client: TestClient, login_as, admin: Principal, seeded) -> None:
        login_as(admin)

        assert _names(client.get("/v1/operations")) == ["Blue only", "Red only", "Public"]

    def test_viewer_sees_public_and_own_groups(
        self, client: TestClient, login_as, viewer: Principal, seeded
    ) -> None:
        login_as(viewer)

        assert _names(client.get("/v1/operations")) == ["Red only", "Public"]

    def test_membership_change_is_reflected(
        self,
        client: TestClient,
        login_as,
        repository: InMemoryOperationRepository,
        viewer: Principal,
        seeded,
    ) -> None:
        login_as(viewer)
        repository.add_group(Group(id="g-blue", name="Blue Team", member_ids=frozenset({"op-2", "viewer-1"})))

        assert _names(client.get("/v1/operations")) == ["Blue only", "Red only", "Public"]

    def test_status_filter(self, client: TestClient, login_as, admin: Principal, repository, seeded) -> None:
        login_as(admin)
        repository.update(seeded["red"], status=OperationStatus.ACTIVE)

        response = client.get("/v1/operations", params={"status": "ACTIVE"})

        assert _names(response) == ["Red only"]

    def test_cursor_pagination(self, client: TestClient, login_as, admin: Principal, seeded) -> None:
        login_as(admin)

        first = client.get("/v1/operations", params={"limit": 2}).json()
        assert [op["name"] for op in first["operations"]] == ["Blue only", "Red only"]
        assert first["next_cursor"] == seeded["red"]

        second = client.get("/v1/operations", params={"limit": 2, "cursor": first["next_cursor"]}).json()
        assert [op["name"] for op in second["operations"]] == ["Public"]
        assert second["next_cursor"] is None

    def test_limit_is_bounded(self, client: TestClient, login_as, admin: Principal) -> None:
        login_as(admin)

        assert client.get("/v1/operations", params={"limit": 0}).status_code == 422
        assert client.get("/v1/operations", params={"limit": 101}).status_code == 422


class TestGetOperation:
    def test_not_found(self, client: TestClient, login_as, viewer: Principal) -> None:
        login_as(viewer)

        response = client.get("/v1/operations/999")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "operation_not_found"

    def test_forbidden_outside_access_groups(
        self, client: TestClient, login_as, viewer: Principal, seeded
    ) -> None:
        login_as(viewer)

        response = client.get(f"/v1/operations/{seeded['blue']}")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "operation_forbidden"

    def test_member_can_view(self, client: TestClient, login_as, viewer: Principal, seeded) -> None:
        login_as(viewer)

        response = client.get(f"/v1/operations/{seeded['red']}")

        assert response.status_code == 200
        body = response.json()
        assert body["visibility"] == "GROUPS_ONLY"
        assert body["access_groups"] == [{"id": "g-red", "name": "Red Team"}]
        assert "member_ids" not in body["access_groups"][0]


class TestCreateOperation:
    def test_operator_creates_public_operation(
        self, client: TestClient, login_as, operator: Principal, caplog
    ) -> None:
        login_as(operator)

        with caplog.at_level(logging.INFO, logger="rtap.api.routes.operations"):
            response = client.post(
                "/v1/operations",
                json={"name": "Nightfall", "description": "Phishing campaign", "access_group_ids": ["g-red"]},
            )

        assert response.status_code == 201
        body = response.json()
        assert body["owner_id"] == operator.id
        assert body["visibility"] == "EVERYONE"
        assert body["access_groups"] == []
        assert body["status"] == "PLANNING"
        assert any(record.getMessage() == "sec.operation.create" for record in caplog.records)

    def test_viewer_cannot_create(self, client: TestClient, login_as, viewer: Principal) -> None:
        login_as(viewer)

        response = client.post("/v1/operations", json={"name": "x", "description": "y"})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "insufficient_role"

    def test_groups_only_requires_groups(self, client: TestClient, login_as, operator: Principal) -> None:
        login_as(operator)

        response = client.post(
            "/v1/operations",
            json={"name": "x", "description": "y", "visibility": "GROUPS_ONLY"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "access_groups_required"

    def test_operator_must_belong_to_selected_group(
        self, client: TestClient, login_as, operator: Principal
    ) -> None:
        login_as(operator)

        response = client.post(
            "/v1/operations",
            json={"name": "x", "description": "y", "visibility": "GROUPS_ONLY", "access_group_ids": ["g-blue"]},
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "not_member_of_selected_groups"

    def test_unknown_group_is_rejected(self, client: TestClient, login_as, admin: Principal) -> None:
        login_as(admin)

        response = client.post(
            "/v1/operations",
            json={"name": "x", "description": "y", "visibility": "GROUPS_ONLY", "access_group_ids": ["g-nope"]},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "groups_not_found"

    def test_created_restricted_operation_is_listed_for_members_only(
        self, client: TestClient, login_as, operator: Principal, other_operator: Principal
    ) -> None:
        login_as(operator)
        created = client.post(
            "/v1/operations",
            json={"name": "Red op", "description": "y", "visibility": "GROUPS_ONLY", "access_group_ids": ["g-red"]},
        ).json()

        assert _names(client.get("/v1/operations")) == ["Red op"]

        login_as(other_operator)
        assert _names(client.get("/v1/operations")) == []
        assert client.get(f"/v1/operations/{created['id']}").status_code == 403


    def test_restriction_uses_repository_membership(self, client: TestClient, login_as) -> None:
        """The session's group list does not override who the group actually contains."""
        login_as(Principal(id="op-1", role=Role.OPERATOR, group_ids=frozenset({"g-blue"})))

        response = client.post(
            "/v1/operations",
            json={"name": "x", "description": "y", "visibility": "GROUPS_ONLY", "access_group_ids": ["g-blue"]},
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "not_member_of_selected_groups"

    def test_creator_can_view_restricted_operation(self, client: TestClient, login_as) -> None:
        login_as(Principal(id="op-1", role=Role.OPERATOR))

        created = client.post(
            "/v1/operations",
            json={"name": "x", "description": "y", "visibility": "GROUPS_ONLY", "access_group_ids": ["g-red"]},
        )
        assert created.status_code == 201

        fetched = client.get(f"/v1/operations/{created.json()['id']}")
        assert fetched.status_code == 200

    def test_unknown_group_checked_before_membership(
        self, client: TestClient, login_as, operator: Principal
    ) -> None:
        login_as(operator)

        response = client.post(
            "/v1/operations",
            json={"name": "x", "description": "y", "visibility": "GROUPS_ONLY", "access_group_ids": ["g-nope"]},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "groups_not_found"


class TestUpdateOperation:
    def test_unknown_group_checked_before_membership(
        self, client: TestClient, login_as, operator: Principal, seeded
    ) -> None:
        login_as(operator)

        response = client.patch(
            f"/v1/operations/{seeded['public']}",
            json={"visibility": "GROUPS_ONLY", "access_group_ids": ["g-nope"]},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "groups_not_found"

    def test_owner_updates(self, client: TestClient, login_as, operator: Principal, seeded) -> None:
        login_as(operator)

        response = client.patch(
            f"/v1/operations/{seeded['public']}",
            json={"name": "Renamed", "status": "ACTIVE"},
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert response.json()["status"] == "ACTIVE"

    def test_non_owner_operator_is_forbidden(
        self, client: TestClient, login_as, other_operator: Principal, seeded
    ) -> None:
        login_as(other_operator)

        response = client.patch(f"/v1/operations/{seeded['public']}", json={"name": "Mine now"})

        assert response.status_code == 403
        assert response.json()["error"]["details"]["action"] == "modify"

    def test_missing_operation(self, client: TestClient, login_as, operator: Principal) -> None:
        login_as(operator)

        assert client.patch("/v1/operations/404", json={"name": "x"}).status_code == 404

    def test_restricting_without_groups_is_rejected(
        self, client: TestClient, login_as, operator: Principal, seeded
    ) -> None:
        login_as(operator)

        response = client.patch(f"/v1/operations/{seeded['public']}", json={"visibility": "GROUPS_ONLY"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "access_groups_required"

    def test_restrict_to_own_group(self, client: TestClient, login_as, operator: Principal, seeded) -> None:
        login_as(operator)

        response = client.patch(
            f"/v1/operations/{seeded['public']}",
            json={"visibility": "GROUPS_ONLY", "access_group_ids": ["g-red"]},
        )

        assert response.status_code == 200
        assert response.json()["access_groups"] == [{"id": "g-red", "name": "Red Team"}]

    def test_admin_can_modify_any_operation(self, client: TestClient, login_as, admin: Principal, seeded) -> None:
        login_as(admin)

        response = client.patch(f"/v1/operations/{seeded['blue']}", json={"description": "Reviewed"})

        assert response.status_code == 200
        assert response.json()["description"] == "Reviewed"


class TestDeleteOperation:
    def test_owner_deletes(self, client: TestClient, login_as, operator: Principal, seeded) -> None:
        login_as(operator)

        assert client.delete(f"/v1/operations/{seeded['public']}").status_code == 204
        assert client.get(f"/v1/operations/{seeded['public']}").status_code == 404

    def test_viewer_cannot_delete(self, client: TestClient, login_as, viewer: Principal, seeded) -> None:
        login_as(viewer)

        assert client.delete(f"/v1/operations/{seeded['red']}").status_code == 403

    def test_operator_cannot_delete_others(
        self, client: TestClient, login_as, other_operator: Principal, seeded
    ) -> None:
        login_as(other_operator)

        assert client.delete(f"/v1/operations/{seeded['public']}").status_code == 403
