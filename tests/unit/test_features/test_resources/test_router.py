"""HTTP tests for the resources router."""

from __future__ import annotations

from typing import Any

from httpx import AsyncClient

BASE = "/api/resources"


async def _create(client: AsyncClient, **payload: Any) -> dict[str, Any]:
    response = await client.post(BASE, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestCrud:
    async def test_create_and_get(self, client: AsyncClient) -> None:
        created = await _create(client, uri="/api/users/{id}", resource_type="API")

        assert created["name"] == "id"
        assert created["version"] == "1.0.0"

        response = await client.get(f"{BASE}/{created['id']}")
        assert response.status_code == 200
        assert response.json()["uri"] == "/api/users/{id}"

    async def test_get_missing_is_problem_details(self, client: AsyncClient) -> None:
        response = await client.get(f"{BASE}/999")

        assert response.status_code == 404
        body = response.json()
        assert body["type"] == "not-found"
        assert body["status"] == 404
        assert body["model"] == "Resource"
        assert body["id"] == 999
        assert body["instance"] == f"{BASE}/999"
        assert "request_id" in body

    async def test_duplicate_uri_conflict(self, client: AsyncClient) -> None:
        first = await _create(client, uri="/api/users")

        response = await client.post(BASE, json={"uri": "/API/USERS"})

        assert response.status_code == 409
        body = response.json()
        assert body["type"] == "resource-uri-exists"
        assert body["conflicting_resource_id"] == first["id"]

    async def test_invalid_pattern_on_create(self, client: AsyncClient) -> None:
        response = await client.post(BASE, json={"uri": "/api/{}/x"})

        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "invalid-uri-pattern"
        assert body["errors"]

    async def test_request_validation_error(self, client: AsyncClient) -> None:
        response = await client.post(BASE, json={"uri": "/a", "version": "latest"})

        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "validation-error"
        assert any(e["field"] == "body.version" for e in body["errors"])

    async def test_update_and_detach(self, client: AsyncClient) -> None:
        parent = await _create(client, uri="/api")
        child = await _create(client, uri="/api/users", parent_resource_id=parent["id"])

        response = await client.put(
            f"{BASE}/{child['id']}",
            json={"parent_resource_id": None, "description": "Users"},
        )

        assert response.status_code == 200
        assert response.json()["parent_resource_id"] is None
        assert response.json()["description"] == "Users"

    async def test_update_cycle(self, client: AsyncClient) -> None:
        parent = await _create(client, uri="/api")
        child = await _create(client, uri="/api/users", parent_resource_id=parent["id"])

        response = await client.put(
            f"{BASE}/{parent['id']}", json={"parent_resource_id": child["id"]}
        )

        assert response.status_code == 409
        assert response.json()["type"] == "resource-hierarchy-cycle"

    async def test_delete(self, client: AsyncClient) -> None:
        parent = await _create(client, uri="/api")
        child = await _create(client, uri="/api/users", parent_resource_id=parent["id"])

        refused = await client.delete(f"{BASE}/{parent['id']}")
        assert refused.status_code == 409
        assert refused.json()["child_ids"] == [child["id"]]

        assert (await client.delete(f"{BASE}/{child['id']}")).status_code == 204
        assert (await client.delete(f"{BASE}/{parent['id']}")).status_code == 204
        assert (await client.get(f"{BASE}/{parent['id']}")).status_code == 404

    async def test_by_uri(self, client: AsyncClient) -> None:
        created = await _create(client, uri="/api/users")

        response = await client.get(f"{BASE}/by-uri", params={"uri": "/API/Users"})
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

        missing = await client.get(f"{BASE}/by-uri", params={"uri": "/nope"})
        assert missing.status_code == 404

    async def test_list_hides_inactive_by_default(self, client: AsyncClient) -> None:
        await _create(client, uri="/api/a")
        await _create(client, uri="/api/b", is_active=False)

        visible = (await client.get(BASE)).json()
        everything = (await client.get(BASE, params={"include_inactive": "true"})).json()
        inactive = (await client.get(BASE, params={"is_active": "false"})).json()

        assert [r["uri"] for r in visible["items"]] == ["/api/a"]
        assert everything["total"] == 2
        assert [r["uri"] for r in inactive["items"]] == ["/api/b"]

    async def test_list_paging(self, client: AsyncClient) -> None:
        for letter in "abc":
            await _create(client, uri=f"/api/{letter}")

        body = (await client.get(BASE, params={"page": 2, "page_size": 2})).json()

        assert body["total"] == 3
        assert body["page"] == 2
        assert body["pages"] == 2
        assert [r["uri"] for r in body["items"]] == ["/api/c"]
        assert body["has_prev"]
        assert not body["has_next"]


class TestResolution:
    async def test_resolve(self, client: AsyncClient) -> None:
        await _create(client, uri="/api/*")
        specific = await _create(client, uri="/api/users/{id}")

        body = (await client.get(f"{BASE}/resolve", params={"uri": "/api/users/42"})).json()

        assert body["matched"]
        assert body["match"]["resource"]["id"] == specific["id"]
        assert body["match"]["extracted_parameters"] == {"id": "42"}
        assert body["match"]["match_type"] == "parameter"

    async def test_resolve_without_match(self, client: AsyncClient) -> None:
        response = await client.get(f"{BASE}/resolve", params={"uri": "/nothing"})

        assert response.status_code == 200
        assert response.json() == {"uri": "/nothing", "matched": False, "match": None}

    async def test_protection_status(self, client: AsyncClient) -> None:
        await _create(client, uri="/files/*")

        body = (
            await client.get(f"{BASE}/protection-status", params={"uri": "/files/a/b"})
        ).json()

        assert body["is_protected"]
        assert body["protection_level"] == "WildcardProtected"
        assert body["risk_assessment"] == "Medium"
        assert body["security_recommendations"]

    async def test_unprotected(self, client: AsyncClient) -> None:
        body = (await client.get(f"{BASE}/protection-status", params={"uri": "/x"})).json()

        assert not body["is_protected"]
        assert body["protection_level"] == "Unprotected"
        assert body["risk_assessment"] == "Critical"
        assert body["best_match"] is None

    async def test_discover(self, client: AsyncClient) -> None:
        api = await _create(client, uri="/api")
        await _create(client, uri="/api/users", parent_resource_id=api["id"])
        await _create(client, uri="/pages")

        body = (await client.post(f"{BASE}/discover", json={"base_path": "/api"})).json()

        assert body["discovery_count"] == 2
        assert body["statistics"]["max_depth_reached"] == 1
        assert body["statistics"]["paths_scanned"] == 3

    async def test_discover_rejects_negative_depth(self, client: AsyncClient) -> None:
        response = await client.post(f"{BASE}/discover", json={"max_depth": -1})
        assert response.status_code == 422


class TestPatternTools:
    async def test_validate_invalid_pattern_is_200(self, client: AsyncClient) -> None:
        response = await client.post(f"{BASE}/patterns/validate", json={"pattern": "/api/{}/x"})

        assert response.status_code == 200
        body = response.json()
        assert not body["is_valid"]
        assert body["errors"]

    async def test_try_pattern(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{BASE}/patterns/test",
            json={"pattern": "/api/users/{id}", "test_uris": ["/api/users/1", "/api/users"]},
        )

        body = response.json()
        assert body["match_count"] == 1
        assert body["total_tests"] == 2
        assert body["match_percentage"] == 50.0

    async def test_try_invalid_pattern(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{BASE}/patterns/test", json={"pattern": "/api/{", "test_uris": ["/api/1"]}
        )

        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "invalid-uri-pattern"
        assert body["pattern"] == "/api/{"

    async def test_conflicts(self, client: AsyncClient) -> None:
        me = await _create(client, uri="/api/users/me")
        await _create(client, uri="/api/orders")

        body = (
            await client.post(f"{BASE}/patterns/conflicts", json={"pattern": "/api/users/{id}"})
        ).json()

        assert body["has_conflicts"]
        assert [r["id"] for r in body["conflicts"]] == [me["id"]]

    async def test_audit(self, client: AsyncClient) -> None:
        await _create(client, uri="/api/users")

        body = (await client.get(f"{BASE}/patterns/audit")).json()

        assert body == {"total": 1, "valid_count": 1, "invalid_count": 0, "invalid": []}


class TestHierarchy:
    async def test_hierarchy_children_ancestors(self, client: AsyncClient) -> None:
        api = await _create(client, uri="/api")
        users = await _create(client, uri="/api/users", parent_resource_id=api["id"])
        user = await _create(client, uri="/api/users/{id}", parent_resource_id=users["id"])

        tree = (await client.get(f"{BASE}/{api['id']}/hierarchy")).json()
        assert tree["descendant_count"] == 2
        assert tree["children"][0]["children"][0]["resource"]["id"] == user["id"]

        shallow = (
            await client.get(f"{BASE}/{api['id']}/hierarchy", params={"max_depth": 0})
        ).json()
        assert shallow["children"] == []
        assert shallow["has_children"]

        children = (await client.get(f"{BASE}/{api['id']}/children")).json()
        assert [c["id"] for c in children] == [users["id"]]

        ancestors = (await client.get(f"{BASE}/{user['id']}/ancestors")).json()
        assert [a["id"] for a in ancestors] == [users["id"], api["id"]]

    async def test_tree_and_duplicates(self, client: AsyncClient) -> None:
        await _create(client, uri="/api/users")
        await _create(client, uri="/pages/home")

        tree = (await client.get(f"{BASE}/tree")).json()
        assert sorted(tree["groups"]) == ["api", "pages"]
        assert tree["total"] == 2

        duplicates = (await client.get(f"{BASE}/duplicates")).json()
        assert duplicates == {"groups": [], "total_groups": 0}

    async def test_hierarchy_of_missing_resource(self, client: AsyncClient) -> None:
        response = await client.get(f"{BASE}/999/hierarchy")
        assert response.status_code == 404
