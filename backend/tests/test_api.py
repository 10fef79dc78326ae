"""Tests for the HTTP API."""

import json
import os
import pytest
import sys

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

import main
from family_service import FamilyTreeService
from storage import MemoryStorage

SAMPLE_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
    "sample-family.json"
)

NEW_MEMBER = {
    "name": "Mia Johnson",
    "age": 3,
    "designation": "Toddler",
    "relation": "Granddaughter",
    "gender": "female",
    "parentId": "3",
}


@pytest.fixture
def client():
    """API client backed by the sample family in memory."""
    main.family_service = FamilyTreeService(storage=MemoryStorage(), seed_source=SAMPLE_PATH)
    with TestClient(main.app) as test_client:
        yield test_client
    main.family_service = None


def member_ids(response):
    return [m["id"] for m in response.json()["members"]]


# ============================================================================
# Member Endpoint Tests
# ============================================================================

class TestMembers:
    """Tests for the member endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "data_loaded": True}

    def test_list_members(self, client):
        response = client.get("/members")
        assert response.status_code == 200
        assert member_ids(response) == [str(i) for i in range(1, 10)]
        assert response.json()["members"][0]["spouseId"] == "2"

    def test_get_member(self, client):
        response = client.get("/members/5")
        assert response.status_code == 200
        member = response.json()["member"]
        assert member["name"] == "Emily Carter"
        assert member["parentId"] == "1"
        assert response.json()["parent_name"] == "Robert Johnson"

    def test_get_unknown_member(self, client):
        assert client.get("/members/404").status_code == 404

    def test_potential_parents(self, client):
        assert member_ids(client.get("/members/potential-parents")) == [str(i) for i in range(1, 9)]

    def test_potential_spouses(self, client):
        assert member_ids(client.get("/members/potential-spouses", params={"relation": "Son"})) == ["4"]
        assert member_ids(client.get("/members/potential-spouses")) == ["3", "4", "7", "8", "9"]

    def test_add_member_generates_id(self, client):
        response = client.post("/members", json=NEW_MEMBER)
        assert response.status_code == 201
        member = response.json()["member"]
        assert member["id"] == "10"
        assert member["parentId"] == "3"
        assert client.get("/members/10").status_code == 200

    def test_add_member_duplicate_id(self, client):
        response = client.post("/members", json={**NEW_MEMBER, "id": "1"})
        assert response.status_code == 400

    def test_add_member_validation(self, client):
        assert client.post("/members", json={**NEW_MEMBER, "age": 0}).status_code == 422
        assert client.post("/members", json={**NEW_MEMBER, "name": ""}).status_code == 422
        missing_gender = {k: v for k, v in NEW_MEMBER.items() if k != "gender"}
        assert client.post("/members", json=missing_gender).status_code == 422

    def test_update_member(self, client):
        response = client.patch("/members/3", json={"spouseId": "4", "occupation": "Surveyor"})
        assert response.status_code == 200
        member = response.json()["member"]
        assert member["spouseId"] == "4"
        assert member["occupation"] == "Surveyor"
        assert member["name"] == "Michael Johnson"

    def test_update_unknown_member(self, client):
        assert client.patch("/members/404", json={"name": "Nobody"}).status_code == 404

    def test_update_rejects_null_required_field(self, client):
        """Test that clearing a required field of an existing member is a validation error."""
        for field in ["name", "age", "relation", "gender", "designation"]:
            response = client.patch("/members/1", json={field: None})
            assert response.status_code == 422
        assert client.get("/members/1").json()["member"]["name"] == "Robert Johnson"

    def test_update_clears_optional_field(self, client):
        response = client.patch("/members/1", json={"occupation": None, "spouseId": None})
        assert response.status_code == 200
        member = response.json()["member"]
        assert "occupation" not in member
        assert "spouseId" not in member

    def test_delete_member(self, client):
        response = client.delete("/members/3")
        assert response.status_code == 200
        assert client.get("/members/3").status_code == 404
        assert "parentId" not in client.get("/members/7").json()["member"]
        assert client.delete("/members/3").status_code == 404


# ============================================================================
# Tree and Generation Endpoint Tests
# ============================================================================

class TestTree:
    """Tests for the derived tree and generation views."""

    def test_tree(self, client):
        data = client.get("/tree").json()
        assert data["family_name"] == "Johnson Family Tree"
        assert data["root"]["id"] == "1"
        assert data["spouses"]["3"] == "4"
        assert data["spouses"]["4"] == "3"
        assert len(data["members"]) == 9

    def test_tree_hierarchy(self, client):
        hierarchy = client.get("/tree").json()["hierarchy"]
        assert hierarchy["id"] == "1"
        assert hierarchy["spouse"]["id"] == "2"
        assert [c["id"] for c in hierarchy["children"]] == ["3", "5"]
        michael = hierarchy["children"][0]
        assert michael["spouse"]["id"] == "4"
        assert [c["id"] for c in michael["children"]] == ["7", "8"]
        assert "children" not in michael["children"][0]

    def test_inferred_spouse_visible_only_in_tree(self, client):
        tree_members = {m["id"]: m for m in client.get("/tree").json()["members"]}
        assert tree_members["3"]["spouseId"] == "4"
        assert "spouseId" not in client.get("/members/3").json()["member"]

    def test_tree_follows_changes(self, client):
        client.post("/members", json=NEW_MEMBER)
        hierarchy = client.get("/tree").json()["hierarchy"]
        michael = hierarchy["children"][0]
        assert [c["id"] for c in michael["children"]] == ["7", "8", "10"]

    def test_generations(self, client):
        data = client.get("/generations").json()
        assert data["family_name"] == "Johnson Family Tree"
        levels = data["generations"]
        assert [lvl["level"] for lvl in levels] == [1, 2, 3]
        assert [[m["id"] for m in lvl["members"]] for lvl in levels] == [
            ["1", "2"], ["3", "4", "5", "6"], ["7", "8", "9"],
        ]
        assert "Son-in-law" in levels[1]["suggested_relations"]
        assert levels[2]["title"] == "🌱 Third Generation (Grandchildren)"

    def test_empty_family_uses_placeholder(self, client):
        for member_id in [str(i) for i in range(1, 10)]:
            client.delete(f"/members/{member_id}")
        data = client.get("/tree").json()
        assert data["root"]["id"] == "default"
        assert data["root"]["name"] == "Default Member"
        assert client.get("/members").json() == {"members": []}
        levels = client.get("/generations").json()["generations"]
        assert [m["id"] for m in levels[0]["members"]] == ["default"]


# ============================================================================
# Family Data Endpoint Tests
# ============================================================================

class TestFamilyData:
    """Tests for export, import and reset."""

    def test_export(self, client):
        response = client.get("/family-data/export")
        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]
        data = json.loads(response.content)
        assert len(data["familyMembers"]) == 9
        assert data["familyInfo"]["familyName"] == "Johnson Family"

    def test_import(self, client):
        payload = json.dumps({
            "familyMembers": [
                {"id": "1", "name": "Ada Lovelace", "age": 36, "relation": "Matriarch", "gender": "female"},
            ],
            "familyInfo": {"familyName": "Lovelace Family"},
        })
        response = client.post(
            "/family-data/import",
            files={"file": ("family.json", payload.encode("utf-8"), "application/json")},
        )
        assert response.status_code == 200
        assert member_ids(client.get("/members")) == ["1"]
        assert client.get("/tree").json()["root"]["name"] == "Ada Lovelace"

    def test_import_invalid(self, client):
        response = client.post(
            "/family-data/import",
            files={"file": ("family.json", b'{"members": []}', "application/json")},
        )
        assert response.status_code == 400
        assert len(client.get("/members").json()["members"]) == 9

    def test_reset(self, client):
        client.delete("/members/1")
        response = client.post("/family-data/reset")
        assert response.status_code == 200
        assert len(client.get("/members").json()["members"]) == 9


# ============================================================================
# Event Endpoint Tests
# ============================================================================

class TestEvents:

    def test_upcoming_birthdays_full_year(self, client):
        events = client.get("/events/upcoming", params={"days": 366}).json()["events"]
        assert sorted(e["member_id"] for e in events) == [str(i) for i in range(1, 10)]
        assert all(e["type"] == "birthday" for e in events)

    def test_days_out_of_range(self, client):
        assert client.get("/events/upcoming", params={"days": 400}).status_code == 422


class TestServiceUnavailable:

    def test_members_before_load(self):
        main.family_service = None
        client = TestClient(main.app)
        assert client.get("/members").status_code == 503
        assert client.get("/health").json()["data_loaded"] is False
