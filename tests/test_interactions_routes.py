import base64
import json

from fakes import HOUSEHOLD_ID, PARTNER_ID, USER_ID, api_error
from homematch.config.settings import settings
from homematch.modules.couples import service as couples_service

PROPERTY_ID = "7c1f3b1e-5d2a-4c3b-9e8f-0a1b2c3d4e5f"


def _interaction(property_id, interaction_type, created_at, user_id=USER_ID):
    return {
        "id": f"{user_id}-{property_id}",
        "user_id": user_id,
        "property_id": property_id,
        "household_id": HOUSEHOLD_ID,
        "interaction_type": interaction_type,
        "created_at": created_at,
        "property": {"id": property_id, "address": f"{property_id} Main St"},
    }


def test_record_replaces_previous_interaction(client, supabase):
    supabase.tables["user_property_interactions"] = [_interaction(PROPERTY_ID, "skip", "2024-05-01T10:00:00Z")]

    res = client.post("/api/interactions", json={"propertyId": PROPERTY_ID, "type": "like"})

    assert res.status_code == 200
    interaction = res.json()["interaction"]
    assert interaction["interaction_type"] == "like"
    assert interaction["household_id"] == HOUSEHOLD_ID
    rows = supabase.rows("user_property_interactions")
    assert [r["interaction_type"] for r in rows] == ["like"]


def test_record_clears_household_caches(client, supabase):
    couples_service.mutual_likes_cache.set(HOUSEHOLD_ID, [])
    client.post("/api/interactions", json={"propertyId": PROPERTY_ID, "type": "like"})
    assert couples_service.mutual_likes_cache.get(HOUSEHOLD_ID) is None


def test_record_keeps_previous_interaction_when_household_lookup_fails(client, supabase):
    supabase.tables["user_property_interactions"] = [_interaction(PROPERTY_ID, "like", "2024-05-01T10:00:00Z")]
    supabase.fail("user_profiles")

    res = client.post("/api/interactions", json={"propertyId": PROPERTY_ID, "type": "view"})

    assert res.status_code == 500
    assert res.json()["error"] == "Failed to record interaction"
    assert [r["interaction_type"] for r in supabase.rows("user_property_interactions")] == ["like"]


def test_record_insert_failure(client, supabase):
    supabase.fail("user_property_interactions", "insert")
    res = client.post("/api/interactions", json={"propertyId": PROPERTY_ID, "type": "view"})
    assert res.status_code == 500
    assert res.json()["error"] == "Failed to record interaction"


def test_record_rejects_unknown_type(client):
    res = client.post("/api/interactions", json={"propertyId": PROPERTY_ID, "type": "love"})
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid request data"


def test_summary_counts_categories(client, supabase):
    supabase.rpc_results["get_user_interaction_summary"] = [
        {"interaction_type": "like", "count": 3},
        {"interaction_type": "skip", "count": 2},
        {"interaction_type": "dislike", "count": 1},
    ]
    res = client.get("/api/interactions?type=summary")
    assert res.status_code == 200
    assert res.json() == {"liked": 3, "passed": 3, "viewed": 0}


def test_summary_failure(client, supabase):
    supabase.rpc_results["get_user_interaction_summary"] = api_error()
    res = client.get("/api/interactions?type=summary")
    assert res.status_code == 500
    assert res.json()["error"] == "Failed to fetch summary"


def test_list_requires_valid_type(client):
    assert client.get("/api/interactions").json()["error"] == "Missing type query parameter"
    res = client.get("/api/interactions?type=loved")
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid type parameter"


def test_list_paginates_by_created_at(client, supabase):
    supabase.tables["user_property_interactions"] = [
        _interaction("p1", "like", "2024-05-01T10:00:00Z"),
        _interaction("p2", "like", "2024-05-02T10:00:00Z"),
        _interaction("p3", "like", "2024-05-03T10:00:00Z"),
        _interaction("p4", "skip", "2024-05-04T10:00:00Z"),
        _interaction("p5", "like", "2024-05-05T10:00:00Z", user_id=PARTNER_ID),
    ]

    first = client.get("/api/interactions?type=liked&limit=2").json()
    assert [item["id"] for item in first["items"]] == ["p3", "p2"]
    assert first["nextCursor"] == "2024-05-02T10:00:00Z"

    second = client.get(f"/api/interactions?type=liked&limit=2&cursor={first['nextCursor']}").json()
    assert [item["id"] for item in second["items"]] == ["p1"]
    assert second["nextCursor"] is None

    passed = client.get("/api/interactions?type=passed").json()
    assert [item["id"] for item in passed["items"]] == ["p4"]


def test_delete_interaction(client, supabase):
    supabase.tables["user_property_interactions"] = [_interaction(PROPERTY_ID, "like", "2024-05-01T10:00:00Z")]
    couples_service.household_stats_cache.set(HOUSEHOLD_ID, "stats")

    res = client.delete(f"/api/interactions?propertyId={PROPERTY_ID}")

    assert res.json() == {"success": True}
    assert supabase.rows("user_property_interactions") == []
    assert couples_service.household_stats_cache.get(HOUSEHOLD_ID) is None


def test_delete_requires_property_id(client):
    assert client.delete("/api/interactions").status_code == 400


def test_reset_deletes_only_own_interactions(client, supabase):
    supabase.tables["user_property_interactions"] = [
        _interaction("p1", "like", "2024-05-01T10:00:00Z"),
        _interaction("p2", "view", "2024-05-02T10:00:00Z"),
        _interaction("p3", "like", "2024-05-03T10:00:00Z", user_id=PARTNER_ID),
    ]

    res = client.delete("/api/interactions/reset")

    assert res.json() == {"success": True, "deleted": 2}
    assert [r["id"] for r in supabase.rows("user_property_interactions")] == [f"{PARTNER_ID}-p3"]


def test_requires_authentication(anonymous_client):
    res = anonymous_client.get("/api/interactions?type=summary")
    assert res.status_code == 401
    assert res.json() == {"error": "Unauthorized", "code": "UNAUTHORIZED"}


def test_bearer_token_is_resolved_through_auth(anonymous_client, supabase):
    supabase.auth.users["token-1"] = {"id": USER_ID, "email": "alex@example.com"}

    headers = {"Authorization": "Bearer token-1"}
    assert anonymous_client.get("/api/interactions?type=summary", headers=headers).status_code == 200
    assert anonymous_client.get("/api/interactions?type=summary", headers=headers).status_code == 200
    assert supabase.auth.calls == 1

    assert anonymous_client.get(
        "/api/interactions?type=summary", headers={"Authorization": "Bearer nope"}
    ).status_code == 401


def test_session_cookie_is_accepted(anonymous_client, supabase):
    supabase.auth.users["cookie-token"] = {"id": USER_ID}
    res = anonymous_client.get("/api/interactions?type=summary", headers={"Cookie": "sb-access-token=cookie-token"})
    assert res.status_code == 200


def test_interaction_writes_are_rate_limited(client):
    allowed = int(settings.interactions_rate_limit.split("/")[0])
    statuses = [
        client.post("/api/interactions", json={"propertyId": PROPERTY_ID, "type": "view"}).status_code
        for _ in range(allowed + 1)
    ]
    assert statuses[:allowed] == [200] * allowed
    assert statuses[allowed] == 429
    assert client.post(
        "/api/interactions", json={"propertyId": PROPERTY_ID, "type": "view"}
    ).json()["error"] == "Too many requests. Please try again later."


def _session_cookie(session):
    encoded = base64.urlsafe_b64encode(json.dumps(session).encode()).decode().rstrip("=")
    return f"base64-{encoded}"


def test_chunked_supabase_auth_cookie_is_accepted(anonymous_client, supabase):
    supabase.auth.users["real-jwt"] = {"id": USER_ID}
    value = _session_cookie({"access_token": "real-jwt", "refresh_token": "r", "token_type": "bearer"})
    cookie = f"sb-abcdefgh-auth-token.1={value[20:]}; sb-abcdefgh-auth-token.0={value[:20]}"

    res = anonymous_client.get("/api/interactions?type=summary", headers={"Cookie": cookie})

    assert res.status_code == 200


def test_unchunked_supabase_auth_cookie_forms(anonymous_client, supabase):
    supabase.auth.users["real-jwt"] = {"id": USER_ID}
    for value in (_session_cookie({"access_token": "real-jwt"}), "real-jwt"):
        res = anonymous_client.get(
            "/api/interactions?type=summary", headers={"Cookie": f"sb-abcdefgh-auth-token={value}"}
        )
        assert res.status_code == 200


def test_unreadable_auth_cookie_is_unauthorized(anonymous_client):
    res = anonymous_client.get(
        "/api/interactions?type=summary", headers={"Cookie": "sb-abcdefgh-auth-token=base64-%%%"}
    )
    assert res.status_code == 401
