from fakes import HOUSEHOLD_ID, PARTNER_ID, USER_ID

PROPERTY_ID = "7c1f3b1e-5d2a-4c3b-9e8f-0a1b2c3d4e5f"

MUTUAL_ROW = {
    "property_id": PROPERTY_ID,
    "liked_by_count": 2,
    "first_liked_at": "2024-05-01T10:00:00+00:00",
    "last_liked_at": "2024-05-02T10:00:00+00:00",
    "user_ids": [USER_ID, PARTNER_ID],
}


def test_mutual_likes_include_properties_by_default(client, supabase):
    supabase.rpc_results["get_household_mutual_likes"] = [MUTUAL_ROW]
    supabase.tables["properties"] = [{"id": PROPERTY_ID, "address": "1 Main St"}]

    res = client.get("/api/couples/mutual-likes")

    assert res.status_code == 200
    body = res.json()
    assert body["mutualLikes"][0]["property"]["address"] == "1 Main St"
    assert body["performance"]["cached"] is False
    assert body["performance"]["count"] == 1

    again = client.get("/api/couples/mutual-likes?includeProperties=false").json()
    assert "property" not in again["mutualLikes"][0]
    assert again["performance"]["cached"] is True


def test_activity_clamps_limit(client, supabase):
    supabase.rpc_results["get_household_activity_enhanced"] = []

    res = client.get("/api/couples/activity?limit=1000&offset=-5")

    assert res.status_code == 200
    assert res.json()["activity"] == []
    assert supabase.rpc_calls[0][1] == {"p_household_id": HOUSEHOLD_ID, "p_limit": 100, "p_offset": 0}


def test_stats_404_without_household(client, supabase):
    supabase.tables["user_profiles"][0]["household_id"] = None
    res = client.get("/api/couples/stats")
    assert res.status_code == 404
    assert res.json()["error"] == "Household not found or no statistics available"


def test_stats(client, supabase):
    res = client.get("/api/couples/stats")
    assert res.status_code == 200
    assert res.json()["stats"]["total_mutual_likes"] == 0


def test_check_mutual_requires_property_id(client):
    res = client.get("/api/couples/check-mutual")
    assert res.status_code == 400
    assert res.json()["error"] == "Property ID is required"


def test_check_mutual(client, supabase):
    supabase.rpc_results["get_household_mutual_likes"] = [MUTUAL_ROW]
    res = client.get(f"/api/couples/check-mutual?propertyId={PROPERTY_ID}")
    assert res.status_code == 200
    assert res.json()["isMutual"] is True
    assert res.json()["partnerName"] == "Sam"


def test_notify_reports_mutual_like(client, supabase):
    supabase.tables["user_property_interactions"] = [{
        "id": "i-1", "user_id": PARTNER_ID, "property_id": PROPERTY_ID,
        "household_id": HOUSEHOLD_ID, "interaction_type": "like",
        "created_at": "2024-05-01T10:00:00Z",
    }]

    res = client.post("/api/couples/notify", json={"propertyId": PROPERTY_ID, "interactionType": "like"})

    assert res.status_code == 200
    assert res.json() == {
        "success": True,
        "mutual_like_created": True,
        "notification_sent": True,
        "partner_user_id": PARTNER_ID,
    }


def test_notify_rejects_bad_payload(client):
    res = client.post("/api/couples/notify", json={"propertyId": "not-a-uuid", "interactionType": "like"})
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid request data"
    assert res.json()["details"]


def test_disputed_round_trip(client, supabase):
    supabase.tables["user_property_interactions"] = [
        {"id": "a", "user_id": USER_ID, "property_id": PROPERTY_ID, "household_id": HOUSEHOLD_ID,
         "interaction_type": "like", "created_at": "2024-05-02T10:00:00Z", "properties": None},
        {"id": "b", "user_id": PARTNER_ID, "property_id": PROPERTY_ID, "household_id": HOUSEHOLD_ID,
         "interaction_type": "dislike", "created_at": "2024-05-01T10:00:00Z", "properties": None},
    ]

    listed = client.get("/api/couples/disputed").json()
    assert listed["disputedProperties"][0]["property"]["address"] == "Unknown Address"

    res = client.patch(
        "/api/couples/disputed",
        json={"property_id": PROPERTY_ID, "resolution_type": "discussion_needed"},
    )
    assert res.status_code == 200
    assert res.json()["resolution_type"] == "discussion_needed"
    assert client.get("/api/couples/disputed").json()["disputedProperties"] == []


def test_disputed_resolution_validates_type(client):
    res = client.patch("/api/couples/disputed", json={"property_id": PROPERTY_ID, "resolution_type": "maybe"})
    assert res.status_code == 400


def test_unsupported_method(client):
    res = client.delete("/api/couples/stats")
    assert res.status_code == 405
    assert res.json()["error"] == "Method not allowed"
