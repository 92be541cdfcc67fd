from fakes import api_error


def _vibe(property_id, created_at):
    return {"id": f"v-{property_id}", "property_id": property_id, "tagline": "Sunny corner home", "created_at": created_at}


def test_property_vibes_by_single_id(client, supabase):
    supabase.tables["property_vibes"] = [_vibe("p1", "2024-05-01"), _vibe("p2", "2024-05-02")]

    res = client.get("/api/properties/vibes?propertyId=p2")

    assert res.status_code == 200
    assert [v["property_id"] for v in res.json()["data"]] == ["p2"]


def test_property_vibes_by_id_list(client, supabase):
    supabase.tables["property_vibes"] = [_vibe("p1", "2024-05-01"), _vibe("p2", "2024-05-02"), _vibe("p3", "2024-05-03")]

    res = client.get("/api/properties/vibes?propertyIds=p1, p3,")

    assert sorted(v["property_id"] for v in res.json()["data"]) == ["p1", "p3"]


def test_property_vibes_paged_newest_first(client, supabase):
    supabase.tables["property_vibes"] = [_vibe(f"p{i}", f"2024-05-0{i}") for i in range(1, 6)]

    res = client.get("/api/properties/vibes?limit=2&offset=1")

    assert [v["property_id"] for v in res.json()["data"]] == ["p4", "p3"]


def test_property_vibes_query_error(client, supabase):
    supabase.fail("property_vibes")
    res = client.get("/api/properties/vibes")
    assert res.status_code == 500
    assert res.json()["error"] == "Failed to fetch vibes"


def test_property_vibes_require_auth(anonymous_client):
    assert anonymous_client.get("/api/properties/vibes").status_code == 401


def test_property_vibes_method_not_allowed(client):
    res = client.post("/api/properties/vibes", json={})
    assert res.status_code == 405
    assert res.json()["error"] == "Method not allowed"


def test_neighborhood_vibes_by_id(client, supabase):
    supabase.tables["neighborhood_vibes"] = [
        {"id": "n-1", "neighborhood_id": "hood-1", "tagline": "Leafy and quiet"},
        {"id": "n-2", "neighborhood_id": "hood-2", "tagline": "Nightlife central"},
    ]
    res = client.get("/api/neighborhoods/vibes?neighborhoodId=hood-2")
    assert [v["id"] for v in res.json()["data"]] == ["n-2"]


def test_neighborhood_vibes_range(client, supabase):
    supabase.tables["neighborhood_vibes"] = [{"id": f"n-{i}", "neighborhood_id": f"hood-{i}"} for i in range(5)]
    res = client.get("/api/neighborhoods/vibes?limit=2&offset=2")
    assert [v["id"] for v in res.json()["data"]] == ["n-2", "n-3"]


def test_neighborhood_vibes_missing_table(client, supabase):
    supabase.fail("neighborhood_vibes", error=api_error('relation "neighborhood_vibes" does not exist', "42P01"))
    res = client.get("/api/neighborhoods/vibes")
    assert res.status_code == 503
    assert res.json() == {"error": "Neighborhood vibes not initialized", "code": "SERVICE_UNAVAILABLE"}


def test_neighborhood_vibes_other_error(client, supabase):
    supabase.fail("neighborhood_vibes")
    res = client.get("/api/neighborhoods/vibes")
    assert res.status_code == 500
    assert res.json()["error"] == "Failed to fetch neighborhood vibes"
