import pytest
from fastapi.testclient import TestClient

from fakes import HOUSEHOLD_ID, PARTNER_ID, USER_ID, FakeSupabase
from homematch.core.dependencies import get_current_user
from homematch.core.rate_limit import limiter
from homematch.database.supabase_client import get_service_supabase, get_supabase
from homematch.main import app
from homematch.modules.auth.service import clear_auth_cache
from homematch.modules.couples.service import clear_all_caches


@pytest.fixture(autouse=True)
def _reset_state():
    clear_all_caches()
    clear_auth_cache()
    limiter.reset()
    yield
    app.dependency_overrides.clear()
    clear_all_caches()


@pytest.fixture
def supabase():
    return FakeSupabase(tables={
        "user_profiles": [
            {"id": USER_ID, "household_id": HOUSEHOLD_ID, "display_name": "Alex", "email": "alex@example.com"},
            {"id": PARTNER_ID, "household_id": HOUSEHOLD_ID, "display_name": "Sam", "email": "sam@example.com"},
        ],
    })


@pytest.fixture
def client(supabase):
    app.dependency_overrides[get_service_supabase] = lambda: supabase
    app.dependency_overrides[get_supabase] = lambda: supabase
    app.dependency_overrides[get_current_user] = lambda: {"id": USER_ID, "email": "alex@example.com"}
    return TestClient(app)


@pytest.fixture
def anonymous_client(supabase):
    """Real auth dependency against the fake auth API"""
    app.dependency_overrides[get_service_supabase] = lambda: supabase
    app.dependency_overrides[get_supabase] = lambda: supabase
    return TestClient(app)
