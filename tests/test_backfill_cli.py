import json

import pytest

from fakes import VALID_VIBES_OUTPUT, FakeOpenRouter, FakeSupabase
from homematch.database import supabase_client
from homematch.modules.vibes.backfill import BackfillArgs, BackfillFailure, BackfillResult, VibesBackfill
from homematch.modules.vibes.service import VibesService
from homematch.scripts import backfill_vibes, backfill_vibes_resume


def test_defaults():
    args = backfill_vibes.parse_args([])
    assert args == BackfillArgs(limit=10, batch_size=10, delay_ms=1500, min_images=10, image_delay_ms=600, offset=0)


def test_all_removes_the_limit_unless_limit_is_given():
    assert backfill_vibes.parse_args(["--all"]).limit is None
    assert backfill_vibes.parse_args(["--all", "--limit=5"]).limit == 5


def test_flags_in_both_spellings():
    args = backfill_vibes.parse_args([
        "--force", "--refreshImages=true", "--forceImages=false",
        "--batchSize=3", "--delayMs=0", "--minImages=4", "--imageDelayMs=100",
        "--propertyIds=a, b,,c", "--offset=20",
    ])
    assert args.force is True
    assert args.refresh_images is True
    assert args.force_images is False
    assert (args.batch_size, args.delay_ms, args.min_images, args.image_delay_ms) == (3, 0, 4, 100)
    assert args.property_ids == ["a", "b", "c"]
    assert args.offset == 20


@pytest.mark.parametrize("argv", [["--limit=0"], ["--offset=-1"], ["--force=maybe"]])
def test_rejects_bad_values(argv):
    with pytest.raises(SystemExit):
        backfill_vibes.parse_args(argv)


def test_safe_host():
    assert backfill_vibes.safe_host("https://abc.supabase.co/rest/v1") == "abc.supabase.co"
    assert backfill_vibes.safe_host(None) == ""


def test_report_is_written_twice(tmp_path):
    result = BackfillResult(attempted=2, success=1, failed=1, nextOffset=7, failures=[
        BackfillFailure(propertyId="p1", zpid="123", error="boom", code="VibesGenerationError"),
    ])
    report = backfill_vibes.build_report(
        BackfillArgs(property_ids=["x", "y"]), result, ".env.local", "abc.supabase.co", "2024-06-01T12:00:00.5+00:00"
    )

    backfill_vibes.write_report(report, tmp_path / ".logs")

    latest = json.loads((tmp_path / ".logs" / "backfill-vibes-report.json").read_text())
    assert latest["args"]["propertyIdsCount"] == 2
    assert latest["nextOffset"] == 7
    assert latest["failures"][0] == {"propertyId": "p1", "zpid": "123", "error": "boom", "code": "VibesGenerationError"}
    assert (tmp_path / ".logs" / "backfill-vibes-report-2024-06-01T12-00-00-5+00-00.json").exists()


def test_main_exits_1_without_openrouter_key(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    assert backfill_vibes.main(["--limit=1"]) == 1


def test_main_exits_1_on_invalid_property_ids(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENROUTER_API_KEY", "key")
    assert backfill_vibes.main(["--propertyIds=nope"]) == 1


def test_main_runs_backfill_and_writes_report(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ENV_FILE", raising=False)
    monkeypatch.setenv("OPENROUTER_API_KEY", "key")
    monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")
    supabase = FakeSupabase(tables={"properties": [{
        "id": "00000000-0000-4000-8000-000000000001",
        "zpid": "1001",
        "address": "1 Main St",
        "price": 400000,
        "images": ["https://photos.zillowstatic.com/fp/1.jpg"],
        "created_at": "2024-05-01T10:00:00+00:00",
    }]})
    clients = []
    monkeypatch.setattr(supabase_client, "create_client", lambda url, key: clients.append((url, key)) or supabase)
    monkeypatch.setattr(
        backfill_vibes, "OpenRouterClient", lambda **kwargs: FakeOpenRouter(default=json.dumps(VALID_VIBES_OUTPUT))
    )

    assert backfill_vibes.main(["--delayMs=0"]) == 0

    assert clients == [("https://abc.supabase.co", "service")]
    report = json.loads((tmp_path / ".logs" / "backfill-vibes-report.json").read_text())
    assert report["success"] == 1
    assert report["supabaseHost"] == "abc.supabase.co"
    assert report["envFile"] == ".env.local"
    assert len(supabase.rows("property_vibes")) == 1


def _listing(n, **overrides):
    row = {
        "id": f"00000000-0000-4000-8000-{n:012d}",
        "zpid": str(1000 + n),
        "address": f"{n} Main St",
        "price": 400000 + n,
        "images": [f"https://photos.zillowstatic.com/fp/{n}.jpg"],
        "created_at": f"2024-05-{n:02d}T10:00:00+00:00",
    }
    row.update(overrides)
    return row


def _resume(supabase, argv, cursor_path, supabase_host="abc.supabase.co"):
    backfill = VibesBackfill(
        supabase,
        VibesService(FakeOpenRouter(default=json.dumps(VALID_VIBES_OUTPUT)), sleep=lambda s: None),
        sleep=lambda s: None,
    )
    args = backfill_vibes_resume.parse_args(["--delayMs=0"] + argv)
    return backfill_vibes_resume.resume_backfill(
        backfill, args, cursor_path, ".env.local", supabase_host, sleep=lambda s: None
    )


def test_resume_defaults_and_full_refresh():
    args = backfill_vibes_resume.parse_args([])
    assert args.backfill.limit == 200
    assert args.backfill.min_price == 100000
    assert args.cursor is False

    full = backfill_vibes_resume.parse_args(["--fullRefresh", "--minPrice=250000"])
    assert (full.backfill.force, full.backfill.refresh_images) == (True, True)
    assert full.backfill.min_images == 30
    assert full.backfill.min_price == 250000
    assert full.cursor is True

    assert backfill_vibes_resume.parse_args(["--fullRefresh", "--minImages=5"]).backfill.min_images == 5
    assert backfill_vibes_resume.parse_args(["--force", "--cursor=false"]).cursor is False


def test_resume_without_cursor_runs_until_nothing_is_left(tmp_path):
    supabase = FakeSupabase(tables={"properties": [_listing(n) for n in range(1, 6)]})

    outcome = _resume(supabase, ["--limit=2"], tmp_path / "state.json")

    assert outcome.runs == 4
    assert outcome.totals.success == 5
    assert outcome.final_offset is None
    assert len(supabase.rows("property_vibes")) == 5
    assert not (tmp_path / "state.json").exists()


def test_resume_cursor_advances_and_is_saved(tmp_path):
    supabase = FakeSupabase(tables={"properties": [_listing(n) for n in range(1, 6)]})
    state_path = tmp_path / "state.json"

    outcome = _resume(supabase, ["--limit=2", "--force"], state_path)

    assert outcome.runs == 4
    assert outcome.totals.attempted == 5
    assert outcome.final_offset == 5
    state = json.loads(state_path.read_text())
    assert (state["version"], state["mode"], state["offset"]) == (1, "offset", 5)
    assert state["supabaseHost"] == "abc.supabase.co"
    assert state["minPrice"] == 100000


def test_resume_stops_after_repeated_failures(tmp_path):
    supabase = FakeSupabase(tables={"properties": [_listing(1, images=[])]})

    outcome = _resume(supabase, ["--limit=2", "--stopAfterNoSuccessRuns=3"], tmp_path / "state.json")

    assert outcome.runs == 3
    assert outcome.totals.failed == 3
    assert len(outcome.failures) == 3


def test_resume_respects_max_runs(tmp_path):
    supabase = FakeSupabase(tables={"properties": [_listing(n) for n in range(1, 6)]})

    outcome = _resume(supabase, ["--limit=1", "--maxRuns=2"], tmp_path / "state.json")

    assert outcome.runs == 2
    assert outcome.totals.success == 2


def test_cursor_resets_for_another_project_or_price_floor(tmp_path):
    state_path = tmp_path / "state.json"
    backfill_vibes_resume.write_cursor_state(state_path, 40, ".env.prod", "abc.supabase.co", 100000)
    args = backfill_vibes_resume.parse_args(["--force"])

    assert backfill_vibes_resume.starting_offset(args, state_path, "abc.supabase.co") == 40
    assert backfill_vibes_resume.starting_offset(args, state_path, "other.supabase.co") == 0

    cheaper = backfill_vibes_resume.parse_args(["--force", "--minPrice=50000"])
    assert backfill_vibes_resume.starting_offset(cheaper, state_path, "abc.supabase.co") == 0

    reset = backfill_vibes_resume.parse_args(["--force", "--resetCursor"])
    assert backfill_vibes_resume.starting_offset(reset, state_path, "abc.supabase.co") == 0


def test_unreadable_cursor_state_is_ignored(tmp_path):
    state_path = tmp_path / "state.json"
    state_path.write_text("{not json")
    assert backfill_vibes_resume.read_cursor_state(state_path) is None

    state_path.write_text(json.dumps({"version": 2, "mode": "offset", "offset": 10}))
    assert backfill_vibes_resume.read_cursor_state(state_path) is None


def test_resume_main_writes_report_state_and_log(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ENV_FILE", raising=False)
    monkeypatch.setenv("OPENROUTER_API_KEY", "key")
    monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")
    supabase = FakeSupabase(tables={"properties": [_listing(1)]})
    monkeypatch.setattr(supabase_client, "create_client", lambda url, key: supabase)
    monkeypatch.setattr(
        backfill_vibes, "OpenRouterClient", lambda **kwargs: FakeOpenRouter(default=json.dumps(VALID_VIBES_OUTPUT))
    )

    assert backfill_vibes_resume.main(["--force", "--limit=1", "--delayMs=0"]) == 0

    report = json.loads((tmp_path / ".logs" / "backfill-vibes-resume-report.json").read_text())
    assert report["runs"] == 2
    assert report["totals"]["success"] == 1
    assert report["args"]["finalOffset"] == 1
    state = json.loads((tmp_path / ".logs" / "backfill-vibes-resume-state.json").read_text())
    assert state["offset"] == 1
    assert (tmp_path / ".logs" / "backfill-vibes-resume.log").exists()


def test_resume_main_exits_1_without_openrouter_key(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ENV_FILE", raising=False)
    monkeypatch.setenv("OPENROUTER_API_KEY", "  ")
    assert backfill_vibes_resume.main(["--limit=1"]) == 1
