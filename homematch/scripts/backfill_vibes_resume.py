#!/usr/bin/env python3
"""
Resume-friendly vibes backfill.

Runs the backfill repeatedly, one page of --limit properties at a time, until a
run attempts nothing or the job looks stuck (several runs in a row with
failures and no successes).

Usage:
    ENV_FILE=.env.prod python -m homematch.scripts.backfill_vibes_resume --limit=200
    ENV_FILE=.env.prod python -m homematch.scripts.backfill_vibes_resume --limit=200 --fullRefresh

Options (on top of the backfill-vibes ones):
    --fullRefresh               force + refreshImages, minImages defaults to 30
    --minPrice=100000           Skip listings priced below this
    --maxRuns=9999              Upper bound on backfill runs
    --pauseMs=0                 Pause between runs
    --stopAfterNoSuccessRuns=3  Stop after this many consecutive runs with only failures
    --logFile=.logs/backfill-vibes-resume.log
    --cursor                    Persist the row offset between runs and invocations
                                (on by default for force/refresh modes)
    --resetCursor               Start the cursor over at offset 0
    --cursorFile=.logs/backfill-vibes-resume-state.json

Without the cursor every run starts at offset 0 and relies on the source hash
to skip properties that already have current vibes.
"""
import argparse
import json
import logging
import os
import sys
import time
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv

from homematch.config.settings import Settings
from homematch.modules.vibes.backfill import DEFAULT_MIN_PRICE, BackfillArgs, BackfillFailure, VibesBackfill
from homematch.scripts.backfill_vibes import (
    build_backfill, non_negative_int, positive_int, safe_host, str2bool, write_report
)

logger = logging.getLogger("backfill_vibes_resume")

LOG_PREFIX = "[backfill-vibes-resume]"
DEFAULT_LIMIT = 200
FULL_REFRESH_MIN_IMAGES = 30
REPORT_NAME = "backfill-vibes-resume-report"
DEFAULT_LOG_FILE = os.path.join(".logs", "backfill-vibes-resume.log")
DEFAULT_CURSOR_FILE = os.path.join(".logs", "backfill-vibes-resume-state.json")
CURSOR_VERSION = 1


@dataclass
class ResumeArgs:
    backfill: BackfillArgs
    full_refresh: bool = False
    max_runs: int = 9999
    pause_ms: int = 0
    stop_after_no_success_runs: int = 3
    log_file: str = DEFAULT_LOG_FILE
    cursor: bool = False
    reset_cursor: bool = False
    cursor_file: str = DEFAULT_CURSOR_FILE

    @property
    def uses_cursor(self) -> bool:
        # a single --all run has nothing to resume
        return self.cursor and self.backfill.limit is not None


@dataclass
class ResumeTotals:
    attempted: int = 0
    skipped: int = 0
    success: int = 0
    failed: int = 0
    totalCostUsd: float = 0.0
    totalTimeMs: int = 0


@dataclass
class ResumeOutcome:
    runs: int = 0
    totals: ResumeTotals = field(default_factory=ResumeTotals)
    failures: List[BackfillFailure] = field(default_factory=list)
    final_offset: Optional[int] = None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backfill-vibes-resume",
        description="Run the vibes backfill repeatedly until every property has current vibes",
    )
    flag = dict(type=str2bool, nargs="?", const=True)
    parser.add_argument("--limit", type=positive_int, default=None, help="Properties per run (default 200)")
    parser.add_argument("--all", default=False, **flag)
    parser.add_argument("--batchSize", dest="batch_size", type=positive_int, default=10)
    parser.add_argument("--delayMs", dest="delay_ms", type=non_negative_int, default=1500)
    parser.add_argument("--fullRefresh", dest="full_refresh", default=False, **flag)
    parser.add_argument("--force", default=False, **flag)
    parser.add_argument("--refreshImages", dest="refresh_images", default=False, **flag)
    parser.add_argument("--forceImages", dest="force_images", default=False, **flag)
    parser.add_argument("--minImages", dest="min_images", type=non_negative_int, default=None)
    parser.add_argument("--imageDelayMs", dest="image_delay_ms", type=non_negative_int, default=600)
    parser.add_argument("--minPrice", dest="min_price", type=non_negative_int, default=DEFAULT_MIN_PRICE)
    parser.add_argument("--maxRuns", dest="max_runs", type=positive_int, default=9999)
    parser.add_argument("--pauseMs", dest="pause_ms", type=non_negative_int, default=0)
    parser.add_argument("--stopAfterNoSuccessRuns", dest="stop_after_no_success_runs", type=positive_int, default=3)
    parser.add_argument("--logFile", dest="log_file", default=DEFAULT_LOG_FILE)
    parser.add_argument("--cursor", default=None, **flag)
    parser.add_argument("--resetCursor", dest="reset_cursor", default=False, **flag)
    parser.add_argument("--cursorFile", dest="cursor_file", default=DEFAULT_CURSOR_FILE)
    return parser


def parse_args(argv: Optional[List[str]] = None) -> ResumeArgs:
    ns = build_parser().parse_args(argv)
    if ns.limit is not None:
        limit = ns.limit
    else:
        limit = None if ns.all else DEFAULT_LIMIT

    force, refresh_images, min_images = ns.force, ns.refresh_images, ns.min_images
    if ns.full_refresh:
        force = True
        refresh_images = True
        if min_images is None:
            min_images = FULL_REFRESH_MIN_IMAGES
    if min_images is None:
        min_images = 10

    cursor = ns.cursor
    if cursor is None:
        cursor = ns.full_refresh or force or refresh_images or ns.force_images

    return ResumeArgs(
        backfill=BackfillArgs(
            limit=limit,
            batch_size=ns.batch_size,
            delay_ms=ns.delay_ms,
            force=force,
            refresh_images=refresh_images,
            force_images=ns.force_images,
            min_images=min_images,
            image_delay_ms=ns.image_delay_ms,
            min_price=ns.min_price,
        ),
        full_refresh=ns.full_refresh,
        max_runs=ns.max_runs,
        pause_ms=ns.pause_ms,
        stop_after_no_success_runs=ns.stop_after_no_success_runs,
        log_file=ns.log_file.strip() or DEFAULT_LOG_FILE,
        cursor=cursor,
        reset_cursor=ns.reset_cursor,
        cursor_file=ns.cursor_file.strip() or DEFAULT_CURSOR_FILE,
    )


# Cursor state

def read_cursor_state(path: Path) -> Optional[Dict[str, Any]]:
    """Saved offset cursor, or None when missing, unreadable or of another version"""
    try:
        state = json.loads(path.read_text())
    except (OSError, ValueError):
        return None
    if not isinstance(state, dict) or state.get("version") != CURSOR_VERSION or state.get("mode") != "offset":
        return None

    def non_negative(value: Any) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError):
            return 0
        return number if number >= 0 else 0

    return {
        "version": CURSOR_VERSION,
        "mode": "offset",
        "offset": non_negative(state.get("offset")),
        "envFile": str(state.get("envFile") or ""),
        "supabaseHost": str(state.get("supabaseHost") or ""),
        "minPrice": non_negative(state.get("minPrice")),
        "updatedAt": str(state.get("updatedAt") or ""),
    }


def write_cursor_state(path: Path, offset: int, env_file: str, supabase_host: str, min_price: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({
        "version": CURSOR_VERSION,
        "mode": "offset",
        "offset": offset,
        "envFile": env_file,
        "supabaseHost": supabase_host,
        "minPrice": min_price,
        "updatedAt": datetime.now(timezone.utc).isoformat(),
    }, indent=2))


def starting_offset(args: ResumeArgs, path: Path, supabase_host: str) -> int:
    """Offset to resume from; a cursor saved for another project or price floor starts over"""
    saved = read_cursor_state(path)
    mismatch = saved is not None and (
        saved["supabaseHost"] != supabase_host or saved["minPrice"] != args.backfill.min_price
    )
    if mismatch:
        logger.warning(
            f"{LOG_PREFIX} Cursor mismatch (stateHost={saved['supabaseHost'] or 'unknown'} "
            f"stateMinPrice={saved['minPrice']}); resetting offset to 0"
        )
    if args.reset_cursor or mismatch or saved is None:
        return 0
    return saved["offset"]


# Runner

def resume_backfill(
    backfill: VibesBackfill,
    args: ResumeArgs,
    cursor_path: Path,
    env_file: str,
    supabase_host: str,
    sleep: Callable[[float], None] = time.sleep,
) -> ResumeOutcome:
    """Repeat backfill runs until nothing is attempted, the cursor stalls, or runs keep failing"""
    outcome = ResumeOutcome()
    cursor_offset = 0

    if args.uses_cursor:
        cursor_offset = starting_offset(args, cursor_path, supabase_host)
        write_cursor_state(cursor_path, cursor_offset, env_file, supabase_host, args.backfill.min_price)
        logger.info(f"{LOG_PREFIX} Cursor enabled (offset={cursor_offset}, file={cursor_path})")
    elif args.cursor:
        logger.warning(f"{LOG_PREFIX} --cursor ignored for --all (single run)")

    no_success_runs = 0
    while outcome.runs < args.max_runs:
        outcome.runs += 1
        run_offset = cursor_offset if args.uses_cursor else 0
        logger.info(
            f"{LOG_PREFIX} Run {outcome.runs}/{args.max_runs} (limit={args.backfill.limit or 'all'}"
            + (f", offset={run_offset})" if args.uses_cursor else ")")
        )

        backfill_args = replace(args.backfill, offset=run_offset, property_ids=None)
        result = backfill.run(backfill_args)

        totals = outcome.totals
        totals.attempted += result.attempted
        totals.skipped += result.skipped
        totals.success += result.success
        totals.failed += result.failed
        totals.totalCostUsd += result.totalCostUsd
        totals.totalTimeMs += result.totalTimeMs
        outcome.failures.extend(result.failures)

        if args.uses_cursor:
            previous = cursor_offset
            if result.nextOffset is not None:
                cursor_offset = result.nextOffset
            if result.attempted > 0 and cursor_offset == previous:
                logger.warning(
                    f"{LOG_PREFIX} Cursor did not advance (offset={cursor_offset}); "
                    "stopping to avoid reprocessing the same page."
                )
                break
            write_cursor_state(cursor_path, cursor_offset, env_file, supabase_host, args.backfill.min_price)
            logger.info(f"{LOG_PREFIX} Cursor advanced to offset={cursor_offset}")

        if args.backfill.limit is None:
            break
        if result.attempted == 0:
            logger.info(f"{LOG_PREFIX} Nothing left to process.")
            break

        if result.success == 0 and result.failed > 0:
            no_success_runs += 1
            logger.warning(
                f"{LOG_PREFIX} No successes this run ({no_success_runs}/{args.stop_after_no_success_runs})"
            )
            if no_success_runs >= args.stop_after_no_success_runs:
                logger.warning(f"{LOG_PREFIX} Stopping due to repeated no-success runs (likely stuck failures).")
                break
        else:
            no_success_runs = 0

        if args.pause_ms > 0:
            sleep(args.pause_ms / 1000)

    if args.uses_cursor:
        outcome.final_offset = cursor_offset
    return outcome


def build_report(args: ResumeArgs, outcome: ResumeOutcome, env_file: str, supabase_host: str,
                 cursor_path: Path, wall_time_ms: int, finished_at: str) -> dict:
    backfill = args.backfill
    return {
        "finishedAt": finished_at,
        "envFile": env_file,
        "supabaseHost": supabase_host,
        "args": {
            "limit": backfill.limit,
            "batchSize": backfill.batch_size,
            "delayMs": backfill.delay_ms,
            "fullRefresh": args.full_refresh,
            "force": backfill.force,
            "refreshImages": backfill.refresh_images,
            "forceImages": backfill.force_images,
            "minImages": backfill.min_images,
            "imageDelayMs": backfill.image_delay_ms,
            "minPrice": backfill.min_price,
            "cursor": args.cursor,
            "cursorFile": str(cursor_path),
            "finalOffset": outcome.final_offset,
            "maxRuns": args.max_runs,
            "pauseMs": args.pause_ms,
            "stopAfterNoSuccessRuns": args.stop_after_no_success_runs,
        },
        "runs": outcome.runs,
        "totals": asdict(outcome.totals),
        "wallTimeMs": wall_time_ms,
        "failures": [asdict(f) for f in outcome.failures],
    }


def load_environment() -> str:
    """ENV_FILE (default .env.local) wins; API keys may still come from .env.local, then .env"""
    env_file = os.getenv("ENV_FILE", ".env.local")
    load_dotenv(env_file, override=True)
    for key in ("OPENROUTER_API_KEY", "RAPIDAPI_KEY"):
        if key in os.environ and not os.environ[key].strip():
            del os.environ[key]
    if env_file != ".env.local":
        load_dotenv(".env.local")
    load_dotenv()
    return env_file


def _add_file_handler(log_file: str) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"))
    logging.getLogger().addHandler(handler)
    logger.info(f"{LOG_PREFIX} Logging to {log_file}")
    return handler


def run(args: ResumeArgs) -> None:
    env_file = load_environment()
    config = Settings()
    if not config.openrouter_api_key:
        raise ValueError(f"OPENROUTER_API_KEY not set; add to {env_file}")
    if args.backfill.refresh_images and not config.rapidapi_key:
        raise ValueError("RAPIDAPI_KEY not set; required for --refreshImages=true")

    supabase_host = safe_host(config.supabase_url)
    logger.info(f"{LOG_PREFIX} Env loaded from {env_file} (supabaseHost={supabase_host or 'unknown'})")

    cursor_path = Path(args.cursor_file)
    started = time.monotonic()
    outcome = resume_backfill(build_backfill(config), args, cursor_path, env_file, supabase_host)
    wall_time_ms = int((time.monotonic() - started) * 1000)

    finished_at = datetime.now(timezone.utc).isoformat()
    report = build_report(args, outcome, env_file, supabase_host, cursor_path, wall_time_ms, finished_at)
    try:
        write_report(report, Path.cwd() / ".logs", name=REPORT_NAME)
    except OSError as e:
        logger.warning(f"{LOG_PREFIX} Failed to write report: {e}")

    totals = outcome.totals
    logger.info(f"{LOG_PREFIX} Done.")
    logger.info(
        f"{LOG_PREFIX} runs={outcome.runs} attempted={totals.attempted} success={totals.success} "
        f"failed={totals.failed} skipped={totals.skipped}"
    )
    logger.info(f"{LOG_PREFIX} cost=${totals.totalCostUsd:.4f} wallTime={wall_time_ms / 1000:.1f}s")


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    args = parse_args(argv if argv is not None else sys.argv[1:])
    handler = _add_file_handler(args.log_file)
    try:
        run(args)
    except Exception as e:
        logger.exception(f"{LOG_PREFIX} Fatal error: {e}")
        return 1
    finally:
        logging.getLogger().removeHandler(handler)
        handler.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
