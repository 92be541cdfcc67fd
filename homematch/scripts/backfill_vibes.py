#!/usr/bin/env python3
"""
Backfill property vibes for existing properties.

Usage:
    python -m homematch.scripts.backfill_vibes --limit=10 --force --refreshImages

Options:
    --limit=10            Max properties to attempt (default 10; --all for no limit)
    --batchSize=10        How many to send per batch (default 10)
    --delayMs=1500        Delay between properties in a batch (default 1500)
    --force               Ignore source hash and regenerate
    --refreshImages       Fetch the full Zillow gallery via RapidAPI /images?zpid= and update properties.images
    --forceImages         Update properties.images even if it already looks complete
    --minImages=10        Skip refresh when current images >= this count (default 10)
    --imageDelayMs=600    Delay between image fetches (default 600)
    --propertyIds=a,b     Only these property ids (UUIDs)
    --offset=0            Resume paging from this row offset
    --minPrice=100000     Skip listings priced below this (default 100000)

Environment is read from ENV_FILE (default .env.local), then .env.
"""
import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from homematch.config.settings import Settings
from homematch.database.supabase_client import create_supabase_client
from homematch.modules.vibes.backfill import (
    DEFAULT_MIN_PRICE, BackfillArgs, BackfillResult, VibesBackfill, invalid_property_ids
)
from homematch.modules.vibes.openrouter_client import OpenRouterClient
from homematch.modules.vibes.service import VibesService

logger = logging.getLogger("backfill_vibes")

DEFAULT_LIMIT = 10
REPORT_DIR = ".logs"
REPORT_NAME = "backfill-vibes-report"


def str2bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return number


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {value}")
    return number


def _id_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backfill-vibes",
        description="Generate AI vibes for properties that are missing them or have stale ones",
    )
    parser.add_argument("--limit", type=positive_int, default=None, help="Max properties to attempt (default 10)")
    parser.add_argument("--all", type=str2bool, nargs="?", const=True, default=False, help="No limit")
    parser.add_argument("--batchSize", dest="batch_size", type=positive_int, default=10)
    parser.add_argument("--delayMs", dest="delay_ms", type=non_negative_int, default=1500)
    parser.add_argument("--force", type=str2bool, nargs="?", const=True, default=False)
    parser.add_argument("--refreshImages", dest="refresh_images", type=str2bool, nargs="?", const=True, default=False)
    parser.add_argument("--forceImages", dest="force_images", type=str2bool, nargs="?", const=True, default=False)
    parser.add_argument("--minImages", dest="min_images", type=non_negative_int, default=10)
    parser.add_argument("--imageDelayMs", dest="image_delay_ms", type=non_negative_int, default=600)
    parser.add_argument("--propertyIds", dest="property_ids", type=_id_list, default=None)
    parser.add_argument("--offset", type=non_negative_int, default=0)
    parser.add_argument("--minPrice", dest="min_price", type=non_negative_int, default=DEFAULT_MIN_PRICE)
    return parser


def parse_args(argv: Optional[List[str]] = None) -> BackfillArgs:
    ns = build_parser().parse_args(argv)
    if ns.limit is not None:
        limit = ns.limit
    else:
        limit = None if ns.all else DEFAULT_LIMIT
    return BackfillArgs(
        limit=limit,
        batch_size=ns.batch_size,
        delay_ms=ns.delay_ms,
        force=ns.force,
        property_ids=ns.property_ids or None,
        refresh_images=ns.refresh_images,
        force_images=ns.force_images,
        min_images=ns.min_images,
        image_delay_ms=ns.image_delay_ms,
        offset=ns.offset,
        min_price=ns.min_price,
    )


def safe_host(url: Optional[str]) -> str:
    if not url:
        return ""
    return urlparse(url).netloc


def build_report(args: BackfillArgs, result: BackfillResult, env_file: str, supabase_host: str, finished_at: str) -> dict:
    return {
        "finishedAt": finished_at,
        "envFile": env_file,
        "supabaseHost": supabase_host,
        "args": {
            "limit": args.limit,
            "batchSize": args.batch_size,
            "delayMs": args.delay_ms,
            "force": args.force,
            "propertyIdsCount": len(args.property_ids or []),
            "refreshImages": args.refresh_images,
            "forceImages": args.force_images,
            "minImages": args.min_images,
            "imageDelayMs": args.image_delay_ms,
            "offset": args.offset,
            "minPrice": args.min_price,
        },
        "attempted": result.attempted,
        "success": result.success,
        "failed": result.failed,
        "skipped": result.skipped,
        "totalCostUsd": result.totalCostUsd,
        "totalTimeMs": result.totalTimeMs,
        "nextOffset": result.nextOffset,
        "failures": [asdict(f) for f in result.failures],
    }


def write_report(report: dict, report_dir: Path, name: str = REPORT_NAME) -> None:
    report_dir.mkdir(parents=True, exist_ok=True)
    stamp = report["finishedAt"].replace(":", "-").replace(".", "-")
    latest = report_dir / f"{name}.json"
    dated = report_dir / f"{name}-{stamp}.json"
    body = json.dumps(report, indent=2)
    latest.write_text(body)
    dated.write_text(body)
    logger.info(f"[{name}] Report written: {latest}")
    logger.info(f"[{name}] Report archived: {dated}")


def build_backfill(config: Settings) -> VibesBackfill:
    """Backfill wired to the configured Supabase project, OpenRouter and RapidAPI"""
    vibes_service = VibesService(OpenRouterClient(
        api_key=config.openrouter_api_key,
        base_url=config.openrouter_base_url,
        default_model=config.openrouter_model,
        max_retries=config.openrouter_max_retries,
        timeout_sec=config.openrouter_timeout_sec,
    ))
    return VibesBackfill(
        create_supabase_client(config),
        vibes_service,
        rapid_api_key=config.rapidapi_key,
        rapid_api_host=config.rapidapi_host,
    )


def run(argv: Optional[List[str]] = None) -> None:
    env_file = os.getenv("ENV_FILE", ".env.local")
    load_dotenv(env_file)
    load_dotenv()
    config = Settings()

    args = parse_args(argv)
    if args.property_ids:
        invalid = invalid_property_ids(args.property_ids)
        if invalid:
            raise ValueError(f"Invalid --propertyIds value(s): {', '.join(invalid)} (expected UUIDs)")
    if not config.openrouter_api_key:
        raise ValueError(f"OPENROUTER_API_KEY not set; add to {env_file}")
    if args.refresh_images and not config.rapidapi_key:
        raise ValueError("RAPIDAPI_KEY not set; required for --refreshImages=true")

    supabase_host = safe_host(config.supabase_url)
    logger.info(f"[backfill-vibes] Env loaded from {env_file} (supabaseHost={supabase_host or 'unknown'})")

    result = build_backfill(config).run(args)

    finished_at = datetime.now(timezone.utc).isoformat()
    try:
        write_report(build_report(args, result, env_file, supabase_host, finished_at), Path.cwd() / REPORT_DIR)
    except OSError as e:
        logger.warning(f"[backfill-vibes] Failed to write report: {e}")


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    try:
        run(argv if argv is not None else sys.argv[1:])
    except Exception as e:
        logger.exception(f"[backfill-vibes] Fatal error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
