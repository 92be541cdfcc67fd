"""
Resumable vibes backfill over the properties table.

Pages through listings newest first, skips rows whose vibes are current
(source hash unchanged), optionally refreshes Zillow galleries first, and
upserts generated vibes. Failures are collected rather than aborting the run;
``next_offset`` lets the next run pick up where this one stopped.
"""
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from postgrest.exceptions import APIError
from supabase import Client

from homematch.modules.vibes.schemas import BatchGenerationResult
from homematch.modules.vibes.service import VibesService, generate_source_hash, to_insert_record
from homematch.modules.vibes.zillow_images import (
    DEFAULT_RAPIDAPI_HOST, fetch_zillow_image_urls,
    is_street_view_image_url, is_zillow_static_image_url
)

logger = logging.getLogger(__name__)

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)
UNDEFINED_COLUMN = "42703"
DEFAULT_MIN_PRICE = 100000
MIN_PAGE_SIZE = 50
LOG_PREFIX = "[backfill-vibes]"


@dataclass
class BackfillArgs:
    limit: Optional[int] = 10
    batch_size: int = 10
    delay_ms: int = 1500
    force: bool = False
    property_ids: Optional[List[str]] = None
    refresh_images: bool = False
    force_images: bool = False
    min_images: int = 10
    image_delay_ms: int = 600
    offset: int = 0
    min_price: int = DEFAULT_MIN_PRICE


@dataclass
class BackfillFailure:
    propertyId: str
    zpid: Optional[str]
    error: str
    code: Optional[str] = None


@dataclass
class BackfillResult:
    attempted: int = 0
    skipped: int = 0
    success: int = 0
    failed: int = 0
    totalCostUsd: float = 0.0
    totalTimeMs: int = 0
    failures: List[BackfillFailure] = field(default_factory=list)
    nextOffset: Optional[int] = None


def invalid_property_ids(property_ids: List[str]) -> List[str]:
    return [pid for pid in property_ids if not UUID_RE.match(pid)]


def _chunks(items: List[Any], size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VibesBackfill:
    def __init__(
        self,
        supabase: Client,
        vibes_service: VibesService,
        rapid_api_key: Optional[str] = None,
        rapid_api_host: str = DEFAULT_RAPIDAPI_HOST,
        fetch_images: Callable[..., List[str]] = fetch_zillow_image_urls,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.supabase = supabase
        self.vibes_service = vibes_service
        self.rapid_api_key = rapid_api_key
        self.rapid_api_host = rapid_api_host
        self.fetch_images = fetch_images
        self.sleep = sleep
        self.now = now

    def run(self, args: BackfillArgs) -> BackfillResult:
        if args.property_ids:
            invalid = invalid_property_ids(args.property_ids)
            if invalid:
                raise ValueError(f"Invalid propertyIds: {', '.join(invalid)} (expected UUIDs)")
        if args.refresh_images and not self.rapid_api_key:
            raise ValueError("rapidApiKey missing; required for --refreshImages=true")

        if args.property_ids:
            target = len(args.property_ids)
        elif args.limit is not None:
            target = args.limit
        else:
            target = float("inf")
        target_label = len(args.property_ids) if args.property_ids else (args.limit or "all")

        result = BackfillResult()
        scanned = 0
        start = time.monotonic()
        page_size = max(args.batch_size * 5, MIN_PAGE_SIZE)
        offset = args.offset if args.offset and args.offset > 0 else 0

        logger.info(
            f"{LOG_PREFIX} Starting (limit={args.limit or 'all'}, batchSize={args.batch_size}, "
            f"delayMs={args.delay_ms}, force={args.force}, "
            f"propertyIds={len(args.property_ids or [])}, refreshImages={args.refresh_images}, "
            f"minImages={args.min_images}, offset={'n/a' if args.property_ids else offset})"
        )

        while result.attempted < target:
            page_start = offset
            properties = self._read_page(args, page_start, page_size)
            if not properties:
                break

            page_index = {p["id"]: i for i, p in enumerate(properties)}
            by_id = {p["id"]: p for p in properties}
            existing_hashes = self._existing_hashes(list(by_id))

            to_process = properties
            if not args.force and not args.refresh_images:
                to_process = [p for p in properties if existing_hashes.get(p["id"]) != generate_source_hash(p)]
                result.skipped += len(properties) - len(to_process)

            last_index_in_page: Optional[int] = None
            processed_in_page = 0

            for batch in _chunks(to_process, args.batch_size):
                if result.attempted >= target:
                    break
                remaining = target - result.attempted
                batch = batch[:int(remaining)] if remaining != float("inf") else batch
                if not batch:
                    break

                result.attempted += len(batch)
                processed_in_page += len(batch)
                last_index_in_page = page_index.get(batch[-1]["id"], last_index_in_page)

                if args.refresh_images:
                    logger.info(
                        f"{LOG_PREFIX} Processing batch of {len(batch)} properties "
                        f"(scanned {result.attempted}/{target_label})"
                    )
                    scanned += len(batch)
                    to_generate = self._refresh_batch(batch, args, existing_hashes, result)
                else:
                    logger.info(
                        f"{LOG_PREFIX} Generating batch of {len(batch)} "
                        f"(attempted {result.attempted}/{target_label})"
                    )
                    for i, prop in enumerate(batch):
                        self._log_property(prop, i, len(batch))
                    to_generate = batch

                if to_generate:
                    batch_result = self.vibes_service.generate_vibes_batch(
                        to_generate, delay_ms=args.delay_ms, on_progress=self._log_progress
                    )
                else:
                    batch_result = BatchGenerationResult()
                self._record_batch(batch_result, by_id, result)

                if result.attempted >= target:
                    break

            if args.property_ids:
                break
            if result.attempted >= target and processed_in_page < len(to_process) and last_index_in_page is not None:
                offset = page_start + last_index_in_page + 1
            else:
                offset = page_start + len(properties)

        result.totalTimeMs = int((time.monotonic() - start) * 1000)
        result.nextOffset = None if args.property_ids else offset

        logger.info(f"{LOG_PREFIX} Done.")
        logger.info(
            f"{LOG_PREFIX} attempted={result.attempted} success={result.success} failed={result.failed} "
            f"skipped={result.skipped}" + (f" scanned={scanned}" if args.refresh_images else "")
        )
        logger.info(f"{LOG_PREFIX} cost=${result.totalCostUsd:.4f} time={result.totalTimeMs / 1000:.1f}s")
        return result

    def _read_page(self, args: BackfillArgs, page_start: int, page_size: int) -> List[Dict[str, Any]]:
        try:
            if args.property_ids:
                response = self.supabase.table("properties")\
                    .select("*")\
                    .in_("id", args.property_ids)\
                    .execute()
            else:
                response = self.supabase.table("properties")\
                    .select("*")\
                    .not_.is_("zpid", "null")\
                    .gte("price", args.min_price)\
                    .order("created_at", desc=True)\
                    .order("id", desc=True)\
                    .range(page_start, page_start + page_size - 1)\
                    .execute()
        except APIError as e:
            raise RuntimeError(f"Failed to read properties: {e.message}") from e
        return response.data or []

    def _existing_hashes(self, property_ids: List[str]) -> Dict[str, Optional[str]]:
        response = self.supabase.table("property_vibes")\
            .select("property_id, source_data_hash")\
            .in_("property_id", property_ids)\
            .execute()
        return {row["property_id"]: row.get("source_data_hash") for row in (response.data or [])}

    def _refresh_batch(
        self,
        batch: List[Dict[str, Any]],
        args: BackfillArgs,
        existing_hashes: Dict[str, Optional[str]],
        result: BackfillResult,
    ) -> List[Dict[str, Any]]:
        """Refresh galleries, then keep only properties whose vibes need regenerating"""
        to_generate = []
        for i, prop in enumerate(batch):
            self._log_property(prop, i, len(batch))
            images_changed = self._maybe_refresh_images(prop, args)

            has_existing = prop["id"] in existing_hashes
            stale = has_existing and existing_hashes[prop["id"]] != generate_source_hash(prop)
            zpid = prop.get("zpid") or "null"

            if not (args.force or not has_existing or stale or images_changed):
                result.skipped += 1
                logger.info(f"{LOG_PREFIX} [vibes] Skip property={prop['id']} zpid={zpid}: up-to-date")
                continue

            reasons = []
            if not has_existing:
                reasons.append("missing")
            if stale:
                reasons.append("stale")
            if images_changed:
                reasons.append("images_changed")
            if args.force:
                reasons.append("force")
            logger.info(f"{LOG_PREFIX} [vibes] Generate property={prop['id']} zpid={zpid}: {', '.join(reasons)}")
            to_generate.append(prop)
        return to_generate

    def _maybe_refresh_images(self, prop: Dict[str, Any], args: BackfillArgs) -> bool:
        """Replace the gallery with the full Zillow one when needed. Returns whether images changed."""
        zpid = prop.get("zpid")
        if not zpid or not self.rapid_api_key:
            return False

        current = [u for u in (prop.get("images") or []) if isinstance(u, str)]
        has_zillow_photos = any(is_zillow_static_image_url(u) for u in current)
        refreshed_at = prop.get("zillow_images_refreshed_at")
        refreshed_count = prop.get("zillow_images_refreshed_count")
        refreshed_status = prop.get("zillow_images_refresh_status")

        if not args.force_images and refreshed_at and (has_zillow_photos or refreshed_status == "no_images"):
            logger.info(
                f"{LOG_PREFIX} [images] Skip refresh zpid={zpid} property={prop['id']}: "
                f"marker=({refreshed_status or 'unknown'}, {refreshed_count}, {refreshed_at})"
            )
            return False
        if len(current) >= args.min_images and has_zillow_photos and not args.force_images:
            return False

        fetched = self.fetch_images(zpid=zpid, rapid_api_key=self.rapid_api_key, host=self.rapid_api_host)
        non_street_view = [u for u in fetched if not is_street_view_image_url(u)]
        zillow_photos = [u for u in non_street_view if is_zillow_static_image_url(u)]
        next_images = zillow_photos or non_street_view

        current_matches = current == next_images
        marker_status = "ok" if next_images else "no_images"
        now_iso = self.now().isoformat()

        marker_already_set = (
            bool(refreshed_at)
            and refreshed_count == len(next_images)
            and refreshed_status == marker_status
        )
        if current_matches and marker_already_set:
            return False

        will_update_images = bool(next_images) and not current_matches
        payload: Dict[str, Any] = {
            "updated_at": now_iso,
            "zillow_images_refreshed_at": now_iso,
            "zillow_images_refreshed_count": len(next_images),
            "zillow_images_refresh_status": marker_status,
        }
        if will_update_images:
            payload["images"] = next_images

        images_changed = False
        try:
            self.supabase.table("properties").update(payload).eq("id", prop["id"]).execute()
            if will_update_images:
                prop["images"] = next_images
                images_changed = True
            prop["zillow_images_refreshed_at"] = now_iso
            prop["zillow_images_refreshed_count"] = len(next_images)
            prop["zillow_images_refresh_status"] = marker_status
        except APIError as e:
            if e.code != UNDEFINED_COLUMN:
                logger.warning(
                    f"{LOG_PREFIX} [images] Failed to update images for zpid={zpid} property={prop['id']}: {e.message}"
                )
                return False
            if not will_update_images:
                logger.warning(
                    f"{LOG_PREFIX} [images] Marker columns missing in DB (run Supabase migration). "
                    f"Skipping marker update for zpid={zpid} property={prop['id']}."
                )
                return False
            # Marker columns not migrated yet; write images alone
            try:
                self.supabase.table("properties")\
                    .update({"images": next_images, "updated_at": now_iso})\
                    .eq("id", prop["id"])\
                    .execute()
            except APIError as legacy_error:
                logger.warning(
                    f"{LOG_PREFIX} [images] Failed to update images for zpid={zpid} "
                    f"property={prop['id']}: {legacy_error.message}"
                )
                return False
            prop["images"] = next_images
            images_changed = True

        if not next_images:
            logger.info(f"{LOG_PREFIX} [images] Refreshed zpid={zpid} property={prop['id']}: no usable photos (marked no_images)")
        elif current_matches:
            logger.info(
                f"{LOG_PREFIX} [images] Refreshed zpid={zpid} property={prop['id']}: "
                f"images unchanged (marked ok, {len(next_images)} imgs)"
            )
        else:
            note = " (content changed)" if len(current) == len(next_images) else ""
            logger.info(
                f"{LOG_PREFIX} [images] Updated zpid={zpid} property={prop['id']}: {len(current)} -> {len(next_images)}{note}"
            )

        if args.image_delay_ms > 0:
            self.sleep(args.image_delay_ms / 1000)
        return images_changed

    def _record_batch(self, batch_result: BatchGenerationResult, by_id: Dict[str, Dict[str, Any]], result: BackfillResult) -> None:
        result.success += len(batch_result.success)
        result.failed += len(batch_result.failed)
        result.totalCostUsd += batch_result.totalCostUsd

        for failure in batch_result.failed:
            zpid = (by_id.get(failure.propertyId) or {}).get("zpid")
            result.failures.append(BackfillFailure(
                propertyId=failure.propertyId, zpid=zpid, error=failure.error, code=failure.code
            ))
            logger.warning(f"{LOG_PREFIX} FAILED property={failure.propertyId} zpid={zpid or 'null'}: {failure.error}")

        records = [to_insert_record(r, by_id[r.propertyId]) for r in batch_result.success]
        if not records:
            return
        try:
            self.supabase.table("property_vibes")\
                .upsert(records, on_conflict="property_id", ignore_duplicates=False)\
                .execute()
        except APIError as e:
            logger.error(f"{LOG_PREFIX} Failed to upsert vibes: {e.message}")

    @staticmethod
    def _log_property(prop: Dict[str, Any], index: int, total: int) -> None:
        label = prop.get("address") or ", ".join(filter(None, [prop.get("city"), prop.get("state")]))
        images = prop.get("images") or []
        logger.info(
            f"{LOG_PREFIX} [property] {index + 1}/{total} id={prop['id']} zpid={prop.get('zpid') or 'null'} "
            f"imgs={len(images)}" + (f" | {label}" if label else "")
        )

    @staticmethod
    def _log_progress(completed: int, total: int) -> None:
        if completed == total or completed % 5 == 0:
            logger.info(f"{LOG_PREFIX} Progress {completed}/{total} in current batch")


def backfill_vibes(args: BackfillArgs, **deps) -> BackfillResult:
    return VibesBackfill(**deps).run(args)
