import logging
import time
from fastapi import APIRouter, Depends, HTTPException, Query
from supabase import Client
from typing import Dict, Optional

from homematch.core.dependencies import get_current_user
from homematch.core.query_params import parse_int_param
from homematch.database.supabase_client import get_service_supabase
from homematch.modules.couples.middleware import CouplesMiddleware
from homematch.modules.couples.schemas import NotifyRequest, NotifyResponse, DisputedResolutionRequest
from homematch.modules.couples.service import CouplesService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/couples", tags=["couples"])

DEFAULT_ACTIVITY_LIMIT = 20
MAX_ACTIVITY_LIMIT = 100


def get_couples_service(supabase: Client = Depends(get_service_supabase)) -> CouplesService:
    return CouplesService(supabase)


def get_couples_middleware(service: CouplesService = Depends(get_couples_service)) -> CouplesMiddleware:
    return CouplesMiddleware(service.supabase, service)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


@router.get("/mutual-likes")
async def get_mutual_likes(
    include_properties: Optional[str] = Query(None, alias="includeProperties"),
    current_user: Dict = Depends(get_current_user),
    service: CouplesService = Depends(get_couples_service),
):
    """Mutual likes of the caller's household, optionally with property rows attached"""
    start = time.perf_counter()
    try:
        mutual_likes = service.get_mutual_likes(current_user["id"])
        items = [m.model_dump() for m in mutual_likes]

        if include_properties != "false" and items:
            try:
                properties = service.get_properties_by_ids([m["property_id"] for m in items])
                for item in items:
                    item["property"] = properties.get(item["property_id"])
            except Exception as e:
                logger.error(f"Error fetching properties for mutual likes: {e}")

        return {
            "mutualLikes": items,
            "performance": {
                "totalTime": _elapsed_ms(start),
                "cached": service.last_lookup_cached,
                "count": len(items),
            },
        }
    except Exception as e:
        logger.error(f"Error fetching mutual likes: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch mutual likes")


@router.get("/activity")
async def get_activity(
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    current_user: Dict = Depends(get_current_user),
    service: CouplesService = Depends(get_couples_service),
):
    start = time.perf_counter()
    try:
        activity = service.get_household_activity(
            current_user["id"],
            limit=parse_int_param(limit, DEFAULT_ACTIVITY_LIMIT, 1, MAX_ACTIVITY_LIMIT),
            offset=parse_int_param(offset, 0, 0),
        )
        return {
            "activity": [a.model_dump() for a in activity],
            "performance": {"totalTime": _elapsed_ms(start), "count": len(activity)},
        }
    except Exception as e:
        logger.error(f"Error fetching household activity: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch household activity")


@router.get("/stats")
async def get_stats(
    current_user: Dict = Depends(get_current_user),
    service: CouplesService = Depends(get_couples_service),
):
    try:
        stats = service.get_household_stats(current_user["id"])
    except Exception as e:
        logger.error(f"Error fetching household stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch household statistics")
    if stats is None:
        raise HTTPException(status_code=404, detail="Household not found or no statistics available")
    return {"stats": stats.model_dump()}


@router.get("/check-mutual")
async def check_mutual(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    current_user: Dict = Depends(get_current_user),
    service: CouplesService = Depends(get_couples_service),
):
    """Whether a property is a mutual like, with partner name and milestone info"""
    if not property_id:
        raise HTTPException(status_code=400, detail="Property ID is required")
    try:
        return service.check_mutual(current_user["id"], property_id)
    except Exception as e:
        logger.error(f"Error checking mutual like for property {property_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to check mutual like")


@router.post("/notify", response_model=NotifyResponse)
async def notify(
    payload: NotifyRequest,
    current_user: Dict = Depends(get_current_user),
    middleware: CouplesMiddleware = Depends(get_couples_middleware),
):
    try:
        outcome = middleware.on_property_interaction(
            current_user["id"], str(payload.propertyId), payload.interactionType
        )
        return NotifyResponse(
            success=True,
            mutual_like_created=outcome.mutual_like_created,
            notification_sent=outcome.mutual_like_created,
            partner_user_id=outcome.partner_user_id,
        )
    except Exception as e:
        logger.error(f"Error processing interaction notification: {e}")
        raise HTTPException(status_code=500, detail="Failed to process notification")


@router.get("/disputed")
async def get_disputed(
    current_user: Dict = Depends(get_current_user),
    service: CouplesService = Depends(get_couples_service),
):
    start = time.perf_counter()
    disputed = service.get_disputed_properties(current_user["id"])
    return {
        "disputedProperties": [d.model_dump() for d in disputed],
        "performance": {"totalTime": _elapsed_ms(start), "count": len(disputed)},
    }


@router.patch("/disputed")
async def resolve_disputed(
    payload: DisputedResolutionRequest,
    current_user: Dict = Depends(get_current_user),
    service: CouplesService = Depends(get_couples_service),
):
    """Record how the household settled a disputed property"""
    return service.resolve_disputed_property(
        current_user["id"], payload.property_id, payload.resolution_type
    )
