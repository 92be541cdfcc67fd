from fastapi import APIRouter, Depends, HTTPException, Query, Request
from supabase import Client
from typing import Dict, Optional

from homematch.config.settings import settings
from homematch.core.dependencies import get_current_user
from homematch.core.rate_limit import limiter
from homematch.database.supabase_client import get_service_supabase
from homematch.core.query_params import parse_int_param
from homematch.modules.interactions.schemas import (
    CATEGORY_TYPES, InteractionCreate, InteractionSummary, InteractionPage
)
from homematch.modules.interactions.service import InteractionService

router = APIRouter(prefix="/interactions", tags=["interactions"])

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 50


def get_interaction_service(supabase: Client = Depends(get_service_supabase)) -> InteractionService:
    return InteractionService(supabase)


@router.post("")
@limiter.limit(settings.interactions_rate_limit)
async def record_interaction(
    request: Request,
    payload: InteractionCreate,
    current_user: Dict = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    """Record like/dislike/skip/view, replacing any earlier interaction with the property"""
    interaction = service.record_interaction(current_user["id"], str(payload.propertyId), payload.type)
    return {"interaction": interaction.model_dump()}


@router.get("")
async def get_interactions(
    type: Optional[str] = None,
    cursor: Optional[str] = None,
    limit: Optional[str] = None,
    current_user: Dict = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    """type=summary for counts, otherwise one page of liked/passed/viewed properties"""
    if not type:
        raise HTTPException(status_code=400, detail="Missing type query parameter")
    if type == "summary":
        summary: InteractionSummary = service.get_summary(current_user["id"])
        return summary.model_dump()
    if type not in CATEGORY_TYPES:
        raise HTTPException(status_code=400, detail="Invalid type parameter")
    page: InteractionPage = service.list_interactions(
        current_user["id"],
        type,
        cursor=cursor,
        limit=parse_int_param(limit, DEFAULT_PAGE_SIZE, 1, MAX_PAGE_SIZE),
    )
    return page.model_dump()


@router.delete("")
async def delete_interaction(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    current_user: Dict = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    if not property_id:
        raise HTTPException(status_code=400, detail="Property ID is required")
    return service.delete_interaction(current_user["id"], property_id)


@router.delete("/reset")
async def reset_interactions(
    current_user: Dict = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    """Remove all of the caller's interactions"""
    return service.reset_interactions(current_user["id"])
