from fastapi import APIRouter, Depends, Query
from supabase import Client
from typing import Dict, Optional

from homematch.core.dependencies import get_current_user
from homematch.database.supabase_client import get_service_supabase
from homematch.core.query_params import parse_int_param
from homematch.modules.properties.schemas import VibesListResponse
from homematch.modules.properties.service import PropertyVibesService

router = APIRouter(prefix="/properties", tags=["properties"])

DEFAULT_VIBES_LIMIT = 20
MAX_VIBES_LIMIT = 100


def get_property_vibes_service(supabase: Client = Depends(get_service_supabase)) -> PropertyVibesService:
    return PropertyVibesService(supabase)


@router.get("/vibes", response_model=VibesListResponse)
async def get_property_vibes(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    property_ids: Optional[str] = Query(None, alias="propertyIds"),
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    current_user: Dict = Depends(get_current_user),
    service: PropertyVibesService = Depends(get_property_vibes_service),
):
    """Vibes for one property (propertyId), several (propertyIds=a,b) or a page of all"""
    ids = [property_id] if property_id else [p.strip() for p in (property_ids or "").split(",") if p.strip()]
    data = service.list_vibes(
        property_ids=ids or None,
        limit=parse_int_param(limit, DEFAULT_VIBES_LIMIT, 1, MAX_VIBES_LIMIT),
        offset=parse_int_param(offset, 0, 0),
    )
    return VibesListResponse(data=data)
