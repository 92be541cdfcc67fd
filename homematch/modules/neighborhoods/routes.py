from fastapi import APIRouter, Depends, Query
from supabase import Client
from typing import Dict, Optional

from homematch.core.dependencies import get_current_user
from homematch.database.supabase_client import get_service_supabase
from homematch.core.query_params import parse_int_param
from homematch.modules.neighborhoods.schemas import NeighborhoodVibesListResponse
from homematch.modules.neighborhoods.service import NeighborhoodVibesService

router = APIRouter(prefix="/neighborhoods", tags=["neighborhoods"])


def get_neighborhood_vibes_service(supabase: Client = Depends(get_service_supabase)) -> NeighborhoodVibesService:
    return NeighborhoodVibesService(supabase)


@router.get("/vibes", response_model=NeighborhoodVibesListResponse)
async def get_neighborhood_vibes(
    neighborhood_id: Optional[str] = Query(None, alias="neighborhoodId"),
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    current_user: Dict = Depends(get_current_user),
    service: NeighborhoodVibesService = Depends(get_neighborhood_vibes_service),
):
    data = service.list_vibes(
        neighborhood_id=neighborhood_id,
        limit=parse_int_param(limit, 20, 1, 100),
        offset=parse_int_param(offset, 0, 0),
    )
    return NeighborhoodVibesListResponse(data=data)
