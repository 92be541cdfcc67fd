import logging
from supabase import Client
from postgrest.exceptions import APIError
from fastapi import HTTPException
from typing import List, Optional, Dict, Any

logger = logging.getLogger(__name__)

UNDEFINED_TABLE = "42P01"


class NeighborhoodVibesService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_vibes(self, neighborhood_id: Optional[str] = None, limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        try:
            query = self.supabase.table("neighborhood_vibes").select("*")
            if neighborhood_id:
                query = query.eq("neighborhood_id", neighborhood_id)
            else:
                query = query.range(offset, offset + limit - 1)
            result = query.execute()
            return result.data or []
        except APIError as e:
            if e.code == UNDEFINED_TABLE:
                logger.warning("neighborhood_vibes table is missing")
                raise HTTPException(status_code=503, detail="Neighborhood vibes not initialized")
            logger.error(f"Error fetching neighborhood vibes: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch neighborhood vibes")
        except Exception as e:
            logger.error(f"Error fetching neighborhood vibes: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch neighborhood vibes")
