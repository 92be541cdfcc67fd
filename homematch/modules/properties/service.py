import logging
from supabase import Client
from fastapi import HTTPException
from typing import List, Optional, Dict, Any

logger = logging.getLogger(__name__)


class PropertyVibesService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_vibes(
        self,
        property_ids: Optional[List[str]] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """Generated vibes, filtered by property ids or paged by range"""
        try:
            query = self.supabase.table("property_vibes").select("*")
            if property_ids:
                if len(property_ids) == 1:
                    query = query.eq("property_id", property_ids[0])
                else:
                    query = query.in_("property_id", property_ids)
            else:
                query = query.order("created_at", desc=True).range(offset, offset + limit - 1)
            result = query.execute()
            return result.data or []
        except Exception as e:
            logger.error(f"Error fetching property vibes: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch vibes")
