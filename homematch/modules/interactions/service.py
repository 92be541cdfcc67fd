import logging
from supabase import Client
from postgrest.exceptions import APIError
from fastapi import HTTPException
from typing import Optional, Dict, Any

from homematch.modules.couples.middleware import CouplesMiddleware
from homematch.modules.interactions.schemas import (
    CATEGORY_TYPES, InteractionResponse, InteractionSummary, InteractionPage
)

logger = logging.getLogger(__name__)

SUMMARY_CATEGORY = {
    "like": "liked",
    "liked": "liked",
    "skip": "passed",
    "dislike": "passed",
    "passed": "passed",
    "view": "viewed",
    "viewed": "viewed",
}


class InteractionService:
    def __init__(self, supabase: Client, middleware: Optional[CouplesMiddleware] = None):
        self.supabase = supabase
        self.middleware = middleware or CouplesMiddleware(supabase)
        self.couples = self.middleware.service

    def record_interaction(self, user_id: str, property_id: str, interaction_type: str) -> InteractionResponse:
        """Replace the user's interaction with a property and notify the household"""
        try:
            household_id = self.couples.get_user_household(user_id)
            try:
                self.supabase.table("user_property_interactions")\
                    .delete()\
                    .eq("user_id", user_id)\
                    .eq("property_id", property_id)\
                    .execute()
            except APIError as e:
                logger.warning(f"Warning deleting previous interaction: {e}")

            result = self.supabase.table("user_property_interactions").insert({
                "user_id": user_id,
                "property_id": property_id,
                "interaction_type": interaction_type,
                "household_id": household_id,
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to record interaction")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Insert interaction failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to record interaction")

        self.middleware.on_property_interaction(user_id, property_id, interaction_type)
        return InteractionResponse(**result.data[0])

    def get_summary(self, user_id: str) -> InteractionSummary:
        try:
            result = self.supabase.rpc("get_user_interaction_summary", {"p_user_id": user_id}).execute()
        except Exception as e:
            logger.error(f"Summary fetch failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch summary")

        counts = {"liked": 0, "passed": 0, "viewed": 0}
        for row in result.data or []:
            category = SUMMARY_CATEGORY.get(row.get("interaction_type"))
            if category:
                counts[category] += int(row.get("count") or 0)
        return InteractionSummary(**counts)

    def list_interactions(self, user_id: str, category: str, cursor: Optional[str] = None, limit: int = 12) -> InteractionPage:
        """Properties in a category, newest first, paged by created_at cursor"""
        try:
            query = self.supabase.table("user_property_interactions")\
                .select("created_at, property:properties (*)")\
                .eq("user_id", user_id)\
                .in_("interaction_type", CATEGORY_TYPES[category])\
                .order("created_at", desc=True)\
                .limit(limit)
            if cursor:
                query = query.lt("created_at", cursor)
            result = query.execute()
        except Exception as e:
            logger.error(f"Interactions list failed: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to fetch {category} properties")

        rows = result.data or []
        items = []
        for row in rows:
            prop = row.get("property")
            if isinstance(prop, list):
                prop = prop[0] if prop else None
            if prop:
                items.append(prop)
        next_cursor = rows[-1]["created_at"] if len(rows) == limit else None
        return InteractionPage(items=items, nextCursor=next_cursor)

    def delete_interaction(self, user_id: str, property_id: str) -> Dict[str, Any]:
        try:
            self.supabase.table("user_property_interactions")\
                .delete()\
                .eq("user_id", user_id)\
                .eq("property_id", property_id)\
                .execute()
        except Exception as e:
            logger.error(f"Delete interaction failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to delete interaction")
        self._clear_household(user_id)
        return {"success": True}

    def reset_interactions(self, user_id: str) -> Dict[str, Any]:
        """Delete every interaction of the user"""
        try:
            result = self.supabase.table("user_property_interactions")\
                .delete()\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            logger.error(f"Reset interactions failed for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to reset interactions")
        self._clear_household(user_id)
        return {"success": True, "deleted": len(result.data or [])}

    def _clear_household(self, user_id: str) -> None:
        try:
            household_id = self.couples.get_user_household(user_id)
        except Exception as e:
            logger.error(f"Error resolving household of user {user_id}: {e}")
            return
        if household_id:
            self.middleware.on_household_change(household_id)
