import logging
from datetime import datetime, timedelta, timezone, date
from supabase import Client
from postgrest.exceptions import APIError
from fastapi import HTTPException
from typing import List, Optional, Dict, Any, Iterable, Set

from homematch.config.settings import settings
from homematch.core.cache import LRUCache
from homematch.modules.couples.schemas import (
    MutualLike, HouseholdActivity, CouplesStats, PotentialMutualLike,
    DisputedProperty, DisputedPartner, DisputedPropertySummary, Milestone
)

logger = logging.getLogger(__name__)

# Process-wide caches shared by every CouplesService instance (services are built per request)
mutual_likes_cache = LRUCache(settings.mutual_likes_cache_size, settings.mutual_likes_cache_ttl)
household_activity_cache = LRUCache(settings.activity_cache_size, settings.activity_cache_ttl)
household_stats_cache = LRUCache(settings.stats_cache_size, settings.stats_cache_ttl)

STREAK_WINDOW = 30
MILESTONE_EVERY = 5
CONFLICTING_TYPES = ("like", "dislike", "skip")


def clear_all_caches() -> None:
    mutual_likes_cache.clear()
    household_activity_cache.clear()
    household_stats_cache.clear()


def _utc_date(timestamp: str) -> date:
    parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).date()


def compute_activity_streak(created_at_values: Iterable[str], today: Optional[date] = None) -> int:
    """Consecutive UTC days with activity, counted back from the most recent day.

    The streak only counts when the most recent activity day is today or yesterday.
    """
    today = today or datetime.now(timezone.utc).date()
    days = sorted({_utc_date(v) for v in created_at_values if v}, reverse=True)
    if not days or days[0] not in (today, today - timedelta(days=1)):
        return 0
    streak = 0
    expected = days[0]
    for day in days:
        if day != expected:
            break
        streak += 1
        expected = day - timedelta(days=1)
    return streak


def aggregate_mutual_likes(rows: List[Dict[str, Any]]) -> List[MutualLike]:
    """Group like rows by property; keep properties liked by 2+ distinct users."""
    grouped: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        entry = grouped.setdefault(row["property_id"], {
            "users": [],
            "first": row["created_at"],
            "last": row["created_at"],
        })
        if row["user_id"] not in entry["users"]:
            entry["users"].append(row["user_id"])
        if row["created_at"] < entry["first"]:
            entry["first"] = row["created_at"]
        if row["created_at"] > entry["last"]:
            entry["last"] = row["created_at"]

    return [
        MutualLike(
            property_id=property_id,
            liked_by_count=len(entry["users"]),
            first_liked_at=entry["first"],
            last_liked_at=entry["last"],
            user_ids=entry["users"],
        )
        for property_id, entry in grouped.items()
        if len(entry["users"]) >= 2
    ]


class CouplesService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.last_lookup_cached = False  # whether the last mutual-likes lookup was served from cache

    @staticmethod
    def clear_household_cache(household_id: str) -> None:
        """Drop every cached entry of the household, all activity pages included"""
        mutual_likes_cache.delete(household_id)
        household_stats_cache.delete(household_id)
        household_activity_cache.delete_where(lambda key: key[0] == household_id)

    def get_user_household(self, user_id: str) -> Optional[str]:
        result = self.supabase.table("user_profiles")\
            .select("household_id")\
            .eq("id", user_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            return None
        return result.data.get("household_id") or None

    # Mutual likes

    def get_mutual_likes(self, user_id: str) -> List[MutualLike]:
        """Properties liked by 2+ members of the user's household (cached 5 minutes)"""
        try:
            household_id = self.get_user_household(user_id)
            if not household_id:
                return []
            return self._household_mutual_likes(household_id)
        except Exception as e:
            logger.error(f"Unexpected error in get_mutual_likes for user {user_id}: {e}")
            return []

    def _household_mutual_likes(self, household_id: str) -> List[MutualLike]:
        cached = mutual_likes_cache.get(household_id)
        self.last_lookup_cached = cached is not None
        if cached is not None:
            return cached

        try:
            result = self.supabase.rpc(
                "get_household_mutual_likes", {"p_household_id": household_id}
            ).execute()
        except APIError as e:
            logger.error(f"Error fetching mutual likes for household {household_id}: {e}")
            return self._mutual_likes_fallback(household_id)

        mutual_likes = [
            MutualLike(
                property_id=row["property_id"],
                liked_by_count=int(row["liked_by_count"]),
                first_liked_at=row["first_liked_at"],
                last_liked_at=row["last_liked_at"],
                user_ids=row.get("user_ids") or [],
            )
            for row in (result.data or [])
        ]
        mutual_likes_cache.set(household_id, mutual_likes)
        return mutual_likes

    def _household_mutual_likes_or_empty(self, household_id: str) -> List[MutualLike]:
        try:
            return self._household_mutual_likes(household_id)
        except Exception as e:
            logger.error(f"Mutual likes unavailable for household {household_id}: {e}")
            return []

    def _mutual_likes_fallback(self, household_id: str) -> List[MutualLike]:
        result = self.supabase.table("user_property_interactions")\
            .select("property_id, user_id, created_at")\
            .eq("household_id", household_id)\
            .eq("interaction_type", "like")\
            .execute()
        if not result.data:
            return []
        return aggregate_mutual_likes(result.data)

    # Activity

    def get_household_activity(self, user_id: str, limit: int = 20, offset: int = 0) -> List[HouseholdActivity]:
        """Recent household interactions with property details (cached 2 minutes per page)"""
        try:
            household_id = self.get_user_household(user_id)
            if not household_id:
                return []

            cache_key = (household_id, limit, offset)
            cached = household_activity_cache.get(cache_key)
            if cached is not None:
                return cached

            try:
                result = self.supabase.rpc("get_household_activity_enhanced", {
                    "p_household_id": household_id,
                    "p_limit": limit,
                    "p_offset": offset,
                }).execute()
                rows = result.data or []
            except APIError as e:
                logger.error(f"Error fetching household activity for {household_id}: {e}")
                rows = []

            mutual_ids: Set[str] = {m.property_id for m in self._household_mutual_likes_or_empty(household_id)}
            activity = [
                HouseholdActivity(
                    id=row["id"],
                    user_id=row["user_id"],
                    property_id=row["property_id"],
                    interaction_type=row["interaction_type"],
                    created_at=row["created_at"],
                    user_display_name=row.get("user_display_name") or "Unknown",
                    property_address=row.get("property_address") or "",
                    property_price=row.get("property_price") or 0,
                    property_bedrooms=row.get("property_bedrooms") or 0,
                    property_bathrooms=row.get("property_bathrooms") or 0,
                    property_images=row.get("property_images") or [],
                    is_mutual=row["interaction_type"] == "like" and row["property_id"] in mutual_ids,
                )
                for row in rows
            ]
            household_activity_cache.set(cache_key, activity)
            return activity
        except Exception as e:
            logger.error(f"Unexpected error in get_household_activity for user {user_id}: {e}")
            return []

    # Stats

    def get_household_stats(self, user_id: str) -> Optional[CouplesStats]:
        """Mutual/household like totals and activity streak (cached 10 minutes)"""
        try:
            household_id = self.get_user_household(user_id)
            if not household_id:
                return None

            cached = household_stats_cache.get(household_id)
            if cached is not None:
                return cached

            mutual_likes = self._household_mutual_likes_or_empty(household_id)

            likes_result = self.supabase.table("user_property_interactions")\
                .select("id", count="exact")\
                .eq("household_id", household_id)\
                .eq("interaction_type", "like")\
                .execute()

            recent_result = self.supabase.table("user_property_interactions")\
                .select("created_at")\
                .eq("household_id", household_id)\
                .order("created_at", desc=True)\
                .limit(STREAK_WINDOW)\
                .execute()

            last_mutual = max((m.last_liked_at for m in mutual_likes), default=None)
            stats = CouplesStats(
                total_mutual_likes=len(mutual_likes),
                total_household_likes=likes_result.count or 0,
                activity_streak_days=compute_activity_streak(
                    row["created_at"] for row in (recent_result.data or [])
                ),
                last_mutual_like_at=last_mutual,
            )
            household_stats_cache.set(household_id, stats)
            return stats
        except Exception as e:
            logger.error(f"Unexpected error in get_household_stats for user {user_id}: {e}")
            return None

    # Interaction hooks

    def check_potential_mutual_like(self, user_id: str, property_id: str) -> PotentialMutualLike:
        """Whether another household member already liked the property"""
        try:
            household_id = self.get_user_household(user_id)
            if not household_id:
                return PotentialMutualLike(would_be_mutual=False)

            result = self.supabase.table("user_property_interactions")\
                .select("user_id")\
                .eq("household_id", household_id)\
                .eq("property_id", property_id)\
                .eq("interaction_type", "like")\
                .neq("user_id", user_id)\
                .execute()
            if result.data:
                return PotentialMutualLike(would_be_mutual=True, partner_user_id=result.data[0]["user_id"])
            return PotentialMutualLike(would_be_mutual=False)
        except Exception as e:
            logger.error(f"Error checking potential mutual like: {e}")
            return PotentialMutualLike(would_be_mutual=False)

    def notify_interaction(self, user_id: str, property_id: str, interaction_type: str) -> Optional[str]:
        """Invalidate household caches after a write. Returns the household id that was cleared, if any."""
        try:
            household_id = self.get_user_household(user_id)
            if not household_id:
                return None
            self.clear_household_cache(household_id)

            if interaction_type == "like":
                potential = self.check_potential_mutual_like(user_id, property_id)
                if potential.would_be_mutual and potential.partner_user_id:
                    logger.info(
                        f"Mutual like on property {property_id} between {user_id} and {potential.partner_user_id}"
                    )
            return household_id
        except Exception as e:
            logger.error(f"Error in notify_interaction: {e}")
            return None

    # Route helpers

    def get_properties_by_ids(self, property_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        if not property_ids:
            return {}
        result = self.supabase.table("properties")\
            .select("*")\
            .in_("id", property_ids)\
            .execute()
        return {row["id"]: row for row in (result.data or [])}

    def check_mutual(self, user_id: str, property_id: str) -> Dict[str, Any]:
        """Celebration payload for a property that is (or is not) a mutual like"""
        mutual_likes = self.get_mutual_likes(user_id)
        match = next((m for m in mutual_likes if m.property_id == property_id), None)
        if match is None:
            return {"isMutual": False}

        partner_id = next((uid for uid in match.user_ids if uid != user_id), None)
        partner_name = "Your partner"
        if partner_id:
            partner = self.supabase.table("user_profiles")\
                .select("display_name, email")\
                .eq("id", partner_id)\
                .maybe_single()\
                .execute()
            if partner and partner.data:
                partner_name = partner.data.get("display_name") or partner.data.get("email") or partner_name

        prop = self.supabase.table("properties")\
            .select("address")\
            .eq("id", property_id)\
            .maybe_single()\
            .execute()
        property_address = (prop.data or {}).get("address") if prop else None

        stats = self.get_household_stats(user_id)
        response: Dict[str, Any] = {
            "isMutual": True,
            "partnerName": partner_name,
            "propertyAddress": property_address or "this property",
            "streak": stats.activity_streak_days if stats else 0,
        }
        count = len(mutual_likes)
        if count > 0 and count % MILESTONE_EVERY == 0:
            response["milestone"] = Milestone(count=count).model_dump()
        return response

    # Disputed properties

    def get_disputed_properties(self, user_id: str) -> List[DisputedProperty]:
        """Properties whose latest household reactions conflict (like vs dislike/skip), unresolved only"""
        try:
            household_id = self.get_user_household(user_id)
            if not household_id:
                raise HTTPException(status_code=404, detail="No household found")

            members_result = self.supabase.table("user_profiles")\
                .select("id, display_name, email")\
                .eq("household_id", household_id)\
                .execute()
            members = {m["id"]: m for m in (members_result.data or [])}
            if len(members) < 2:
                return []

            resolved: Set[str] = set()
            try:
                resolutions = self.supabase.table("household_property_resolutions")\
                    .select("property_id")\
                    .eq("household_id", household_id)\
                    .execute()
                resolved = {r["property_id"] for r in (resolutions.data or []) if r.get("property_id")}
            except APIError as e:
                logger.error(f"Error fetching resolutions for household {household_id}: {e}")

            interactions = self.supabase.table("user_property_interactions")\
                .select("id, user_id, property_id, interaction_type, created_at, score_data, "
                        "properties (address, price, bedrooms, bathrooms, square_feet, images, listing_status)")\
                .eq("household_id", household_id)\
                .in_("interaction_type", list(CONFLICTING_TYPES))\
                .order("created_at", desc=True)\
                .execute()

            latest: Dict[str, Dict[str, Dict[str, Any]]] = {}
            summaries: Dict[str, Any] = {}
            for row in interactions.data or []:
                property_id = row["property_id"]
                if property_id in resolved:
                    continue
                if property_id not in summaries:
                    source = row.get("properties")
                    if isinstance(source, list):
                        source = source[0] if source else None
                    summaries[property_id] = source if isinstance(source, dict) else None
                per_user = latest.setdefault(property_id, {})
                current = per_user.get(row["user_id"])
                if current is None or row["created_at"] > current["created_at"]:
                    per_user[row["user_id"]] = row

            disputed: List[DisputedProperty] = []
            for property_id, per_user in latest.items():
                picks = list(per_user.values())
                if len(picks) < 2:
                    continue
                types = {p["interaction_type"] for p in picks}
                if "like" not in types or not ({"dislike", "skip"} & types):
                    continue
                first, second = picks[0], picks[1]
                if first["user_id"] not in members or second["user_id"] not in members:
                    continue
                summary = summaries.get(property_id)
                disputed.append(DisputedProperty(
                    property_id=property_id,
                    property=DisputedPropertySummary(**{k: v for k, v in summary.items() if v is not None})
                    if summary else DisputedPropertySummary(),
                    partner1=self._disputed_partner(members[first["user_id"]], first),
                    partner2=self._disputed_partner(members[second["user_id"]], second),
                    last_updated=max(first["created_at"], second["created_at"]),
                ))

            disputed.sort(key=lambda d: d.last_updated, reverse=True)
            return disputed
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error fetching disputed properties: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch disputed properties")

    @staticmethod
    def _disputed_partner(profile: Dict[str, Any], interaction: Dict[str, Any]) -> DisputedPartner:
        score_data = interaction.get("score_data") if isinstance(interaction.get("score_data"), dict) else None
        notes = score_data.get("notes") if score_data else None
        return DisputedPartner(
            user_id=profile["id"],
            user_name=profile.get("display_name") or profile.get("email") or "Household member",
            user_email=profile.get("email") or "",
            interaction_type=interaction["interaction_type"],
            created_at=interaction["created_at"],
            score_data=score_data,
            notes=notes if isinstance(notes, str) else None,
        )

    def resolve_disputed_property(self, user_id: str, property_id: str, resolution_type: str) -> Dict[str, Any]:
        try:
            household_id = self.get_user_household(user_id)
            if not household_id:
                raise HTTPException(status_code=404, detail="No household found")

            now = datetime.now(timezone.utc).isoformat()
            self.supabase.table("household_property_resolutions").upsert({
                "household_id": household_id,
                "property_id": property_id,
                "resolution_type": resolution_type,
                "resolved_by": user_id,
                "resolved_at": now,
                "updated_at": now,
            }, on_conflict="household_id,property_id").execute()
            return {
                "success": True,
                "property_id": property_id,
                "resolution_type": resolution_type,
                "timestamp": now,
            }
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error saving resolution for property {property_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to save resolution")
