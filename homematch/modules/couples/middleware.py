"""
Hooks that keep the couples caches consistent with interaction writes
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from supabase import Client

from homematch.modules.couples.schemas import InteractionOutcome
from homematch.modules.couples.service import CouplesService

logger = logging.getLogger(__name__)

WARM_ACTIVITY_LIMIT = 20


class CouplesMiddleware:
    def __init__(self, supabase: Client, service: CouplesService = None):
        self.supabase = supabase
        self.service = service or CouplesService(supabase)

    def on_property_interaction(self, user_id: str, property_id: str, interaction_type: str) -> InteractionOutcome:
        """Check for a partner's like first, then invalidate household caches."""
        try:
            potential = self.service.check_potential_mutual_like(user_id, property_id)
            self.service.notify_interaction(user_id, property_id, interaction_type)
            return InteractionOutcome(
                mutual_like_created=interaction_type == "like" and potential.would_be_mutual,
                partner_user_id=potential.partner_user_id,
                cache_cleared=True,
            )
        except Exception as e:
            logger.error(f"Error handling interaction of user {user_id} on property {property_id}: {e}")
            return InteractionOutcome(mutual_like_created=False, cache_cleared=False)

    def on_household_change(self, household_id: str) -> None:
        try:
            self.service.clear_household_cache(household_id)
        except Exception as e:
            logger.error(f"Error clearing cache for household {household_id}: {e}")

    def warm_cache(self, user_id: str) -> None:
        """Preload mutual likes, first activity page and stats in parallel"""
        tasks = {
            "mutual_likes": lambda: self.service.get_mutual_likes(user_id),
            "activity": lambda: self.service.get_household_activity(user_id, WARM_ACTIVITY_LIMIT, 0),
            "stats": lambda: self.service.get_household_stats(user_id),
        }
        with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
            futures = {name: executor.submit(fn) for name, fn in tasks.items()}
        for name, future in futures.items():
            error = future.exception()
            if error is not None:
                logger.error(f"Cache warm-up of {name} failed for user {user_id}: {error}")
