"""HTTP client for /api/interactions with optimistic cache updates."""
import logging
from typing import Any, Dict, List, Optional

import requests

from homematch.client.query_cache import QueryCache

logger = logging.getLogger(__name__)

SUMMARY_KEY = ("interactions", "summary")
LIST_PREFIX = ("interactions", "list")
REQUEST_TIMEOUT_SEC = 15

# Summary count bumped for each interaction type
TYPE_CATEGORY = {
    "like": "liked",
    "dislike": "passed",
    "skip": "passed",
    "view": "viewed",
}


def list_key(category: str):
    return LIST_PREFIX + (category,)


class InteractionsApiError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class InteractionsClient:
    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        cache: Optional[QueryCache] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.session = session or requests.Session()
        self.cache = cache or QueryCache()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            headers=headers,
            timeout=REQUEST_TIMEOUT_SEC,
            **kwargs,
        )
        if not response.ok:
            try:
                message = response.json().get("error") or response.reason
            except ValueError:
                message = response.text or response.reason
            raise InteractionsApiError(message, response.status_code)
        return response.json()

    def _invalidate(self) -> None:
        self.cache.invalidate_queries(SUMMARY_KEY)
        self.cache.invalidate_queries(LIST_PREFIX)

    def fetch_summary(self) -> Dict[str, int]:
        summary = self._request("GET", "/api/interactions", params={"type": "summary"})
        self.cache.set_query_data(SUMMARY_KEY, summary)
        return summary

    def fetch_list(self, category: str, cursor: Optional[str] = None, limit: Optional[int] = None) -> Dict[str, Any]:
        """Fetch one page. Without a cursor the cached pages restart from this one."""
        params: Dict[str, Any] = {"type": category}
        if cursor:
            params["cursor"] = cursor
        if limit is not None:
            params["limit"] = limit
        page = self._request("GET", "/api/interactions", params=params)

        key = list_key(category)
        pages: List[Dict[str, Any]] = self.cache.get_query_data(key) or []
        self.cache.set_query_data(key, pages + [page] if cursor else [page])
        return page

    def record_interaction(self, property_id: str, interaction_type: str) -> Dict[str, Any]:
        category = TYPE_CATEGORY.get(interaction_type)
        if category is None:
            raise ValueError(f"Unknown interaction type: {interaction_type}")

        def bump(summary):
            return {**summary, category: summary.get(category, 0) + 1}

        self.cache.update_query_data(SUMMARY_KEY, bump)
        try:
            body = self._request(
                "POST",
                "/api/interactions",
                json={"propertyId": property_id, "type": interaction_type},
            )
            return body.get("interaction", body)
        finally:
            # The server is the source of truth either way; refetch on next read
            self._invalidate()

    def delete_interaction(self, category: str, property_id: str) -> Dict[str, Any]:
        def drop_item(pages):
            return [
                {
                    **page,
                    "items": [
                        item for item in page.get("items", [])
                        if str((item.get("property") or item).get("id")) != str(property_id)
                    ],
                }
                for page in pages
            ]

        def decrement(summary):
            return {**summary, category: max(0, summary.get(category, 0) - 1)}

        self.cache.update_query_data(list_key(category), drop_item)
        self.cache.update_query_data(SUMMARY_KEY, decrement)
        try:
            return self._request("DELETE", "/api/interactions", params={"propertyId": property_id})
        finally:
            self._invalidate()
