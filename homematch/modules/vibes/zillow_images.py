"""Zillow photo galleries via the RapidAPI /images endpoint."""
import logging
from typing import Any, List, Optional
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

DEFAULT_RAPIDAPI_HOST = "us-housing-market-data1.p.rapidapi.com"
REQUEST_TIMEOUT_SEC = 30


class ZillowImagesError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def is_street_view_image_url(url: str) -> bool:
    lowered = url.lower()
    return "maps.googleapis.com" in lowered and "streetview" in lowered


def is_zillow_static_image_url(url: str) -> bool:
    host = urlparse(url).hostname or ""
    return host == "zillowstatic.com" or host.endswith(".zillowstatic.com")


def _extract_urls(payload: Any) -> List[str]:
    if isinstance(payload, dict):
        payload = payload.get("images") or payload.get("data") or []
    if not isinstance(payload, list):
        return []
    urls = []
    for item in payload:
        if isinstance(item, str):
            urls.append(item)
        elif isinstance(item, dict) and isinstance(item.get("url"), str):
            urls.append(item["url"])
    return urls


def fetch_zillow_image_urls(
    zpid: str,
    rapid_api_key: str,
    host: str = DEFAULT_RAPIDAPI_HOST,
    session: Optional[requests.Session] = None,
) -> List[str]:
    """Full gallery for a listing, in Zillow order, de-duplicated"""
    http = session or requests
    response = http.get(
        f"https://{host}/images",
        params={"zpid": zpid},
        headers={"X-RapidAPI-Key": rapid_api_key, "X-RapidAPI-Host": host},
        timeout=REQUEST_TIMEOUT_SEC,
    )
    if response.status_code == 429:
        raise ZillowImagesError("RATE_LIMIT", 429)
    if not response.ok:
        raise ZillowImagesError(
            f"HTTP {response.status_code} for zpid {zpid}: {response.text[:200]}", response.status_code
        )

    seen = set()
    urls = []
    for url in _extract_urls(response.json()):
        if url and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls
