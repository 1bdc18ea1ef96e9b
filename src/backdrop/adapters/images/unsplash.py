from __future__ import annotations

import http.client
import json
import logging
from typing import Any, Literal
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from pydantic import ValidationError

from ...domain.models import ImageCandidate, ImageCriteria
from .base import ImageSourceError

LOGGER = logging.getLogger(__name__)

UNSPLASH_RANDOM_PHOTO_URL = "https://api.unsplash.com/photos/random"
DEFAULT_TIMEOUT_SECONDS = 15
USER_AGENT = "backdrop/0.1"
# Unsplash rejects batch sizes above this.
MAX_BATCH_COUNT = 30

UNSPLASH_COLORS = frozenset(
    {
        "black_and_white",
        "black",
        "white",
        "yellow",
        "orange",
        "red",
        "purple",
        "magenta",
        "green",
        "teal",
        "blue",
    }
)


def _fetch_json(url: str, *, headers: dict[str, str]) -> Any:
    request = Request(url, headers={"User-Agent": USER_AGENT, **headers})
    try:
        with urlopen(request, timeout=DEFAULT_TIMEOUT_SECONDS) as response:
            return json.loads(response.read().decode("utf-8"))
    except HTTPError as exc:
        raise ImageSourceError(f"Unsplash request failed with status {exc.code}") from exc
    except (
        URLError,
        http.client.HTTPException,
        TimeoutError,
        OSError,
        UnicodeDecodeError,
        json.JSONDecodeError,
    ) as exc:
        raise ImageSourceError("Failed to fetch photos from Unsplash") from exc


def _coerce_dimension(value: Any) -> int | None:
    try:
        dimension = int(value)
    except (TypeError, ValueError):
        return None
    return dimension if dimension > 0 else None


def _parse_photo(item: Any) -> ImageCandidate | None:
    if not isinstance(item, dict):
        return None
    urls = item.get("urls")
    if not isinstance(urls, dict):
        return None
    url = urls.get("full") or urls.get("regular")
    if not isinstance(url, str):
        return None
    try:
        return ImageCandidate(
            url=url,
            width=_coerce_dimension(item.get("width")),
            height=_coerce_dimension(item.get("height")),
        )
    except ValidationError:
        return None


def _parse_payload(payload: Any) -> list[ImageCandidate]:
    if isinstance(payload, dict):
        items = [payload]
    elif isinstance(payload, list):
        items = payload
    else:
        raise ImageSourceError("Unexpected Unsplash response shape")

    candidates = [candidate for candidate in map(_parse_photo, items) if candidate is not None]
    if not candidates:
        raise ImageSourceError("Unsplash response did not include any usable photo URLs")
    return candidates


class UnsplashImageAdapter:
    def __init__(
        self,
        *,
        access_key: str | None,
        content_filter: Literal["low", "high"] = "high",
        max_attempts: int = 5,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._access_key = access_key
        self._content_filter = content_filter
        self._max_attempts = max_attempts

    @property
    def configured(self) -> bool:
        return bool(self._access_key)

    def fetch_one(self, criteria: ImageCriteria) -> str | None:
        if not self.configured:
            LOGGER.warning("Unsplash access key is not configured; skipping fetch")
            return None

        for attempt in range(1, self._max_attempts + 1):
            try:
                candidates = self._request(criteria, count=None)
            except ImageSourceError as exc:
                LOGGER.warning("Unsplash fetch failed: %s", exc)
                return None

            candidate = candidates[0]
            if candidate.matches_orientation(criteria.orientation):
                LOGGER.info("Fetched Unsplash photo for '%s' on attempt %d", criteria.query, attempt)
                return candidate.url
            LOGGER.info(
                "Discarded Unsplash photo %sx%s: not %s (attempt %d/%d)",
                candidate.width,
                candidate.height,
                criteria.orientation,
                attempt,
                self._max_attempts,
            )

        LOGGER.warning(
            "No %s Unsplash photo after %d attempts",
            criteria.orientation,
            self._max_attempts,
        )
        return None

    def fetch_many(self, criteria: ImageCriteria, count: int) -> list[str]:
        if count <= 0:
            return []
        if not self.configured:
            LOGGER.warning("Unsplash access key is not configured; skipping batch fetch")
            return []

        urls: list[str] = []
        attempts = 0
        while len(urls) < count and attempts < self._max_attempts:
            attempts += 1
            shortfall = min(count - len(urls), MAX_BATCH_COUNT)
            try:
                candidates = self._request(criteria, count=shortfall)
            except ImageSourceError as exc:
                LOGGER.warning("Unsplash batch fetch failed: %s", exc)
                break

            for candidate in candidates:
                if len(urls) >= count:
                    break
                if candidate.matches_orientation(criteria.orientation):
                    urls.append(candidate.url)

        if len(urls) < count:
            LOGGER.warning("Unsplash returned %d of %d requested photos", len(urls), count)
        else:
            LOGGER.info("Fetched %d Unsplash photos for '%s'", len(urls), criteria.query)
        return urls

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Client-ID {self._access_key}",
            "Accept-Version": "v1",
        }

    def _build_url(self, criteria: ImageCriteria, *, count: int | None) -> str:
        params = {
            "query": criteria.query,
            "content_filter": self._content_filter,
        }
        if criteria.orientation is not None:
            params["orientation"] = criteria.orientation
        if criteria.color is not None:
            if criteria.color in UNSPLASH_COLORS:
                params["color"] = criteria.color
            else:
                LOGGER.debug("Ignoring color '%s' not supported by Unsplash", criteria.color)
        if count is not None:
            params["count"] = str(count)
        return f"{UNSPLASH_RANDOM_PHOTO_URL}?{urlencode(params)}"

    def _request(self, criteria: ImageCriteria, *, count: int | None) -> list[ImageCandidate]:
        payload = _fetch_json(self._build_url(criteria, count=count), headers=self._headers())
        return _parse_payload(payload)
