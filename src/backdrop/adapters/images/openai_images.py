from __future__ import annotations

import http.client
import json
import logging
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from pydantic import ValidationError

from ...domain.models import ImageCandidate, ImageCriteria, Orientation
from .base import ImageSourceError

LOGGER = logging.getLogger(__name__)

OPENAI_IMAGE_GENERATIONS_URL = "https://api.openai.com/v1/images/generations"
# Generation is slow; a single image routinely takes tens of seconds.
DEFAULT_TIMEOUT_SECONDS = 90
USER_AGENT = "backdrop/0.1"


def _post_json(url: str, body: dict[str, Any], *, headers: dict[str, str]) -> Any:
    request = Request(
        url,
        data=json.dumps(body).encode("utf-8"),
        headers={"User-Agent": USER_AGENT, "Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urlopen(request, timeout=DEFAULT_TIMEOUT_SECONDS) as response:
            return json.loads(response.read().decode("utf-8"))
    except HTTPError as exc:
        raise ImageSourceError(f"OpenAI image request failed with status {exc.code}") from exc
    except (
        URLError,
        http.client.HTTPException,
        TimeoutError,
        OSError,
        UnicodeDecodeError,
        json.JSONDecodeError,
    ) as exc:
        raise ImageSourceError("Failed to generate image with OpenAI") from exc


def _parse_size(size: str) -> tuple[int, int] | None:
    width, sep, height = size.strip().lower().partition("x")
    if not sep:
        return None
    try:
        dimensions = int(width), int(height)
    except ValueError:
        return None
    return dimensions if min(dimensions) > 0 else None


def size_matches_orientation(dimensions: tuple[int, int], orientation: Orientation | None) -> bool:
    width, height = dimensions
    return ImageCandidate(
        url=OPENAI_IMAGE_GENERATIONS_URL, width=width, height=height
    ).matches_orientation(orientation)


def build_prompt(base_prompt: str, criteria: ImageCriteria) -> str:
    parts = [base_prompt.strip(), f"Subject: {criteria.query}."]
    if criteria.color is not None:
        parts.append(f"Palette: {criteria.color.replace('_', ' ')} tones.")
    if criteria.orientation is not None:
        parts.append(f"Composition: {criteria.orientation}.")
    return " ".join(parts)


class OpenAIImageAdapter:
    """Generates images with the OpenAI Images API.

    The model returns one image per request, so ``fetch_many`` issues one
    generation per requested image. Orientation is steered by the requested
    size; a response reporting a different size counts as a violation.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        prompt: str,
        model: str = "dall-e-3",
        size: str = "1792x1024",
        orientation: Orientation | None = None,
        max_attempts: int = 5,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        dimensions = _parse_size(size)
        if dimensions is None:
            raise ValueError(f"Invalid image size: {size}")
        if not size_matches_orientation(dimensions, orientation):
            raise ValueError(f"Image size {size} cannot produce {orientation} images")
        self._api_key = api_key
        self._prompt = prompt
        self._model = model
        self._size = size
        self._max_attempts = max_attempts

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def fetch_one(self, criteria: ImageCriteria) -> str | None:
        if not self.configured:
            LOGGER.warning("OpenAI API key is not configured; skipping generation")
            return None

        for attempt in range(1, self._max_attempts + 1):
            try:
                candidate = self._generate(criteria)
            except ImageSourceError as exc:
                LOGGER.warning("OpenAI image generation failed: %s", exc)
                return None

            if candidate.matches_orientation(criteria.orientation):
                LOGGER.info("Generated OpenAI image on attempt %d", attempt)
                return candidate.url
            LOGGER.info(
                "Discarded generated image %sx%s: not %s (attempt %d/%d)",
                candidate.width,
                candidate.height,
                criteria.orientation,
                attempt,
                self._max_attempts,
            )

        LOGGER.warning(
            "No %s generated image after %d attempts",
            criteria.orientation,
            self._max_attempts,
        )
        return None

    def fetch_many(self, criteria: ImageCriteria, count: int) -> list[str]:
        urls: list[str] = []
        for _ in range(max(count, 0)):
            url = self.fetch_one(criteria)
            if url is None:
                break
            urls.append(url)
        return urls

    def _generate(self, criteria: ImageCriteria) -> ImageCandidate:
        payload = _post_json(
            OPENAI_IMAGE_GENERATIONS_URL,
            {
                "model": self._model,
                "prompt": build_prompt(self._prompt, criteria),
                "n": 1,
                "size": self._size,
            },
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        if not isinstance(payload, dict):
            raise ImageSourceError("Unexpected OpenAI response shape")

        data = payload.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise ImageSourceError("OpenAI response did not include image data")
        url = data[0].get("url")
        if not isinstance(url, str):
            raise ImageSourceError("OpenAI response did not include an image URL")

        reported_size = payload.get("size")
        dimensions = _parse_size(reported_size) if isinstance(reported_size, str) else None
        width, height = dimensions or _parse_size(self._size) or (None, None)
        try:
            return ImageCandidate(url=url, width=width, height=height)
        except ValidationError as exc:
            raise ImageSourceError("OpenAI response included an invalid image URL") from exc
