from __future__ import annotations

from typing import Protocol

from ...domain.models import ImageCriteria


class ImageSourceError(RuntimeError):
    """Raised when an image provider request cannot be completed."""


class ImageSourceAdapter(Protocol):
    @property
    def configured(self) -> bool:
        """Whether the credential this source needs is available."""

    def fetch_one(self, criteria: ImageCriteria) -> str | None:
        """Return one on-theme image URL, or ``None`` when the source fails."""

    def fetch_many(self, criteria: ImageCriteria, count: int) -> list[str]:
        """Return up to ``count`` on-theme image URLs; may be shorter or empty."""
