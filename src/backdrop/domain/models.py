from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Orientation = Literal["landscape", "portrait", "squarish"]

# Aspect ratios within this band count as "squarish" on Unsplash.
SQUARISH_TOLERANCE = 0.1


class ImagePool(BaseModel):
    """Persisted pool of fetched image URLs plus load-count metadata.

    Stored as JSON under a single key using the camelCase field names, so
    payloads written by earlier clients stay readable.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    images: list[str] = Field(default_factory=list)
    total_loads: int = Field(default=0, ge=0, alias="totalLoads")
    # Carried through for payload compatibility; nothing reads it.
    usage_count: int = Field(default=0, ge=0, alias="usageCount")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ImageCriteria(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    query: str
    color: str | None = None
    orientation: Orientation | None = None

    @field_validator("query")
    @classmethod
    def validate_query(cls, value: str) -> str:
        text = " ".join(value.split())
        if not text:
            raise ValueError("image criteria query must not be empty")
        return text


class ImageCandidate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("image url must not be empty")
        return text

    def matches_orientation(self, orientation: Orientation | None) -> bool:
        if orientation is None:
            return True
        if self.width is None or self.height is None:
            return False

        ratio = self.width / self.height
        if orientation == "landscape":
            return ratio > 1 + SQUARISH_TOLERANCE
        if orientation == "portrait":
            return ratio < 1 - SQUARISH_TOLERANCE
        return abs(ratio - 1) <= SQUARISH_TOLERANCE


class SelectedImage(BaseModel):
    url: str
    from_fallback: bool = False
    pool_size: int = 0
    total_loads: int = 0
