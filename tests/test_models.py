from __future__ import annotations

import pytest
from pydantic import ValidationError

from backdrop.domain.models import ImageCandidate, ImageCriteria, ImagePool


@pytest.mark.parametrize(
    ("width", "height", "orientation", "expected"),
    [
        (6000, 4000, "landscape", True),
        (4000, 6000, "landscape", False),
        (1000, 1050, "landscape", False),
        (4000, 6000, "portrait", True),
        (1000, 1050, "squarish", True),
        (6000, 4000, "squarish", False),
        (4000, 6000, None, True),
    ],
)
def test_candidate_orientation(width, height, orientation, expected):
    candidate = ImageCandidate(url="https://img/1", width=width, height=height)

    assert candidate.matches_orientation(orientation) is expected


def test_candidate_without_dimensions_fails_any_constraint():
    candidate = ImageCandidate(url="https://img/1")

    assert candidate.matches_orientation("landscape") is False
    assert candidate.matches_orientation(None) is True


def test_pool_reads_camel_case_payload_and_ignores_extras():
    pool = ImagePool.model_validate_json(
        '{"images": ["https://img/1"], "totalLoads": 4, "usageCount": 2, "lastShown": "x"}'
    )

    assert pool.images == ["https://img/1"]
    assert pool.total_loads == 4
    assert pool.usage_count == 2
    assert pool.to_json() == '{"images":["https://img/1"],"totalLoads":4,"usageCount":2}'


def test_pool_defaults_for_missing_fields():
    pool = ImagePool.model_validate_json('{"images": []}')

    assert pool.total_loads == 0
    assert pool.usage_count == 0


def test_criteria_requires_query():
    with pytest.raises(ValidationError):
        ImageCriteria(query="   ")
