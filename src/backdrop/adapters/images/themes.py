from __future__ import annotations

import random

from ...domain.models import ImageCriteria
from ...settings import SourceSettings


def random_criteria(source: SourceSettings, rng: random.Random | None = None) -> ImageCriteria:
    """Pick a query and palette color from the configured vocabulary.

    The orientation is fixed by configuration so variety never weakens the
    landscape constraint.
    """
    chooser = rng if rng is not None else random
    query = chooser.choice(source.queries)
    color = chooser.choice(source.colors) if source.colors else None
    return ImageCriteria(query=query, color=color, orientation=source.orientation)
