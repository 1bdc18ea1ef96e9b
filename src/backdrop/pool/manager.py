"""Image pool cache and refresh policy.

Every load runs one cycle: read the stored pool, count the load, maybe grow
the pool from the image source, pick one image, write the pool back. While
the pool is below ``floor`` every load grows it; once at or above the floor
only every ``growth_interval``-th load fetches, so most loads never touch the
remote API. An empty pool is seeded with one batch request instead of single
fetches.

Nothing in a cycle is fatal. Storage and source failures degrade to "no
cache" or "no new image", and anything unexpected degrades to a random pick
from the fallback list.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Sequence

from pydantic import ValidationError

from ..adapters.images.base import ImageSourceAdapter
from ..domain.models import ImageCriteria, ImagePool, SelectedImage
from ..storage.kv import KeyValueStore, StorageError

LOGGER = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "backgroundImageData"
DEFAULT_FLOOR = 3
DEFAULT_GROWTH_INTERVAL = 5
DEFAULT_BOOTSTRAP_COUNT = 3
DEFAULT_QUERY = "minimalist landscape"


def should_grow(
    pool_size: int,
    total_loads: int,
    *,
    floor: int = DEFAULT_FLOOR,
    growth_interval: int = DEFAULT_GROWTH_INTERVAL,
) -> bool:
    """Decide whether this load fetches more images.

    ``pool_size`` is the size before any mutation in the current cycle and
    ``total_loads`` is the counter after this load was counted.
    """
    if pool_size < floor:
        return True
    return total_loads % growth_interval == 0


def _default_criteria() -> ImageCriteria:
    return ImageCriteria(query=DEFAULT_QUERY, orientation="landscape")


class PoolManager:
    def __init__(
        self,
        *,
        storage: KeyValueStore,
        adapter: ImageSourceAdapter,
        fallback_images: Sequence[str],
        storage_key: str = DEFAULT_STORAGE_KEY,
        floor: int = DEFAULT_FLOOR,
        growth_interval: int = DEFAULT_GROWTH_INTERVAL,
        bootstrap_count: int = DEFAULT_BOOTSTRAP_COUNT,
        criteria_factory: Callable[[], ImageCriteria] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if not fallback_images:
            raise ValueError("fallback_images must contain at least one URL")
        if floor < 1 or growth_interval < 1 or bootstrap_count < 1:
            raise ValueError("floor, growth_interval and bootstrap_count must be >= 1")

        self._storage = storage
        self._adapter = adapter
        self._fallback_images = list(fallback_images)
        self._storage_key = storage_key
        self._floor = floor
        self._growth_interval = growth_interval
        self._bootstrap_count = bootstrap_count
        self._criteria_factory = criteria_factory or _default_criteria
        self._rng = rng or random.Random()

    @property
    def adapter(self) -> ImageSourceAdapter:
        return self._adapter

    def run_load_cycle(self) -> SelectedImage:
        try:
            return self._run_load_cycle()
        except Exception:
            LOGGER.exception("Background load cycle failed; using a fallback image")
            return self._fallback_selection()

    def clear(self) -> None:
        """Remove the stored pool entirely so the next load bootstraps."""
        try:
            self._storage.delete(self._storage_key)
        except StorageError:
            LOGGER.exception("Failed to clear image pool '%s'", self._storage_key)
            return
        LOGGER.info("Cleared image pool '%s'", self._storage_key)

    def reset(self) -> SelectedImage:
        self.clear()
        return self.run_load_cycle()

    def peek(self) -> ImagePool:
        """Return the stored pool without counting a load."""
        return self._load_pool()

    def _run_load_cycle(self) -> SelectedImage:
        pool = self._load_pool()
        pool.total_loads += 1

        if should_grow(
            len(pool.images),
            pool.total_loads,
            floor=self._floor,
            growth_interval=self._growth_interval,
        ):
            self._grow(pool)

        if pool.images:
            selected = SelectedImage(
                url=self._rng.choice(pool.images),
                from_fallback=False,
                pool_size=len(pool.images),
                total_loads=pool.total_loads,
            )
        else:
            selected = self._fallback_selection(total_loads=pool.total_loads)

        self._save_pool(pool)
        return selected

    def _grow(self, pool: ImagePool) -> None:
        criteria = self._criteria_factory()
        try:
            if not pool.images:
                urls = self._adapter.fetch_many(criteria, self._bootstrap_count)
                if urls:
                    pool.images = list(urls)
                    LOGGER.info("Seeded image pool with %d images", len(urls))
                else:
                    LOGGER.warning("Image source returned no images for an empty pool")
                return

            url = self._adapter.fetch_one(criteria)
        except Exception:
            LOGGER.exception("Image source raised while growing the pool")
            return

        if url is None:
            LOGGER.warning("Image source returned no image; keeping %d cached", len(pool.images))
            return
        pool.images.append(url)
        LOGGER.info("Added image to pool (%d total, load %d)", len(pool.images), pool.total_loads)

    def _load_pool(self) -> ImagePool:
        try:
            raw_payload = self._storage.read(self._storage_key)
        except StorageError:
            LOGGER.warning("Failed to read image pool '%s'; starting empty", self._storage_key, exc_info=True)
            return ImagePool()

        if raw_payload is None:
            return ImagePool()

        try:
            return ImagePool.model_validate_json(raw_payload)
        except (ValidationError, ValueError):
            LOGGER.warning("Stored image pool '%s' is unreadable; starting empty", self._storage_key)
            return ImagePool()

    def _save_pool(self, pool: ImagePool) -> None:
        try:
            self._storage.write(self._storage_key, pool.to_json())
        except Exception:
            LOGGER.exception("Failed to persist image pool '%s'", self._storage_key)

    def _fallback_selection(self, *, total_loads: int = 0) -> SelectedImage:
        return SelectedImage(
            url=self._rng.choice(self._fallback_images),
            from_fallback=True,
            pool_size=0,
            total_loads=total_loads,
        )
