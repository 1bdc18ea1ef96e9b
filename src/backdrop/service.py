from __future__ import annotations

import logging
import random
from functools import partial

from .adapters.images import (
    ImageSourceAdapter,
    OpenAIImageAdapter,
    UnsplashImageAdapter,
    random_criteria,
)
from .pool.manager import PoolManager
from .settings import AppSettings
from .storage.kv import KeyValueStore, SqliteKeyValueStore

LOGGER = logging.getLogger(__name__)

CREDENTIAL_ENV_NAMES = {
    "unsplash": "UNSPLASH_ACCESS_KEY",
    "openai": "OPENAI_API_KEY",
}


def build_image_adapter(settings: AppSettings) -> ImageSourceAdapter:
    source = settings.yaml.source
    if source.provider == "unsplash":
        return UnsplashImageAdapter(
            access_key=settings.env.unsplash_access_key,
            content_filter=source.content_filter,
            max_attempts=source.max_attempts,
        )
    if source.provider == "openai":
        return OpenAIImageAdapter(
            api_key=settings.env.openai_api_key,
            prompt=settings.yaml.openai.prompt,
            model=settings.yaml.openai.model,
            size=settings.yaml.openai.size,
            orientation=source.orientation,
            max_attempts=source.max_attempts,
        )
    raise ValueError(f"Unsupported image provider: {source.provider}")


def build_pool_manager(
    settings: AppSettings,
    *,
    adapter: ImageSourceAdapter | None = None,
    storage: KeyValueStore | None = None,
    rng: random.Random | None = None,
) -> PoolManager:
    chooser = rng or random.Random()
    pool_settings = settings.yaml.pool
    return PoolManager(
        storage=storage or SqliteKeyValueStore(settings.db_path),
        adapter=adapter or build_image_adapter(settings),
        fallback_images=settings.yaml.fallback_images,
        storage_key=pool_settings.storage_key,
        floor=pool_settings.floor,
        growth_interval=pool_settings.growth_interval,
        bootstrap_count=pool_settings.bootstrap_count,
        criteria_factory=partial(random_criteria, settings.yaml.source, chooser),
        rng=chooser,
    )


def missing_credential_notice(settings: AppSettings, adapter: ImageSourceAdapter) -> str | None:
    if adapter.configured:
        return None
    env_name = CREDENTIAL_ENV_NAMES.get(settings.yaml.source.provider, "API key")
    LOGGER.warning("Image source '%s' is not configured", settings.yaml.source.provider)
    return f"Set {env_name} to load fresh backgrounds. Showing a cached or default image."
