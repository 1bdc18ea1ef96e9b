from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain.models import ImageCandidate, Orientation

PROJECT_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_FALLBACK_IMAGES = [
    "https://images.unsplash.com/photo-1506905925346-21bda4d32df4?q=80&w=2070&auto=format&fit=crop",
    "https://images.unsplash.com/photo-1511884642898-4c92249e20b6?q=80&w=2070&auto=format&fit=crop",
    "https://images.unsplash.com/photo-1485470733090-0aae1788d5af?q=80&w=2517&auto=format&fit=crop",
]

DEFAULT_QUERIES = [
    "minimalist landscape",
    "minimal horizon",
    "lone mountain silhouette",
    "calm sea horizon",
    "desert dune minimal",
    "single tree fog",
]

DEFAULT_COLORS = ["blue", "teal", "purple", "orange", "white"]

DEFAULT_PROMPT = (
    "Generate an ultra-minimalist, sublime landscape that stuns with its simplicity and depth. "
    "Use only 2-3 subtle, tranquil colors with clean, unbroken lines and expansive negative "
    "space. The horizon should pull the eye effortlessly into the distance, blending into a "
    "minimalist sky of one faint hue."
)


def _normalize_vocabulary(values: list[str], *, field_name: str) -> list[str]:
    normalized: list[str] = []
    for raw_value in values:
        if not isinstance(raw_value, str):
            raise ValueError(f"{field_name} entries must be strings")
        text = " ".join(raw_value.split())
        if not text:
            raise ValueError(f"{field_name} entries must not be empty")
        normalized.append(text)
    return list(dict.fromkeys(normalized))


class UiSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = "Backdrop"


class PoolSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    storage_key: str = "backgroundImageData"
    floor: int = Field(default=3, ge=1, le=100)
    growth_interval: int = Field(default=5, ge=1, le=1000)
    bootstrap_count: int = Field(default=3, ge=1, le=30)

    @field_validator("storage_key")
    @classmethod
    def validate_storage_key(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("pool.storage_key must not be empty")
        return text


class SourceSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    provider: Literal["unsplash", "openai"] = "unsplash"
    orientation: Orientation | None = "landscape"
    max_attempts: int = Field(default=5, ge=1, le=20)
    content_filter: Literal["low", "high"] = "high"
    queries: list[str] = Field(default_factory=lambda: list(DEFAULT_QUERIES))
    colors: list[str] = Field(default_factory=lambda: list(DEFAULT_COLORS))

    @field_validator("queries")
    @classmethod
    def validate_queries(cls, values: list[str]) -> list[str]:
        normalized = _normalize_vocabulary(values, field_name="source.queries")
        if not normalized:
            raise ValueError("source.queries must contain at least one search term")
        return normalized

    @field_validator("colors")
    @classmethod
    def validate_colors(cls, values: list[str]) -> list[str]:
        return [color.lower() for color in _normalize_vocabulary(values, field_name="source.colors")]


class OpenAISettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    model: str = "dall-e-3"
    size: str = "1792x1024"
    prompt: str = DEFAULT_PROMPT

    @field_validator("size")
    @classmethod
    def validate_size(cls, value: str) -> str:
        text = value.strip().lower()
        width, sep, height = text.partition("x")
        if not sep or not width.isdigit() or not height.isdigit():
            raise ValueError("openai.size must look like '1792x1024'")
        if int(width) == 0 or int(height) == 0:
            raise ValueError("openai.size dimensions must be positive")
        return text

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, value: str) -> str:
        text = " ".join(value.split())
        if not text:
            raise ValueError("openai.prompt must not be empty")
        return text


class BackdropYamlSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ui: UiSettings = Field(default_factory=UiSettings)
    pool: PoolSettings = Field(default_factory=PoolSettings)
    source: SourceSettings = Field(default_factory=SourceSettings)
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    fallback_images: list[str] = Field(default_factory=lambda: list(DEFAULT_FALLBACK_IMAGES))

    @field_validator("fallback_images")
    @classmethod
    def validate_fallback_images(cls, values: list[str]) -> list[str]:
        normalized: list[str] = []
        for raw_url in values:
            text = raw_url.strip()
            parsed = urlparse(text)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError("fallback_images entries must be absolute http(s) URLs")
            normalized.append(text)
        if not normalized:
            raise ValueError("fallback_images must contain at least one URL")
        return normalized

    @model_validator(mode="after")
    def validate_openai_orientation(self) -> BackdropYamlSettings:
        if self.source.provider != "openai" or self.source.orientation is None:
            return self
        width, _, height = self.openai.size.partition("x")
        candidate = ImageCandidate(url=self.openai.model, width=int(width), height=int(height))
        if not candidate.matches_orientation(self.source.orientation):
            raise ValueError(
                f"openai.size {self.openai.size} cannot produce {self.source.orientation} images"
            )
        return self


class EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    backdrop_env: Literal["dev", "test", "prod"] = "dev"
    backdrop_config_path: Path = Path("config/backdrop.yaml")
    backdrop_db_path: Path = Path("data/backdrop.db")
    backdrop_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    unsplash_access_key: str | None = None
    openai_api_key: str | None = None

    @field_validator("backdrop_log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("unsplash_access_key", "openai_api_key")
    @classmethod
    def blank_key_is_missing(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        return text or None


class AppSettings(BaseModel):
    env: EnvSettings
    yaml: BackdropYamlSettings
    project_root: Path
    config_path: Path
    db_path: Path


def _resolve_project_path(path: Path) -> Path:
    if path.is_absolute():
        return path
    return (PROJECT_ROOT / path).resolve()


def _load_yaml_settings(path: Path) -> BackdropYamlSettings:
    if not path.exists():
        raise FileNotFoundError(f"Backdrop config file not found: {path}")

    raw_config = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ValueError("Backdrop config must be a YAML mapping/object at the top level")
    return BackdropYamlSettings.model_validate(raw_config)


@lru_cache(maxsize=1)
def load_settings() -> AppSettings:
    env = EnvSettings()
    config_path = _resolve_project_path(env.backdrop_config_path)
    db_path = _resolve_project_path(env.backdrop_db_path)
    yaml_settings = _load_yaml_settings(config_path)
    return AppSettings(
        env=env,
        yaml=yaml_settings,
        project_root=PROJECT_ROOT,
        config_path=config_path,
        db_path=db_path,
    )
