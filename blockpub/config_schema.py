from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]


class ExcerptConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    char_limit: PositiveInt = 200
    seo_char_limit: PositiveInt = 300
    ellipsis: str = "..."
    words_per_minute: PositiveInt = 200


class AnalysisConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    categorical_max_distinct: PositiveInt = 20
    categorical_max_ratio: float = Field(0.5, gt=0.0, le=1.0)
    categorical_min_rows: NonNegativeInt = 10
    sample_size: NonNegativeInt = 5


class MediaConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str | None = None
    token_env: str = "BLOCKPUB_MEDIA_TOKEN"
    timeout_seconds: float = Field(10.0, gt=0.0)

    @field_validator("token_env")
    @classmethod
    def _token_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, v: str | None) -> str | None:
        url = (v or "").strip().rstrip("/")
        if not url:
            return None
        if not url.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return url


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    ttl_seconds: float = Field(300.0, gt=0.0)
    max_entries: PositiveInt = 1024


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    excerpt: ExcerptConfig = Field(default_factory=ExcerptConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @model_validator(mode="after")
    def _seo_budget_covers_excerpt(self) -> "AppConfig":
        if self.excerpt.seo_char_limit < self.excerpt.char_limit:
            raise ValueError("excerpt.seo_char_limit must be >= excerpt.char_limit")
        return self
