"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "RAGDESK_"
DEFAULT_CONFIG_PATH = Path("~/.config/ragdesk/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("storage", "objects_dir"): "storage_dir",
    ("storage", "max_upload_bytes"): "max_upload_bytes",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "api_url"): "embedding_api_url",
    ("embeddings", "api_key"): "embedding_api_key",
    ("embeddings", "timeout"): "embedding_timeout",
    ("chunking", "max_tokens"): "chunk_max_tokens",
    ("chunking", "overlap_tokens"): "chunk_overlap_tokens",
    ("chunking", "min_tokens"): "chunk_min_tokens",
    ("retrieval", "threshold"): "similarity_threshold",
    ("retrieval", "limit"): "retrieval_limit",
    ("rate_limits", "upload"): "rate_limit_upload",
    ("rate_limits", "query"): "rate_limit_query",
    ("rate_limits", "admin"): "rate_limit_admin",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".ragdesk" / "ragdesk.db")
    storage_dir: Path = Field(default=Path.home() / ".ragdesk" / "objects")
    max_upload_bytes: int = 10 * 1024 * 1024
    embedding_backend: Literal["hashed", "openai"] = "hashed"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = Field(default=1536, ge=1)
    embedding_api_url: str = "https://api.openai.com/v1"
    embedding_api_key: str | None = None
    embedding_timeout: float = 60.0
    chunk_max_tokens: int = Field(default=400, ge=1)
    chunk_overlap_tokens: int = Field(default=50, ge=0)
    chunk_min_tokens: int = Field(default=30, ge=0)
    similarity_threshold: float = 0.5
    retrieval_limit: int = Field(default=4, ge=1)
    rate_limit_upload: str = "10/3600"
    rate_limit_query: str = "30/60"
    rate_limit_admin: str = "100/60"

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", "storage_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("paths must be a path or string")

    @field_validator("rate_limit_upload", "rate_limit_query", "rate_limit_admin")
    @classmethod
    def _check_rate(cls, value: str) -> str:
        parse_rate(value)
        return value

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def parse_rate(value: str) -> tuple[int, float]:
    """Parse a ``"<max requests>/<window seconds>"`` rate string."""
    try:
        max_requests, window = value.split("/", 1)
        parsed = int(max_requests), float(window)
    except ValueError as exc:
        raise ValueError(f"Invalid rate limit {value!r}; expected '<max>/<seconds>'") from exc
    if parsed[0] < 1 or parsed[1] <= 0:
        raise ValueError(f"Invalid rate limit {value!r}; values must be positive")
    return parsed


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with RAGDESK_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings", "parse_rate"]
