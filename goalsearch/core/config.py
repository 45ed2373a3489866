"""Configuration management for goalsearch."""

import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator


class ApiConfig(BaseModel):
    base_url: str = "http://localhost:8080/api/v1"
    timeout_seconds: float = 30.0
    limit: int = 20
    headers: Dict[str, str] = Field(default_factory=lambda: {"Accept": "application/json"})

    @field_validator('limit')
    @classmethod
    def validate_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("limit must be positive")
        return v


class SearchConfig(BaseModel):
    debounce_ms: int = 200
    cache_max_size: int = 100
    cache_ttl_seconds: Optional[float] = 300
    description_preview: int = 100

    @field_validator('debounce_ms')
    @classmethod
    def validate_debounce(cls, v: int) -> int:
        if v < 0:
            raise ValueError("debounce_ms cannot be negative")
        return v

    @field_validator('cache_max_size', 'description_preview')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be positive")
        return v


class HistoryConfig(BaseModel):
    store_path: Path = Path.home() / ".local" / "share" / "goalsearch" / "store.json"
    history_key: str = "search-history"
    recent_key: str = "recent-items"
    max_history: int = 50
    max_recent: int = 20
    recent_view_history: int = 5
    recent_view_items: int = 8

    @field_validator('max_history', 'max_recent', 'recent_view_history', 'recent_view_items')
    @classmethod
    def validate_caps(cls, v: int) -> int:
        if v < 1:
            raise ValueError("caps must be positive")
        return v

    @field_validator('store_path')
    @classmethod
    def expand_store_path(cls, v: Path) -> Path:
        return Path(v).expanduser()


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[Path] = None


class Config(BaseModel):
    """Main configuration for goalsearch."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from YAML; defaults when no file is found."""
        if config_path is None:
            candidates = [
                Path("goalsearch.yaml"),
                Path.home() / ".config" / "goalsearch" / "config.yaml",
            ]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break

        data = {}
        if config_path is not None:
            logger.info(f"Loading config from: {config_path}")
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f) or {}

        config = cls(**data)

        api_url = os.environ.get("GOALSEARCH_API_URL")
        if api_url:
            config.api.base_url = api_url

        return config

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.safe_dump(self.model_dump(mode='json'), f, default_flow_style=False)
