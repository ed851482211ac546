"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8080/api"
DEFAULT_WS_URL = "ws://localhost:8080/ws"


class StreamConfig(BaseModel):
    """Push-stream connection parameters."""

    reconnect: bool = False  # Off by default: close means "disconnected"
    reconnect_base_delay_seconds: float = 1.0
    reconnect_max_delay_seconds: float = 30.0
    open_timeout_seconds: float = 10.0


class HistoryConfig(BaseModel):
    """Rolling balance history parameters."""

    capacity: int = 1440  # One day of per-minute samples
    throttle_ms: int = 1000


class LeaderboardConfig(BaseModel):
    """Leaderboard and ROI history parameters."""

    staleness_ms: int = 30_000
    roi_history_limit: int = 120


class MarketConfig(BaseModel):
    """Market context polling parameters."""

    symbols: list[str] = Field(
        default_factory=lambda: ["THYAO", "AKBNK", "ASELS", "GARAN"]
    )
    sentiment_poll_ms: int = 60_000
    sources_poll_ms: int = 120_000
    news_poll_ms: int = 0  # Manual refresh only


class FeedConfig(BaseModel):
    """Live feed sizes."""

    max_decisions: int = 10
    max_breaking_news: int = 8


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")

    # Endpoints
    api_url: str = DEFAULT_API_URL
    ws_url: str = DEFAULT_WS_URL

    # Observability
    logfire_token: str = ""
    environment: Literal["development", "staging", "production"] = "development"

    # Nested configuration sections
    stream: StreamConfig = Field(default_factory=StreamConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    leaderboard: LeaderboardConfig = Field(default_factory=LeaderboardConfig)
    market: MarketConfig = Field(default_factory=MarketConfig)
    feeds: FeedConfig = Field(default_factory=FeedConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("api_url", "ws_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Remove trailing slashes so paths can be joined with a single '/'."""
        return v.strip().rstrip("/")

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    @property
    def preferences_path(self) -> Path:
        return self.data_dir / "preferences.yaml"

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.debug(f"Config file not found: {config_path}. Using defaults.")
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["stream", "history", "leaderboard", "market", "feeds"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    section_dict = section.model_dump()
                    section_dict.update(yaml_config[section_name])
                    setattr(self, section_name, section.__class__(**section_dict))

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
