import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from flagship.errors import ConfigError

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_REFRESH_INTERVAL = 30.0


class FlagshipConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., description="tenant API key, also the durable cache key")
    base_url: str = DEFAULT_BASE_URL
    refresh_interval: float = Field(DEFAULT_REFRESH_INTERVAL, gt=0, description="seconds between syncs")
    timeout: float = Field(2.0, gt=0)

    @field_validator("api_key")
    @classmethod
    def _api_key_present(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("api_key is required")
        return v.strip()

    @field_validator("base_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return v.rstrip("/")

    def __init__(self, **values: Any):
        try:
            super().__init__(**values)
        except ValidationError as e:
            raise ConfigError(f"invalid configuration: {e}", cause=e) from e

    @classmethod
    def from_env(cls) -> "FlagshipConfig":
        return cls(
            api_key=os.getenv("FLAGSHIP_API_KEY", ""),
            base_url=os.getenv("FLAGSHIP_BASE_URL", DEFAULT_BASE_URL),
            refresh_interval=os.getenv("FLAGSHIP_REFRESH_INTERVAL", DEFAULT_REFRESH_INTERVAL),
        )
