import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from purelymail_client import DEFAULT_BASE_URL


class ConfigError(Exception):
    """Startup configuration is missing or invalid."""


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str = Field(min_length=1)
    base_url: str = DEFAULT_BASE_URL
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "0.0.0.0"
    port: int = Field(3000, ge=1, le=65535)
    request_timeout: float = Field(30.0, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Load settings from environment variables (os.environ by default)."""
        env = os.environ if environ is None else environ

        api_key = env.get("PURELYMAIL_API_KEY")
        if not api_key:
            raise ConfigError(
                "PurelyMail API key required. "
                "Set PURELYMAIL_API_KEY environment variable."
            )

        values: dict[str, str] = {"api_key": api_key}
        for field_name, var in (
            ("base_url", "PURELYMAIL_BASE_URL"),
            ("transport", "TRANSPORT"),
            ("host", "HOST"),
            ("port", "PORT"),
            ("request_timeout", "MCP_REQUEST_TIMEOUT"),
            ("log_level", "LOG_LEVEL"),
        ):
            if env.get(var):
                values[field_name] = env[var]
        if "transport" in values:
            values["transport"] = values["transport"].lower()
        if "log_level" in values:
            values["log_level"] = values["log_level"].upper()

        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc
