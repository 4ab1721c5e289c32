"""Admin console, audit pipeline and API client for the AI-Horde model reference service."""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging_config import LogLevel

DEFAULT_API_URL = "http://localhost:19800/api"


class HordeModelReferenceConsoleSettings(BaseSettings):
    """Settings for the horde-model-reference-console package."""

    model_config = SettingsConfigDict(
        env_prefix="HORDE_MODEL_REFERENCE_CONSOLE_",
        use_attribute_docstrings=True,
    )

    api_url: str = DEFAULT_API_URL
    """Base URL of the model reference service, including the `/api` root path."""

    api_key: str | None = None
    """API key sent in the `apikey` header on write operations."""

    request_timeout: float = 10
    """Timeout in seconds for requests to the model reference service."""

    preferred_file_hosts: list[str] = Field(default_factory=lambda: ["huggingface.co"])
    """File hosts considered preferred when badging download hosts."""

    stale_after_seconds: int = 300
    """Seconds after which loaded audit data is considered stale."""

    export_directory: Path = Path(".")
    """Directory CSV exports are written to."""

    log_level: LogLevel = "WARNING"
    """Log level used by the command line console."""

    @model_validator(mode="after")
    def validate_console_configuration(self) -> HordeModelReferenceConsoleSettings:
        """Warn about configurations which will limit what the console can do."""
        if not self.api_key:
            logger.debug(
                "No api key configured: create, update and delete requests will be rejected by the service. "
                "Set HORDE_MODEL_REFERENCE_CONSOLE_API_KEY or pass --api-key."
            )

        if self.api_url.rstrip("/").endswith("/model_references"):
            logger.warning(
                f"api_url '{self.api_url}' points at the model_references prefix. "
                "It should be the service root (e.g. http://localhost:19800/api)."
            )

        if self.stale_after_seconds <= 0:
            logger.warning("stale_after_seconds must be positive, audit data will always be considered stale.")

        return self


horde_model_reference_console_settings: HordeModelReferenceConsoleSettings = HordeModelReferenceConsoleSettings()

if horde_model_reference_console_settings.api_url != DEFAULT_API_URL:
    logger.debug(f"Using model reference service at {horde_model_reference_console_settings.api_url}")


from .meta_consts import (  # noqa: E402, I001
    BACKEND_REPLICATE_MODE,
    MODEL_REFERENCE_CATEGORY,
    TEXT_BACKEND,
)
from .exceptions import (  # noqa: E402
    BackendNotWritableError,
    ModelReferenceAPIError,
    RecordValidationError,
)
from .api_client import BackendCapabilities, ModelReferenceAPIClient  # noqa: E402

__all__ = [
    "BACKEND_REPLICATE_MODE",
    "DEFAULT_API_URL",
    "MODEL_REFERENCE_CATEGORY",
    "TEXT_BACKEND",
    "BackendCapabilities",
    "BackendNotWritableError",
    "HordeModelReferenceConsoleSettings",
    "ModelReferenceAPIClient",
    "ModelReferenceAPIError",
    "RecordValidationError",
    "horde_model_reference_console_settings",
]
