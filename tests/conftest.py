import os
import sys
from collections.abc import Generator

# CRITICAL: Set environment variables BEFORE importing any package modules
# This ensures the settings singleton is initialized with test values
os.environ["HORDE_MODEL_REFERENCE_CONSOLE_API_URL"] = "http://model-reference.test/api"
os.environ["HORDE_MODEL_REFERENCE_CONSOLE_API_KEY"] = "test-api-key"
os.environ["HORDE_MODEL_REFERENCE_CONSOLE_STALE_AFTER_SECONDS"] = "300"
os.environ.pop("HORDE_MODEL_REFERENCE_CONSOLE_PREFERRED_FILE_HOSTS", None)
os.environ.pop("HORDE_MODEL_REFERENCE_CONSOLE_EXPORT_DIRECTORY", None)

import pytest
from loguru import logger
from pytest import LogCaptureFixture

from horde_model_reference_console import (
    BACKEND_REPLICATE_MODE,
    BackendCapabilities,
    ModelReferenceAPIClient,
    horde_model_reference_console_settings,
)
from tests.helpers import TEST_API_URL


@pytest.fixture(scope="session", autouse=True)
def env_var_checks() -> None:
    """Check the settings singleton picked up the test environment."""
    if horde_model_reference_console_settings.api_url != TEST_API_URL:
        pytest.fail(
            "HORDE_MODEL_REFERENCE_CONSOLE_API_URL was not applied to the settings singleton. "
            "Ensure no package module is imported before conftest.py sets the environment."
        )


@pytest.fixture
def caplog(caplog: LogCaptureFixture) -> Generator[LogCaptureFixture, None, None]:
    """Capture loguru output with pytest's caplog.

    See https://loguru.readthedocs.io/en/stable/resources/migration.html#migration-caplog for more information.
    """
    handler_id = logger.add(caplog.handler, format="{message}")
    yield caplog
    logger.remove(handler_id)


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Set up logging for tests."""
    logger.remove()
    logger.configure(
        handlers=[
            {
                "sink": sys.stderr,
                "format": "{time:YYYY-MM-DD HH:mm:ss} | {name}:{function}:{line} | {level} | {message}",
                "level": "DEBUG",
            },
        ],
    )


@pytest.fixture
def api_client() -> Generator[ModelReferenceAPIClient, None, None]:
    """A client for the test service. Requests are served by `httpx_mock`."""
    with ModelReferenceAPIClient(TEST_API_URL, api_key="test-api-key") as client:
        yield client


@pytest.fixture
def writable_api_client(api_client: ModelReferenceAPIClient) -> ModelReferenceAPIClient:
    """A client which already detected a PRIMARY (writable) service."""
    api_client.capabilities = BackendCapabilities(
        writable=True,
        mode=BACKEND_REPLICATE_MODE.PRIMARY,
        canonical_format="legacy",
    )
    return api_client
