"""Synchronous client for the model reference service's REST API."""

from __future__ import annotations

from collections.abc import Mapping
from types import TracebackType
from urllib.parse import quote
from typing import Any, Literal

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from horde_model_reference_console import horde_model_reference_console_settings
from horde_model_reference_console.analytics.audit_models import CategoryAuditResponse
from horde_model_reference_console.analytics.filter_presets import AuditFilterPreset
from horde_model_reference_console.exceptions import BackendNotWritableError, ModelReferenceAPIError
from horde_model_reference_console.meta_consts import (
    BACKEND_REPLICATE_MODE,
    MODEL_REFERENCE_CATEGORY,
    is_known_category,
)
from horde_model_reference_console.model_reference_records import (
    LegacyGenericRecord,
    LegacyRecordUnion,
    parse_legacy_record,
)
from horde_model_reference_console.statistics_models import BackendCombinedModelStatistics, CategoryStatistics

V1_PREFIX = "/model_references/v1"
V2_PREFIX = "/model_references/v2"
STATISTICS_PREFIX = "/model_references/statistics"

_DEFAULT_ERROR_DETAILS: dict[int, tuple[str, str]] = {
    400: ("Bad Request", "Invalid request format"),
    404: ("Not Found", "Resource not found"),
    409: ("Conflict", "Resource already exists"),
    422: ("Validation Error", "Invalid data"),
    503: ("Service Unavailable", "Backend does not support this operation"),
}


class BackendCapabilities(BaseModel):
    """What the connected service allows, as detected from its replicate mode."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    writable: bool = False
    """Whether create, update and delete requests are accepted."""
    mode: BACKEND_REPLICATE_MODE = BACKEND_REPLICATE_MODE.UNKNOWN
    canonical_format: Literal["legacy", "v2", "UNKNOWN"] = "UNKNOWN"
    """The record format write operations are expressed in."""


def describe_error(status_code: int, detail: str | None, message: str) -> str:
    """Build the user facing message for a failed request.

    Args:
        status_code: The HTTP status of the response.
        detail: The `detail` field of the service's error body, if any.
        message: A generic description of the failure, used when there is no detail.
    """
    if status_code in _DEFAULT_ERROR_DETAILS:
        title, fallback = _DEFAULT_ERROR_DETAILS[status_code]
        return f"{title}: {detail or fallback}"
    return f"Error {status_code}: {detail or message}"


def _extract_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None

    if not isinstance(body, dict):
        return None

    detail = body.get("detail")
    if detail is None or isinstance(detail, str):
        return detail
    if isinstance(detail, list):
        # FastAPI request validation errors
        return "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in detail)
    return str(detail)


class ModelReferenceAPIClient:
    """Client for the model reference service.

    Listing and CRUD failures raise `ModelReferenceAPIError`. Statistics and audit failures are
    logged and returned as None so callers can fall back to reference data only.

    Write operations are refused with `BackendNotWritableError` until `detect_backend_capabilities`
    has found a PRIMARY service.
    """

    def __init__(
        self,
        api_url: str | None = None,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
        httpx_client: httpx.Client | None = None,
    ) -> None:
        """Create a client.

        Args:
            api_url: The service root, e.g. `http://localhost:19800/api`. Defaults to the configured `api_url`.
            api_key: Sent in the `apikey` header of write requests. Defaults to the configured `api_key`.
            timeout: Request timeout in seconds. Defaults to the configured `request_timeout`.
            httpx_client: An existing client to send requests with. It is not closed by `close()`.
        """
        self.api_url = (api_url or horde_model_reference_console_settings.api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else horde_model_reference_console_settings.api_key
        self._timeout = timeout if timeout is not None else horde_model_reference_console_settings.request_timeout
        self._owns_client = httpx_client is None
        self._client = httpx_client or httpx.Client(timeout=self._timeout)
        self.capabilities = BackendCapabilities()

        logger.debug(f"ModelReferenceAPIClient using {self.api_url}")

    def __enter__(self) -> ModelReferenceAPIClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _url(self, path: str) -> str:
        return f"{self.api_url}{path}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        authenticated: bool = False,
    ) -> httpx.Response:
        """Send a request and raise `ModelReferenceAPIError` for transport errors and non-2xx responses."""
        headers = {}
        if authenticated and self.api_key:
            headers["apikey"] = self.api_key

        try:
            response = self._client.request(
                method,
                self._url(path),
                params=params,
                json=json,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise ModelReferenceAPIError(f"Error: {e}") from e

        if response.is_success:
            return response

        detail = _extract_detail(response)
        message = describe_error(response.status_code, detail, response.reason_phrase or "Request failed")
        logger.debug(f"{method} {path} failed: {message}")
        raise ModelReferenceAPIError(message, status_code=response.status_code, detail=detail)

    def _require_writable(self) -> None:
        if not self.capabilities.writable:
            raise BackendNotWritableError

    # region Capabilities and listing

    def detect_backend_capabilities(self) -> BackendCapabilities:
        """Query the service's replicate mode. Any failure yields non-writable UNKNOWN capabilities."""
        try:
            response = self._request("GET", "/replicate_mode")
            mode = str(response.json())
        except (ModelReferenceAPIError, ValueError) as e:
            logger.warning(f"Failed to detect backend capabilities: {e}")
            self.capabilities = BackendCapabilities()
            return self.capabilities

        is_primary = mode == BACKEND_REPLICATE_MODE.PRIMARY
        self.capabilities = BackendCapabilities(
            writable=is_primary,
            mode=BACKEND_REPLICATE_MODE.PRIMARY if is_primary else BACKEND_REPLICATE_MODE.REPLICA,
            canonical_format="legacy",
        )
        logger.info(f"Backend is in {self.capabilities.mode} mode (writable: {self.capabilities.writable})")
        return self.capabilities

    def get_categories(self) -> list[str]:
        response = self._request("GET", f"{V1_PREFIX}/model_categories")
        return [str(category) for category in response.json()]

    def get_models_in_category(self, category: str) -> dict[str, dict[str, Any]]:
        """Return the v2 records of `category`, each with its `name` filled in from its key when missing."""
        response = self._request("GET", f"{V2_PREFIX}/{category}")
        body = response.json() or {}

        result: dict[str, dict[str, Any]] = {}
        for name, data in body.items():
            record = dict(data or {})
            if not isinstance(record.get("name"), str):
                record["name"] = name
            result[name] = record
        return result

    def get_legacy_models_in_category(self, category: str) -> dict[str, dict[str, Any]]:
        """Return the raw legacy records of `category`, keyed by name.

        Text generation records are requested with their computed `text_model_group`.
        """
        params = {"include_group": "true"} if category == MODEL_REFERENCE_CATEGORY.text_generation else None
        response = self._request("GET", f"{V1_PREFIX}/{category}", params=params)
        return response.json() or {}

    def get_legacy_models_as_list(self, category: str) -> list[LegacyRecordUnion]:
        """Return the legacy records of `category` as typed records, in the service's order.

        Records which cannot be parsed are logged and skipped.
        """
        records: list[LegacyRecordUnion] = []
        for name, data in self.get_legacy_models_in_category(category).items():
            try:
                records.append(parse_legacy_record({**(data or {}), "name": name}))
            except ValidationError as e:
                logger.warning(f"Skipping unparseable {category} record '{name}': {e}")
        return records

    # endregion

    # region Create, update and delete

    def _check_category(self, category: str) -> None:
        if not is_known_category(category):
            raise ModelReferenceAPIError(f"Unsupported category: {category}")

    def _to_payload(self, record: LegacyGenericRecord | Mapping[str, Any]) -> dict[str, Any]:
        if isinstance(record, LegacyGenericRecord):
            return record.to_payload()
        return dict(record)

    def _parse_written_record(self, body: Any, model_name: str) -> LegacyRecordUnion:
        data = dict(body or {})
        if not data.get("name"):
            data["name"] = model_name
        return parse_legacy_record(data)

    def create_legacy_model(
        self,
        category: str,
        model_name: str,
        record: LegacyGenericRecord | Mapping[str, Any],
    ) -> LegacyRecordUnion:
        """Create a new record in `category`.

        The record's own name is used when it has one, `model_name` otherwise.

        Raises:
            BackendNotWritableError: If the service does not accept writes.
            ModelReferenceAPIError: If the category is unsupported or the service rejects the record.
        """
        self._require_writable()
        self._check_category(category)

        payload = self._to_payload(record)
        payload["name"] = payload.get("name") or model_name

        response = self._request("POST", f"{V1_PREFIX}/{category}", json=payload, authenticated=True)
        logger.info(f"Created {category} model '{payload['name']}'")
        return self._parse_written_record(response.json(), model_name)

    def update_legacy_model(
        self,
        category: str,
        model_name: str,
        record: LegacyGenericRecord | Mapping[str, Any],
    ) -> LegacyRecordUnion:
        """Replace the record named `model_name` in `category`. The name itself cannot change.

        Raises:
            BackendNotWritableError: If the service does not accept writes.
            ModelReferenceAPIError: If the category is unsupported or the service rejects the record.
        """
        self._require_writable()
        self._check_category(category)

        payload = self._to_payload(record)
        payload["name"] = model_name

        response = self._request("PUT", f"{V1_PREFIX}/{category}", json=payload, authenticated=True)
        logger.info(f"Updated {category} model '{model_name}'")
        return self._parse_written_record(response.json(), model_name)

    def delete_model(self, category: str, model_name: str) -> None:
        """Delete the record named `model_name` from `category`.

        Raises:
            BackendNotWritableError: If the service does not accept writes.
            ModelReferenceAPIError: If the service refuses the deletion.
        """
        self._require_writable()
        # Names like "koboldcpp/Foo" are a single path segment
        self._request("DELETE", f"{V1_PREFIX}/{category}/{quote(model_name, safe='')}", authenticated=True)
        logger.info(f"Deleted {category} model '{model_name}'")

    # endregion

    # region Statistics and audit

    def get_category_statistics(self, category: str, group_text_models: bool = False) -> CategoryStatistics | None:
        """Return the category's aggregate statistics, or None if they could not be fetched."""
        try:
            response = self._request(
                "GET",
                f"{STATISTICS_PREFIX}/{category}",
                params={"group_text_models": str(group_text_models).lower(), "offset": 0},
            )
            return CategoryStatistics.model_validate(response.json())
        except (ModelReferenceAPIError, ValidationError, ValueError) as e:
            logger.warning(f"Failed to fetch category statistics: {e}")
            return None

    def get_category_audit(
        self,
        category: str,
        group_text_models: bool = False,
        preset: AuditFilterPreset | str | None = None,
    ) -> CategoryAuditResponse | None:
        """Return the category's audit, optionally filtered by a backend preset.

        Returns:
            CategoryAuditResponse | None: The audit, or None if it could not be fetched (degraded mode).
        """
        params: dict[str, Any] = {"group_text_models": str(group_text_models).lower(), "offset": 0}
        if preset is not None:
            params["preset"] = preset.value if isinstance(preset, AuditFilterPreset) else preset

        try:
            response = self._request("GET", f"{STATISTICS_PREFIX}/{category}/audit", params=params)
            return CategoryAuditResponse.model_validate(response.json())
        except (ModelReferenceAPIError, ValidationError, ValueError) as e:
            logger.warning(f"Failed to fetch category audit: {e}")
            return None

    def get_models_with_stats(
        self,
        category: str,
        *,
        min_worker_count: int | None = None,
        include_backend_variations: bool | None = None,
    ) -> dict[str, BackendCombinedModelStatistics] | None:
        """Return the Horde runtime statistics of each model in `category`, or None if they could not be fetched.

        Backend variations are requested for text generation unless `include_backend_variations` says otherwise.
        """
        params: dict[str, Any] = {}
        if min_worker_count is not None:
            params["min_worker_count"] = min_worker_count
        if include_backend_variations is None:
            include_backend_variations = category == MODEL_REFERENCE_CATEGORY.text_generation
        if include_backend_variations:
            params["include_backend_variations"] = "true"

        try:
            response = self._request("GET", f"{STATISTICS_PREFIX}/{category}/with-stats", params=params)
            return {
                name: BackendCombinedModelStatistics.model_validate(stats)
                for name, stats in (response.json() or {}).items()
            }
        except (ModelReferenceAPIError, ValidationError, ValueError) as e:
            logger.warning(f"Failed to fetch model statistics: {e}")
            return None

    # endregion

    def get_openapi_schema(self) -> dict[str, Any]:
        response = self._request("GET", "/openapi.json")
        return response.json()
