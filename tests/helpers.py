"""Builders for records, catalog rows and audit payloads shared by the tests."""

from __future__ import annotations

from typing import Any, cast

from horde_model_reference_console.analytics.audit_models import (
    CategoryAuditResponse,
    DeletionRiskFlags,
    ModelAuditInfo,
)
from horde_model_reference_console.analytics.filter_presets import AuditFilterPreset
from horde_model_reference_console.api_client import BackendCapabilities, ModelReferenceAPIClient
from horde_model_reference_console.exceptions import ModelReferenceAPIError
from horde_model_reference_console.meta_consts import BACKEND_REPLICATE_MODE, MODEL_REFERENCE_CATEGORY
from horde_model_reference_console.model_reference_records import (
    LegacyRecordUnion,
    LegacyStableDiffusionRecord,
    LegacyTextGenerationRecord,
)
from horde_model_reference_console.statistics_models import (
    BackendCombinedModelStatistics,
    CategoryStatistics,
    ModelUsageStats,
)
from horde_model_reference_console.text_model_name import parse_text_model_name
from horde_model_reference_console.unified_model import UnifiedModelData

TEST_API_URL = "http://model-reference.test/api"
STATISTICS_URL = f"{TEST_API_URL}/model_references/statistics"
V1_URL = f"{TEST_API_URL}/model_references/v1"

VALID_SHA256 = "a" * 64


def image_record_data(
    name: str,
    *,
    baseline: str = "stable_diffusion_xl",
    file_url: str | None = "https://huggingface.co/org/repo/resolve/main/model.safetensors",
    size_on_disk_bytes: int | None = 2 * 1024**3,
    **extra: Any,
) -> dict[str, Any]:
    """Return a raw image generation record as the v1 endpoint serves it."""
    download = [{"file_name": "model.safetensors", "file_path": "", "file_url": file_url}] if file_url else []
    data: dict[str, Any] = {
        "name": name,
        "type": "ckpt",
        "description": f"{name} description",
        "inpainting": False,
        "baseline": baseline,
        "nsfw": False,
        "tags": ["anime"],
        "config": {
            "files": [{"path": "model.safetensors", "sha256sum": VALID_SHA256}],
            "download": download,
        },
        "size_on_disk_bytes": size_on_disk_bytes,
    }
    data.update(extra)
    return data


def text_record_data(name: str, *, parameters: int = 8_000_000_000, **extra: Any) -> dict[str, Any]:
    """Return a raw text generation record as the v1 endpoint serves it."""
    data: dict[str, Any] = {
        "name": name,
        "description": f"{name} description",
        "baseline": "llama3",
        "parameters": parameters,
        "nsfw": False,
        "tags": ["roleplay", "8B"],
        "config": {"files": [], "download": []},
    }
    data.update(extra)
    return data


def make_image_model(
    name: str,
    *,
    usage: tuple[int, int, int] | None = None,
    worker_count: int | None = None,
    **record_fields: Any,
) -> UnifiedModelData:
    """Build an image generation catalog row with optional (day, month, total) usage."""
    record = LegacyStableDiffusionRecord.model_validate(image_record_data(name, **record_fields))
    return UnifiedModelData(
        name=name,
        record=record,
        worker_count=worker_count,
        usage_stats=ModelUsageStats(day=usage[0], month=usage[1], total=usage[2]) if usage else None,
    )


def make_text_model(
    name: str,
    *,
    usage: tuple[int, int, int] | None = None,
    worker_count: int | None = None,
    **record_fields: Any,
) -> UnifiedModelData:
    """Build a text generation catalog row with a parsed name."""
    record = LegacyTextGenerationRecord.model_validate(text_record_data(name, **record_fields))
    return UnifiedModelData(
        name=name,
        record=record,
        parsed_name=parse_text_model_name(name),
        worker_count=worker_count,
        usage_stats=ModelUsageStats(day=usage[0], month=usage[1], total=usage[2]) if usage else None,
    )


def make_audit_info(
    name: str,
    *,
    category: str = MODEL_REFERENCE_CATEGORY.image_generation,
    usage: tuple[int, int, int] = (0, 0, 0),
    worker_count: int = 0,
    flags: dict[str, bool] | None = None,
    **fields: Any,
) -> ModelAuditInfo:
    """Build an audit entry with (day, month, total) usage and the given flags set."""
    return ModelAuditInfo(
        name=name,
        category=category,
        usage_day=usage[0],
        usage_month=usage[1],
        usage_total=usage[2],
        worker_count=worker_count,
        deletion_risk_flags=DeletionRiskFlags(**(flags or {})),
        **fields,
    )


def make_audit_response(
    infos: list[ModelAuditInfo],
    *,
    category: str = MODEL_REFERENCE_CATEGORY.image_generation,
    category_total_month_usage: int | None = None,
) -> CategoryAuditResponse:
    """Wrap audit entries in a response. The category total defaults to the entries' summed month usage."""
    if category_total_month_usage is None:
        category_total_month_usage = sum(info.usage_month for info in infos)
    return CategoryAuditResponse(
        category=category,
        category_total_month_usage=category_total_month_usage,
        total_count=len(infos),
        returned_count=len(infos),
        models=infos,
    )


def audit_payload(response: CategoryAuditResponse) -> dict[str, Any]:
    """Serialize an audit response the way the service sends it."""
    return response.model_dump(mode="json")


class StubAPIClient:
    """Stands in for `ModelReferenceAPIClient` in view tests, recording the calls made to it.

    `audits` is consumed one response per audit request; the last one is repeated once exhausted.
    The replicate mode starts undetected; `detect_backend_capabilities` reports `detected_mode`.
    """

    def __init__(
        self,
        records: list[LegacyRecordUnion] | None = None,
        *,
        backend_stats: dict[str, BackendCombinedModelStatistics] | None = None,
        audits: list[CategoryAuditResponse | None] | None = None,
        statistics: CategoryStatistics | None = None,
        list_error: ModelReferenceAPIError | None = None,
        detected_mode: BACKEND_REPLICATE_MODE = BACKEND_REPLICATE_MODE.PRIMARY,
    ) -> None:
        self.records = records or []
        self.backend_stats = backend_stats
        self.audits = audits if audits is not None else [None]
        self.statistics = statistics
        self.list_error = list_error
        self.audit_calls: list[dict[str, Any]] = []
        self.statistics_calls: list[dict[str, Any]] = []
        self.written: list[tuple[str, str, str]] = []
        self.write_error: ModelReferenceAPIError | None = None
        self.detected_mode = detected_mode
        self.capabilities = BackendCapabilities()
        self.detections = 0

    def detect_backend_capabilities(self) -> BackendCapabilities:
        self.detections += 1
        self.capabilities = BackendCapabilities(
            writable=self.detected_mode == BACKEND_REPLICATE_MODE.PRIMARY,
            mode=self.detected_mode,
            canonical_format="legacy",
        )
        return self.capabilities

    def get_legacy_models_as_list(self, category: str) -> list[LegacyRecordUnion]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.records)

    def get_models_with_stats(self, category: str) -> dict[str, BackendCombinedModelStatistics] | None:
        return self.backend_stats

    def get_category_audit(
        self,
        category: str,
        group_text_models: bool = False,
        preset: AuditFilterPreset | None = None,
    ) -> CategoryAuditResponse | None:
        self.audit_calls.append({"category": category, "group_text_models": group_text_models, "preset": preset})
        if len(self.audits) > 1:
            return self.audits.pop(0)
        return self.audits[0]

    def get_category_statistics(self, category: str, group_text_models: bool = False) -> CategoryStatistics | None:
        self.statistics_calls.append({"category": category, "group_text_models": group_text_models})
        return self.statistics

    def create_legacy_model(self, category: str, model_name: str, record: LegacyRecordUnion) -> LegacyRecordUnion:
        if self.write_error is not None:
            raise self.write_error
        self.written.append(("create", category, model_name))
        return record

    def update_legacy_model(self, category: str, model_name: str, record: LegacyRecordUnion) -> LegacyRecordUnion:
        if self.write_error is not None:
            raise self.write_error
        self.written.append(("update", category, model_name))
        return record

    def delete_model(self, category: str, model_name: str) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.written.append(("delete", category, model_name))


def stub_client(client: StubAPIClient) -> ModelReferenceAPIClient:
    return cast(ModelReferenceAPIClient, client)
