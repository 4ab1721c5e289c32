"""Audit metrics for the rows of the audit table.

Each catalog row is paired with the audit entries the service returned for it. Rows with a
matching entry take their usage, ratios and flags from it; grouped text models reduce the entries
of all their variations into one. Rows without any entry (or every row, when the audit call failed)
fall back to what the reference record and its runtime statistics provide. That fallback is
"degraded mode": flags are unknown (`None`) and no row is critical or warned.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import urlparse

from horde_model_reference_console import horde_model_reference_console_settings
from horde_model_reference_console.analytics.audit_models import (
    CategoryAuditResponse,
    DeletionRiskFlags,
    ModelAuditInfo,
    UsageTrend,
)
from horde_model_reference_console.meta_consts import MODEL_REFERENCE_CATEGORY
from horde_model_reference_console.model_reference_records import LegacyStableDiffusionRecord
from horde_model_reference_console.statistics_models import ModelUsageStats
from horde_model_reference_console.unified_model import CatalogModel, GroupedTextModel, get_model_size_gb

UNKNOWN_HOST = "unknown"
GROUPED_NAME_SUFFIX = " (grouped)"

RowStatus = Literal["critical", "warning", "none"]
FileHostBadge = Literal["danger", "success", "warning"]

Combinator = Callable[[Iterable[Any]], Any]


def _first_not_none(values: Iterable[Any]) -> Any:
    return next((value for value in values if value is not None), None)


def _union_in_order(values: Iterable[Iterable[str]]) -> list[str]:
    merged: list[str] = []
    for items in values:
        for item in items:
            if item not in merged:
                merged.append(item)
    return merged


FLAG_COMBINATORS: dict[str, Combinator] = {name: any for name in DeletionRiskFlags.model_fields}
"""A flag is set on a group if any variation has it."""

AUDIT_INFO_COMBINATORS: dict[str, Combinator] = {
    "worker_count": sum,
    "usage_day": sum,
    "usage_month": sum,
    "usage_total": sum,
    "download_count": sum,
    "is_critical": any,
    "has_warning": any,
    "size_gb": _first_not_none,
    "baseline": _first_not_none,
    "nsfw": _first_not_none,
    "has_description": any,
    "download_hosts": _union_in_order,
}
"""How the audit entries of a group's variations combine into one entry."""


def reduce_records(records: Sequence[Any], combinators: Mapping[str, Combinator]) -> dict[str, Any]:
    """Combine `records` field by field.

    Args:
        records: The objects to combine. Fields are read with `getattr`.
        combinators: Field name to a function receiving that field's values across `records`.

    Returns:
        dict[str, Any]: Field name to combined value, for every field in `combinators`.
    """
    return {name: combine(getattr(record, name) for record in records) for name, combine in combinators.items()}


@dataclass
class ModelWithAuditMetrics:
    """One row of the audit table."""

    model: CatalogModel
    audit_info: ModelAuditInfo | None
    usage_day: int
    usage_month: int
    usage_total: int
    worker_count: int
    usage_percentage: float
    usage_trend: UsageTrend
    cost_benefit_score: float | None
    flags: DeletionRiskFlags | None
    """None when no audit data was available for the row."""
    is_critical: bool
    has_warning: bool
    flag_count: int
    file_hosts: list[str]
    baseline: str | None
    size_gb: float | None

    @property
    def name(self) -> str:
        return self.model.name

    @property
    def is_degraded(self) -> bool:
        return self.audit_info is None

    @property
    def is_flagged(self) -> bool:
        return self.is_critical or self.has_warning

    @property
    def row_status(self) -> RowStatus:
        if self.is_critical:
            return "critical"
        if self.has_warning:
            return "warning"
        return "none"


@dataclass
class AuditMetricsSummary:
    """Headline figures over a set of audit rows."""

    total_models: int
    critical_count: int
    warning_count: int
    models_with_workers: int
    models_with_zero_month_usage: int
    average_usage_percentage: float
    total_disk_space_gb: float | None
    """Only computed for image generation, None otherwise."""
    flagged_disk_space_gb: float | None
    """Disk space of critical or warned rows. Only computed for image generation."""


def calculate_usage_percentage(usage: int, total: int) -> float:
    """Return `usage` as a percentage of `total`, 0 when `total` is not positive."""
    if total <= 0:
        return 0.0
    return usage / total * 100


def calculate_usage_trend(stats: ModelUsageStats | None) -> UsageTrend:
    """Return the day/month and month/total ratios, each None when its denominator is zero."""
    if stats is None:
        return UsageTrend()
    return UsageTrend(
        day_to_month_ratio=stats.day / stats.month if stats.month > 0 else None,
        month_to_total_ratio=stats.month / stats.total if stats.total > 0 else None,
    )


def get_cost_benefit_score(month_usage: int, size_gb: float | None) -> float | None:
    """Return monthly usage per GB of model size, None without a positive size."""
    if size_gb is None or size_gb <= 0:
        return None
    return month_usage / size_gb


def get_model_file_hosts(model: CatalogModel) -> list[str]:
    """Return the distinct hostnames of the model's download URLs.

    URLs which cannot be parsed into a hostname are reported as `"unknown"`. Grouped models report
    the hosts of all their variations.
    """
    hosts: list[str] = []
    for record in model.records:
        if record.config is None:
            continue
        for download in record.config.download:
            if not download.file_url:
                continue
            try:
                host = urlparse(download.file_url).hostname or UNKNOWN_HOST
            except ValueError:
                host = UNKNOWN_HOST
            if host not in hosts:
                hosts.append(host)
    return hosts


def format_file_hosts(hosts: Sequence[str]) -> str:
    return ", ".join(hosts) if hosts else "None"


def get_file_host_badge(host: str, preferred_hosts: Sequence[str] | None = None) -> FileHostBadge:
    """Return the badge a host is shown with: danger for unknown hosts, success for preferred hosts."""
    if preferred_hosts is None:
        preferred_hosts = horde_model_reference_console_settings.preferred_file_hosts
    if host == UNKNOWN_HOST:
        return "danger"
    if host in preferred_hosts:
        return "success"
    return "warning"


def get_usage_stats(model: CatalogModel) -> ModelUsageStats:
    return model.usage_stats or ModelUsageStats()


def category_total_usage(models: Iterable[CatalogModel], audit_response: CategoryAuditResponse | None) -> int:
    """Return the audit's category-wide monthly usage, or the sum of the models' monthly usage without one."""
    if audit_response is not None:
        return audit_response.category_total_month_usage
    return sum(get_usage_stats(model).month for model in models)


def find_audit_infos(model: CatalogModel, audit_index: Mapping[str, ModelAuditInfo]) -> list[ModelAuditInfo]:
    """Return the audit entries belonging to `model`.

    A grouped model uses an entry carrying its own name (as produced by service-side grouping)
    when there is one, and otherwise the entries of its variations.
    """
    direct = audit_index.get(model.name) or audit_index.get(f"{model.name}{GROUPED_NAME_SUFFIX}")
    if direct is not None:
        return [direct]
    if isinstance(model, GroupedTextModel):
        return [audit_index[variation.name] for variation in model.variations if variation.name in audit_index]
    return []


def merge_audit_infos(name: str, infos: Sequence[ModelAuditInfo], category_total: int) -> ModelAuditInfo:
    """Reduce the audit entries of a group's variations into one entry.

    Flags are OR-ed, counters summed and critical/warning status is true if any variation has it.
    The usage percentage and trend are recomputed from the summed counts.
    """
    merged = reduce_records(infos, AUDIT_INFO_COMBINATORS)
    flags = DeletionRiskFlags(**reduce_records([info.deletion_risk_flags for info in infos], FLAG_COMBINATORS))
    usage = ModelUsageStats(day=merged["usage_day"], month=merged["usage_month"], total=merged["usage_total"])

    return ModelAuditInfo(
        name=name,
        category=infos[0].category,
        deletion_risk_flags=flags,
        at_risk=flags.any_flags(),
        risk_score=flags.flag_count(),
        usage_percentage_of_category=calculate_usage_percentage(usage.month, category_total),
        usage_trend=calculate_usage_trend(usage),
        cost_benefit_score=get_cost_benefit_score(usage.month, merged["size_gb"]),
        **merged,
    )


def _record_baseline(model: CatalogModel) -> str | None:
    return model.baseline or None


def _record_size_gb(model: CatalogModel) -> float | None:
    return get_model_size_gb(model)


def build_degraded_metrics(model: CatalogModel, category_total: int) -> ModelWithAuditMetrics:
    """Build a row from the reference record and runtime statistics alone."""
    usage = get_usage_stats(model)
    size_gb = _record_size_gb(model)
    return ModelWithAuditMetrics(
        model=model,
        audit_info=None,
        usage_day=usage.day,
        usage_month=usage.month,
        usage_total=usage.total,
        worker_count=model.worker_count or 0,
        usage_percentage=calculate_usage_percentage(usage.month, category_total),
        usage_trend=calculate_usage_trend(model.usage_stats),
        cost_benefit_score=get_cost_benefit_score(usage.month, size_gb),
        flags=None,
        is_critical=False,
        has_warning=False,
        flag_count=0,
        file_hosts=get_model_file_hosts(model),
        baseline=_record_baseline(model),
        size_gb=size_gb,
    )


def build_model_audit_metrics(
    model: CatalogModel,
    audit_infos: Sequence[ModelAuditInfo],
    category_total: int,
) -> ModelWithAuditMetrics:
    """Build the audit row of `model` from its matching audit entries (degraded if there are none)."""
    if not audit_infos:
        return build_degraded_metrics(model, category_total)

    if len(audit_infos) == 1:
        info = audit_infos[0]
    else:
        info = merge_audit_infos(model.name, audit_infos, category_total)

    return ModelWithAuditMetrics(
        model=model,
        audit_info=info,
        usage_day=info.usage_day,
        usage_month=info.usage_month,
        usage_total=info.usage_total,
        worker_count=info.worker_count,
        usage_percentage=info.usage_percentage_of_category,
        usage_trend=info.usage_trend,
        cost_benefit_score=info.cost_benefit_score,
        flags=info.deletion_risk_flags,
        is_critical=bool(info.is_critical),
        has_warning=bool(info.has_warning),
        flag_count=info.flag_count,
        file_hosts=list(info.download_hosts) or get_model_file_hosts(model),
        baseline=info.baseline or _record_baseline(model),
        size_gb=info.size_gb if info.size_gb is not None else _record_size_gb(model),
    )


def build_audit_metrics(
    models: Sequence[CatalogModel],
    audit_response: CategoryAuditResponse | None,
    category_total: int | None = None,
    *,
    restrict_to_audit: bool = False,
) -> list[ModelWithAuditMetrics]:
    """Build one audit row per model or group.

    Args:
        models: The catalog rows (text models already grouped).
        audit_response: The service's audit, or None in degraded mode.
        category_total: Monthly usage of the whole category. Computed with `category_total_usage` if None.
        restrict_to_audit: Drop rows without an audit entry. Used when the audit was filtered by a preset.

    Returns:
        list[ModelWithAuditMetrics]: The rows, in the order of `models`.
    """
    if category_total is None:
        category_total = category_total_usage(models, audit_response)

    if audit_response is None:
        return [build_degraded_metrics(model, category_total) for model in models]

    audit_index = audit_response.index_by_name()
    rows: list[ModelWithAuditMetrics] = []
    for model in models:
        infos = find_audit_infos(model, audit_index)
        if restrict_to_audit and not infos:
            continue
        rows.append(build_model_audit_metrics(model, infos, category_total))
    return rows


def _disk_space_gb(rows: Iterable[ModelWithAuditMetrics]) -> float:
    total_bytes = 0
    for row in rows:
        record = row.model.records[0] if row.model.records else None
        if isinstance(record, LegacyStableDiffusionRecord) and record.size_on_disk_bytes:
            total_bytes += record.size_on_disk_bytes
    return total_bytes / (1024**3)


def summarize_audit_metrics(rows: Sequence[ModelWithAuditMetrics], category: str) -> AuditMetricsSummary:
    """Compute the headline figures shown above the audit table."""
    is_image_generation = category == MODEL_REFERENCE_CATEGORY.image_generation
    return AuditMetricsSummary(
        total_models=len(rows),
        critical_count=sum(1 for row in rows if row.is_critical),
        warning_count=sum(1 for row in rows if row.has_warning),
        models_with_workers=sum(1 for row in rows if row.worker_count > 0),
        models_with_zero_month_usage=sum(1 for row in rows if row.usage_month == 0),
        average_usage_percentage=sum(row.usage_percentage for row in rows) / len(rows) if rows else 0.0,
        total_disk_space_gb=_disk_space_gb(rows) if is_image_generation else None,
        flagged_disk_space_gb=_disk_space_gb(row for row in rows if row.is_flagged) if is_image_generation else None,
    )
