"""Audit metrics, filters, sorting and export for the console's tables."""

from horde_model_reference_console.analytics.audit_metrics import (
    ModelWithAuditMetrics,
    build_audit_metrics,
    calculate_usage_percentage,
    calculate_usage_trend,
    category_total_usage,
    get_cost_benefit_score,
    reduce_records,
)
from horde_model_reference_console.analytics.audit_models import (
    CategoryAuditResponse,
    CategoryAuditSummary,
    DeletionRiskFlags,
    ModelAuditInfo,
    UsageTrend,
)
from horde_model_reference_console.analytics.csv_export import build_audit_csv, escape_csv, export_audit_csv
from horde_model_reference_console.analytics.filter_presets import (
    PRESET_NAME_TO_BACKEND,
    AuditFilterPreset,
    AuditFilterState,
    get_backend_preset,
)
from horde_model_reference_console.analytics.sorting import SortState, sort_audit_rows, sort_catalog_models

__all__ = [
    "PRESET_NAME_TO_BACKEND",
    "AuditFilterPreset",
    "AuditFilterState",
    "CategoryAuditResponse",
    "CategoryAuditSummary",
    "DeletionRiskFlags",
    "ModelAuditInfo",
    "ModelWithAuditMetrics",
    "SortState",
    "UsageTrend",
    "build_audit_csv",
    "build_audit_metrics",
    "calculate_usage_percentage",
    "calculate_usage_trend",
    "category_total_usage",
    "escape_csv",
    "export_audit_csv",
    "get_backend_preset",
    "get_cost_benefit_score",
    "reduce_records",
    "sort_audit_rows",
    "sort_catalog_models",
]
