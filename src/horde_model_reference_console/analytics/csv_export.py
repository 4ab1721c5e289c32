"""CSV export of the audit table."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

from loguru import logger

from horde_model_reference_console.analytics.audit_metrics import ModelWithAuditMetrics
from horde_model_reference_console.analytics.audit_models import DeletionRiskFlags

AUDIT_CSV_HEADER = (
    "Name,Baseline,Workers,Usage Day,Usage Month,Usage Total,Usage %,Cost-Benefit,File Hosts,Flags,Size GB,Notes"
)

FLAG_LABELS: dict[str, str] = {
    "zero_usage_day": "ZeroDay",
    "zero_usage_month": "ZeroMonth",
    "zero_usage_total": "ZeroTotal",
    "no_active_workers": "NoWorkers",
    "has_multiple_hosts": "MultiHost",
    "has_non_preferred_host": "NonPreferred",
    "has_unknown_host": "UnknownHost",
    "no_download_urls": "NoDownloads",
    "missing_description": "NoDescription",
    "missing_baseline": "NoBaseline",
    "low_usage": "LowUsage",
}
"""Short label written to the Flags column for each deletion risk flag."""


def escape_csv(value: str) -> str:
    """Quote `value` if it contains a comma, a double quote or a line break, doubling embedded quotes."""
    if any(char in value for char in ',"\r\n'):
        return '"' + value.replace('"', '""') + '"'
    return value


def get_flag_labels(flags: DeletionRiskFlags | None) -> list[str]:
    if flags is None:
        return []
    return [FLAG_LABELS[name] for name in flags.set_flags() if name in FLAG_LABELS]


def _format_optional(value: float | None) -> str:
    return "" if value is None else f"{value:.2f}"


def build_audit_csv_row(row: ModelWithAuditMetrics) -> str:
    return ",".join(
        [
            escape_csv(row.name),
            escape_csv(row.baseline or ""),
            str(row.worker_count),
            str(row.usage_day),
            str(row.usage_month),
            str(row.usage_total),
            f"{row.usage_percentage:.2f}",
            _format_optional(row.cost_benefit_score),
            escape_csv("; ".join(row.file_hosts)),
            escape_csv("; ".join(get_flag_labels(row.flags))),
            _format_optional(row.size_gb),
            "",
        ],
    )


def build_audit_csv(rows: Iterable[ModelWithAuditMetrics]) -> str:
    """Render the header and one line per row, joined by newlines without a trailing newline."""
    return "\n".join([AUDIT_CSV_HEADER, *(build_audit_csv_row(row) for row in rows)])


def get_audit_csv_filename(category: str) -> str:
    return f"model-audit-{category}.csv"


def export_audit_csv(rows: Sequence[ModelWithAuditMetrics], category: str, directory: Path) -> Path:
    """Write the audit rows of `category` to `directory/model-audit-<category>.csv`.

    Returns:
        Path: The written file.
    """
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / get_audit_csv_filename(category)
    with open(target, "w", encoding="utf-8", newline="") as csv_file:
        csv_file.write(build_audit_csv(rows))
    logger.info(f"Exported {len(rows)} audit rows to {target}")
    return target
