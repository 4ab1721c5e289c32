"""Three-state column sorting for the audit and catalog tables."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from strenum import StrEnum

from horde_model_reference_console.analytics.audit_metrics import ModelWithAuditMetrics
from horde_model_reference_console.unified_model import CatalogModel, has_active_workers

SortDirection = Literal["asc", "desc"]


class AuditSortColumn(StrEnum):
    """Sortable columns of the audit table."""

    name = "name"
    baseline = "baseline"
    workers = "workers"
    usage_day = "usage_day"
    usage_month = "usage_month"
    usage_total = "usage_total"
    usage_percentage = "usage_percentage"
    cost_benefit = "cost_benefit"
    size_gb = "size_gb"
    flags = "flags"


class CatalogSortColumn(StrEnum):
    """Sortable columns of the catalog table."""

    name = "name"
    active = "active"


@dataclass
class SortState:
    """The sorted column and direction of a table. Both are None when unsorted."""

    column: str | None = None
    direction: SortDirection | None = None

    def toggle(self, column: str) -> None:
        """Advance the sort for `column`.

        A different column starts ascending. The same column cycles ascending, descending, unsorted.
        """
        if self.column != column:
            self.column = column
            self.direction = "asc"
        elif self.direction == "asc":
            self.direction = "desc"
        elif self.direction == "desc":
            self.column = None
            self.direction = None
        else:
            self.direction = "asc"

    @property
    def is_active(self) -> bool:
        return self.column is not None and self.direction is not None

    def indicator(self, column: str) -> str:
        """Return the arrow shown next to a column header."""
        if self.column != column or self.direction is None:
            return "↕"
        return "↑" if self.direction == "asc" else "↓"


def _or_empty(value: Any) -> Any:
    return "" if value is None else value


AUDIT_SORT_KEYS: dict[str, Callable[[ModelWithAuditMetrics], Any]] = {
    AuditSortColumn.name: lambda row: row.name,
    AuditSortColumn.baseline: lambda row: _or_empty(row.baseline),
    AuditSortColumn.workers: lambda row: row.worker_count,
    AuditSortColumn.usage_day: lambda row: row.usage_day,
    AuditSortColumn.usage_month: lambda row: row.usage_month,
    AuditSortColumn.usage_total: lambda row: row.usage_total,
    AuditSortColumn.usage_percentage: lambda row: row.usage_percentage,
    AuditSortColumn.cost_benefit: lambda row: row.cost_benefit_score or 0.0,
    AuditSortColumn.size_gb: lambda row: row.size_gb or 0.0,
    AuditSortColumn.flags: lambda row: row.flag_count,
}


def sort_audit_rows(rows: Sequence[ModelWithAuditMetrics], sort_state: SortState) -> list[ModelWithAuditMetrics]:
    """Return `rows` ordered by `sort_state`. Equal keys keep their input order in both directions."""
    if not sort_state.is_active or sort_state.column not in AUDIT_SORT_KEYS:
        return list(rows)
    return sorted(rows, key=AUDIT_SORT_KEYS[sort_state.column], reverse=sort_state.direction == "desc")


def sort_catalog_models(models: Sequence[CatalogModel], sort_state: SortState) -> list[CatalogModel]:
    """Return `models` ordered by `sort_state`.

    Names compare case-insensitively. Sorting by `active` puts models with active workers first when
    ascending (last when descending); ties are always ordered by name ascending.
    """
    if not sort_state.is_active:
        return list(models)

    descending = sort_state.direction == "desc"

    if sort_state.column == CatalogSortColumn.name:
        return sorted(models, key=lambda model: model.name.casefold(), reverse=descending)

    if sort_state.column == CatalogSortColumn.active:
        by_name = sorted(models, key=lambda model: model.name.casefold())
        return sorted(by_name, key=lambda model: has_active_workers(model) == descending)

    return list(models)
