"""Audit filter presets and the client-side audit filters.

A preset has two halves. Its backend name (e.g. `zero_usage`) is sent to the audit endpoint,
which then only returns matching models. Its range filters reproduce the same selection on the
client, which is what the console applies when the audit endpoint is unavailable.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum, auto

from loguru import logger
from pydantic import BaseModel, ConfigDict
from strenum import StrEnum

from horde_model_reference_console.analytics.audit_metrics import ModelWithAuditMetrics
from horde_model_reference_console.meta_consts import MODEL_REFERENCE_CATEGORY

SHOW_ALL_PRESET = "Show All"


class AuditFilterPreset(str, Enum):
    """Filter presets recognized by the audit endpoint's `preset` parameter."""

    DELETION_CANDIDATES = "deletion_candidates"
    """Models with any flags, very low usage or no workers."""

    ZERO_USAGE = "zero_usage"
    """Models with zero monthly usage."""

    NO_WORKERS = "no_workers"
    """Models with no active workers."""

    MISSING_DATA = "missing_data"
    """Models missing a description or baseline."""

    HOST_ISSUES = "host_issues"
    """Models with file hosting issues."""

    CRITICAL = "critical"
    """Models with zero monthly usage and no workers."""

    LOW_USAGE = "low_usage"
    """Models with very low usage."""


PRESET_NAME_TO_BACKEND: dict[str, AuditFilterPreset | None] = {
    SHOW_ALL_PRESET: None,
    "Deletion Candidates": AuditFilterPreset.DELETION_CANDIDATES,
    "Zero Usage": AuditFilterPreset.ZERO_USAGE,
    "No Workers": AuditFilterPreset.NO_WORKERS,
    "Missing Data": AuditFilterPreset.MISSING_DATA,
    "Host Issues": AuditFilterPreset.HOST_ISSUES,
    "Critical": AuditFilterPreset.CRITICAL,
    "Low Usage": AuditFilterPreset.LOW_USAGE,
}
"""Display name of each preset to the value sent to the audit endpoint. "Show All" sends nothing."""


class AuditFilterType(StrEnum):
    """The client-side filters an audit table can offer."""

    usage_percentage = auto()
    worker_count = auto()
    month_usage = auto()
    total_usage = auto()
    hosts = auto()
    baselines = auto()
    flagged = auto()


AUDIT_FILTERS_BY_CATEGORY: dict[str, list[AuditFilterType]] = {
    MODEL_REFERENCE_CATEGORY.image_generation: [
        AuditFilterType.usage_percentage,
        AuditFilterType.worker_count,
        AuditFilterType.month_usage,
        AuditFilterType.hosts,
        AuditFilterType.baselines,
        AuditFilterType.flagged,
    ],
    MODEL_REFERENCE_CATEGORY.text_generation: [
        AuditFilterType.worker_count,
        AuditFilterType.total_usage,
        AuditFilterType.baselines,
        AuditFilterType.flagged,
    ],
}
"""Filters offered per category. Other categories get `DEFAULT_AUDIT_FILTERS`."""

DEFAULT_AUDIT_FILTERS = [AuditFilterType.hosts, AuditFilterType.flagged]


class AuditPresetFilters(BaseModel):
    """Client-side filter values a preset sets. Unset bounds leave the range open."""

    model_config = ConfigDict(frozen=True)

    min_usage_percentage: float | None = None
    max_usage_percentage: float | None = None
    min_worker_count: int | None = None
    max_worker_count: int | None = None
    min_month_usage: int | None = None
    max_month_usage: int | None = None
    min_total_usage: int | None = None
    max_total_usage: int | None = None
    show_only_flagged: bool | None = None


class AuditPreset(BaseModel):
    """A named preset as offered in the audit view."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    filters: AuditPresetFilters = AuditPresetFilters()

    @property
    def backend_preset(self) -> AuditFilterPreset | None:
        return PRESET_NAME_TO_BACKEND.get(self.name)


_SHOW_ALL = AuditPreset(name=SHOW_ALL_PRESET, description="Clear all filters")
_FLAGGED = AuditPresetFilters(show_only_flagged=True)

AUDIT_FILTER_PRESETS: dict[str, list[AuditPreset]] = {
    MODEL_REFERENCE_CATEGORY.image_generation: [
        _SHOW_ALL,
        AuditPreset(name="Deletion Candidates", description="Models with any flags", filters=_FLAGGED),
        AuditPreset(
            name="Zero Usage",
            description="Zero monthly usage",
            filters=AuditPresetFilters(max_month_usage=0),
        ),
        AuditPreset(
            name="No Workers",
            description="No active workers",
            filters=AuditPresetFilters(max_worker_count=0),
        ),
        AuditPreset(name="Missing Data", description="Missing data", filters=_FLAGGED),
        AuditPreset(name="Host Issues", description="File hosting issues", filters=_FLAGGED),
        AuditPreset(
            name="Critical",
            description="Critical state",
            filters=AuditPresetFilters(max_month_usage=0, max_worker_count=0),
        ),
        AuditPreset(
            name="Low Usage",
            description="Low usage",
            filters=AuditPresetFilters(max_usage_percentage=0.1),
        ),
    ],
    MODEL_REFERENCE_CATEGORY.text_generation: [
        _SHOW_ALL,
        AuditPreset(name="Deletion Candidates", description="Models with any flags", filters=_FLAGGED),
        AuditPreset(
            name="Zero Usage",
            description="Zero total usage",
            filters=AuditPresetFilters(max_total_usage=0),
        ),
        AuditPreset(name="No Workers", description="No active workers", filters=_FLAGGED),
        AuditPreset(name="Missing Data", description="Missing data", filters=_FLAGGED),
        AuditPreset(name="Host Issues", description="File hosting issues", filters=_FLAGGED),
        AuditPreset(name="Critical", description="Critical state", filters=_FLAGGED),
        AuditPreset(
            name="Low Usage",
            description="Low usage",
            filters=AuditPresetFilters(max_total_usage=1000),
        ),
    ],
}
"""Presets offered per category. Other categories only offer "Show All"."""


def get_available_presets(category: str) -> list[AuditPreset]:
    return AUDIT_FILTER_PRESETS.get(category, [_SHOW_ALL])


def get_available_filters(category: str) -> list[AuditFilterType]:
    return AUDIT_FILTERS_BY_CATEGORY.get(category, DEFAULT_AUDIT_FILTERS)


def get_preset(category: str, preset_name: str) -> AuditPreset | None:
    """Return the preset of `category` named `preset_name`, or None if the category does not offer it."""
    return next((preset for preset in get_available_presets(category) if preset.name == preset_name), None)


def get_backend_preset(preset_name: str | None) -> AuditFilterPreset | None:
    """Translate a preset display name into the audit endpoint's `preset` value.

    Raises:
        ValueError: If `preset_name` is not a known preset.
    """
    if preset_name is None:
        return None
    if preset_name not in PRESET_NAME_TO_BACKEND:
        valid_names = ", ".join(PRESET_NAME_TO_BACKEND)
        raise ValueError(f"Unknown preset '{preset_name}'. Valid presets: {valid_names}")
    return PRESET_NAME_TO_BACKEND[preset_name]


@dataclass
class RangeFilter:
    """An optional `[minimum, maximum]` filter. Either bound may be open (None)."""

    label: str
    enabled: bool = False
    minimum: float | None = None
    maximum: float | None = None

    @property
    def has_conflict(self) -> bool:
        return self.minimum is not None and self.maximum is not None and self.minimum > self.maximum

    def reset(self) -> None:
        self.enabled = False
        self.minimum = None
        self.maximum = None

    def set_range(self, minimum: float | None, maximum: float | None) -> bool:
        """Enable the filter with the given bounds, unless they conflict.

        Returns:
            bool: True if the filter was enabled.
        """
        if minimum is not None and maximum is not None and minimum > maximum:
            logger.debug(f"Not applying {self.label} range: min {minimum} > max {maximum}")
            return False
        self.minimum = minimum
        self.maximum = maximum
        self.enabled = True
        return True

    def is_active(self) -> bool:
        """Return True if the filter should be applied: enabled and not conflicting."""
        return self.enabled and not self.has_conflict

    def matches(self, value: float) -> bool:
        return (self.minimum is None or value >= self.minimum) and (self.maximum is None or value <= self.maximum)


@dataclass
class AuditFilterState:
    """The client-side filters of the audit view."""

    usage_percentage: RangeFilter = field(default_factory=lambda: RangeFilter("Usage Percentage"))
    worker_count: RangeFilter = field(default_factory=lambda: RangeFilter("Worker Count"))
    month_usage: RangeFilter = field(default_factory=lambda: RangeFilter("Month Usage"))
    total_usage: RangeFilter = field(default_factory=lambda: RangeFilter("Total Usage"))
    selected_hosts: list[str] = field(default_factory=list)
    selected_baselines: list[str] = field(default_factory=list)
    show_only_flagged: bool = False

    def range_filters(self) -> list[RangeFilter]:
        return [self.usage_percentage, self.worker_count, self.month_usage, self.total_usage]

    def reset(self) -> None:
        for range_filter in self.range_filters():
            range_filter.reset()
        self.selected_hosts = []
        self.selected_baselines = []
        self.show_only_flagged = False

    def conflicts(self) -> list[str]:
        """Describe every enabled range whose minimum exceeds its maximum."""
        return [
            f"{range_filter.label}: min > max"
            for range_filter in self.range_filters()
            if range_filter.enabled and range_filter.has_conflict
        ]

    def apply_preset(self, preset: AuditPreset) -> None:
        """Reset all filters, then apply the preset's values. Conflicting ranges stay disabled."""
        self.reset()
        filters = preset.filters

        for range_filter, minimum, maximum in (
            (self.usage_percentage, filters.min_usage_percentage, filters.max_usage_percentage),
            (self.worker_count, filters.min_worker_count, filters.max_worker_count),
            (self.month_usage, filters.min_month_usage, filters.max_month_usage),
            (self.total_usage, filters.min_total_usage, filters.max_total_usage),
        ):
            if minimum is not None or maximum is not None:
                range_filter.set_range(minimum, maximum)

        if filters.show_only_flagged is not None:
            self.show_only_flagged = filters.show_only_flagged

    def toggle_host(self, host: str) -> None:
        if host in self.selected_hosts:
            self.selected_hosts.remove(host)
        else:
            self.selected_hosts.append(host)

    def toggle_baseline(self, baseline: str) -> None:
        if baseline in self.selected_baselines:
            self.selected_baselines.remove(baseline)
        else:
            self.selected_baselines.append(baseline)

    def apply(
        self,
        rows: Iterable[ModelWithAuditMetrics],
        available_filters: Sequence[AuditFilterType],
        *,
        include_preset_filters: bool = True,
    ) -> list[ModelWithAuditMetrics]:
        """Return the rows passing every active filter offered in `available_filters`.

        With `include_preset_filters=False` the range and flagged filters are skipped, leaving only the host
        and baseline selections. Used when the audit endpoint already applied the preset.
        """
        filtered = list(rows)

        range_checks = (
            (AuditFilterType.usage_percentage, self.usage_percentage, lambda row: row.usage_percentage),
            (AuditFilterType.worker_count, self.worker_count, lambda row: row.worker_count),
            (AuditFilterType.month_usage, self.month_usage, lambda row: row.usage_month),
            (AuditFilterType.total_usage, self.total_usage, lambda row: row.usage_total),
        )
        for filter_type, range_filter, value_of in range_checks:
            if include_preset_filters and filter_type in available_filters and range_filter.is_active():
                filtered = [row for row in filtered if range_filter.matches(value_of(row))]

        if AuditFilterType.hosts in available_filters and self.selected_hosts:
            filtered = [row for row in filtered if any(host in self.selected_hosts for host in row.file_hosts)]

        if AuditFilterType.baselines in available_filters and self.selected_baselines:
            filtered = [row for row in filtered if row.baseline and row.baseline in self.selected_baselines]

        if include_preset_filters and AuditFilterType.flagged in available_filters and self.show_only_flagged:
            filtered = [row for row in filtered if row.is_flagged]

        return filtered


def get_available_hosts(rows: Iterable[ModelWithAuditMetrics]) -> list[str]:
    return sorted({host for row in rows for host in row.file_hosts})


def get_available_baselines(rows: Iterable[ModelWithAuditMetrics]) -> list[str]:
    return sorted({row.baseline for row in rows if row.baseline})
