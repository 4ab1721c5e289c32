"""State of the console's audit view for one category.

An `AuditSession` loads the category's records (merged with Horde runtime statistics) and the
service's audit, then derives the audit rows shown to the user: catalog filters, preset and
client-side audit filters, sorting, selection and CSV export all operate on those rows.

If the audit endpoint fails the session switches to degraded mode: rows are still produced, but
their metrics come from the reference records and runtime statistics only and carry no flags.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from horde_model_reference_console import horde_model_reference_console_settings
from horde_model_reference_console.analytics.audit_metrics import (
    AuditMetricsSummary,
    ModelWithAuditMetrics,
    build_audit_metrics,
    summarize_audit_metrics,
)
from horde_model_reference_console.analytics.audit_models import CategoryAuditResponse
from horde_model_reference_console.analytics.catalog_filters import CatalogFilterState
from horde_model_reference_console.analytics.csv_export import export_audit_csv
from horde_model_reference_console.analytics.filter_presets import (
    SHOW_ALL_PRESET,
    AuditFilterPreset,
    AuditFilterState,
    AuditPreset,
    get_available_filters,
    get_available_presets,
    get_preset,
)
from horde_model_reference_console.analytics.sorting import SortState, sort_audit_rows
from horde_model_reference_console.api_client import ModelReferenceAPIClient
from horde_model_reference_console.exceptions import ModelReferenceAPIError
from horde_model_reference_console.meta_consts import MODEL_REFERENCE_CATEGORY
from horde_model_reference_console.notifications import NotificationService
from horde_model_reference_console.unified_model import (
    CatalogModel,
    create_grouped_text_models,
    merge_multiple_backend_statistics,
)

DEGRADED_MODE_MESSAGE = (
    "Audit analysis unavailable. Metrics are computed from reference data only and no models are flagged."
)

HORDE_STATISTICS_CATEGORIES = (MODEL_REFERENCE_CATEGORY.image_generation, MODEL_REFERENCE_CATEGORY.text_generation)
"""Categories the Horde reports runtime statistics for."""


def load_catalog_models(
    client: ModelReferenceAPIClient,
    category: str,
    notifications: NotificationService,
) -> list[CatalogModel] | None:
    """Fetch the records of `category`, merge their runtime statistics and group text model variations.

    Returns:
        list[CatalogModel] | None: The catalog rows, or None if the records could not be fetched (an error
        notification is raised). Missing runtime statistics only produce a warning.
    """
    try:
        records = client.get_legacy_models_as_list(category)
    except ModelReferenceAPIError as e:
        notifications.error(e.message)
        return None

    is_text_generation = category == MODEL_REFERENCE_CATEGORY.text_generation

    backend_stats = None
    if category in HORDE_STATISTICS_CATEGORIES:
        backend_stats = client.get_models_with_stats(category)
        if backend_stats is None:
            notifications.warning("Failed to fetch model statistics from backend, showing reference data only.")

    unified = merge_multiple_backend_statistics(records, backend_stats, parse_text_model_names=is_text_generation)
    if is_text_generation:
        return create_grouped_text_models(unified)
    return list(unified)


class AuditSession:
    """The audit view of one category."""

    def __init__(
        self,
        client: ModelReferenceAPIClient,
        category: str,
        *,
        notifications: NotificationService | None = None,
        stale_after_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.category = category
        self.notifications = notifications or NotificationService()
        self.stale_after_seconds = (
            stale_after_seconds
            if stale_after_seconds is not None
            else horde_model_reference_console_settings.stale_after_seconds
        )
        self._clock = clock

        self.models: list[CatalogModel] = []
        self.audit_response: CategoryAuditResponse | None = None
        self.is_degraded = False
        self.loading = False
        self.is_refreshing = False
        self.last_refresh: float | None = None

        self.selected_preset = SHOW_ALL_PRESET
        self.catalog_filters = CatalogFilterState()
        self.audit_filters = AuditFilterState()
        self.sort_state = SortState()
        self.flagged_only = False
        self.selected_names: set[str] = set()

    @property
    def is_text_generation(self) -> bool:
        return self.category == MODEL_REFERENCE_CATEGORY.text_generation

    @property
    def available_presets(self) -> list[AuditPreset]:
        return get_available_presets(self.category)

    @property
    def backend_preset(self) -> AuditFilterPreset | None:
        preset = get_preset(self.category, self.selected_preset)
        return preset.backend_preset if preset is not None else None

    # region Loading

    def load(self) -> bool:
        """Load the category's models, then its audit.

        Returns:
            bool: False if the models could not be loaded. A failed audit only enables degraded mode.
        """
        self.loading = True
        try:
            models = load_catalog_models(self.client, self.category, self.notifications)
            if models is None:
                return False
            self.models = models
            self.selected_names &= {model.name for model in models}
        finally:
            self.loading = False

        self._fetch_audit()
        return True

    def set_category(self, category: str) -> bool:
        """Switch to another category, discarding everything loaded for the previous one."""
        self.category = category
        self.models = []
        self.audit_response = None
        self.is_degraded = False
        self.last_refresh = None
        self.selected_names.clear()
        self.catalog_filters.reset()
        self.select_preset(SHOW_ALL_PRESET, refresh=False)
        return self.load()

    def _fetch_audit(self) -> None:
        audit = self.client.get_category_audit(
            self.category,
            group_text_models=self.is_text_generation,
            preset=self.backend_preset,
        )
        self.audit_response = audit
        self.last_refresh = self._clock()

        if audit is None:
            if not self.is_degraded:
                self.notifications.warning(DEGRADED_MODE_MESSAGE)
            self.is_degraded = True
            return

        if self.is_degraded:
            self.notifications.info("Audit analysis restored.")
        self.is_degraded = False
        logger.debug(f"Loaded audit for {self.category}: {len(audit.models)} models")

    def refresh_audit_data(self) -> bool:
        """Fetch the audit again.

        Returns:
            bool: False if a refresh was already in progress and nothing was done.
        """
        if self.is_refreshing:
            logger.debug("Audit refresh already in progress, ignoring")
            return False

        self.is_refreshing = True
        try:
            self._fetch_audit()
        finally:
            self.is_refreshing = False
        return True

    def is_data_stale(self) -> bool:
        """Return True if the audit was never loaded or was loaded more than `stale_after_seconds` ago."""
        if self.last_refresh is None:
            return True
        return self._clock() - self.last_refresh > self.stale_after_seconds

    # endregion

    # region Presets and filters

    def select_preset(self, preset_name: str, *, refresh: bool = True) -> None:
        """Select a preset and, if `refresh`, refetch the audit with its backend preset.

        The preset's client-side filters are set as well; they only take effect in degraded mode.

        Raises:
            ValueError: If the category does not offer `preset_name`.
        """
        preset = get_preset(self.category, preset_name)
        if preset is None:
            valid_names = ", ".join(available.name for available in self.available_presets)
            raise ValueError(
                f"Preset '{preset_name}' is not available for {self.category}. Valid presets: {valid_names}",
            )

        self.selected_preset = preset.name
        self.audit_filters.apply_preset(preset)
        if refresh:
            self.refresh_audit_data()

    def clear_filters(self) -> None:
        """Reset every filter and return to the unfiltered audit."""
        self.catalog_filters.reset()
        self.flagged_only = False
        self.select_preset(SHOW_ALL_PRESET)

    def filter_conflicts(self) -> list[str]:
        return self.audit_filters.conflicts()

    # endregion

    # region Rows

    @property
    def rows(self) -> list[ModelWithAuditMetrics]:
        """One audit row per loaded model, before any client-side filtering.

        While a backend preset is active only the models it returned are kept.
        """
        restrict_to_audit = self.audit_response is not None and self.backend_preset is not None
        return build_audit_metrics(self.models, self.audit_response, restrict_to_audit=restrict_to_audit)

    @property
    def visible_rows(self) -> list[ModelWithAuditMetrics]:
        """The rows after catalog filters, audit filters and sorting, as displayed.

        When the audit endpoint answered for a backend preset its selection is final: the preset's ranges and
        flagged filter only apply in degraded mode.
        """
        filtered_models = {id(model) for model in self.catalog_filters.apply(self.models)}
        rows = [row for row in self.rows if id(row.model) in filtered_models]
        server_filtered = self.audit_response is not None and self.backend_preset is not None
        rows = self.audit_filters.apply(
            rows,
            get_available_filters(self.category),
            include_preset_filters=not server_filtered,
        )
        if self.flagged_only:
            rows = [row for row in rows if row.is_flagged]
        return sort_audit_rows(rows, self.sort_state)

    @property
    def summary(self) -> AuditMetricsSummary:
        return summarize_audit_metrics(self.visible_rows, self.category)

    def toggle_sort(self, column: str) -> None:
        self.sort_state.toggle(column)

    # endregion

    # region Selection

    def toggle_selection(self, model_name: str) -> None:
        if model_name in self.selected_names:
            self.selected_names.remove(model_name)
        else:
            self.selected_names.add(model_name)

    def is_selected(self, model_name: str) -> bool:
        return model_name in self.selected_names

    def select_all(self) -> None:
        """Select every visible row, replacing the current selection."""
        self.selected_names = {row.name for row in self.visible_rows}

    def select_none(self) -> None:
        self.selected_names = set()

    def select_flagged(self) -> None:
        """Select the visible rows which are critical or have a warning, replacing the current selection."""
        self.selected_names = {row.name for row in self.visible_rows if row.is_flagged}

    @property
    def selected_rows(self) -> list[ModelWithAuditMetrics]:
        return [row for row in self.rows if row.name in self.selected_names]

    @property
    def selected_count(self) -> int:
        return len(self.selected_names)

    @property
    def selected_critical_count(self) -> int:
        return sum(1 for row in self.selected_rows if row.is_critical)

    @property
    def selected_warning_count(self) -> int:
        return sum(1 for row in self.selected_rows if row.has_warning)

    # endregion

    def export_csv(self, directory: Path | None = None, *, selected_only: bool = False) -> Path:
        """Write the visible (or only the selected visible) rows to a CSV file.

        Returns:
            Path: The written file.
        """
        rows = self.visible_rows
        if selected_only:
            rows = [row for row in rows if row.name in self.selected_names]

        target = export_audit_csv(
            rows,
            self.category,
            directory or horde_model_reference_console_settings.export_directory,
        )
        self.notifications.success(f"Exported {len(rows)} models to {target}")
        return target
