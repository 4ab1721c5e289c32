"""The console's model list for one category."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from horde_model_reference_console.analytics.catalog_filters import (
    CatalogFilterState,
    count_baselines,
    count_nsfw,
    count_parameters,
    count_tags,
    get_available_parameter_tags,
    get_available_tags,
    total_size_bytes,
)
from horde_model_reference_console.analytics.sorting import CatalogSortColumn, SortState, sort_catalog_models
from horde_model_reference_console.api_client import ModelReferenceAPIClient
from horde_model_reference_console.audit_session import load_catalog_models
from horde_model_reference_console.meta_consts import MODEL_REFERENCE_CATEGORY
from horde_model_reference_console.notifications import NotificationService
from horde_model_reference_console.statistics_models import CategoryStatistics
from horde_model_reference_console.unified_model import CatalogModel, GroupedTextModel, has_active_workers


class CatalogView:
    """Loads, filters and sorts the models of a category.

    Models are sorted by active workers until the user picks another sort.
    """

    def __init__(
        self,
        client: ModelReferenceAPIClient,
        category: str,
        *,
        notifications: NotificationService | None = None,
    ) -> None:
        self.client = client
        self.category = category
        self.notifications = notifications or NotificationService()
        self.models: list[CatalogModel] = []
        self.filters = CatalogFilterState()
        self.sort_state = SortState(column=CatalogSortColumn.active, direction="asc")
        self.loading = False

    def load(self) -> bool:
        """Fetch the category's models. Returns False (with an error notification) if they could not be fetched."""
        self.loading = True
        try:
            models = load_catalog_models(self.client, self.category, self.notifications)
        finally:
            self.loading = False

        if models is None:
            return False

        self.models = models
        logger.debug(f"Loaded {len(models)} {self.category} models")
        return True

    def set_category(self, category: str) -> bool:
        self.category = category
        self.models = []
        self.filters.reset()
        return self.load()

    @property
    def visible_models(self) -> list[CatalogModel]:
        return sort_catalog_models(self.filters.apply(self.models), self.sort_state)

    def toggle_sort(self, column: str) -> None:
        self.sort_state.toggle(column)

    def find_model(self, name: str) -> CatalogModel | None:
        """Find a row by name, also searching the variations of grouped text models."""
        lowered = name.lower()
        for model in self.models:
            if model.name.lower() == lowered:
                return model
            if isinstance(model, GroupedTextModel):
                for variation in model.variations:
                    if variation.name.lower() == lowered or variation.record.name.lower() == lowered:
                        return variation
        return None

    @property
    def available_tags(self) -> list[str]:
        return get_available_tags(self.models, self.category)

    @property
    def available_parameter_tags(self) -> list[str]:
        return get_available_parameter_tags(self.models, self.category)

    def statistics(self, models: Sequence[CatalogModel] | None = None) -> CatalogStatistics:
        """Summarize `models`, the visible models by default."""
        if models is None:
            models = self.visible_models
        return CatalogStatistics.from_models(models, self.category)

    def fetch_category_statistics(self) -> CategoryStatistics | None:
        """Fetch the service's statistics for the category. None, with a warning notification, on failure."""
        statistics = self.client.get_category_statistics(
            self.category,
            group_text_models=self.category == MODEL_REFERENCE_CATEGORY.text_generation,
        )
        if statistics is None:
            self.notifications.warning(f"Statistics for {self.category} are unavailable.")
        return statistics


@dataclass
class CatalogStatistics:
    """Counts shown above the model list."""

    total_models: int
    active_models: int
    baselines: list[tuple[str, int]]
    tags: list[tuple[str, int]]
    nsfw: dict[str, int]
    parameters: list[tuple[int, int]]
    """The most common parameter counts, as `(parameters, models)` pairs."""
    other_parameters: int
    """Models whose parameter count is not among `parameters`."""
    size_bytes: int

    @classmethod
    def from_models(cls, models: Sequence[CatalogModel], category: str) -> CatalogStatistics:
        parameters, other_parameters = count_parameters(models)
        return cls(
            total_models=len(models),
            active_models=sum(1 for model in models if has_active_workers(model)),
            baselines=count_baselines(models),
            tags=count_tags(models, category),
            nsfw=count_nsfw(models),
            parameters=parameters,
            other_parameters=other_parameters,
            size_bytes=total_size_bytes(models),
        )
