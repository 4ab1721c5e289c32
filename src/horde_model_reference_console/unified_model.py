"""Reference records merged with Horde runtime statistics, and grouping of text model variations.

A `UnifiedModelData` is one reference record plus what the Horde reports about it (workers,
queue, usage). Text models are served under several names (one per backend, sometimes per
author); `create_grouped_text_models` collapses those into a single `GroupedTextModel` row with
summed statistics.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field

from horde_model_reference_console.meta_consts import TEXT_BACKEND
from horde_model_reference_console.model_reference_records import (
    LegacyRecordUnion,
    LegacyStableDiffusionRecord,
    LegacyTextGenerationRecord,
    get_record_baseline,
    get_record_tags,
)
from horde_model_reference_console.statistics_models import (
    BackendCombinedModelStatistics,
    ModelUsageStats,
    WorkerSummary,
)
from horde_model_reference_console.text_model_name import (
    ParsedTextModelName,
    get_base_model_name,
    get_name_without_backend,
    parse_text_model_name,
)


class UnifiedModelData(BaseModel):
    """A reference record together with its Horde runtime statistics."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    name: str
    """Display name. Differs from `record.name` for backend variations (e.g. `koboldcpp/<name>`)."""
    record: LegacyRecordUnion
    """The reference record this row was built from."""
    parsed_name: ParsedTextModelName | None = None
    """Parsed name components, set for text generation models only."""
    worker_count: int | None = None
    queued_jobs: int | None = None
    performance: float | None = None
    eta: int | None = None
    queued: int | None = None
    usage_stats: ModelUsageStats | None = None
    workers: list[WorkerSummary] | None = None

    @property
    def description(self) -> str | None:
        return self.record.description

    @property
    def baseline(self) -> str | None:
        return get_record_baseline(self.record)

    @property
    def tags(self) -> list[str]:
        return get_record_tags(self.record)

    @property
    def nsfw(self) -> bool | None:
        return self.record.nsfw

    @property
    def parameters(self) -> int | None:
        if isinstance(self.record, LegacyTextGenerationRecord):
            return self.record.parameters
        return None

    @property
    def text_model_group(self) -> str | None:
        if isinstance(self.record, LegacyTextGenerationRecord):
            return self.record.text_model_group
        return None

    @property
    def records(self) -> list[LegacyRecordUnion]:
        return [self.record]


class GroupedTextModel(BaseModel):
    """Several variations of one text model shown as a single row with aggregated statistics."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    name: str
    """The group's base name (the service's `text_model_group` or the parsed model name)."""
    variations: list[UnifiedModelData]
    available_backends: list[str] = Field(default_factory=list)
    available_authors: list[str] = Field(default_factory=list)
    has_aggregated_stats: bool = True
    """True when the statistics below were summed over more than one variation."""
    worker_count: int = 0
    queued_jobs: int = 0
    usage_stats: ModelUsageStats | None = None
    workers: list[WorkerSummary] = Field(default_factory=list)
    parsed_name: ParsedTextModelName | None = None
    description: str | None = None
    baseline: str | None = None
    tags: list[str] = Field(default_factory=list)
    nsfw: bool | None = None
    parameters: int | None = None

    @property
    def records(self) -> list[LegacyRecordUnion]:
        return [variation.record for variation in self.variations]


CatalogModel = UnifiedModelData | GroupedTextModel
"""A row of the catalog or audit table."""


@dataclass
class ModelVariationAggregate:
    """Statistics summed over the variations of a text model."""

    total_worker_count: int = 0
    total_queued_jobs: int = 0
    combined_usage_stats: ModelUsageStats | None = None
    all_workers: list[WorkerSummary] = field(default_factory=list)


def merge_backend_statistics(
    record: LegacyRecordUnion,
    backend_stats: Mapping[str, BackendCombinedModelStatistics] | None,
    *,
    parse_text_model_names: bool = False,
) -> UnifiedModelData:
    """Attach the service's pre-aggregated statistics for `record.name` to the record.

    Args:
        record: The reference record.
        backend_stats: Model name to statistics, as returned by the with-stats endpoint. May be None.
        parse_text_model_names: Whether to parse the record's name as a text model name.

    Returns:
        UnifiedModelData: The merged row. Runtime fields stay None when there are no statistics for the model.
    """
    unified = UnifiedModelData(name=record.name, record=record)

    if parse_text_model_names and record.name:
        unified.parsed_name = parse_text_model_name(record.name)

    stats = backend_stats.get(record.name) if backend_stats and record.name else None
    if stats is None:
        return unified

    unified.worker_count = stats.worker_count
    unified.queued_jobs = stats.queued_jobs
    unified.performance = stats.performance
    unified.eta = stats.eta
    unified.queued = stats.queued

    if stats.usage_stats is not None:
        unified.usage_stats = stats.usage_stats.model_copy()

    if stats.worker_summaries is not None:
        unified.workers = list(stats.worker_summaries.values())

    return unified


def merge_multiple_backend_statistics(
    records: Iterable[LegacyRecordUnion],
    backend_stats: Mapping[str, BackendCombinedModelStatistics] | None,
    *,
    parse_text_model_names: bool = False,
) -> list[UnifiedModelData]:
    """Merge statistics into each record, expanding text models into one row per backend variation.

    A record whose statistics list backend variations produces one row per variation, named
    `<backend>/<variant_name>` for known backends. The record's own row is kept only when none of
    the variations already carries the record's exact name.
    """
    result: list[UnifiedModelData] = []

    for record in records:
        unified = merge_backend_statistics(record, backend_stats, parse_text_model_names=parse_text_model_names)
        stats = backend_stats.get(record.name) if backend_stats else None

        if stats is None or not stats.backend_variations:
            result.append(unified)
            continue

        variations = list(stats.backend_variations.values())
        if not any(variation.variant_name == record.name for variation in variations):
            result.append(unified)

        for variation in variations:
            known_backend = variation.backend in TEXT_BACKEND.__members__
            display_name = f"{variation.backend}/{variation.variant_name}" if known_backend else variation.variant_name

            backend_row = UnifiedModelData(
                name=display_name,
                record=record,
                worker_count=variation.worker_count,
                queued_jobs=variation.queued_jobs,
                performance=variation.performance,
                eta=variation.eta,
                queued=variation.queued,
            )

            if parse_text_model_names:
                parsed = parse_text_model_name(variation.variant_name)
                if known_backend:
                    parsed = parsed.with_backend(TEXT_BACKEND(variation.backend), display_name)
                backend_row.parsed_name = parsed

            if any(usage is not None for usage in (variation.usage_day, variation.usage_month, variation.usage_total)):
                backend_row.usage_stats = ModelUsageStats(
                    day=variation.usage_day or 0,
                    month=variation.usage_month or 0,
                    total=variation.usage_total or 0,
                )

            result.append(backend_row)

    return result


def has_active_workers(model: CatalogModel) -> bool:
    """Return True if the model has a positive worker count or, lacking one, any online worker."""
    if model.worker_count is not None and model.worker_count > 0:
        return True
    return bool(model.workers) and any(worker.online for worker in model.workers or [])


def has_horde_data(model: UnifiedModelData) -> bool:
    return model.worker_count is not None or model.queued_jobs is not None or model.usage_stats is not None


def get_display_name(model: UnifiedModelData) -> str:
    """Return the base model name for text models and the name itself for anything else."""
    if model.parsed_name is not None:
        return get_base_model_name(model.name)
    return model.name


def get_text_model_group_name(model: UnifiedModelData) -> str:
    """Return the name a text model is grouped under.

    The service's `text_model_group` wins; otherwise the parsed base name is used, and models
    without a parsed name are their own group.
    """
    if model.text_model_group:
        return model.text_model_group
    if model.parsed_name is not None:
        return get_base_model_name(model.name)
    return model.name


def group_text_models_by_base_name(models: Iterable[UnifiedModelData]) -> dict[str, list[UnifiedModelData]]:
    """Group models by `get_text_model_group_name`, preserving input order within each group."""
    groups: dict[str, list[UnifiedModelData]] = {}
    for model in models:
        groups.setdefault(get_text_model_group_name(model), []).append(model)
    return groups


def get_backend_variations(models: Iterable[UnifiedModelData], base_model_name: str) -> list[UnifiedModelData]:
    """Return the models whose base name matches `base_model_name`, case-insensitively."""
    wanted = base_model_name.lower()
    return [model for model in models if get_display_name(model).lower() == wanted]


def find_model_by_name_variation(models: Sequence[UnifiedModelData], search_name: str) -> UnifiedModelData | None:
    """Find a model by exact name, then by name without backend, then by bare model name.

    All comparisons are case-insensitive. Only text models take part in the two fallback passes.
    """
    lowered = search_name.lower()
    for model in models:
        if model.name.lower() == lowered:
            return model

    without_backend = get_name_without_backend(search_name).lower()
    for model in models:
        if model.parsed_name is not None and get_name_without_backend(model.name).lower() == without_backend:
            return model

    bare_name = get_base_model_name(search_name).lower()
    for model in models:
        if model.parsed_name is not None and get_base_model_name(model.name).lower() == bare_name:
            return model

    return None


def aggregate_model_variations(models: Iterable[UnifiedModelData]) -> ModelVariationAggregate:
    """Sum worker counts, queued jobs and usage over `models`.

    Workers are de-duplicated by id. `combined_usage_stats` is None unless at least one variation
    has usage statistics.
    """
    aggregate = ModelVariationAggregate()
    seen_worker_ids: set[str] = set()
    usage_totals: ModelUsageStats | None = None

    for model in models:
        aggregate.total_worker_count += model.worker_count or 0
        aggregate.total_queued_jobs += model.queued_jobs or 0

        for worker in model.workers or []:
            if worker.id not in seen_worker_ids:
                seen_worker_ids.add(worker.id)
                aggregate.all_workers.append(worker)

        if model.usage_stats is not None:
            if usage_totals is None:
                usage_totals = ModelUsageStats()
            usage_totals.day += model.usage_stats.day
            usage_totals.month += model.usage_stats.month
            usage_totals.total += model.usage_stats.total

    aggregate.combined_usage_stats = usage_totals
    return aggregate


def create_grouped_text_models(models: Sequence[UnifiedModelData]) -> list[CatalogModel]:
    """Collapse text model variations into `GroupedTextModel` rows.

    Models without a parsed name come first, unchanged. Each group of text models with a single
    variation is kept as that variation; larger groups become one grouped row whose descriptive
    fields come from the first variation.
    """
    text_models = [model for model in models if model.parsed_name is not None]
    if not text_models:
        return list(models)

    result: list[CatalogModel] = [model for model in models if model.parsed_name is None]

    for base_name, variations in group_text_models_by_base_name(text_models).items():
        if len(variations) == 1:
            result.append(variations[0])
            continue

        aggregate = aggregate_model_variations(variations)
        primary = variations[0]

        backends: list[str] = []
        authors: list[str] = []
        for variation in variations:
            parsed = variation.parsed_name
            if parsed is None:
                continue
            if parsed.backend is not None and parsed.backend not in backends:
                backends.append(parsed.backend)
            if parsed.author is not None and parsed.author not in authors:
                authors.append(parsed.author)

        result.append(
            GroupedTextModel(
                name=base_name,
                variations=variations,
                available_backends=backends,
                available_authors=authors,
                has_aggregated_stats=len(variations) > 1,
                worker_count=aggregate.total_worker_count,
                queued_jobs=aggregate.total_queued_jobs,
                usage_stats=aggregate.combined_usage_stats,
                workers=aggregate.all_workers,
                parsed_name=primary.parsed_name,
                description=primary.description,
                baseline=primary.baseline,
                tags=primary.tags,
                nsfw=primary.nsfw,
                parameters=primary.parameters,
            ),
        )

    return result


def get_model_size_gb(model: CatalogModel) -> float | None:
    """Return the on-disk size in GiB of an image generation model, None for anything else."""
    if isinstance(model, UnifiedModelData) and isinstance(model.record, LegacyStableDiffusionRecord):
        size_bytes = model.record.size_on_disk_bytes
        if size_bytes:
            return size_bytes / (1024**3)
    return None
