"""Tests for merging statistics into records and grouping text model variations."""

from __future__ import annotations

from horde_model_reference_console.model_reference_records import (
    LegacyStableDiffusionRecord,
    LegacyTextGenerationRecord,
)
from horde_model_reference_console.statistics_models import (
    BackendCombinedModelStatistics,
    BackendVariation,
    ModelUsageStats,
    WorkerSummary,
)
from horde_model_reference_console.unified_model import (
    GroupedTextModel,
    UnifiedModelData,
    aggregate_model_variations,
    create_grouped_text_models,
    find_model_by_name_variation,
    get_backend_variations,
    get_model_size_gb,
    has_active_workers,
    has_horde_data,
    merge_backend_statistics,
    merge_multiple_backend_statistics,
)
from tests.helpers import image_record_data, make_image_model, make_text_model, text_record_data


def _worker(worker_id: str, *, online: bool = True) -> WorkerSummary:
    return WorkerSummary(id=worker_id, name=f"worker-{worker_id}", online=online)


class TestMergeBackendStatistics:
    """Tests for attaching with-stats results to records."""

    def test_record_without_statistics(self) -> None:
        record = LegacyStableDiffusionRecord.model_validate(image_record_data("Deliberate"))

        unified = merge_backend_statistics(record, {})

        assert unified.name == "Deliberate"
        assert unified.worker_count is None
        assert not has_horde_data(unified)

    def test_statistics_are_copied(self) -> None:
        record = LegacyStableDiffusionRecord.model_validate(image_record_data("Deliberate"))
        stats = BackendCombinedModelStatistics(
            worker_count=3,
            queued_jobs=2,
            usage_stats=ModelUsageStats(day=1, month=10, total=100),
            worker_summaries={"w1": _worker("w1")},
        )

        unified = merge_backend_statistics(record, {"Deliberate": stats})

        assert unified.worker_count == 3
        assert unified.queued_jobs == 2
        assert unified.usage_stats == ModelUsageStats(day=1, month=10, total=100)
        assert unified.usage_stats is not stats.usage_stats
        assert [worker.id for worker in unified.workers or []] == ["w1"]

    def test_text_names_are_parsed_on_request(self) -> None:
        record = LegacyTextGenerationRecord.model_validate(text_record_data("org/Llama-3-8B"))

        unified = merge_backend_statistics(record, None, parse_text_model_names=True)

        assert unified.parsed_name is not None
        assert unified.parsed_name.author == "org"


class TestBackendVariations:
    """Tests for expanding text models into one row per backend."""

    def _merged(self) -> list[UnifiedModelData]:
        record = LegacyTextGenerationRecord.model_validate(text_record_data("Llama-3-8B"))
        stats = BackendCombinedModelStatistics(
            worker_count=3,
            backend_variations={
                "koboldcpp": BackendVariation(
                    backend="koboldcpp",
                    variant_name="Llama-3-8B",
                    worker_count=2,
                    usage_month=10,
                ),
                "canonical": BackendVariation(backend="canonical", variant_name="Llama-3-8B", worker_count=1),
            },
        )
        return merge_multiple_backend_statistics([record], {"Llama-3-8B": stats}, parse_text_model_names=True)

    def test_one_row_per_variation(self) -> None:
        rows = self._merged()

        assert [row.name for row in rows] == ["koboldcpp/Llama-3-8B", "Llama-3-8B"]
        assert rows[0].parsed_name is not None
        assert rows[0].parsed_name.backend == "koboldcpp"
        assert rows[0].usage_stats == ModelUsageStats(day=0, month=10, total=0)
        assert rows[1].usage_stats is None

    def test_record_row_is_kept_when_no_variation_has_its_name(self) -> None:
        record = LegacyTextGenerationRecord.model_validate(text_record_data("Llama-3-8B"))
        stats = BackendCombinedModelStatistics(
            backend_variations={
                "aphrodite": BackendVariation(backend="aphrodite", variant_name="meta/Llama-3-8B", worker_count=1),
            },
        )

        rows = merge_multiple_backend_statistics([record], {"Llama-3-8B": stats}, parse_text_model_names=True)

        assert [row.name for row in rows] == ["Llama-3-8B", "aphrodite/meta/Llama-3-8B"]

    def test_variations_are_grouped(self) -> None:
        rows = create_grouped_text_models(self._merged())

        assert len(rows) == 1
        group = rows[0]
        assert isinstance(group, GroupedTextModel)
        assert group.name == "Llama-3-8B"
        assert group.worker_count == 3
        assert group.available_backends == ["koboldcpp"]
        assert group.usage_stats == ModelUsageStats(day=0, month=10, total=0)
        assert group.parameters == 8_000_000_000
        assert len(group.records) == 2


class TestGrouping:
    """Tests for aggregation and lookups over catalog rows."""

    def test_single_variation_is_not_grouped(self) -> None:
        models = [make_text_model("Llama-3-8B"), make_text_model("Mistral-7B")]

        rows = create_grouped_text_models(models)

        assert rows == models

    def test_image_models_pass_through(self) -> None:
        models = [make_image_model("Deliberate"), make_image_model("Anything")]

        assert create_grouped_text_models(models) == models

    def test_service_group_name_wins(self) -> None:
        models = [
            make_text_model("koboldcpp/Llama-3-8B-Instruct", text_model_group="Llama-3"),
            make_text_model("Llama-3-8B", text_model_group="Llama-3"),
        ]

        rows = create_grouped_text_models(models)

        assert [row.name for row in rows] == ["Llama-3"]

    def test_aggregate_deduplicates_workers(self) -> None:
        first = make_text_model("koboldcpp/model", usage=(1, 2, 3), worker_count=1)
        second = make_text_model("aphrodite/model", usage=(4, 5, 6), worker_count=2)
        first.workers = [_worker("w1")]
        second.workers = [_worker("w1"), _worker("w2")]

        aggregate = aggregate_model_variations([first, second])

        assert aggregate.total_worker_count == 3
        assert aggregate.combined_usage_stats == ModelUsageStats(day=5, month=7, total=9)
        assert [worker.id for worker in aggregate.all_workers] == ["w1", "w2"]

    def test_aggregate_without_usage(self) -> None:
        assert aggregate_model_variations([make_text_model("model")]).combined_usage_stats is None

    def test_find_model_by_name_variation(self) -> None:
        models = [make_text_model("koboldcpp/org/Llama-3-8B"), make_image_model("Deliberate")]

        assert find_model_by_name_variation(models, "DELIBERATE") is models[1]
        assert find_model_by_name_variation(models, "aphrodite/org/Llama-3-8B") is models[0]
        assert find_model_by_name_variation(models, "Llama-3-8B") is models[0]
        assert find_model_by_name_variation(models, "missing") is None

    def test_get_backend_variations(self) -> None:
        models = [
            make_text_model("koboldcpp/org/Llama-3-8B"),
            make_text_model("aphrodite/Llama-3-8B"),
            make_text_model("koboldcpp/Mistral-7B"),
        ]

        assert get_backend_variations(models, "llama-3-8b") == models[:2]
        assert get_backend_variations(models, "Qwen") == []

    def test_has_active_workers(self) -> None:
        offline = make_image_model("a", worker_count=0)
        offline.workers = [_worker("w1", online=False)]
        online = make_image_model("b")
        online.workers = [_worker("w2")]

        assert has_active_workers(make_image_model("c", worker_count=2))
        assert not has_active_workers(offline)
        assert has_active_workers(online)
        assert not has_active_workers(make_image_model("d"))

    def test_model_size(self) -> None:
        assert get_model_size_gb(make_image_model("a")) == 2.0
        assert get_model_size_gb(make_image_model("b", size_on_disk_bytes=None)) is None
        assert get_model_size_gb(make_text_model("c")) is None
