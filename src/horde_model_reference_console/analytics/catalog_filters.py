"""Client-side filters and summary counts for the catalog (model list) view."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from horde_model_reference_console.meta_consts import MODEL_REFERENCE_CATEGORY
from horde_model_reference_console.model_reference_records import LegacyStableDiffusionRecord
from horde_model_reference_console.unified_model import CatalogModel, GroupedTextModel, has_active_workers

PARAMETER_TAG_PATTERN = re.compile(r"^\d+\.?\d*[bB]$")
"""Parameter count tags such as `7B`, `13b` or `1.5B`."""


def is_parameter_tag(tag: str) -> bool:
    return PARAMETER_TAG_PATTERN.match(tag) is not None


def get_available_tags(models: Iterable[CatalogModel], category: str) -> list[str]:
    """Return the sorted distinct tags of `models`. Parameter tags are left out for text generation."""
    exclude_parameter_tags = category == MODEL_REFERENCE_CATEGORY.text_generation
    tags = {
        tag for model in models for tag in model.tags if not (exclude_parameter_tags and is_parameter_tag(tag))
    }
    return sorted(tags)


def get_available_parameter_tags(models: Iterable[CatalogModel], category: str) -> list[str]:
    """Return the distinct parameter tags of text generation models, sorted by their numeric value."""
    if category != MODEL_REFERENCE_CATEGORY.text_generation:
        return []
    tags = {tag for model in models for tag in model.tags if is_parameter_tag(tag)}
    return sorted(tags, key=lambda tag: float(tag[:-1]))


def filter_tag_options(tags: Sequence[str], search: str) -> list[str]:
    """Narrow a tag picker's options to those containing `search`, case-insensitively."""
    needle = search.lower()
    if not needle:
        return list(tags)
    return [tag for tag in tags if needle in tag.lower()]


def model_matches_search(model: CatalogModel, search: str) -> bool:
    """Return True if the lowercase `search` occurs in any searchable field of `model`.

    Searched fields are the name, description, baseline and tags and, for grouped text models,
    the backend names, variation names and authors.
    """
    if search in model.name.lower():
        return True
    if model.description and search in model.description.lower():
        return True
    if model.baseline and search in model.baseline.lower():
        return True
    if any(search in tag.lower() for tag in model.tags):
        return True

    if isinstance(model, GroupedTextModel):
        if any(search in backend.lower() for backend in model.available_backends):
            return True
        if any(search in variation.name.lower() for variation in model.variations):
            return True
        if any(search in author.lower() for author in model.available_authors):
            return True

    return False


@dataclass
class CatalogFilterState:
    """The filters of the catalog view."""

    search_term: str = ""
    selected_tags: list[str] = field(default_factory=list)
    selected_parameter_tags: list[str] = field(default_factory=list)
    active_only: bool = False

    def reset(self) -> None:
        self.search_term = ""
        self.selected_tags = []
        self.selected_parameter_tags = []
        self.active_only = False

    def toggle_tag(self, tag: str) -> None:
        target = self.selected_parameter_tags if is_parameter_tag(tag) else self.selected_tags
        if tag in target:
            target.remove(tag)
        else:
            target.append(tag)

    def apply(self, models: Iterable[CatalogModel]) -> list[CatalogModel]:
        """Return the models passing every filter, in their original order."""
        filtered = list(models)

        if self.active_only:
            filtered = [model for model in filtered if has_active_workers(model)]

        if self.selected_tags:
            filtered = [model for model in filtered if any(tag in self.selected_tags for tag in model.tags)]

        if self.selected_parameter_tags:
            filtered = [
                model for model in filtered if any(tag in self.selected_parameter_tags for tag in model.tags)
            ]

        search = self.search_term.strip().lower()
        if search:
            filtered = [model for model in filtered if model_matches_search(model, search)]

        return filtered


def count_baselines(models: Iterable[CatalogModel]) -> list[tuple[str, int]]:
    """Return `(baseline, count)` pairs, most common first."""
    return Counter(model.baseline for model in models if model.baseline).most_common()


def count_tags(models: Iterable[CatalogModel], category: str) -> list[tuple[str, int]]:
    """Return `(tag, count)` pairs, most common first. Parameter tags are left out for text generation."""
    exclude_parameter_tags = category == MODEL_REFERENCE_CATEGORY.text_generation
    return Counter(
        tag for model in models for tag in model.tags if not (exclude_parameter_tags and is_parameter_tag(tag))
    ).most_common()


def count_nsfw(models: Iterable[CatalogModel]) -> dict[str, int]:
    """Count models by content rating: `nsfw`, `sfw` and `unknown` when the record does not say."""
    counts = {"nsfw": 0, "sfw": 0, "unknown": 0}
    for model in models:
        if model.nsfw is True:
            counts["nsfw"] += 1
        elif model.nsfw is False:
            counts["sfw"] += 1
        else:
            counts["unknown"] += 1
    return counts


def count_parameters(models: Iterable[CatalogModel], top: int = 100) -> tuple[list[tuple[int, int]], int]:
    """Return the `top` most common parameter counts and the number of models with any other count."""
    counts = Counter(model.parameters for model in models if model.parameters).most_common()
    return counts[:top], sum(count for _, count in counts[top:])


def total_size_bytes(models: Iterable[CatalogModel]) -> int:
    """Sum the on-disk size of image generation records."""
    total = 0
    for model in models:
        for record in model.records:
            if isinstance(record, LegacyStableDiffusionRecord) and record.size_on_disk_bytes:
                total += record.size_on_disk_bytes
    return total
