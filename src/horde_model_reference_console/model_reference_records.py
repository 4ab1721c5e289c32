"""Pydantic models for the legacy (v1) model reference records the console reads and writes.

The models are intentionally permissive: records coming from the service are displayed even when
they break the catalog's rules. Rule checking lives in `horde_model_reference_console.validation`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from horde_model_reference_console.meta_consts import MODEL_REFERENCE_CATEGORY

BASELINE_NORMALIZATION_MAP = {
    "stable diffusion 1": "stable_diffusion_1",
    "stable diffusion 2": "stable_diffusion_2_768",
    "stable diffusion 2 512": "stable_diffusion_2_512",
    "stable_diffusion_xl": "stable_diffusion_xl",
    "stable_cascade": "stable_cascade",
}
"""Maps the baseline spellings found in older records to their normalized names."""


class LegacyConfigFile(BaseModel):
    """A single legacy config file entry."""

    model_config = ConfigDict(extra="allow")

    path: str | None = None
    md5sum: str | None = None
    sha256sum: str | None = None
    file_type: str | None = None


class LegacyConfigDownload(BaseModel):
    """A single legacy config download entry."""

    model_config = ConfigDict(extra="allow")

    file_name: str | None = None
    file_path: str | None = ""
    file_url: str | None = None


class LegacyConfig(BaseModel):
    """The legacy `config` payload: files to verify and files to download."""

    model_config = ConfigDict(extra="allow")

    files: list[LegacyConfigFile] = Field(default_factory=list)
    download: list[LegacyConfigDownload] = Field(default_factory=list)


class LegacyGenericRecord(BaseModel):
    """Fields shared by every legacy record."""

    model_config = ConfigDict(extra="allow", use_attribute_docstrings=True)

    name: str
    """The model name, also the record's key in its category."""
    type: str | None = None
    description: str | None = None
    version: str | None = None
    style: str | None = None
    nsfw: bool | None = None
    download_all: bool | None = None
    config: LegacyConfig | None = Field(default_factory=LegacyConfig)
    available: bool | None = None
    features_not_supported: list[str] | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON payload for create/update requests, dropping unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


class LegacyStableDiffusionRecord(LegacyGenericRecord):
    """An image generation record."""

    inpainting: bool = False
    baseline: str
    tags: list[str] | None = None
    showcases: list[str] | None = None
    min_bridge_version: int | None = None
    trigger: list[str] | None = None
    homepage: str | None = None
    size_on_disk_bytes: int | None = None
    optimization: str | None = None
    requirements: dict[str, Any] | None = None


class LegacyTextGenerationRecord(LegacyGenericRecord):
    """A text generation record."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str | None = None
    baseline: str | None = None
    parameters: int | None = None
    display_name: str | None = None
    url: str | None = None
    tags: list[str] | None = None
    settings: dict[str, Any] | None = None
    text_model_group: str | None = None
    """Group name computed by the service when listing with `include_group=true`."""


class LegacyClipRecord(LegacyGenericRecord):
    """A CLIP record."""

    pretrained_name: str | None = None


LegacyRecordUnion = LegacyStableDiffusionRecord | LegacyTextGenerationRecord | LegacyClipRecord | LegacyGenericRecord


def is_stable_diffusion_data(data: Mapping[str, Any]) -> bool:
    """Return True if the raw record looks like an image generation record (has `inpainting` and `baseline`)."""
    return "inpainting" in data and "baseline" in data


def is_text_generation_data(data: Mapping[str, Any]) -> bool:
    """Return True if the raw record carries a `parameters` count."""
    return data.get("parameters") is not None


def is_clip_data(data: Mapping[str, Any]) -> bool:
    """Return True if the raw record has a `pretrained_name`."""
    return "pretrained_name" in data


CATEGORY_RECORD_TYPES: dict[str, type[LegacyRecordUnion]] = {
    MODEL_REFERENCE_CATEGORY.image_generation: LegacyStableDiffusionRecord,
    MODEL_REFERENCE_CATEGORY.text_generation: LegacyTextGenerationRecord,
    MODEL_REFERENCE_CATEGORY.clip: LegacyClipRecord,
}


def get_legacy_record_type(data: Mapping[str, Any]) -> type[LegacyRecordUnion]:
    """Decide the concrete record class from the keys present in `data`."""
    if is_stable_diffusion_data(data):
        return LegacyStableDiffusionRecord
    if is_text_generation_data(data):
        return LegacyTextGenerationRecord
    if is_clip_data(data):
        return LegacyClipRecord
    return LegacyGenericRecord


def parse_legacy_record(
    data: Mapping[str, Any],
    *,
    name: str | None = None,
    category: str | None = None,
) -> LegacyRecordUnion:
    """Parse a raw legacy record, choosing its class by category or by the record-type discriminant.

    Args:
        data: The raw record as returned by the service.
        name: The record's key. Used as the name when `data` has none.
        category: The category the record belongs to. Without one the class is guessed from the keys of `data`.

    Raises:
        pydantic.ValidationError: If the record cannot be represented at all.
    """
    payload = dict(data)
    if name is not None:
        payload.setdefault("name", name)
    record_type = CATEGORY_RECORD_TYPES.get(category or "") or get_legacy_record_type(payload)
    return record_type.model_validate(payload)


def get_record_category(record: LegacyRecordUnion) -> MODEL_REFERENCE_CATEGORY | None:
    """Return the category a record's type implies, or None for generic records."""
    if isinstance(record, LegacyStableDiffusionRecord):
        return MODEL_REFERENCE_CATEGORY.image_generation
    if isinstance(record, LegacyTextGenerationRecord):
        return MODEL_REFERENCE_CATEGORY.text_generation
    if isinstance(record, LegacyClipRecord):
        return MODEL_REFERENCE_CATEGORY.clip
    return None


def get_record_baseline(record: LegacyRecordUnion) -> str | None:
    """Return the baseline of image and text generation records, None for other records."""
    if isinstance(record, LegacyStableDiffusionRecord | LegacyTextGenerationRecord):
        return record.baseline
    return None


def get_record_tags(record: LegacyRecordUnion) -> list[str]:
    """Return the tags of image and text generation records, an empty list otherwise."""
    if isinstance(record, LegacyStableDiffusionRecord | LegacyTextGenerationRecord):
        return list(record.tags or [])
    return []


def normalize_baseline(baseline: str) -> str:
    """Map legacy baseline spellings such as "stable diffusion 1" to their normalized name."""
    return BASELINE_NORMALIZATION_MAP.get(baseline, baseline)


def create_default_record_for_category(category: str, name: str) -> LegacyRecordUnion:
    """Return a minimal record to start editing a new model of `category`."""
    base: dict[str, Any] = {"name": name, "config": {"files": [], "download": []}}

    if category == MODEL_REFERENCE_CATEGORY.image_generation:
        return LegacyStableDiffusionRecord(**base, inpainting=False, baseline="stable_diffusion_1", type="ckpt")
    if category == MODEL_REFERENCE_CATEGORY.text_generation:
        return LegacyTextGenerationRecord(**base, parameters=0)
    if category == MODEL_REFERENCE_CATEGORY.clip:
        return LegacyClipRecord(**base, pretrained_name="")
    return LegacyGenericRecord(**base)
