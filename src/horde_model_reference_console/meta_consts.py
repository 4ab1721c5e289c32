from __future__ import annotations

from enum import auto

from strenum import StrEnum


class MODEL_REFERENCE_CATEGORY(StrEnum):
    """The categories of model reference entries served by the model reference service."""

    blip = auto()
    clip = auto()
    codeformer = auto()
    controlnet = auto()
    esrgan = auto()
    gfpgan = auto()
    safety_checker = auto()
    image_generation = auto()
    text_generation = auto()
    miscellaneous = auto()


class TEXT_BACKEND(StrEnum):
    """Text generation backends which may prefix a text model name."""

    aphrodite = auto()
    koboldcpp = auto()


class KNOWN_IMAGE_GENERATION_BASELINE(StrEnum):
    """Baselines the console knows how to display."""

    stable_diffusion_1 = auto()
    stable_diffusion_2_768 = auto()
    stable_diffusion_2_512 = auto()
    stable_diffusion_xl = auto()
    stable_cascade = auto()


class BACKEND_REPLICATE_MODE(StrEnum):
    """Replicate modes reported by `GET /replicate_mode`."""

    PRIMARY = "PRIMARY"
    """Canonical copy. Write operations are accepted."""
    REPLICA = "REPLICA"
    """Read-only mirror of a primary."""
    UNKNOWN = "UNKNOWN"
    """The mode could not be detected."""


RECORD_DISPLAY_MAP: dict[str, str] = {
    MODEL_REFERENCE_CATEGORY.blip: "BLIP",
    MODEL_REFERENCE_CATEGORY.clip: "CLIP",
    MODEL_REFERENCE_CATEGORY.codeformer: "CodeFormer",
    MODEL_REFERENCE_CATEGORY.controlnet: "ControlNet",
    MODEL_REFERENCE_CATEGORY.esrgan: "ESRGAN",
    MODEL_REFERENCE_CATEGORY.gfpgan: "GFPGAN",
    MODEL_REFERENCE_CATEGORY.safety_checker: "Safety Checker",
    MODEL_REFERENCE_CATEGORY.image_generation: "Image Generation",
    MODEL_REFERENCE_CATEGORY.text_generation: "Text Generation",
    MODEL_REFERENCE_CATEGORY.miscellaneous: "Miscellaneous",
}
"""Human readable names for each category."""

BASELINE_DISPLAY_MAP: dict[str, str] = {
    KNOWN_IMAGE_GENERATION_BASELINE.stable_diffusion_1: "Stable Diffusion 1",
    KNOWN_IMAGE_GENERATION_BASELINE.stable_diffusion_2_768: "Stable Diffusion 2",
    KNOWN_IMAGE_GENERATION_BASELINE.stable_diffusion_2_512: "Stable Diffusion 2 512",
    KNOWN_IMAGE_GENERATION_BASELINE.stable_diffusion_xl: "Stable Diffusion XL",
    KNOWN_IMAGE_GENERATION_BASELINE.stable_cascade: "Stable Cascade",
}
"""Human readable names for the known image generation baselines."""


def get_category_display_name(category: str) -> str:
    """Return the display name for `category`, or the category itself if it is not known."""
    return RECORD_DISPLAY_MAP.get(category, category)


def get_baseline_display_name(baseline: str | None) -> str:
    """Return the display name for `baseline`; unknown baselines are returned unchanged."""
    if not baseline:
        return ""
    return BASELINE_DISPLAY_MAP.get(baseline, baseline)


def is_known_category(category: str) -> bool:
    """Return True if `category` is one of `MODEL_REFERENCE_CATEGORY`."""
    return category in MODEL_REFERENCE_CATEGORY.__members__
