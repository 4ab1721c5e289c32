"""Parsing of text generation model names.

Text model names have the structure `[backend/][author/]model-name`, for example:

- `L3-Super-Nova-RP-8B` (model name only)
- `Casual-Autopsy/L3-Super-Nova-RP-8B` (author and model name)
- `aphrodite/Casual-Autopsy/L3-Super-Nova-RP-8B` (backend, author and model name)
- `koboldcpp/L3-Super-Nova-RP-8B` (backend and model name, no author)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from functools import lru_cache

from horde_model_reference_console.meta_consts import TEXT_BACKEND


@dataclass(frozen=True)
class ParsedTextModelName:
    """Structured representation of a text model name.

    Attributes:
        model_name: The model name component, without backend or author.
        full_name: The name as provided.
        backend: The backend prefix, if the first segment names a known backend.
        author: The author or organization segment, if present.
    """

    model_name: str
    full_name: str
    backend: TEXT_BACKEND | None = None
    author: str | None = None

    def with_backend(self, backend: TEXT_BACKEND, full_name: str) -> ParsedTextModelName:
        """Return a copy with `backend` and `full_name` replaced."""
        return replace(self, backend=backend, full_name=full_name)


def _as_backend(segment: str) -> TEXT_BACKEND | None:
    lowered = segment.lower()
    if lowered in TEXT_BACKEND.__members__:
        return TEXT_BACKEND(lowered)
    return None


@lru_cache(maxsize=4096)
def parse_text_model_name(full_name: str) -> ParsedTextModelName:
    """Parse a text model name into backend, author and model name.

    A first segment matching a known backend (case-insensitively) is taken as the backend. With
    no backend, a first segment is the author and everything after it is the model name. Names
    with more than three segments keep everything after the backend as the model name.

    Example:
        >>> parse_text_model_name("aphrodite/Casual-Autopsy/L3-Super-Nova-RP-8B").author
        'Casual-Autopsy'
    """
    if not full_name:
        return ParsedTextModelName(model_name="", full_name="")

    parts = full_name.split("/")
    backend = _as_backend(parts[0])

    if len(parts) == 1:
        return ParsedTextModelName(model_name=parts[0], full_name=full_name)

    if backend is None:
        return ParsedTextModelName(model_name="/".join(parts[1:]), full_name=full_name, author=parts[0])

    if len(parts) == 3:
        return ParsedTextModelName(model_name=parts[2], full_name=full_name, backend=backend, author=parts[1])

    return ParsedTextModelName(model_name="/".join(parts[1:]), full_name=full_name, backend=backend)


def build_text_model_name(
    model_name: str | None,
    *,
    backend: str | None = None,
    author: str | None = None,
) -> str:
    """Join the given components as `[backend/][author/]model_name`; empty if there is no model name."""
    if not model_name:
        return ""
    return "/".join(part for part in (backend, author, model_name) if part)


def get_base_model_name(full_name: str) -> str:
    """Return only the model name component."""
    return parse_text_model_name(full_name).model_name


def get_name_without_backend(full_name: str) -> str:
    """Return `[author/]model_name`, dropping any backend prefix."""
    parsed = parse_text_model_name(full_name)
    return build_text_model_name(parsed.model_name, author=parsed.author)


def has_backend_prefix(full_name: str) -> bool:
    return parse_text_model_name(full_name).backend is not None


def get_model_name_variations(full_name: str) -> list[str]:
    """Return the backend-less name followed by the name prefixed with each known backend."""
    parsed = parse_text_model_name(full_name)
    base_name = build_text_model_name(parsed.model_name, author=parsed.author)
    variations = [base_name]

    for backend in TEXT_BACKEND:
        variation = build_text_model_name(parsed.model_name, backend=backend, author=parsed.author)
        if variation != base_name:
            variations.append(variation)

    return variations


def group_models_by_base_name(model_names: Iterable[str]) -> dict[str, list[str]]:
    """Group full names by their backend-less name, preserving input order."""
    groups: dict[str, list[str]] = {}
    for full_name in model_names:
        groups.setdefault(get_name_without_backend(full_name), []).append(full_name)
    return groups


def extract_backends(model_names: Iterable[str]) -> list[TEXT_BACKEND]:
    """Return the distinct backends found in `model_names`, in first-seen order."""
    backends: list[TEXT_BACKEND] = []
    for full_name in model_names:
        backend = parse_text_model_name(full_name).backend
        if backend is not None and backend not in backends:
            backends.append(backend)
    return backends
