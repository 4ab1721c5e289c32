from __future__ import annotations

import pytest

from horde_model_reference_console.meta_consts import TEXT_BACKEND
from horde_model_reference_console.text_model_name import (
    build_text_model_name,
    extract_backends,
    get_base_model_name,
    get_model_name_variations,
    get_name_without_backend,
    group_models_by_base_name,
    has_backend_prefix,
    parse_text_model_name,
)


class TestParseTextModelName:
    """Tests for splitting `[backend/][author/]model-name`."""

    @pytest.mark.parametrize(
        ("full_name", "backend", "author", "model_name"),
        [
            ("L3-Super-Nova-RP-8B", None, None, "L3-Super-Nova-RP-8B"),
            ("Casual-Autopsy/L3-Super-Nova-RP-8B", None, "Casual-Autopsy", "L3-Super-Nova-RP-8B"),
            (
                "aphrodite/Casual-Autopsy/L3-Super-Nova-RP-8B",
                TEXT_BACKEND.aphrodite,
                "Casual-Autopsy",
                "L3-Super-Nova-RP-8B",
            ),
            ("koboldcpp/L3-Super-Nova-RP-8B", TEXT_BACKEND.koboldcpp, None, "L3-Super-Nova-RP-8B"),
            ("KoboldCpp/L3-Super-Nova-RP-8B", TEXT_BACKEND.koboldcpp, None, "L3-Super-Nova-RP-8B"),
        ],
    )
    def test_components(self, full_name: str, backend: str | None, author: str | None, model_name: str) -> None:
        parsed = parse_text_model_name(full_name)

        assert parsed.backend == backend
        assert parsed.author == author
        assert parsed.model_name == model_name
        assert parsed.full_name == full_name

    def test_empty_name(self) -> None:
        parsed = parse_text_model_name("")

        assert parsed.model_name == ""
        assert parsed.backend is None

    def test_long_backend_name_keeps_remaining_segments(self) -> None:
        parsed = parse_text_model_name("aphrodite/org/sub/model")

        assert parsed.backend == TEXT_BACKEND.aphrodite
        assert parsed.author is None
        assert parsed.model_name == "org/sub/model"

    def test_with_backend(self) -> None:
        parsed = parse_text_model_name("Llama-3-8B").with_backend(TEXT_BACKEND.koboldcpp, "koboldcpp/Llama-3-8B")

        assert parsed.backend == TEXT_BACKEND.koboldcpp
        assert parsed.full_name == "koboldcpp/Llama-3-8B"
        assert parsed.model_name == "Llama-3-8B"


class TestNameHelpers:
    """Tests for the helpers built on the parser."""

    def test_build_text_model_name(self) -> None:
        assert build_text_model_name("model", backend="koboldcpp", author="org") == "koboldcpp/org/model"
        assert build_text_model_name("model", author="org") == "org/model"
        assert build_text_model_name(None, backend="koboldcpp") == ""

    def test_base_name_and_name_without_backend(self) -> None:
        assert get_base_model_name("aphrodite/org/model") == "model"
        assert get_name_without_backend("aphrodite/org/model") == "org/model"
        assert get_name_without_backend("koboldcpp/model") == "model"

    def test_has_backend_prefix(self) -> None:
        assert has_backend_prefix("koboldcpp/model")
        assert not has_backend_prefix("org/model")

    def test_model_name_variations(self) -> None:
        assert get_model_name_variations("koboldcpp/org/model") == [
            "org/model",
            "aphrodite/org/model",
            "koboldcpp/org/model",
        ]

    def test_group_models_by_base_name(self) -> None:
        groups = group_models_by_base_name(["koboldcpp/model", "aphrodite/model", "other"])

        assert groups == {"model": ["koboldcpp/model", "aphrodite/model"], "other": ["other"]}

    def test_extract_backends_in_first_seen_order(self) -> None:
        backends = extract_backends(["koboldcpp/a", "b", "aphrodite/c", "koboldcpp/d"])

        assert backends == [TEXT_BACKEND.koboldcpp, TEXT_BACKEND.aphrodite]
