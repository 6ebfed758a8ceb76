# ─────────────────────────────────────────────────────────────────────────────
# Tests for build_prompt() and flatten_metafields()
# ─────────────────────────────────────────────────────────────────────────────

import pytest

from copysmith.pipeline.prompt_builder import (
    CLOSING_INSTRUCTIONS,
    SOCIALS_INSTRUCTION,
    build_prompt,
    flatten_metafields,
)
from copysmith.schemas import Metafield, ProductSnapshot


def _product(**overrides) -> ProductSnapshot:
    params = {
        "id": "p1",
        "title": "Trail Runner",
        "description": "Light shoe.\nGrippy sole.",
        "metafields": [
            {"namespace": "specs", "key": "weight", "value": "220g"},
            {"namespace": "specs", "key": "drop", "value": "6mm"},
        ],
    }
    params.update(overrides)
    return ProductSnapshot(**params)


def _lines(prompt: str) -> list[str]:
    return prompt.split("\n")


class TestFlattenMetafields:
    def test_key_value_pairs(self) -> None:
        fields = [Metafield(key="weight", value="220g"), Metafield(key="drop", value="6mm")]
        assert flatten_metafields(fields) == "weight: 220g, drop: 6mm"

    def test_empty_is_none(self) -> None:
        assert flatten_metafields([]) == "None"


class TestProductLines:
    def test_header_lines_in_order(self) -> None:
        lines = _lines(build_prompt(_product(), "edgy", "paragraph"))
        assert lines[0] == "Title: Trail Runner"
        assert lines[1] == "Meta: weight: 220g, drop: 6mm"
        assert lines[2] == "Old Description: Light shoe. Grippy sole."

    def test_missing_title_is_untitled(self) -> None:
        assert "Title: Untitled" in build_prompt(_product(title=None), "edgy", "paragraph")

    def test_explicit_empty_title_kept(self) -> None:
        lines = _lines(build_prompt(_product(title=""), "edgy", "paragraph"))
        assert lines[0] == "Title: "

    def test_missing_description_is_none(self) -> None:
        prompt = build_prompt(_product(description=""), "edgy", "paragraph")
        assert "Old Description: None" in prompt

    def test_no_metafields_is_none(self) -> None:
        assert "Meta: None" in build_prompt(_product(metafields=[]), "edgy", "paragraph")

    def test_description_newlines_collapsed(self) -> None:
        prompt = build_prompt(_product(description="a\nb\nc"), "edgy", "paragraph")
        assert "Old Description: a b c" in prompt


class TestDirectives:
    @pytest.mark.parametrize(
        ("vibe", "expected"),
        [
            ("edgy", "Tone: Bold. Punchy. Minimal fluff."),
            ("minimalist", "Tone: Ultra concise. Functional. No adjectives."),
            ("roast", "Tone: Real Talk. Brutally honest. Persuasive, not rude."),
        ],
    )
    def test_vibe(self, vibe: str, expected: str) -> None:
        assert expected in _lines(build_prompt(_product(), vibe, "paragraph"))

    def test_unknown_vibe_falls_back_to_edgy(self) -> None:
        assert build_prompt(_product(), "whimsical", "paragraph") == build_prompt(
            _product(), "edgy", "paragraph"
        )

    def test_bullets_format(self) -> None:
        prompt = build_prompt(_product(), "edgy", "bullets")
        assert "Format: Return an unordered list using <ul><li>" in prompt

    def test_features_format_has_its_own_directive(self) -> None:
        features = build_prompt(_product(), "edgy", "features")
        assert "<strong>" in features
        assert features != build_prompt(_product(), "edgy", "paragraph")

    def test_unknown_format_falls_back_to_paragraph(self) -> None:
        assert build_prompt(_product(), "edgy", "haiku") == build_prompt(
            _product(), "edgy", "paragraph"
        )


class TestOptionalLines:
    def test_keywords_line_present(self) -> None:
        prompt = build_prompt(_product(), "edgy", "paragraph", keywords="vegan, trail")
        assert "SEO Keywords: vegan, trail" in _lines(prompt)

    def test_no_keywords_no_line(self) -> None:
        prompt = build_prompt(_product(), "edgy", "paragraph")
        assert "SEO Keywords" not in prompt

    def test_socials_line_present(self) -> None:
        prompt = build_prompt(_product(), "edgy", "paragraph", include_socials=True)
        assert SOCIALS_INSTRUCTION in _lines(prompt)

    def test_no_blank_lines(self) -> None:
        prompt = build_prompt(_product(), "edgy", "paragraph")
        assert "\n\n" not in prompt

    def test_closing_instructions_last(self) -> None:
        prompt = build_prompt(_product(), "roast", "bullets", "kw", True)
        assert prompt.endswith("\n".join(CLOSING_INSTRUCTIONS))


class TestDeterminism:
    def test_same_inputs_same_bytes(self) -> None:
        a = build_prompt(_product(), "roast", "features", "kw", True)
        b = build_prompt(_product(), "roast", "features", "kw", True)
        assert a == b

    def test_metafield_order_preserved(self) -> None:
        reordered = _product(
            metafields=[
                {"namespace": "specs", "key": "drop", "value": "6mm"},
                {"namespace": "specs", "key": "weight", "value": "220g"},
            ]
        )
        assert "Meta: drop: 6mm, weight: 220g" in build_prompt(reordered, "edgy", "paragraph")
