"""Unit tests for teeforge.core.transforms - kinds, inputs, defaults and preconditions."""

from unittest.mock import MagicMock

import pytest

from teeforge.core.errors import MissingInput
from teeforge.core.transforms import (
    DEFAULT_EDIT_MODEL,
    INPUT_TYPES,
    CreateStyleInput,
    EditInput,
    GenerateInput,
    KnockoutColorInput,
    MockupInput,
    PreparePrintInput,
    TransformKind,
    UpscaleInput,
    parse_generate_input,
    parse_input,
)


class TestRegistry:
    """Every kind has exactly one input type."""

    def test_every_kind_is_registered(self):
        assert set(INPUT_TYPES) == set(TransformKind)

    def test_input_kinds_match_registry(self):
        for kind, input_type in INPUT_TYPES.items():
            assert input_type.kind is kind

    def test_only_create_style_is_unrecorded(self):
        unrecorded = [kind for kind, t in INPUT_TYPES.items() if t.variation_type is None]
        assert unrecorded == [TransformKind.CREATE_STYLE]

    def test_variation_labels(self):
        labels = {kind.value: t.variation_type for kind, t in INPUT_TYPES.items()}
        assert labels["edit"] == "edited"
        assert labels["remove-background"] == "background-removed"
        assert labels["knockout-color"] == "color-knockout"
        assert labels["upscale"] == "upscaled"
        assert labels["prepare-print"] == "print-ready"
        assert labels["mockup"] == "mockup"


class TestParseInput:
    """Tests for parse_input."""

    def test_none_values_take_defaults(self):
        inp = parse_input(
            TransformKind.UPSCALE,
            {"image_url": "https://x/a.png", "output_format": None, "upscale_factor": None},
        )
        assert isinstance(inp, UpscaleInput)
        assert inp.output_format == "png"
        assert inp.upscale_mode is None
        assert inp.upscale_factor is None
        assert inp.target_resolution is None

    def test_unknown_keys_are_ignored(self):
        inp = parse_input("edit", {"image_url": "u", "instruction": "i", "bogus": 1})
        assert isinstance(inp, EditInput)

    def test_unknown_kind_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_input("recolor", {})

    def test_edit_defaults(self):
        inp = parse_input(TransformKind.EDIT, {"image_url": "u", "instruction": "i"})
        assert inp.noise_level == 0.3
        assert inp.uses_default_model

    def test_named_default_model_counts_as_default(self):
        inp = EditInput(image_url="u", instruction="i", model=DEFAULT_EDIT_MODEL)
        assert inp.uses_default_model
        assert not EditInput(image_url="u", instruction="i", model="recraft-v3").uses_default_model

    def test_knockout_defaults(self):
        inp = parse_input(TransformKind.KNOCKOUT_COLOR, {"image_url": "u", "background_hex": "#fff"})
        assert inp.tolerance == 12

    def test_prepare_print_defaults(self):
        assert parse_input(TransformKind.PREPARE_PRINT, {"image_url": "u"}).knockout_type == "auto"

    def test_mockup_defaults(self):
        inp = parse_input(TransformKind.MOCKUP, {"image_url": "u"})
        assert inp.aspect_ratio == "4:5"
        assert inp.t_shirt_color is None

    def test_create_style_defaults(self):
        inp = parse_input(TransformKind.CREATE_STYLE, {"image_urls": ["u"]})
        assert inp.base_style == "digital_illustration"


class TestValidate:
    """Required fields raise MissingInput."""

    @pytest.mark.parametrize(
        "inp, message",
        [
            (EditInput(image_url="u", instruction=""), "Image URL and edit prompt are required"),
            (EditInput(image_url="u", instruction="   "), "Image URL and edit prompt are required"),
            (EditInput(instruction="x"), "Image URL and edit prompt are required"),
            (KnockoutColorInput(image_url="u"), "imageUrl and backgroundHex are required"),
            (UpscaleInput(), "imageUrl is required"),
            (PreparePrintInput(), "Image URL is required"),
            (MockupInput(), "imageUrl is required"),
            (CreateStyleInput(), "Image URLs are required"),
            (CreateStyleInput(image_urls=["", ""]), "Image URLs are required"),
        ],
    )
    def test_missing_fields(self, inp, message):
        with pytest.raises(MissingInput) as exc_info:
            inp.validate()
        assert exc_info.value.message == message
        assert exc_info.value.category == "bad-input"

    def test_invalid_hex_is_bad_input(self):
        with pytest.raises(MissingInput, match="Invalid HEX color"):
            KnockoutColorInput(image_url="u", background_hex="white").validate()

    def test_valid_inputs_pass(self):
        EditInput(image_url="u", instruction="make it red").validate()
        KnockoutColorInput(image_url="u", background_hex="#FFF").validate()
        CreateStyleInput(image_urls=["u"]).validate()


class TestInvoke:
    """Inputs call the matching gateway method with their parameters."""

    def test_edit_passes_default_model(self):
        gateway = MagicMock()
        EditInput(image_url="u", instruction="i").invoke(gateway)
        gateway.edit.assert_called_once_with(
            "u",
            "i",
            noise_level=0.3,
            model=DEFAULT_EDIT_MODEL,
            style_id=None,
            reference_image_url=None,
        )

    def test_create_style_drops_blank_urls(self):
        gateway = MagicMock()
        CreateStyleInput(image_urls=["", "u1", "u2"]).invoke(gateway)
        gateway.create_style.assert_called_once_with(["u1", "u2"], base_style="digital_illustration")

    def test_ledger_notes(self):
        assert EditInput(image_url="u", instruction="i").ledger_note() == "i"
        assert UpscaleInput(image_url="u").ledger_note() == "Upscaled version"
        assert MockupInput(image_url="u", t_shirt_color="#000000").ledger_note() == (
            "T-shirt mockup on #000000"
        )


class TestGenerateInput:
    """Text-to-image input for new designs."""

    def test_defaults(self):
        inp = parse_generate_input({"prompt": "a fox", "model": None, "unknown": 1})
        assert inp.aspect_ratio == "4:5"
        assert inp.model is None

    @pytest.mark.parametrize("prompt", [None, "", "   "])
    def test_prompt_required(self, prompt):
        with pytest.raises(MissingInput, match="Prompt is required"):
            GenerateInput(prompt=prompt).validate()

    def test_title_is_prompt_prefix(self):
        assert GenerateInput(prompt="x" * 150).title == "x" * 100

    def test_invoke_passes_options(self):
        gateway = MagicMock()
        GenerateInput(prompt="a fox", style="retro", background_color="#000000").invoke(gateway)
        gateway.generate.assert_called_once_with(
            "a fox",
            aspect_ratio="4:5",
            model=DEFAULT_EDIT_MODEL,
            style="retro",
            style_id=None,
            background_color="#000000",
        )
