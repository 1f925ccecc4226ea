"""Transform kinds and their typed inputs.

Every transform the pipeline can apply is a member of :class:`TransformKind`,
and every kind has exactly one input dataclass registered in
:data:`INPUT_TYPES`.  An input knows three things about its kind:

- which fields are required (:meth:`TransformInput.validate`)
- how to call the gateway (:meth:`TransformInput.invoke`)
- how the result is labelled in the variation ledger

Defaults for optional parameters live on the dataclass fields, so a payload
that omits (or sends ``None`` for) a parameter gets the documented default.

Usage Example
-------------
    >>> inp = parse_input(TransformKind.UPSCALE, {"image_url": "https://x/a.png"})
    >>> inp.output_format
    'png'
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from .errors import MissingInput
from .raster import parse_hex_color

if TYPE_CHECKING:
    from .gateway import TransformGateway

DEFAULT_EDIT_MODEL = "gemini-25"
EDIT_MODELS = ("gemini-25", "recraft-v3", "seedream-v4")


class TransformKind(str, Enum):
    """Closed set of transforms the pipeline knows how to apply."""

    EDIT = "edit"
    REMOVE_BACKGROUND = "remove-background"
    KNOCKOUT_COLOR = "knockout-color"
    UPSCALE = "upscale"
    PREPARE_PRINT = "prepare-print"
    MOCKUP = "mockup"
    CREATE_STYLE = "create-style"


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


@dataclass(frozen=True)
class TransformInput:
    """Fields shared by every transform request.

    Attributes:
        design_id: Design to record the result against, if any
    """

    kind: ClassVar[TransformKind]
    variation_type: ClassVar[str | None] = None

    design_id: str | None = None

    def validate(self) -> None:
        """Raise :class:`MissingInput` if a required field is absent."""
        raise NotImplementedError

    def invoke(self, gateway: TransformGateway) -> str:
        """Run this transform through ``gateway`` and return its result."""
        raise NotImplementedError

    def ledger_note(self) -> str | None:
        """Text stored with the variation record."""
        return None


@dataclass(frozen=True)
class EditInput(TransformInput):
    """Prompt-guided edit of an existing image."""

    kind: ClassVar[TransformKind] = TransformKind.EDIT
    variation_type: ClassVar[str | None] = "edited"

    image_url: str | None = None
    instruction: str | None = None
    noise_level: float = 0.3
    model: str | None = None
    style_id: str | None = None
    reference_image_url: str | None = None

    @property
    def uses_default_model(self) -> bool:
        return not self.model or self.model == DEFAULT_EDIT_MODEL

    def validate(self) -> None:
        if not self.image_url or not _has_text(self.instruction):
            raise MissingInput("Image URL and edit prompt are required")

    def invoke(self, gateway: TransformGateway) -> str:
        return gateway.edit(
            self.image_url,
            self.instruction,
            noise_level=self.noise_level,
            model=self.model or DEFAULT_EDIT_MODEL,
            style_id=self.style_id,
            reference_image_url=self.reference_image_url,
        )

    def ledger_note(self) -> str | None:
        return self.instruction


@dataclass(frozen=True)
class RemoveBackgroundInput(TransformInput):
    """Background removal."""

    kind: ClassVar[TransformKind] = TransformKind.REMOVE_BACKGROUND
    variation_type: ClassVar[str | None] = "background-removed"

    image_url: str | None = None

    def validate(self) -> None:
        if not self.image_url:
            raise MissingInput("Image URL is required")

    def invoke(self, gateway: TransformGateway) -> str:
        return gateway.remove_background(self.image_url)

    def ledger_note(self) -> str | None:
        return "Background removed"


@dataclass(frozen=True)
class KnockoutColorInput(TransformInput):
    """Make pixels close to a background colour transparent."""

    kind: ClassVar[TransformKind] = TransformKind.KNOCKOUT_COLOR
    variation_type: ClassVar[str | None] = "color-knockout"

    image_url: str | None = None
    background_hex: str | None = None
    tolerance: float = 12

    def validate(self) -> None:
        if not self.image_url or not _has_text(self.background_hex):
            raise MissingInput("imageUrl and backgroundHex are required")
        try:
            parse_hex_color(self.background_hex)
        except ValueError as e:
            raise MissingInput(str(e)) from e

    def invoke(self, gateway: TransformGateway) -> str:
        return gateway.knockout_color(
            self.image_url, self.background_hex, tolerance=self.tolerance
        )

    def ledger_note(self) -> str | None:
        return f"Knocked out {self.background_hex} (tolerance {self.tolerance})"


@dataclass(frozen=True)
class UpscaleInput(TransformInput):
    """Upscale an image.

    ``upscale_mode``, ``upscale_factor`` and ``target_resolution`` are passed
    to the gateway only as supplied; the provider applies its own defaults.
    """

    kind: ClassVar[TransformKind] = TransformKind.UPSCALE
    variation_type: ClassVar[str | None] = "upscaled"

    image_url: str | None = None
    output_format: str = "png"
    upscale_mode: str | None = None
    upscale_factor: float | None = None
    target_resolution: str | None = None

    def validate(self) -> None:
        if not self.image_url:
            raise MissingInput("imageUrl is required")

    def invoke(self, gateway: TransformGateway) -> str:
        return gateway.upscale(
            self.image_url,
            output_format=self.output_format,
            upscale_mode=self.upscale_mode,
            upscale_factor=self.upscale_factor,
            target_resolution=self.target_resolution,
        )

    def ledger_note(self) -> str | None:
        return "Upscaled version"


@dataclass(frozen=True)
class PreparePrintInput(TransformInput):
    """Knock out black or white areas for direct-to-garment printing."""

    kind: ClassVar[TransformKind] = TransformKind.PREPARE_PRINT
    variation_type: ClassVar[str | None] = "print-ready"

    image_url: str | None = None
    knockout_type: str = "auto"

    def validate(self) -> None:
        if not self.image_url:
            raise MissingInput("Image URL is required")

    def invoke(self, gateway: TransformGateway) -> str:
        return gateway.prepare_print(self.image_url, knockout_type=self.knockout_type)

    def ledger_note(self) -> str | None:
        return f"Prepared for print ({self.knockout_type} knockout)"


@dataclass(frozen=True)
class MockupInput(TransformInput):
    """Render the design onto a t-shirt product photo."""

    kind: ClassVar[TransformKind] = TransformKind.MOCKUP
    variation_type: ClassVar[str | None] = "mockup"

    image_url: str | None = None
    aspect_ratio: str = "4:5"
    t_shirt_color: str | None = None

    def validate(self) -> None:
        if not self.image_url:
            raise MissingInput("imageUrl is required")

    def invoke(self, gateway: TransformGateway) -> str:
        return gateway.mockup(
            self.image_url,
            aspect_ratio=self.aspect_ratio,
            t_shirt_color=self.t_shirt_color,
        )

    def ledger_note(self) -> str | None:
        color = f" on {self.t_shirt_color}" if self.t_shirt_color else ""
        return f"T-shirt mockup{color}"


@dataclass(frozen=True)
class CreateStyleInput(TransformInput):
    """Create a reusable style from reference images.

    The result is a style identifier, not an image, so it is never recorded
    in the variation ledger.
    """

    kind: ClassVar[TransformKind] = TransformKind.CREATE_STYLE

    image_urls: list[str] = field(default_factory=list)
    base_style: str = "digital_illustration"

    def validate(self) -> None:
        if not [url for url in self.image_urls if url]:
            raise MissingInput("Image URLs are required")

    def invoke(self, gateway: TransformGateway) -> str:
        return gateway.create_style([url for url in self.image_urls if url], base_style=self.base_style)


INPUT_TYPES: dict[TransformKind, type[TransformInput]] = {
    TransformKind.EDIT: EditInput,
    TransformKind.REMOVE_BACKGROUND: RemoveBackgroundInput,
    TransformKind.KNOCKOUT_COLOR: KnockoutColorInput,
    TransformKind.UPSCALE: UpscaleInput,
    TransformKind.PREPARE_PRINT: PreparePrintInput,
    TransformKind.MOCKUP: MockupInput,
    TransformKind.CREATE_STYLE: CreateStyleInput,
}


DEFAULT_GENERATE_ASPECT_RATIO = "4:5"
TITLE_MAX_LENGTH = 100


@dataclass(frozen=True)
class GenerateInput:
    """Create new artwork from a text prompt.

    Generation starts a design rather than iterating on one, so it has no
    source image, no design id and no variation type.
    """

    label: ClassVar[str] = "generate"

    prompt: str | None = None
    aspect_ratio: str = DEFAULT_GENERATE_ASPECT_RATIO
    model: str | None = None
    style: str | None = None
    style_id: str | None = None
    background_color: str | None = None

    @property
    def title(self) -> str:
        return self.prompt[:TITLE_MAX_LENGTH]

    def validate(self) -> None:
        if not _has_text(self.prompt):
            raise MissingInput("Prompt is required")

    def invoke(self, gateway: TransformGateway) -> str:
        return gateway.generate(
            self.prompt,
            aspect_ratio=self.aspect_ratio,
            model=self.model or DEFAULT_EDIT_MODEL,
            style=self.style,
            style_id=self.style_id,
            background_color=self.background_color,
        )


def parse_input(kind: TransformKind | str, payload: Mapping[str, Any]) -> TransformInput:
    """Build the typed input for ``kind`` from a plain mapping.

    Keys the input type does not declare are ignored, and ``None`` values are
    dropped so field defaults apply.  Validation is not performed here.

    Raises:
        ValueError: If ``kind`` is not a known transform kind
    """
    input_type = INPUT_TYPES[TransformKind(kind)]
    return input_type(**_declared_values(input_type, payload))


def parse_generate_input(payload: Mapping[str, Any]) -> GenerateInput:
    """Build a :class:`GenerateInput` from a plain mapping, like :func:`parse_input`."""
    return GenerateInput(**_declared_values(GenerateInput, payload))


def _declared_values(input_type: type, payload: Mapping[str, Any]) -> dict[str, Any]:
    names = {f.name for f in dataclasses.fields(input_type)}
    return {key: value for key, value in payload.items() if key in names and value is not None}
