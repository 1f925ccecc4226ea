"""Pydantic request models for the Teeforge API.

Request bodies use camelCase field names on the wire (``imageUrl``,
``designId``) and snake_case in Python.  Every field is optional at the
schema level: required-field checks belong to the transform inputs, which
report them as ``MissingInput`` (HTTP 400) before any provider call.  Only
type errors (for example a non-numeric ``tolerance``) are rejected by
pydantic with 422.

Models
------
EditRequest, RemoveBackgroundRequest, KnockoutColorRequest, UpscaleRequest,
PreparePrintRequest, MockupRequest, CreateStyleRequest
    Payloads for the transform endpoints.  ``to_payload()`` returns the
    snake_case mapping the orchestrator parses.
GenerateRequest
    Payload for generating a new design from a text prompt.
DesignCreateRequest, ThumbnailRequest
    Payloads for the design endpoints.
CollectionCreateRequest, CollectionTemplateRequest, CollectionDesignRequest
    Payloads for the collection endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting camelCase aliases or snake_case names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransformRequest(CamelModel):
    """Fields shared by all transform requests.

    Attributes:
        design_id: Design to record the resulting variation against.
    """

    design_id: str | None = Field(
        default=None,
        description="Design to record the resulting variation against.",
    )

    def to_payload(self) -> dict[str, Any]:
        """Return the snake_case payload for the orchestrator."""
        return self.model_dump(exclude_none=True)


class EditRequest(TransformRequest):
    """Request body for ``POST /api/designs/edit``."""

    image_url: str | None = Field(default=None, description="Source image URL.")
    edit_prompt: str | None = Field(default=None, description="Edit instruction.")
    noise_level: float | None = Field(default=None, description="Noise/strength (default 0.3).")
    model: str | None = Field(
        default=None,
        description="Edit model: 'gemini-25' (default), 'recraft-v3' or 'seedream-v4'.",
    )
    style_id: str | None = Field(default=None, description="Custom Recraft style id.")
    reference_image_url: str | None = Field(
        default=None, description="Optional secondary reference image."
    )

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if "edit_prompt" in payload:
            payload["instruction"] = payload.pop("edit_prompt")
        return payload


class RemoveBackgroundRequest(TransformRequest):
    """Request body for ``POST /api/designs/remove-background``."""

    image_url: str | None = None


class KnockoutColorRequest(TransformRequest):
    """Request body for ``POST /api/designs/knockout-color``."""

    image_url: str | None = None
    background_hex: str | None = Field(default=None, description="#RGB or #RRGGBB colour.")
    tolerance: float | None = Field(default=None, description="Colour distance (default 12).")


class UpscaleRequest(TransformRequest):
    """Request body for ``POST /api/designs/upscale``."""

    image_url: str | None = None
    upscale_mode: str | None = Field(default=None, description="'factor' or 'target'.")
    upscale_factor: float | None = Field(default=None, description="Factor, clamped to 1-10.")
    target_resolution: str | None = Field(
        default=None, description="'720p', '1080p', '1440p' or '2160p'."
    )
    output_format: str | None = Field(default=None, description="'png' (default), 'jpg', 'webp'.")


class PreparePrintRequest(TransformRequest):
    """Request body for ``POST /api/designs/prepare-print``."""

    image_url: str | None = None
    knockout_type: str | None = Field(default=None, description="'black', 'white' or 'auto'.")


class MockupRequest(TransformRequest):
    """Request body for ``POST /api/designs/mockup``."""

    image_url: str | None = None
    aspect_ratio: str | None = Field(default=None, description="Aspect ratio (default 4:5).")
    t_shirt_color: str | None = Field(default=None, description="Shirt colour, HEX preferred.")


class CreateStyleRequest(TransformRequest):
    """Request body for ``POST /api/designs/create-style``."""

    image_urls: list[str] | None = Field(default=None, description="Reference image URLs.")
    base_style: str | None = Field(default=None, description="Base Recraft style.")


class GenerateRequest(CamelModel):
    """Request body for ``POST /api/designs/generate``."""

    prompt: str | None = Field(default=None, description="Text prompt, sent as written.")
    aspect_ratio: str | None = Field(default=None, description="Aspect ratio (default 4:5).")
    model: str | None = Field(
        default=None,
        description="Model: 'gemini-25' (default), 'recraft-v3' or 'seedream-v4'.",
    )
    style: str | None = Field(default=None, description="Art style, e.g. 'watercolor'.")
    style_id: str | None = Field(default=None, description="Custom Recraft style id.")
    background_color: str | None = Field(default=None, description="Solid background colour.")

    def to_payload(self) -> dict[str, Any]:
        """Return the snake_case payload for the orchestrator."""
        return self.model_dump(exclude_none=True)


class DesignCreateRequest(CamelModel):
    """Request body for ``POST /api/designs``."""

    image_url: str | None = Field(default=None, description="Image to start the design from.")
    title: str | None = None
    prompt: str | None = None
    aspect_ratio: str | None = Field(default=None, description="Aspect ratio (default 4:5).")


class ThumbnailRequest(CamelModel):
    """Request body for ``POST /api/designs/{design_id}/thumbnail``."""

    thumbnail_url: str | None = None


class CollectionCreateRequest(CamelModel):
    """Request body for ``POST /api/collections``."""

    name: str | None = None


class CollectionTemplateRequest(CamelModel):
    """Request body for ``POST /api/collections/{collection_id}/templates``."""

    template_id: str | None = None
    tags: list[str] = Field(default_factory=list)


class CollectionDesignRequest(CamelModel):
    """Request body for ``POST /api/collections/{collection_id}/designs``."""

    design_id: str | None = None
    tags: list[str] = Field(default_factory=list)
