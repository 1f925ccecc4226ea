"""Remote transform gateway interface.

The gateway is the boundary between the pipeline and the image provider.
Each transform kind has one method that takes a source reference plus
kind-specific parameters and returns a new asset reference (a URL; for
``create_style`` a provider style id).  ``generate`` is the one
method without a source: it creates new artwork from a text prompt.

Contract
--------
- Stateless: no caching, no retries, no per-request state.
- Slow: calls take seconds and block the calling thread.
- Fallible for reasons unrelated to input (capacity, timeouts, content
  policy).  Implementations raise
  :class:`~teeforge.core.errors.RemoteTransformFailure` for every failure and
  never return an empty or partial reference.

Implementations
---------------
- :class:`~teeforge.core.adapters.fal_gateway.FalTransformGateway` for the
  fal.ai hosted models.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class TransformGateway(ABC):
    """Abstract base class for transform providers."""

    name: str = "Base Transform Gateway"

    @abstractmethod
    def generate(
        self,
        prompt: str,
        *,
        aspect_ratio: str,
        model: str,
        style: str | None = None,
        style_id: str | None = None,
        background_color: str | None = None,
    ) -> str:
        """Create new artwork from ``prompt``."""

    @abstractmethod
    def edit(
        self,
        image_url: str,
        instruction: str,
        *,
        noise_level: float,
        model: str,
        style_id: str | None = None,
        reference_image_url: str | None = None,
    ) -> str:
        """Apply a prompt-guided edit to ``image_url``."""

    @abstractmethod
    def remove_background(self, image_url: str) -> str:
        """Remove the background from ``image_url``."""

    @abstractmethod
    def knockout_color(self, image_url: str, background_hex: str, *, tolerance: float) -> str:
        """Make pixels within ``tolerance`` of ``background_hex`` transparent."""

    @abstractmethod
    def upscale(
        self,
        image_url: str,
        *,
        output_format: str,
        upscale_mode: str | None = None,
        upscale_factor: float | None = None,
        target_resolution: str | None = None,
    ) -> str:
        """Upscale ``image_url``."""

    @abstractmethod
    def prepare_print(self, image_url: str, *, knockout_type: str) -> str:
        """Knock out black, white or background areas for printing."""

    @abstractmethod
    def mockup(
        self,
        image_url: str,
        *,
        aspect_ratio: str,
        t_shirt_color: str | None = None,
    ) -> str:
        """Render ``image_url`` onto a t-shirt product photo."""

    @abstractmethod
    def create_style(self, image_urls: list[str], *, base_style: str) -> str:
        """Create a custom style from reference images and return its id."""

    def is_configured(self) -> bool:
        """Whether the gateway has the credentials it needs."""
        return True
