"""fal.ai implementation of the remote transform gateway.

Model-backed transforms are sent to fal.ai hosted endpoints through
``fal_client.SyncClient.subscribe``, which queues the request and blocks
until the result is ready.  Colour knockout and print preparation are pixel operations
and run locally through :mod:`teeforge.core.raster`.

Endpoints
---------
===================  ==============================================
Transform            Endpoint
===================  ==============================================
generate (gemini-25) ``fal-ai/gemini-25-flash-image``
generate (recraft)   ``fal-ai/recraft/v3/text-to-image``
generate (seedream)  ``fal-ai/bytedance/seedream/v4/text-to-image``
edit (gemini-25)     ``fal-ai/gemini-25-flash-image/edit``
edit (recraft-v3)    ``fal-ai/recraft/v3/image-to-image``
edit (seedream-v4)   ``fal-ai/bytedance/seedream/v4/edit``
remove_background    ``fal-ai/bria/background/remove``
upscale              ``fal-ai/seedvr/upscale/image``
mockup               ``fal-ai/gemini-25-flash-image/edit``
create_style         ``fal-ai/recraft/v3/create-style``
===================  ==============================================

Every provider exception, and every response without an image URL, is
raised as :class:`~teeforge.core.errors.RemoteTransformFailure`.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from typing import Any

import fal_client

from teeforge.core import raster
from teeforge.core.errors import RemoteTransformFailure
from teeforge.core.gateway import TransformGateway
from teeforge.core.transforms import DEFAULT_EDIT_MODEL

logger = logging.getLogger(__name__)

GEMINI_GENERATE_ENDPOINT = "fal-ai/gemini-25-flash-image"
RECRAFT_GENERATE_ENDPOINT = "fal-ai/recraft/v3/text-to-image"
SEEDREAM_GENERATE_ENDPOINT = "fal-ai/bytedance/seedream/v4/text-to-image"
GEMINI_EDIT_ENDPOINT = "fal-ai/gemini-25-flash-image/edit"
RECRAFT_EDIT_ENDPOINT = "fal-ai/recraft/v3/image-to-image"
SEEDREAM_EDIT_ENDPOINT = "fal-ai/bytedance/seedream/v4/edit"
REMOVE_BACKGROUND_ENDPOINT = "fal-ai/bria/background/remove"
UPSCALE_ENDPOINT = "fal-ai/seedvr/upscale/image"
CREATE_STYLE_ENDPOINT = "fal-ai/recraft/v3/create-style"

CONSERVATIVE_CLAUSE = (
    "Apply a minimal, conservative change only; keep the rest unchanged. "
    "Preserve subject, composition, style, palette, typography, proportions, and layout. "
    "Do not redesign or recompose."
)
_CONSERVATIVE_MARKERS = ("minimal change", "conservative", "keep the rest unchanged")

SHIRT_COLOR_NAMES: dict[str, str] = {
    "#ffffff": "white",
    "#000000": "black",
    "#808080": "gray",
    "#d4a017": "mustard",
    "#1e3a8a": "blue",
    "#166534": "green",
    "#b91c1c": "red",
    "#db2777": "pink",
}
_NEGATIVE_COLOR_WORDS = (
    "white", "black", "gray", "grey", "mustard", "blue", "green", "red", "pink", "beige", "cream",
)
_HEX = re.compile(r"^#([0-9a-f]{3}|[0-9a-f]{6})$")


def add_conservative_guardrail(instruction: str) -> str:
    """Append the conservative-edit clause unless the instruction already asks for it."""
    lower = instruction.lower()
    if any(marker in lower for marker in _CONSERVATIVE_MARKERS):
        return instruction
    return f"{instruction}. {CONSERVATIVE_CLAUSE}"


STYLE_LEADS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("photograph",), "Create a photograph of"),
    (("comic",), "Create a comic book illustration of"),
    (("anime",), "Create an anime-style illustration of"),
    (("watercolor",), "Create a watercolor painting of"),
    (("3d",), "Create a 3D render of"),
    (("sketch",), "Create a pencil sketch of"),
    (("pop art",), "Create a pop art illustration of"),
    (("realistic",), "Create a realistic illustration of"),
    (("fantasy",), "Create a fantasy illustration of"),
    (("sci-fi", "sci fi", "scifi"), "Create a sci-fi illustration of"),
    (("minimalist",), "Create a minimalist illustration of"),
    (("vintage",), "Create a vintage-style illustration of"),
    (("retro",), "Create a retro-style illustration of"),
    (("modern",), "Create a modern graphic illustration of"),
    (("abstract",), "Create an abstract illustration of"),
)

DESIGN_ONLY_CLAUSE = (
    "standalone graphic design, design artwork only, product-free, object-free composition"
)
EDGE_TO_EDGE_CLAUSE = "edge-to-edge design, fills entire frame, no margins, no padding, no whitespace"
_DESIGN_ONLY_MARKERS = ("design only", "standalone design", "graphic design", "artwork only")
_EDGE_TO_EDGE_MARKERS = (
    "edge to edge", "edge-to-edge", "full frame", "no margins", "fills entire frame",
)

SEEDREAM_IMAGE_SIZES: dict[str, dict[str, int]] = {
    "1:1": {"width": 2048, "height": 2048},
    "3:4": {"width": 1536, "height": 2048},
    "4:3": {"width": 2048, "height": 1536},
    "16:9": {"width": 3072, "height": 1728},
    "9:16": {"width": 1728, "height": 3072},
    "4:5": {"width": 1638, "height": 2048},
}


def with_style_lead(prompt: str, style: str | None) -> str:
    """Prefix ``prompt`` with the lead-in sentence for a named art style.

    Styles are matched by keyword, first match wins; unknown or empty styles
    leave the prompt unchanged.
    """
    lower = (style or "").lower()
    for keywords, lead in STYLE_LEADS:
        if any(keyword in lower for keyword in keywords):
            return f"{lead} {prompt}"
    return prompt


def build_recraft_prompt(prompt: str, style: str | None, background_color: str | None) -> str:
    """Build the Recraft text-to-image prompt.

    Adds the design-only and edge-to-edge clauses unless the prompt already
    asks for them, then the solid background colour when one is given.
    """
    final = with_style_lead(prompt, style)
    lower = final.lower()
    if not any(marker in lower for marker in _DESIGN_ONLY_MARKERS):
        final = f"{final}, {DESIGN_ONLY_CLAUSE}"
    if not any(marker in lower for marker in _EDGE_TO_EDGE_MARKERS):
        final = f"{final}, {EDGE_TO_EDGE_CLAUSE}"

    if background_color and background_color.strip():
        chosen = background_color.strip().lower()
        friendly = SHIRT_COLOR_NAMES.get(chosen) if _HEX.match(chosen) else None
        label = f"{friendly} (HEX {chosen})" if friendly else f"HEX {chosen}"
        final = (
            f"{final}, SOLID BACKGROUND COLOR {label}, strictly no gradients, no textures, "
            "no patterns, design must remain edge-to-edge"
        )
    return final


def gemini_aspect_ratio(aspect_ratio: str) -> str:
    """Map an aspect ratio onto one the Gemini image endpoints accept."""
    # 4:5 is not offered; 3:4 is the closest portrait ratio.
    return "3:4" if aspect_ratio == "4:5" else aspect_ratio


def clamp_upscale_factor(factor: float) -> float:
    """Clamp an upscale factor to the provider's supported range [1, 10]."""
    return min(max(factor, 1), 10)


def build_mockup_prompt(t_shirt_color: str | None) -> tuple[str, str | None]:
    """Build the mockup prompt and optional negative prompt.

    Args:
        t_shirt_color: Shirt colour as a HEX value or free-form name

    Returns:
        Tuple of (prompt, negative_prompt).  The negative prompt is only
        produced when a colour was requested.
    """
    chosen = t_shirt_color.strip().lower() if t_shirt_color and t_shirt_color.strip() else None
    hex_value = chosen if chosen and _HEX.match(chosen) else None
    friendly = SHIRT_COLOR_NAMES.get(hex_value) if hex_value else None
    label = friendly or (f"HEX {chosen}" if chosen else "neutral")

    fabric = f" (solid fabric color EXACTLY HEX {hex_value}, no patterns, no gradients)" if hex_value else ""
    if chosen:
        color_instruction = (
            f"The person is wearing a {label} t-shirt with the provided design printed on the "
            "front, centered on the chest. Do not substitute other colors. Ensure the t-shirt "
            "color MATCHES the design's background color exactly."
        )
    else:
        color_instruction = (
            "The person is wearing a neutral t-shirt (white, black, or gray) with the provided "
            "design printed on the front, centered on the chest."
        )

    prompt = " ".join(
        [
            f"Create a high-quality, photorealistic studio photograph of a real person wearing a "
            f"{label} t-shirt{fabric} with the PROVIDED DESIGN printed on the front, centered on "
            "the chest. Keep the design unchanged, no cropping or distortion.",
            "Ensure realistic fabric folds, slight shadowing and lighting on the print, with "
            "accurate perspective mapping on the shirt.",
            "Neutral seamless background, professional product mockup lighting, front view or "
            "slight 3/4 angle.",
            color_instruction,
            "No frames, no borders, no UI, no captions, no extra text, no watermarks.",
            "Return a single photorealistic product mockup image.",
        ]
    )

    if not chosen:
        return prompt, None

    negatives = [
        "patterned shirt", "striped shirt", "gradient shirt", "logo on shirt", "text on shirt",
        "vibrant colored shirt", "multi-colored shirt", "different shirt color", "two-tone shirt",
        "non-solid fabric color",
    ]
    exclude = friendly or ""
    for name in _NEGATIVE_COLOR_WORDS:
        if name != exclude:
            negatives.extend([f"{name} shirt", f"{name} t-shirt", f"{name} tee"])
    return prompt, ", ".join(negatives)


def _first_image_url(result: Any) -> str | None:
    """Extract the image URL from a fal.ai result payload."""
    if not isinstance(result, dict):
        return None
    images = result.get("images") or []
    if images and isinstance(images[0], dict) and images[0].get("url"):
        return images[0]["url"]
    image = result.get("image")
    if isinstance(image, dict) and image.get("url"):
        return image["url"]
    return None


class FalTransformGateway(TransformGateway):
    """Transform gateway backed by fal.ai hosted models.

    Args:
        api_key: fal.ai key for this gateway.  When empty the client falls back
            to the ``FAL_KEY`` environment variable.
        client: Object exposing ``subscribe``; defaults to a
            ``fal_client.SyncClient`` bound to ``api_key``.  Tests pass a mock.
        http_timeout: Timeout for fetching source images for local raster
            operations.
    """

    name = "fal.ai"

    def __init__(self, api_key: str = "", *, client: Any = None, http_timeout: float = 60.0):
        self.api_key = api_key
        self.client = client if client is not None else fal_client.SyncClient(key=api_key or None)
        self.http_timeout = http_timeout

        self._generate_models: dict[str, Callable[..., str]] = {
            "gemini-25": self._generate_gemini,
            "recraft-v3": self._generate_recraft,
            "seedream-v4": self._generate_seedream,
        }
        self._edit_models: dict[str, Callable[..., str]] = {
            "gemini-25": self._edit_gemini,
            "recraft-v3": self._edit_recraft,
            "seedream-v4": self._edit_seedream,
        }

    def is_configured(self) -> bool:
        return bool(self.api_key or os.environ.get("FAL_KEY"))

    # ------------------------------------------------------------------
    # Provider plumbing
    # ------------------------------------------------------------------

    def _subscribe(self, endpoint: str, arguments: dict, label: str) -> dict:
        logger.info(f"Calling fal.ai {label} ({endpoint})")

        def on_queue_update(update: Any) -> None:
            logger.debug(f"fal.ai {label} queue update: {update}")

        try:
            result = self.client.subscribe(
                endpoint,
                arguments=arguments,
                with_logs=True,
                on_queue_update=on_queue_update,
            )
        except Exception as e:
            logger.error(f"fal.ai {label} error: {e}")
            raise RemoteTransformFailure(f"{label} failed: {e}") from e
        return result

    def _run_for_image(self, endpoint: str, arguments: dict, label: str) -> str:
        result = self._subscribe(endpoint, arguments, label)
        url = _first_image_url(result)
        if not url:
            raise RemoteTransformFailure(f"{label} did not return an image URL")

        logger.info(f"fal.ai {label} completed")
        return url

    # ------------------------------------------------------------------
    # Generation models
    # ------------------------------------------------------------------

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
        handler = self._generate_models.get(model)
        if handler is None:
            logger.warning(f"Unknown generation model '{model}', using {DEFAULT_EDIT_MODEL}")
            handler = self._generate_models[DEFAULT_EDIT_MODEL]
        return handler(
            prompt,
            aspect_ratio=aspect_ratio,
            style=style,
            style_id=style_id,
            background_color=background_color,
        )

    def _generate_gemini(self, prompt, *, aspect_ratio, style, style_id, background_color):
        final = with_style_lead(prompt, style)
        if background_color:
            final = (
                f"{final}, solid background color {background_color}, no gradients, "
                "ensure design remains edge-to-edge"
            )
        arguments = {
            "prompt": final,
            "aspect_ratio": gemini_aspect_ratio(aspect_ratio),
            "num_images": 1,
            "output_format": "jpeg",
            "sync_mode": True,
        }
        return self._run_for_image(GEMINI_GENERATE_ENDPOINT, arguments, "Gemini 2.5 Flash generation")

    def _generate_recraft(self, prompt, *, aspect_ratio, style, style_id, background_color):
        arguments: dict[str, Any] = {
            "prompt": build_recraft_prompt(prompt, style, background_color),
            "sync_mode": True,
        }
        if style and style.strip():
            arguments["style"] = style
        if style_id:
            arguments["style_id"] = style_id
        return self._run_for_image(RECRAFT_GENERATE_ENDPOINT, arguments, "Recraft V3 text-to-image")

    def _generate_seedream(self, prompt, *, aspect_ratio, style, style_id, background_color):
        final = with_style_lead(prompt, style)
        if background_color and background_color.strip():
            final = f"{final}, solid background color HEX {background_color.strip()}, no gradients, no patterns"
        arguments = {
            "prompt": final,
            "image_size": SEEDREAM_IMAGE_SIZES.get(aspect_ratio, SEEDREAM_IMAGE_SIZES["1:1"]),
            "num_images": 1,
            "sync_mode": True,
            "enable_safety_checker": True,
            "enhance_prompt_mode": "standard",
        }
        return self._run_for_image(SEEDREAM_GENERATE_ENDPOINT, arguments, "Seedream v4 text-to-image")

    # ------------------------------------------------------------------
    # Edit models
    # ------------------------------------------------------------------

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
        handler = self._edit_models.get(model)
        if handler is None:
            logger.warning(f"Unknown edit model '{model}', using {DEFAULT_EDIT_MODEL}")
            handler = self._edit_models[DEFAULT_EDIT_MODEL]
        return handler(
            image_url,
            instruction,
            noise_level=noise_level,
            style_id=style_id,
            reference_image_url=reference_image_url,
        )

    def _edit_gemini(self, image_url, instruction, *, noise_level, style_id, reference_image_url):
        image_urls = [image_url] + ([reference_image_url] if reference_image_url else [])
        arguments = {
            "prompt": add_conservative_guardrail(instruction),
            "image_urls": image_urls,
            "num_images": 1,
            "sync_mode": True,
            "noise_level": noise_level,
        }
        return self._run_for_image(GEMINI_EDIT_ENDPOINT, arguments, "Gemini 2.5 Flash edit")

    def _edit_recraft(self, image_url, instruction, *, noise_level, style_id, reference_image_url):
        arguments = {
            "prompt": instruction,
            "image_url": image_url,
            "strength": noise_level,
            "sync_mode": True,
        }
        if style_id:
            arguments["style_id"] = style_id
        return self._run_for_image(RECRAFT_EDIT_ENDPOINT, arguments, "Recraft V3 image-to-image")

    def _edit_seedream(self, image_url, instruction, *, noise_level, style_id, reference_image_url):
        arguments = {
            "prompt": instruction,
            "image_urls": [image_url],
            "sync_mode": True,
            "enable_safety_checker": True,
            "enhance_prompt_mode": "standard",
        }
        return self._run_for_image(SEEDREAM_EDIT_ENDPOINT, arguments, "Seedream v4 edit")

    # ------------------------------------------------------------------
    # Other transforms
    # ------------------------------------------------------------------

    def remove_background(self, image_url: str) -> str:
        arguments = {"image_url": image_url, "sync_mode": True}
        return self._run_for_image(REMOVE_BACKGROUND_ENDPOINT, arguments, "Background removal")

    def upscale(
        self,
        image_url: str,
        *,
        output_format: str,
        upscale_mode: str | None = None,
        upscale_factor: float | None = None,
        target_resolution: str | None = None,
    ) -> str:
        arguments: dict[str, Any] = {
            "image_url": image_url,
            "output_format": output_format,
            "sync_mode": True,
        }
        if upscale_mode:
            arguments["upscale_mode"] = upscale_mode
        if upscale_factor is not None and upscale_mode != "target":
            arguments["upscale_factor"] = clamp_upscale_factor(upscale_factor)
        if target_resolution and upscale_mode == "target":
            arguments["target_resolution"] = target_resolution
        return self._run_for_image(UPSCALE_ENDPOINT, arguments, "SeedVR2 upscale")

    def mockup(
        self,
        image_url: str,
        *,
        aspect_ratio: str,
        t_shirt_color: str | None = None,
    ) -> str:
        prompt, negative_prompt = build_mockup_prompt(t_shirt_color)
        arguments: dict[str, Any] = {
            "prompt": prompt,
            "image_urls": [image_url],
            "num_images": 1,
            "sync_mode": True,
            "noise_level": 0.55,
            "aspect_ratio": gemini_aspect_ratio(aspect_ratio),
            "output_format": "jpeg",
        }
        if negative_prompt:
            arguments["negative_prompt"] = negative_prompt
        return self._run_for_image(GEMINI_EDIT_ENDPOINT, arguments, "T-shirt mockup")

    def create_style(self, image_urls: list[str], *, base_style: str) -> str:
        # The endpoint takes a single images data URL; the first reference is used.
        arguments = {"images_data_url": image_urls[0], "base_style": base_style}
        result = self._subscribe(CREATE_STYLE_ENDPOINT, arguments, "Recraft V3 create style")
        style_id = result.get("style_id") if isinstance(result, dict) else None
        if not style_id:
            raise RemoteTransformFailure("Recraft V3 create style did not return a style_id")

        logger.info(f"Recraft V3 style created: {style_id}")
        return style_id

    def knockout_color(self, image_url: str, background_hex: str, *, tolerance: float) -> str:
        logger.info(f"Knocking out {background_hex} with tolerance {tolerance}")
        try:
            target = raster.parse_hex_color(background_hex)
            image = raster.load_image(image_url, timeout=self.http_timeout)
            return raster.to_data_url(raster.knockout_color(image, target, tolerance))
        except Exception as e:
            logger.error(f"Color knockout error: {e}")
            raise RemoteTransformFailure(f"Color knockout failed: {e}") from e

    def prepare_print(self, image_url: str, *, knockout_type: str) -> str:
        logger.info(f"Preparing design for print with {knockout_type} knockout")
        try:
            image = raster.load_image(image_url, timeout=self.http_timeout)
            return raster.to_data_url(raster.knockout_brightness(image, knockout_type))
        except Exception as e:
            logger.error(f"Print preparation error: {e}")
            raise RemoteTransformFailure(f"Print preparation failed: {e}") from e
