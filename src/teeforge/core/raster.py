"""Local raster operations for print preparation.

Colour knockout and print preparation are pixel operations rather than model
calls, so they run in-process with Pillow.  The source image is fetched over
HTTP with ``httpx`` (``data:`` URLs are decoded directly, which lets
operations chain on each other's output), and the result is returned as a PNG
``data:`` URL so it can be passed back through the pipeline like any other
asset reference.

Knockout rules
--------------
Colour knockout
    A pixel becomes fully transparent when its Euclidean RGB distance to the
    target colour is at most ``tolerance`` (clamped to 0-255).
Print preparation
    A pixel becomes fully transparent when its average brightness crosses a
    threshold:

    ========  =========  ===============
    Type      Threshold  Knock out when
    ========  =========  ===============
    black     60         avg < 60
    white     200        avg > 200
    auto      240        avg > 240
    ========  =========  ===============
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re

import httpx
from PIL import Image, ImageChops, ImageMath

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

PRINT_THRESHOLDS: dict[str, tuple[int, bool]] = {
    # knockout_type -> (threshold, knock out dark pixels)
    "black": (60, True),
    "white": (200, False),
    "auto": (240, False),
}


def parse_hex_color(value: str) -> tuple[int, int, int]:
    """Parse ``#RGB`` or ``#RRGGBB`` into an RGB tuple.

    Raises:
        ValueError: If ``value`` is not a valid hex colour
    """
    hex_value = value.strip()
    if not _HEX_COLOR.match(hex_value):
        raise ValueError(f"Invalid HEX color: {value}")

    clean = hex_value[1:].lower()
    if len(clean) == 3:
        clean = "".join(ch * 2 for ch in clean)
    return int(clean[0:2], 16), int(clean[2:4], 16), int(clean[4:6], 16)


def load_image(url: str, timeout: float = 60.0) -> Image.Image:
    """Fetch an image from an HTTP(S) or ``data:`` URL as RGBA.

    Raises:
        httpx.HTTPError: If the download fails
        ValueError: If a data URL is malformed
        PIL.UnidentifiedImageError: If the bytes are not an image
    """
    if url.startswith("data:"):
        _, _, encoded = url.partition(",")
        try:
            payload = base64.b64decode(encoded, validate=True)
        except binascii.Error as e:
            raise ValueError("Malformed data URL") from e
    else:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
        payload = response.content

    image = Image.open(io.BytesIO(payload))
    return image.convert("RGBA")


def to_data_url(image: Image.Image) -> str:
    """Encode an image as a PNG data URL."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def _alpha_mask(expression, **bands: Image.Image) -> Image.Image:
    """Evaluate a per-pixel condition over ``bands`` as a 0/255 ``L`` mask."""
    mask = ImageMath.lambda_eval(lambda args: expression(args) * 255, **bands)
    return mask.convert("L")


def _clear_alpha(image: Image.Image, mask: Image.Image) -> Image.Image:
    """Make pixels transparent where ``mask`` is 255, keeping their RGB."""
    alpha = image.getchannel("A")
    image.putalpha(ImageChops.subtract(alpha, mask))
    return image


def knockout_color(
    image: Image.Image, target: tuple[int, int, int], tolerance: float
) -> Image.Image:
    """Return a copy of ``image`` with pixels near ``target`` made transparent."""
    threshold = max(0, min(255, tolerance))
    # Squared distances are integers, so comparing against the floor of the
    # squared threshold is exact.
    limit = int(threshold * threshold)
    result = image.convert("RGBA")

    r, g, b, _ = result.split()
    diffs = {
        name: ImageChops.difference(band, Image.new("L", result.size, value))
        for name, band, value in zip(("r", "g", "b"), (r, g, b), target)
    }
    mask = _alpha_mask(
        lambda args: (args["r"] * args["r"] + args["g"] * args["g"] + args["b"] * args["b"]) <= limit,
        **diffs,
    )

    logger.debug(f"Color knockout cleared {mask.histogram()[255]} pixels")
    return _clear_alpha(result, mask)


def knockout_brightness(image: Image.Image, knockout_type: str) -> Image.Image:
    """Return a copy of ``image`` with very dark or very light pixels transparent.

    Brightness is the mean of the RGB channels.  Unknown knockout types are
    treated as ``auto``.
    """
    threshold, dark = PRINT_THRESHOLDS.get(knockout_type, PRINT_THRESHOLDS["auto"])
    result = image.convert("RGBA")

    # mean < t  <=>  sum < 3t for integer channel values
    limit = 3 * threshold
    r, g, b, _ = result.split()
    if dark:
        mask = _alpha_mask(lambda args: (args["r"] + args["g"] + args["b"]) < limit, r=r, g=g, b=b)
    else:
        mask = _alpha_mask(lambda args: (args["r"] + args["g"] + args["b"]) > limit, r=r, g=g, b=b)

    return _clear_alpha(result, mask)
