import base64
import binascii
import io
import logging
import math
import re
from collections import Counter, namedtuple

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

RGB = namedtuple("RGB", ["r", "g", "b"])

FALLBACK_COLOR = "#ff0000"
MAX_COLORS = 5
MIN_DISTANCE = 60
SAMPLE_SIZE = (100, 100)

_HEX_RE = re.compile(r"^#?([0-9a-f]{2})([0-9a-f]{2})([0-9a-f]{2})$", re.IGNORECASE)
_DATA_URL_RE = re.compile(r"^data:image/[\w.+-]+;base64,")


# ----------------------
# Color helpers
# ----------------------
def hex_to_rgb(hex_color):
    match = _HEX_RE.match(hex_color or "")
    if not match:
        raise ValueError(f"Not a hex color: {hex_color!r}")
    return RGB(*(int(part, 16) for part in match.groups()))


def rgb_to_hex(rgb):
    return '#%02x%02x%02x' % tuple(rgb)


def color_distance(a, b):
    """Euclidean distance in RGB space, 0 to ~441.7."""
    return math.sqrt((a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2 + (a[2] - b[2]) ** 2)


def rgb_to_hsl(rgb):
    """Return (hue in degrees [0, 360), saturation 0-1, lightness 0-1)."""
    r, g, b = rgb
    high = max(r, g, b)
    low = min(r, g, b)
    lightness = (high + low) / 2 / 255
    if high == low:
        return 0.0, 0.0, lightness

    delta = high - low
    saturation = delta / (255 - abs(2 * lightness * 255 - 255))
    if high == r:
        hue = (g - b) / delta + (6 if g < b else 0)
    elif high == g:
        hue = (b - r) / delta + 2
    else:
        hue = (r - g) / delta + 4
    return hue * 60 % 360, saturation, lightness


# ----------------------
# Quantization + selection
# ----------------------
def quantize_channel(value):
    # .5 rounds up, so 8 -> 16 and 248..255 -> 255
    return min(255, int(value / 16 + 0.5) * 16)


def quantize_pixels(pixels):
    """Count pixels per quantized ``#rrggbb`` bucket.

    ``pixels`` is a flat RGB buffer. Buckets keep first-seen order, which is
    what breaks frequency ties later on.
    """
    if len(pixels) % 3:
        raise ValueError(f"RGB buffer length {len(pixels)} is not a multiple of 3")

    counts = Counter()
    for i in range(0, len(pixels), 3):
        counts[rgb_to_hex((
            quantize_channel(pixels[i]),
            quantize_channel(pixels[i + 1]),
            quantize_channel(pixels[i + 2]),
        ))] += 1
    return counts


def select_diverse_colors(counts, max_colors=MAX_COLORS, min_distance=MIN_DISTANCE):
    """Greedy diversity filter over colors ordered by frequency.

    The most frequent color always comes first. Each later color is kept
    only if it is farther than ``min_distance`` from everything kept so far.
    This is not an optimal clustering, just a cheap one that reads well.
    """
    ranked = counts.most_common()
    if not ranked:
        return [FALLBACK_COLOR]

    logger.debug("Top colors: %s", ", ".join(f"{c}({n})" for c, n in ranked[:15]))

    selected = [ranked[0][0]]
    selected_rgb = [hex_to_rgb(ranked[0][0])]
    for color, _count in ranked[1:]:
        if len(selected) >= max_colors:
            break
        rgb = hex_to_rgb(color)
        nearest = min(color_distance(rgb, other) for other in selected_rgb)
        if nearest > min_distance:
            selected.append(color)
            selected_rgb.append(rgb)

    logger.debug("Final palette: %s", selected)
    return selected


def extract_palette(pixels):
    return select_diverse_colors(quantize_pixels(pixels))


# ----------------------
# Image input
# ----------------------
def decode_data_url(data_url):
    """Strip a ``data:image/...;base64,`` prefix and decode the payload."""
    if not isinstance(data_url, str):
        raise ValueError("Image data must be a string")
    payload = _DATA_URL_RE.sub("", data_url, count=1)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e


def load_pixels(image_bytes, size=SAMPLE_SIZE):
    """Decode an image and shrink (or grow) it to fit inside ``size``.

    Alpha is dropped rather than composited, so transparent areas keep
    whatever color the encoder stored for them.
    """
    with Image.open(io.BytesIO(image_bytes)) as img:
        img = img.convert('RGB')
        img = ImageOps.contain(img, size, method=Image.LANCZOS)
        return img.tobytes()


def palette_from_image(image_bytes):
    try:
        return extract_palette(load_pixels(image_bytes))
    except Exception:
        logger.warning("Palette extraction failed, using fallback color", exc_info=True)
        return [FALLBACK_COLOR]
