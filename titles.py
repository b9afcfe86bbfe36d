import logging
import random

from palette import decode_data_url, hex_to_rgb, palette_from_image, rgb_to_hsl

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

MOODS = {
    "dark": ["Dark", "Mysterious", "Deep", "Shadow"],
    "light": ["Bright", "Light", "Pale", "Soft"],
    "vivid": ["Vibrant", "Bold", "Rich", "Vivid"],
    "muted": ["Muted", "Subtle", "Gentle", "Calm"],
}

COMPOSITION_NOUNS = ["Spectrum", "Palette", "Mix", "Fusion", "Blend"]
ART_NOUNS = ["Poster", "Design", "Art", "Visual", "Canvas"]

GENERIC_ADJECTIVES = ["Creative", "Modern", "Artistic", "Bold"]
GENERIC_NOUNS = ["Design", "Poster", "Visual", "Canvas"]

AI_PROMPT = (
    "Analyze this image and generate a short, descriptive title (2-4 words). "
    "Focus on what you actually see in the image - describe the main subject, colors, "
    "objects, text, or visual elements. Be concrete and specific, not abstract. "
    "For example: 'Golden Payment Logo' instead of 'Vibrant Design', or "
    "'Red Sunset Ocean' instead of 'Beautiful Canvas'. Just return the title, nothing else."
)


def mood_bucket(saturation, lightness):
    if lightness < 0.2:
        return "dark"
    if lightness > 0.8:
        return "light"
    if saturation > 0.6:
        return "vivid"
    return "muted"


def hue_name(hue, saturation, lightness, palette_size=1):
    if saturation < 0.1:
        return "Gray" if lightness > 0.5 else "Charcoal"
    if hue < 15 or hue >= 345:
        return "Red"
    if hue < 45:
        return "Orange"
    if hue < 70:
        return "Golden"
    if hue < 150:
        return "Green"
    if hue < 200:
        return "Aqua" if palette_size > 1 else "Cyan"
    if hue < 260:
        return "Blue"
    if hue < 290:
        return "Purple"
    return "Pink"


def generic_title(rng=None):
    rng = rng or random
    return f"{rng.choice(GENERIC_ADJECTIVES)} {rng.choice(GENERIC_NOUNS)}"


def generate_color_title(palette, rng=None):
    """Build a two-word title from the palette's dominant color.

    Never raises: anything unexpected (empty palette, bad hex) falls back to
    a generic adjective + noun.
    """
    rng = rng or random
    try:
        hue, saturation, lightness = rgb_to_hsl(hex_to_rgb(palette[0]))
        mood = rng.choice(MOODS[mood_bucket(saturation, lightness)])
        color = hue_name(hue, saturation, lightness, len(palette))

        composite = len(palette) > 2
        nouns = COMPOSITION_NOUNS if composite else ART_NOUNS
        candidates = [
            f"{mood} {color}",
            f"{color} {rng.choice(nouns)}",
            f"{color} {nouns[0]}" if composite else f"{mood} {rng.choice(nouns)}",
        ]
        return rng.choice(candidates)
    except Exception:
        logger.warning("Color title failed for palette %r", palette, exc_info=True)
        return generic_title(rng)


def title_from_image(image_bytes, rng=None):
    return generate_color_title(palette_from_image(image_bytes), rng=rng)


def title_from_data_url(data_url, rng=None):
    try:
        image_bytes = decode_data_url(data_url)
    except ValueError:
        logger.warning("Could not decode image for title generation", exc_info=True)
        return generic_title(rng)
    return title_from_image(image_bytes, rng=rng)


# ----------------------
# AI vision titles
# ----------------------
def make_openai_client(api_key):
    if not api_key or api_key == "your-openai-api-key-here":
        return None
    from openai import OpenAI
    return OpenAI(api_key=api_key)


def color_fallback(data_url, palette=None, rng=None):
    if palette is not None:
        return generate_color_title(palette, rng=rng)
    return title_from_data_url(data_url, rng=rng)


def generate_ai_title(data_url, client=None, model=DEFAULT_MODEL, rng=None, palette=None):
    """Ask a vision model for a title, falling back to the color heuristic.

    Pass ``palette`` when it is already known so the fallback does not
    decode the image again.
    """
    if client is None:
        return color_fallback(data_url, palette, rng)

    try:
        logger.info("Generating AI title (%d chars of image data)", len(data_url))
        response = client.chat.completions.create(
            model=model,
            messages=[{
                "role": "user",
                "content": [
                    {"type": "text", "text": AI_PROMPT},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }],
            max_tokens=20,
        )
        title = (response.choices[0].message.content or "").strip()
        title = title.replace('"', "").replace("'", "").strip()
        if title:
            logger.info("AI generated title: %s", title)
            return title
        logger.warning("AI returned an empty title")
    except Exception as e:
        logger.error("AI title generation failed (%s): %s", type(e).__name__, e)

    return color_fallback(data_url, palette, rng)
