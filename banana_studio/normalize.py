"""
Response normalization rules.

Backends answer in several shapes. The functions here turn a single shape into
an image reference or a fit analysis; none of them touch the network, so each
rule can be checked on its own.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .models import (
    BinaryImage,
    DEFAULT_MIME_TYPE,
    FitAnalysis,
    ImageReference,
    MixedParts,
    RemoteImage,
    is_data_url,
)

logger = logging.getLogger(__name__)

# First "{" to last "}", across newlines
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def image_from_string(value: Any, default_mime: str = DEFAULT_MIME_TYPE) -> Optional[ImageReference]:
    """Interpret a string field as a data URL, an http(s) URL or bare base64.

    Returns None for anything that is not a usable image string.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()
    if value.startswith(("http://", "https://")):
        return RemoteImage(url=value)
    try:
        if is_data_url(value):
            return BinaryImage.from_data_url(value)
        return BinaryImage.from_base64(value, mime_type=default_mime)
    except ValueError:
        return None


def _direct_image(doc: Any) -> Optional[ImageReference]:
    return image_from_string(doc.get("image"))


def _first_of_images(doc: Any) -> Optional[ImageReference]:
    images = doc.get("images")
    if isinstance(images, list) and images:
        return image_from_string(images[0])
    return None


def _nested_data_image(doc: Any) -> Optional[ImageReference]:
    data = doc.get("data")
    if isinstance(data, dict):
        return image_from_string(data.get("image"))
    return None


def _bare_base64(doc: Any) -> Optional[ImageReference]:
    value = doc.get("base64")
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return BinaryImage.from_base64(value, mime_type=DEFAULT_MIME_TYPE)
    except ValueError:
        return None


def _url_field(doc: Any) -> Optional[ImageReference]:
    return image_from_string(doc.get("url"))


@dataclass(frozen=True)
class ExtractionRule:
    """A named probe into a JSON response body."""

    name: str
    extract: Callable[[dict], Optional[ImageReference]]


# Evaluated in order; the first rule returning a value wins
JSON_IMAGE_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule("image", _direct_image),
    ExtractionRule("images[0]", _first_of_images),
    ExtractionRule("data.image", _nested_data_image),
    ExtractionRule("base64", _bare_base64),
    ExtractionRule("url", _url_field),
)


def extract_image_from_json(
    doc: Any,
    rules: tuple[ExtractionRule, ...] = JSON_IMAGE_RULES,
) -> Optional[ImageReference]:
    """Run the extraction rules against a decoded JSON body.

    Args:
        doc: Decoded JSON value
        rules: Rules to try, in priority order

    Returns:
        The first match, or None if no rule recognized the body.
    """
    if not isinstance(doc, dict):
        return None
    for rule in rules:
        found = rule.extract(doc)
        if found is not None:
            logger.debug(f"JSON response matched rule '{rule.name}'")
            return found
    return None


def first_image_part(response: MixedParts) -> Optional[BinaryImage]:
    for part in response.parts:
        if part.kind == "image" and part.image is not None:
            return part.image
    return None


def first_text_part(response: MixedParts) -> Optional[str]:
    for part in response.parts:
        if part.kind == "text" and part.text:
            return part.text
    return None


def parse_embedded_json(text: str) -> Optional[Any]:
    """Parse the brace-delimited JSON object embedded in free-form text."""
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        return None
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError:
        return None


def extract_fit_analysis(text: Optional[str]) -> FitAnalysis:
    """Best-effort fit analysis from model text. Never raises.

    Falls back to the default FitAnalysis when there is no text, no JSON
    object in it, or the object does not parse.
    """
    if not text:
        logger.warning("Fit check returned no text part; using default analysis")
        return FitAnalysis()

    parsed = parse_embedded_json(text)
    if not isinstance(parsed, dict):
        logger.warning(f"Could not parse fit analysis from model text: {text[:200]!r}")
        return FitAnalysis()

    return FitAnalysis.from_dict(parsed)
