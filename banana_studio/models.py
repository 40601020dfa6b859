"""
Data models for Banana Studio.
"""

import base64
import binascii
import mimetypes
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union


DEFAULT_MIME_TYPE = "image/png"
ANALYSIS_UNAVAILABLE = "Analysis unavailable"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^;,]*)*?);base64,(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class BinaryImage:
    """Image bytes together with their MIME type.

    Encoded forms (data URLs, base64 text) only exist at the boundary:
    use the ``from_*`` constructors on the way in and ``to_*`` on the way out.
    """

    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE

    def __repr__(self) -> str:
        return f"BinaryImage(mime_type={self.mime_type!r}, size={len(self.data)})"

    @classmethod
    def from_data_url(cls, value: str) -> "BinaryImage":
        """Parse a ``data:<mime>;base64,<payload>`` string."""
        match = _DATA_URL_RE.match(value.strip())
        if not match:
            raise ValueError("Not a base64 data URL")
        mime_type = match.group("mime") or DEFAULT_MIME_TYPE
        return cls(data=_b64decode(match.group("data")), mime_type=mime_type)

    @classmethod
    def from_base64(cls, value: str, mime_type: str = DEFAULT_MIME_TYPE) -> "BinaryImage":
        """Decode bare base64 text. A data-URL prefix, if present, wins over mime_type."""
        if is_data_url(value):
            return cls.from_data_url(value)
        return cls(data=_b64decode(value), mime_type=mime_type)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "BinaryImage":
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        if not mime_type or not mime_type.startswith("image/"):
            mime_type = DEFAULT_MIME_TYPE
        return cls(data=path.read_bytes(), mime_type=mime_type)

    @classmethod
    def coerce(cls, value: Union["BinaryImage", str, bytes]) -> "BinaryImage":
        """Accept a BinaryImage, a data URL, bare base64 text or raw bytes."""
        if isinstance(value, BinaryImage):
            return value
        if isinstance(value, bytes):
            return cls(data=value)
        if isinstance(value, str):
            return cls.from_base64(value)
        raise TypeError(f"Cannot interpret {type(value).__name__} as an image")

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    @property
    def extension(self) -> str:
        """File extension matching the MIME type (".png" when unknown)."""
        ext = mimetypes.guess_extension(self.mime_type)
        if ext == ".jpe":
            ext = ".jpg"
        return ext or ".png"

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path


@dataclass(frozen=True)
class RemoteImage:
    """Image referenced by URL in a backend response."""

    url: str


ImageReference = Union[BinaryImage, RemoteImage]
ImageInput = Union[BinaryImage, str, bytes]


def is_data_url(value: str) -> bool:
    return value.lstrip().startswith("data:")


def _b64decode(value: str) -> bytes:
    cleaned = "".join(value.split())
    try:
        return base64.b64decode(cleaned, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e


class Operation(Enum):
    """Generation operation kinds."""

    TEXT_TO_IMAGE = "text-to-image"
    STYLE_TRANSFORM = "style-transform"
    FUSE = "fuse"
    FIT_CHECK = "fit-check"

    @property
    def produces_analysis(self) -> bool:
        return self is Operation.FIT_CHECK


@dataclass(frozen=True)
class TextToImage:
    prompt: str
    style: str
    aspect: str

    operation = Operation.TEXT_TO_IMAGE


@dataclass(frozen=True)
class StyleTransform:
    source_image: ImageInput
    style: str
    refine_prompt: Optional[str] = None

    operation = Operation.STYLE_TRANSFORM


@dataclass(frozen=True)
class Fuse:
    image_a: ImageInput
    image_b: ImageInput

    operation = Operation.FUSE


@dataclass(frozen=True)
class FitCheck:
    person_image: ImageInput
    outfit_image: ImageInput

    operation = Operation.FIT_CHECK


GenerationRequest = Union[TextToImage, StyleTransform, Fuse, FitCheck]


@dataclass
class FitAnalysis:
    """Structured feedback from a fit check.

    Every field has a placeholder default so a result can always be shown,
    even when the model returned nothing parseable.
    """

    score: float = 0
    color_feedback: str = ANALYSIS_UNAVAILABLE
    size_feedback: str = ANALYSIS_UNAVAILABLE
    occasion: str = ANALYSIS_UNAVAILABLE
    suggestions: str = ANALYSIS_UNAVAILABLE

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "colorFeedback": self.color_feedback,
            "sizeFeedback": self.size_feedback,
            "occasion": self.occasion,
            "suggestions": self.suggestions,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FitAnalysis":
        """Build from model output; accepts camelCase or snake_case keys."""
        return cls(
            score=_coerce_score(data.get("score", 0)),
            color_feedback=_text_field(data, "colorFeedback", "color_feedback"),
            size_feedback=_text_field(data, "sizeFeedback", "size_feedback"),
            occasion=_text_field(data, "occasion"),
            suggestions=_text_field(data, "suggestions"),
        )


def _coerce_score(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).strip())
    except ValueError:
        return 0


def _text_field(data: dict, *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        # Suggestions sometimes come back as a list of bullet points
        if isinstance(value, list):
            return "; ".join(str(v) for v in value)
        return str(value)
    return ANALYSIS_UNAVAILABLE


@dataclass
class GenerationResult:
    """Normalized outcome of one adapter call."""

    image: Optional[BinaryImage]
    analysis: Optional[FitAnalysis] = None
    text: Optional[str] = None
    source_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "image": self.image.to_data_url() if self.image else None,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "text": self.text,
            "source_url": self.source_url,
        }


# Transport-facing payloads


@dataclass(frozen=True)
class BackendRequest:
    """Instruction text plus image payloads, independent of any transport."""

    operation: Operation
    prompt: str
    images: tuple[BinaryImage, ...] = ()


@dataclass(frozen=True)
class RawBinary:
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class JsonDocument:
    data: Any
    raw: str


@dataclass(frozen=True)
class ResponsePart:
    kind: str  # "image" or "text"
    image: Optional[BinaryImage] = None
    text: Optional[str] = None

    @classmethod
    def image_part(cls, image: BinaryImage) -> "ResponsePart":
        return cls(kind="image", image=image)

    @classmethod
    def text_part(cls, text: str) -> "ResponsePart":
        return cls(kind="text", text=text)


@dataclass(frozen=True)
class MixedParts:
    parts: tuple[ResponsePart, ...] = ()
    finish_reason: Optional[str] = None


BackendResponse = Union[RawBinary, JsonDocument, MixedParts]
