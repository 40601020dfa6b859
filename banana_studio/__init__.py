"""
Banana Studio - image generation, style transfer, fusion and fit checks
through Gemini or a Pollinations-style HTTP endpoint.
"""

from pathlib import Path

# Read version from VERSION file (single source of truth)
_version_file = Path(__file__).parent.parent / "VERSION"
if _version_file.exists():
    __version__ = _version_file.read_text().strip()
else:
    __version__ = "0.1.0"  # Fallback for installed package

from banana_studio.config import Config
from banana_studio.errors import (
    BackendError,
    ConfigurationError,
    GenerationError,
    ImageMissingError,
    ResponseFormatError,
)
from banana_studio.generators.adapter import GenerationAdapter
from banana_studio.models import BinaryImage, FitAnalysis, GenerationResult

__all__ = [
    "__version__",
    "BackendError",
    "BinaryImage",
    "Config",
    "ConfigurationError",
    "FitAnalysis",
    "GenerationAdapter",
    "GenerationError",
    "GenerationResult",
    "ImageMissingError",
    "ResponseFormatError",
]
