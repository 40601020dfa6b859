"""
Gemini image transport for Banana Studio.

Uses the google-genai SDK with Gemini 2.5 Flash Image ("Nano Banana"), which
accepts interleaved image and text parts and answers with image and/or text
parts.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import aiohttp
import httpx
from google import genai
from google.genai import errors, types

from . import GenerationTransport
from ..errors import BackendError
from ..models import BackendRequest, BackendResponse, BinaryImage, MixedParts, ResponsePart

logger = logging.getLogger(__name__)


GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image"

# Network failures from the SDK's underlying httpx or aiohttp client
NETWORK_ERRORS = (httpx.TransportError, aiohttp.ClientError, asyncio.TimeoutError)


def _default_client_factory(api_key: str) -> Any:
    return genai.Client(api_key=api_key)


def _enum_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "name", None) or str(value)


class GeminiTransport(GenerationTransport):
    """
    Gemini image generation transport.

    A client is built for each call from the credential handed in by the
    adapter, so key changes take effect without restarting. It is closed
    again before send() returns.
    """

    def __init__(
        self,
        model: str = GEMINI_IMAGE_MODEL,
        client_factory: Optional[Callable[[str], Any]] = None,
    ):
        """
        Initialize the Gemini transport.

        Args:
            model: Gemini model name
            client_factory: Builds an SDK client from an API key
                            (defaults to google.genai.Client)
        """
        self.model = model
        self._client_factory = client_factory or _default_client_factory

    def name(self) -> str:
        return "gemini"

    def build_contents(self, request: BackendRequest) -> list:
        """Images first, in request order, then the instruction text."""
        contents = [
            types.Part.from_bytes(data=image.data, mime_type=image.mime_type)
            for image in request.images
        ]
        contents.append(types.Part.from_text(text=request.prompt))
        return contents

    async def send(self, request: BackendRequest, api_key: str) -> BackendResponse:
        client = self._client_factory(api_key)
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=self.build_contents(request),
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE", "TEXT"],
                ),
            )
        except errors.APIError as e:
            raise BackendError(e.code, e.message or str(e), backend=self.name()) from e
        except NETWORK_ERRORS as e:
            raise BackendError(None, str(e) or type(e).__name__, backend=self.name()) from e
        finally:
            await client.aio.aclose()
            client.close()

        return self.parse_response(response)

    def parse_response(self, response: Any) -> MixedParts:
        """Flatten the first candidate's parts into MixedParts."""
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            feedback = getattr(response, "prompt_feedback", None)
            block_reason = _enum_name(getattr(feedback, "block_reason", None))
            logger.warning(f"Gemini returned no candidates (block reason: {block_reason})")
            return MixedParts(parts=(), finish_reason=block_reason)

        candidate = candidates[0]
        content = getattr(candidate, "content", None)
        parts = []
        for part in getattr(content, "parts", None) or []:
            inline_data = getattr(part, "inline_data", None)
            if inline_data is not None and inline_data.data:
                mime_type = inline_data.mime_type or "image/png"
                if mime_type.startswith("image/"):
                    parts.append(ResponsePart.image_part(BinaryImage(data=inline_data.data, mime_type=mime_type)))
                    continue
            text = getattr(part, "text", None)
            if text:
                parts.append(ResponsePart.text_part(text))

        return MixedParts(
            parts=tuple(parts),
            finish_reason=_enum_name(getattr(candidate, "finish_reason", None)),
        )
