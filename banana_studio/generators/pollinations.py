"""
Pollinations-style HTTP transport for Banana Studio.

Posts a JSON body with the prompt and optional init images to a configurable
endpoint. The endpoint may answer with an image body or with JSON describing
where the image is.
"""

import logging
from typing import Optional

import httpx

from . import GenerationTransport
from ..errors import BackendError, ResponseFormatError
from ..models import BackendRequest, BackendResponse, JsonDocument, Operation, RawBinary

logger = logging.getLogger(__name__)


DEFAULT_ENDPOINT = "https://api.pollinations.ai/generate"
DEFAULT_TIMEOUT = 120.0


def _content_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "").split(";")[0].strip().lower()


class PollinationsTransport(GenerationTransport):
    """
    Generic HTTP image generation transport.

    A fresh httpx.AsyncClient is opened for every call, so concurrent calls
    share nothing.
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the transport.

        Args:
            endpoint: URL the generation request is POSTed to
            timeout: Per-request socket timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport

    def name(self) -> str:
        return "pollinations"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def build_payload(self, request: BackendRequest) -> dict:
        """JSON body for a request. Images go out as bare base64 plus MIME type."""
        payload = {"prompt": request.prompt}
        if request.operation is Operation.STYLE_TRANSFORM and request.images:
            image = request.images[0]
            payload["init_image"] = image.to_base64()
            payload["init_image_mime_type"] = image.mime_type
        elif request.images:
            payload["init_images"] = [image.to_base64() for image in request.images]
            payload["init_image_mime_types"] = [image.mime_type for image in request.images]
        return payload

    async def send(self, request: BackendRequest, api_key: str) -> BackendResponse:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        try:
            async with self._client() as client:
                response = await client.post(
                    self.endpoint,
                    json=self.build_payload(request),
                    headers=headers,
                )
        except httpx.TransportError as e:
            raise BackendError(None, str(e) or type(e).__name__, backend=self.name()) from e

        if not response.is_success:
            raise BackendError(response.status_code, response.text, backend=self.name())

        content_type = _content_type(response)
        if content_type.startswith("image/"):
            return RawBinary(data=response.content, mime_type=content_type)

        try:
            data = response.json()
        except ValueError as e:
            raise ResponseFormatError(
                f"Unexpected {self.name()} response ({content_type or 'no content type'})",
                raw=response.text,
            ) from e

        return JsonDocument(data=data, raw=response.text)

    async def download(self, url: str, api_key: str) -> BackendResponse:
        logger.debug(f"Downloading generated image from {url}")
        try:
            async with self._client() as client:
                response = await client.get(url, follow_redirects=True)
        except httpx.TransportError as e:
            raise BackendError(None, str(e) or type(e).__name__, backend=self.name()) from e

        if not response.is_success:
            raise BackendError(response.status_code, response.text, backend=self.name())

        content_type = _content_type(response)
        if not content_type.startswith("image/"):
            raise ResponseFormatError(
                f"Image URL returned {content_type or 'no content type'}",
                raw=url,
            )
        return RawBinary(data=response.content, mime_type=content_type)
