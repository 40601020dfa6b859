"""
Generation transports for Banana Studio.
"""

from abc import ABC, abstractmethod

from ..errors import ResponseFormatError
from ..models import BackendRequest, BackendResponse


class GenerationTransport(ABC):
    """Abstract base class for generation backends.

    A transport sends one request and reports failures as BackendError
    (with the HTTP status when there is one). Retry and normalization
    belong to the adapter, not to the transport.
    """

    @abstractmethod
    async def send(self, request: BackendRequest, api_key: str) -> BackendResponse:
        """Send a generation request.

        Args:
            request: Prompt and images to send
            api_key: Validated, non-empty credential

        Returns:
            RawBinary, JsonDocument or MixedParts
        """
        pass

    async def download(self, url: str, api_key: str) -> BackendResponse:
        """Fetch an image a previous response pointed to by URL."""
        raise ResponseFormatError(f"{self.name()} transport cannot download remote images", raw=url)

    @abstractmethod
    def name(self) -> str:
        """Return the transport name."""
        pass


# Lazy imports so the SDK is only loaded when the Gemini backend is used
def get_gemini_transport():
    from .gemini import GeminiTransport
    return GeminiTransport


def get_pollinations_transport():
    from .pollinations import PollinationsTransport
    return PollinationsTransport
