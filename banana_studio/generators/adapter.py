"""
Resilient generation adapter.

One adapter serves every backend. For each call it:
- builds the instruction text and image payloads for the operation
- dispatches through the configured transport, retrying rate limits (429) and
  server errors (5xx) with exponential backoff via tenacity
- normalizes raw images, JSON bodies and mixed image/text parts into a
  GenerationResult
"""

import logging
from typing import Awaitable, Callable, Optional, Union

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from . import GenerationTransport, get_gemini_transport, get_pollinations_transport
from ..errors import BackendError, ConfigurationError, ImageMissingError, ResponseFormatError
from ..models import (
    BackendResponse,
    BinaryImage,
    FitAnalysis,
    FitCheck,
    Fuse,
    GenerationRequest,
    GenerationResult,
    ImageInput,
    JsonDocument,
    MixedParts,
    Operation,
    RawBinary,
    RemoteImage,
    StyleTransform,
    TextToImage,
)
from ..normalize import extract_fit_analysis, extract_image_from_json, first_image_part, first_text_part
from ..prompts import build_backend_request

logger = logging.getLogger(__name__)


DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BACKOFF_BASE = 0.8  # seconds

CredentialSource = Union[str, None, Callable[[], Optional[str]]]


def is_transient(error: BaseException) -> bool:
    """Only rate limiting and server errors are worth another attempt."""
    return isinstance(error, BackendError) and error.retryable


class GenerationAdapter:
    """Runs generation operations against a pluggable transport.

    Usage:
        adapter = GenerationAdapter(GeminiTransport(), credential=env_credential("GEMINI_API_KEY"))
        result = await adapter.generate_from_text("a red fox", "watercolor", "1:1")
        result.image.save("fox.png")

    The adapter keeps no per-call state, so one instance can serve any
    number of concurrent calls.
    """

    def __init__(
        self,
        transport: GenerationTransport,
        credential: CredentialSource,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the adapter.

        Args:
            transport: Backend strategy (HTTP or SDK)
            credential: API key, or a callable returning it; callables are
                        evaluated on every call
            max_attempts: Total attempts per network call, including the first
            backoff_base: Wait before the second attempt, doubling afterwards
            sleep: Async sleep used between attempts (defaults to asyncio.sleep)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if backoff_base < 0:
            raise ValueError("backoff_base must not be negative")
        self.transport = transport
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self._credential = credential
        self._sleep = sleep

    @classmethod
    def from_config(cls, config, backend: Optional[str] = None, **kwargs) -> "GenerationAdapter":
        """Build an adapter for a backend named in the configuration.

        Args:
            config: Loaded banana_studio.config.Config
            backend: "gemini" or "pollinations" (defaults to config.defaults.backend)
            **kwargs: Passed through to the constructor (e.g. sleep)
        """
        backend = backend or config.defaults.backend
        if backend == "gemini":
            transport = get_gemini_transport()(model=config.defaults.gemini_model)
        elif backend == "pollinations":
            transport = get_pollinations_transport()(
                endpoint=config.defaults.pollinations_endpoint,
                timeout=config.defaults.timeout,
            )
        else:
            raise ConfigurationError(f"Unknown backend: {backend}")

        return cls(
            transport,
            credential=config.credential_source(backend),
            max_attempts=config.defaults.max_attempts,
            backoff_base=config.defaults.backoff_base,
            **kwargs,
        )

    def _resolve_credential(self) -> str:
        value = self._credential() if callable(self._credential) else self._credential
        if not value or not value.strip():
            raise ConfigurationError(
                f"API key for the {self.transport.name()} backend is missing. "
                f"Run 'banana setup-keys' or set it in the environment."
            )
        return value.strip()

    def _retrying(self) -> AsyncRetrying:
        kwargs = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_base, exp_base=2),
            retry=retry_if_exception(is_transient),
            before_sleep=self._log_retry,
            reraise=True,
            **kwargs,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"{self.transport.name()} attempt {retry_state.attempt_number}/{self.max_attempts} failed "
            f"({error}); retrying in {retry_state.next_action.sleep:.1f}s"
        )

    async def _with_retry(self, call: Callable[..., Awaitable[BackendResponse]], *args) -> BackendResponse:
        """Await call(*args), retrying transient backend errors."""
        async for attempt in self._retrying():
            with attempt:
                response = await call(*args)
        return response

    async def run(self, request: GenerationRequest) -> GenerationResult:
        """Run any generation request through build, dispatch and normalize."""
        api_key = self._resolve_credential()
        backend_request = build_backend_request(request)
        operation = backend_request.operation

        logger.info(f"Running {operation.value} via {self.transport.name()}")
        response = await self._with_retry(self.transport.send, backend_request, api_key)
        return await self._normalize(operation, response, api_key)

    async def generate_from_text(self, prompt: str, style: str, aspect: str) -> GenerationResult:
        return await self.run(TextToImage(prompt=prompt, style=style, aspect=aspect))

    async def transform_style(
        self,
        source_image: ImageInput,
        style: str,
        refine_prompt: Optional[str] = None,
    ) -> GenerationResult:
        return await self.run(StyleTransform(
            source_image=source_image,
            style=style,
            refine_prompt=refine_prompt,
        ))

    async def fuse_images(self, image_a: ImageInput, image_b: ImageInput) -> GenerationResult:
        return await self.run(Fuse(image_a=image_a, image_b=image_b))

    async def run_fit_check(self, person_image: ImageInput, outfit_image: ImageInput) -> GenerationResult:
        """Visualize an outfit on a person and score the fit.

        The result image may be None if the model only answered in text;
        the analysis falls back to defaults if it could not be parsed.
        """
        return await self.run(FitCheck(person_image=person_image, outfit_image=outfit_image))

    async def _normalize(self, operation: Operation, response: BackendResponse, api_key: str) -> GenerationResult:
        if isinstance(response, RawBinary):
            result = GenerationResult(image=BinaryImage(data=response.data, mime_type=response.mime_type))
            if operation.produces_analysis:
                result.analysis = extract_fit_analysis(None)
            return result

        if isinstance(response, JsonDocument):
            return await self._normalize_json(operation, response, api_key)

        if isinstance(response, MixedParts):
            return self._normalize_parts(operation, response)

        raise ResponseFormatError(f"Unsupported response type from {self.transport.name()}: {type(response).__name__}")

    async def _normalize_json(self, operation: Operation, response: JsonDocument, api_key: str) -> GenerationResult:
        found = extract_image_from_json(response.data)
        if found is None:
            raise ResponseFormatError(f"Unexpected {self.transport.name()} response format", raw=response.raw)

        source_url = None
        if isinstance(found, RemoteImage):
            source_url = found.url
            downloaded = await self._with_retry(self.transport.download, found.url, api_key)
            if not isinstance(downloaded, RawBinary):
                raise ResponseFormatError("Image URL did not return image data", raw=found.url)
            found = BinaryImage(data=downloaded.data, mime_type=downloaded.mime_type)

        result = GenerationResult(image=found, source_url=source_url)
        if operation.produces_analysis:
            result.analysis = _json_analysis(response.data)
        return result

    def _normalize_parts(self, operation: Operation, response: MixedParts) -> GenerationResult:
        image = first_image_part(response)

        if operation.produces_analysis:
            text = first_text_part(response)
            if image is None:
                logger.warning(f"{self.transport.name()} returned no image for {operation.value}")
            return GenerationResult(image=image, analysis=extract_fit_analysis(text), text=text)

        if image is None:
            text = " ".join(p.text for p in response.parts if p.kind == "text" and p.text) or None
            raise ImageMissingError(
                f"{self.transport.name()} returned no image for {operation.value}",
                text=text,
                finish_reason=response.finish_reason,
            )
        return GenerationResult(image=image)


def _json_analysis(doc: dict) -> FitAnalysis:
    analysis = doc.get("analysis")
    if isinstance(analysis, dict):
        return FitAnalysis.from_dict(analysis)
    text = analysis if isinstance(analysis, str) else doc.get("text")
    return extract_fit_analysis(text if isinstance(text, str) else None)
