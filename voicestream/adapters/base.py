"""
Abstract base classes for synthesizers, plus the shared HTTP plumbing.
Callers depend on these interfaces, so a transport can be swapped without
touching the code that consumes the audio.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from voicestream.config import Settings, get_settings
from voicestream.core.errors import SynthesisError, TransportFailure
from voicestream.core.logging import get_logger, new_request_id, set_logging_context
from voicestream.core.streams import AudioStream, ByteSink
from voicestream.metrics.latency import LatencyReport
from voicestream.options import GenerationResult, SynthesisOptions, SynthesisRequest

logger = get_logger(__name__)


class StreamingSynthesizer(ABC):
    """Text → push-based audio byte stream."""

    @abstractmethod
    async def stream(
        self, text: str, voice: str, options: Optional[SynthesisOptions] = None
    ) -> AudioStream:
        """
        Start synthesis and return the audio as it arrives.

        Raises
        ------
        InvalidOption before any network call; TransportFailure when the
        request cannot be started.
        """
        ...


class BatchSynthesizer(ABC):
    """Text → hosted audio file."""

    @abstractmethod
    async def generate(
        self, text: str, voice: str, options: Optional[SynthesisOptions] = None
    ) -> GenerationResult:
        ...


class SinkSynthesizer(ABC):
    """Text → audio written into a caller-owned sink."""

    @abstractmethod
    async def stream_to(
        self,
        text: str,
        voice: str,
        sink: ByteSink,
        options: Optional[SynthesisOptions] = None,
    ) -> int:
        """Write the audio into ``sink``; returns the number of bytes written."""
        ...


def make_request(text: str, voice: str, options: Optional[SynthesisOptions]) -> SynthesisRequest:
    return SynthesisRequest(text=text, voice=voice, options=options or SynthesisOptions())


def begin_report(transport: str, user_id: str = "") -> LatencyReport:
    request_id = new_request_id()
    set_logging_context(user_id=user_id, request_id=request_id)
    return LatencyReport(transport=transport, request_id=request_id)


def log_failure(transport: str, error: SynthesisError) -> None:
    logger.error(
        "Synthesis request failed",
        extra={
            "transport": transport,
            "error_type": type(error).__name__,
            "code": error.code,
            "status_code": error.status_code,
            "error": error.message,
        },
    )


class HttpSynthesizer:
    """
    Owns (or borrows) an ``httpx.AsyncClient`` and turns every transport
    failure into a structured ``TransportFailure``.
    """

    transport = "http"

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings
        self._owns_client = http_client is None
        self._http = http_client or self._build_client(self.settings)

    @property
    def settings(self) -> Settings:
        # Read through the store on every call so configure() takes effect
        return self._settings or get_settings()

    @staticmethod
    def _build_client(settings: Settings) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(
                settings.http_timeout_seconds,
                connect=settings.http_connect_timeout_seconds,
            ),
            limits=httpx.Limits(keepalive_expiry=settings.http_keepalive_expiry_seconds),
        )

    def _streaming_timeout(self) -> httpx.Timeout:
        # Long-lived audio responses: bound the connect, never the read
        return httpx.Timeout(None, connect=self.settings.http_connect_timeout_seconds)

    async def _send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response:
        try:
            response = await self._http.send(request, stream=stream)
        except httpx.HTTPError as exc:
            error = TransportFailure.from_http_error(exc)
            log_failure(self.transport, error)
            raise error from exc

        if response.is_error:
            try:
                await response.aread()
            finally:
                await response.aclose()
            error = TransportFailure.from_http_response(response)
            log_failure(self.transport, error)
            raise error
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()


def translate_stream_error(exc: BaseException) -> BaseException:
    """Error translator for HTTP response bodies read through AudioStream."""
    if isinstance(exc, SynthesisError):
        return exc
    if isinstance(exc, httpx.HTTPError):
        return TransportFailure.from_http_error(exc)
    return TransportFailure(str(exc) or exc.__class__.__name__, code=exc.__class__.__name__)
