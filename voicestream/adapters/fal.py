"""
Token-gated HTTP synthesizer (fal)
==================================
Both endpoints authenticate with a short-lived JWT passed as the
``fal_jwt_token`` query parameter. Tokens are issued by the authorize
endpoint using the account API key and cached per user id by
``TokenCache``.

- ``stream()``: chunked audio response on a keep-alive connection,
  returned as an ``AudioStream``.
- ``generate()``: JSON response carrying the hosted audio URL; the request
  id header becomes the generation id.
"""

from typing import Optional

import httpx

from voicestream.adapters.base import (
    BatchSynthesizer,
    HttpSynthesizer,
    StreamingSynthesizer,
    begin_report,
    log_failure,
    make_request,
    translate_stream_error,
)
from voicestream.config import Settings, get_settings
from voicestream.core.errors import (
    SynthesisError,
    TokenIssuanceFailure,
    UpstreamProtocolError,
)
from voicestream.core.logging import get_logger
from voicestream.core.streams import AudioStream
from voicestream.metrics.latency import measure
from voicestream.options import GenerationResult, SynthesisOptions
from voicestream.services.token_cache import TokenCache
from voicestream.translation import accept_header, output_format_of, to_fal_payload

logger = get_logger(__name__)

REQUEST_ID_HEADER = "x-fal-request-id"


class FalTokenIssuer:
    """Issues a JWT for a user id from the authorize endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        ttl_seconds: int,
        settings: Optional[Settings] = None,
    ) -> None:
        self._http = http_client
        self._ttl = ttl_seconds
        self._settings = settings

    async def __call__(self, user_id: str) -> str:
        settings = self._settings or get_settings()
        try:
            response = await self._http.post(
                settings.fal_authorize_url,
                headers={"authorization": f"Bearer {settings.api_key}"},
                json={"user_id": user_id, "token_expiration": self._ttl},
            )
        except httpx.HTTPError as exc:
            error = TokenIssuanceFailure.from_http_error(exc)
            log_failure("fal-token", error)
            raise error from exc

        if response.is_error:
            error = TokenIssuanceFailure.from_http_response(response)
            log_failure("fal-token", error)
            raise error

        return _token_from(response)


def _token_from(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = response.text.strip()
    if isinstance(data, dict):
        data = data.get("token")
    if not isinstance(data, str) or not data:
        raise UpstreamProtocolError(
            "authorize endpoint returned no token",
            status_code=response.status_code,
        )
    return data


class FalSynthesizer(HttpSynthesizer, StreamingSynthesizer, BatchSynthesizer):
    transport = "fal"

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        token_cache: Optional[TokenCache] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        super().__init__(http_client=http_client, settings=settings)
        ttl = self.settings.token_expiration_seconds
        self._tokens = token_cache or TokenCache(
            issuer=FalTokenIssuer(self._http, ttl, settings=self._settings),
            ttl_seconds=ttl,
            eviction_ratio=self.settings.token_eviction_ratio,
        )

    @property
    def token_cache(self) -> TokenCache:
        return self._tokens

    async def stream(
        self, text: str, voice: str, options: Optional[SynthesisOptions] = None
    ) -> AudioStream:
        request = make_request(text, voice, options)
        payload = to_fal_payload(request)
        settings = self.settings
        report = begin_report("fal-stream", user_id=settings.user_id)

        async with measure(report, "token"):
            token = await self._tokens.ensure_token(settings.user_id)

        http_request = self._http.build_request(
            "POST",
            settings.fal_stream_url,
            params={"fal_jwt_token": token},
            headers={"accept": accept_header(output_format_of(request))},
            json=payload,
            timeout=self._streaming_timeout(),
        )
        async with measure(report, "request"):
            response = await self._send(http_request, stream=True)

        report.log()
        return AudioStream(
            response.aiter_bytes(),
            translate_error=translate_stream_error,
            on_close=response.aclose,
        )

    async def generate(
        self, text: str, voice: str, options: Optional[SynthesisOptions] = None
    ) -> GenerationResult:
        request = make_request(text, voice, options)
        payload = to_fal_payload(request)
        settings = self.settings
        report = begin_report("fal-batch", user_id=settings.user_id)

        async with measure(report, "token"):
            token = await self._tokens.ensure_token(settings.user_id)

        http_request = self._http.build_request(
            "POST",
            settings.fal_speech_url,
            params={"fal_jwt_token": token},
            headers={"accept": "application/json"},
            json=payload,
        )
        async with measure(report, "request"):
            response = await self._send(http_request)

        try:
            result = _generation_result(response)
        except SynthesisError as error:
            log_failure(self.transport, error)
            raise

        report.log()
        logger.info(
            "Generation completed",
            extra={"generation_id": result.generation_id},
        )
        return result


def _generation_result(response: httpx.Response) -> GenerationResult:
    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamProtocolError(
            "invalid JSON response from speech endpoint",
            status_code=response.status_code,
            body=response.text[:200],
        ) from exc

    audio = data.get("audio") if isinstance(data, dict) else None
    url = audio.get("url") if isinstance(audio, dict) else None
    if not isinstance(url, str) or not url:
        raise UpstreamProtocolError(
            "speech response is missing audio.url",
            status_code=response.status_code,
            body=data,
        )

    generation_id = response.headers.get(REQUEST_ID_HEADER)
    if not generation_id:
        raise UpstreamProtocolError(
            f"speech response is missing the {REQUEST_ID_HEADER} header",
            status_code=response.status_code,
            body=data,
        )
    return GenerationResult(audio_url=url, generation_id=generation_id)

