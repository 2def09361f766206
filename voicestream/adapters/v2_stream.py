"""
Legacy v2 streaming synthesizer.
Static header auth (API key + user id); the response body is piped
unchanged into a caller-supplied sink.
"""

from typing import Optional

import httpx

from voicestream.adapters.base import (
    HttpSynthesizer,
    SinkSynthesizer,
    begin_report,
    log_failure,
    make_request,
)
from voicestream.core.errors import TransportFailure
from voicestream.core.logging import get_logger
from voicestream.core.streams import ByteSink, pipe
from voicestream.metrics.latency import measure
from voicestream.options import SynthesisOptions
from voicestream.translation import to_v2_payload

logger = get_logger(__name__)


class V2StreamSynthesizer(HttpSynthesizer, SinkSynthesizer):
    transport = "v2"

    async def stream_to(
        self,
        text: str,
        voice: str,
        sink: ByteSink,
        options: Optional[SynthesisOptions] = None,
    ) -> int:
        payload = to_v2_payload(make_request(text, voice, options))
        settings = self.settings
        report = begin_report("v2-stream", user_id=settings.user_id)

        http_request = self._http.build_request(
            "POST",
            settings.v2_stream_url,
            headers={
                "accept": "audio/mpeg",
                "AUTHORIZATION": settings.api_key,
                "X-USER-ID": settings.user_id,
            },
            json=payload,
            timeout=self._streaming_timeout(),
        )

        async with measure(report, "request"):
            response = await self._send(http_request, stream=True)

        try:
            async with measure(report, "transfer"):
                written = await pipe(response.aiter_bytes(), sink)
        except httpx.HTTPError as exc:
            error = TransportFailure.from_http_error(exc)
            log_failure(self.transport, error)
            raise error from exc
        finally:
            await response.aclose()

        report.log()
        logger.debug("Audio piped to sink", extra={"bytes": written})
        return written
