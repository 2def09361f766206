"""
Binary streaming synthesizer (gRPC)
===================================
Validates every option strictly, opens the server-streaming ``tts`` call on
the registered RPC client, and adapts the pull-based call into an
``AudioStream``.

The RPC client is any object whose ``tts(request)`` returns (or resolves
to) a reader with ``async read()``; a ``grpc.aio`` unary-stream call fits.
"""

import inspect
from typing import Any, Optional

import grpc

from voicestream.adapters.base import (
    StreamingSynthesizer,
    begin_report,
    log_failure,
    make_request,
)
from voicestream.config import get_streaming_client
from voicestream.core.errors import SynthesisError, TransportFailure
from voicestream.core.logging import get_logger
from voicestream.core.streams import AudioStream, ChunkReader
from voicestream.metrics.latency import measure
from voicestream.options import SynthesisOptions
from voicestream.translation import to_rpc_request

logger = get_logger(__name__)

TRANSPORT = "grpc"


def translate_rpc_error(exc: BaseException) -> BaseException:
    if isinstance(exc, SynthesisError):
        return exc
    if isinstance(exc, grpc.RpcError):
        return TransportFailure.from_rpc_error(exc)
    return TransportFailure(str(exc) or exc.__class__.__name__, code=exc.__class__.__name__)


class GrpcStreamSynthesizer(StreamingSynthesizer):
    def __init__(self, client: Optional[Any] = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        return self._client or get_streaming_client()

    async def stream(
        self, text: str, voice: str, options: Optional[SynthesisOptions] = None
    ) -> AudioStream:
        # Raises InvalidOption before anything touches the network
        payload = to_rpc_request(make_request(text, voice, options))
        client = self.client

        report = begin_report(TRANSPORT)
        logger.debug(
            "Opening RPC stream",
            extra={"chars": len(text), "format": payload["format"], "quality": payload["quality"]},
        )

        try:
            async with measure(report, "request"):
                call = client.tts(payload)
                if inspect.isawaitable(call) and not isinstance(call, ChunkReader):
                    call = await call
        except Exception as exc:
            error = translate_rpc_error(exc)
            log_failure(TRANSPORT, error)
            if error is exc:
                raise
            raise error from exc

        report.log()
        return AudioStream(call, translate_error=translate_rpc_error)
