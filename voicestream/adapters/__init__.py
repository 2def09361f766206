"""
Synthesizer factory.
Each builder reads the process-wide settings store; pass explicit clients
to share connections or to inject test transports.
"""

from typing import Any, Optional

import httpx

from voicestream.adapters.base import BatchSynthesizer, SinkSynthesizer, StreamingSynthesizer
from voicestream.adapters.fal import FalSynthesizer
from voicestream.adapters.grpc_stream import GrpcStreamSynthesizer
from voicestream.adapters.v2_stream import V2StreamSynthesizer


def build_grpc_stream(client: Optional[Any] = None) -> GrpcStreamSynthesizer:
    return GrpcStreamSynthesizer(client=client)


def build_fal(http_client: Optional[httpx.AsyncClient] = None) -> FalSynthesizer:
    return FalSynthesizer(http_client=http_client)


def build_v2_stream(http_client: Optional[httpx.AsyncClient] = None) -> V2StreamSynthesizer:
    return V2StreamSynthesizer(http_client=http_client)


__all__ = [
    "BatchSynthesizer",
    "FalSynthesizer",
    "GrpcStreamSynthesizer",
    "SinkSynthesizer",
    "StreamingSynthesizer",
    "V2StreamSynthesizer",
    "build_fal",
    "build_grpc_stream",
    "build_v2_stream",
]
