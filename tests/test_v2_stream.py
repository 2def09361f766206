"""
Unit tests for V2StreamSynthesizer.
"""

import io
import json

import httpx
import pytest

from voicestream import config
from voicestream.adapters import build_v2_stream
from voicestream.adapters.v2_stream import V2StreamSynthesizer
from voicestream.core.errors import TransportFailure
from voicestream.options import Quality, SynthesisOptions


def make_synth(handler, settings=None) -> V2StreamSynthesizer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return V2StreamSynthesizer(http_client=client, settings=settings)


@pytest.mark.asyncio
async def test_audio_is_piped_into_sink(settings):
    seen = []

    async def chunks():
        yield b"ID3"
        yield b"\xff\xfb\x90"
        yield b"payload"

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=chunks())

    sink = io.BytesIO()
    written = await make_synth(handler, settings).stream_to(
        "Hello", "voice-1", sink, SynthesisOptions(quality=Quality.HIGH, temperature=0.3)
    )

    assert sink.getvalue() == b"ID3\xff\xfb\x90payload"
    assert written == len(sink.getvalue())

    request = seen[0]
    assert str(request.url) == "https://tts.test/api/v2/tts/stream"
    assert request.headers["AUTHORIZATION"] == "test-api-key"
    assert request.headers["X-USER-ID"] == "user-1"
    assert request.headers["accept"] == "audio/mpeg"
    assert json.loads(request.content) == {
        "text": "Hello",
        "voice": "voice-1",
        "quality": "high",
        "output_format": "mp3",
        "speed": 1,
        "sample_rate": 24000,
        "temperature": 0.3,
    }


@pytest.mark.asyncio
async def test_no_token_is_requested(settings):
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, content=b"audio")

    await make_synth(handler, settings).stream_to("Hello", "voice-1", io.BytesIO())

    assert paths == ["/api/v2/tts/stream"]


@pytest.mark.asyncio
async def test_credentials_come_from_settings_store():
    config.configure(api_key="store-key", user_id="store-user", v2_stream_url="https://tts.test/v2")
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"a")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    await build_v2_stream(http_client=client).stream_to("Hi", "v", io.BytesIO())

    assert seen[0].headers["AUTHORIZATION"] == "store-key"
    assert seen[0].headers["X-USER-ID"] == "store-user"
    await client.aclose()


@pytest.mark.asyncio
async def test_http_error_is_structured_and_sink_untouched(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error_message": "voice not permitted"})

    sink = io.BytesIO()
    with pytest.raises(TransportFailure) as exc_info:
        await make_synth(handler, settings).stream_to("Hello", "voice-1", sink)

    assert exc_info.value.status_code == 403
    assert exc_info.value.message == "voice not permitted"
    assert sink.getvalue() == b""


@pytest.mark.asyncio
async def test_body_read_failure_is_structured(settings):
    async def chunks():
        yield b"partial"
        raise httpx.ReadError("connection reset")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=chunks())

    sink = io.BytesIO()
    with pytest.raises(TransportFailure) as exc_info:
        await make_synth(handler, settings).stream_to("Hello", "voice-1", sink)

    assert exc_info.value.code == "ReadError"
    assert sink.getvalue() == b"partial"
