"""
Unit tests for FalSynthesizer and FalTokenIssuer.

HTTP is served by httpx.MockTransport; no real requests are made.
"""

import json

import httpx
import pytest

from voicestream.adapters.fal import FalSynthesizer, FalTokenIssuer
from voicestream.core.errors import TokenIssuanceFailure, TransportFailure, UpstreamProtocolError
from voicestream.options import GenerationResult, OutputFormat, SynthesisOptions


class FalServer:
    """Routes authorize / stream / speech requests and records them."""

    def __init__(self, *, speech=None, stream_chunks=(b"ID3", b"\xff\xfb"), authorize=None):
        self.requests = []
        self._speech = speech or httpx.Response(
            200,
            json={"audio": {"url": "https://cdn.test/audio.mp3"}},
            headers={"x-fal-request-id": "req-123"},
        )
        self._stream_chunks = stream_chunks
        self._authorize = authorize
        self.tokens_issued = 0

    def paths(self):
        return [r.url.path for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/authorize":
            if self._authorize is not None:
                return self._authorize
            self.tokens_issued += 1
            return httpx.Response(200, json=f"jwt-{self.tokens_issued}")
        if request.url.path == "/playht-tts/stream":
            return httpx.Response(200, content=self._chunks())
        if request.url.path == "/playht-tts":
            return self._speech
        return httpx.Response(404)

    async def _chunks(self):
        for chunk in self._stream_chunks:
            yield chunk


def make_synth(server: FalServer, settings) -> FalSynthesizer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return FalSynthesizer(http_client=client, settings=settings)


# ── Token issuance ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_token_request_carries_api_key_and_ttl(settings):
    server = FalServer()
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    issuer = FalTokenIssuer(client, 300, settings=settings)

    token = await issuer("user-1")

    assert token == "jwt-1"
    request = server.requests[0]
    assert request.headers["authorization"] == "Bearer test-api-key"
    assert json.loads(request.content) == {"user_id": "user-1", "token_expiration": 300}
    await client.aclose()


@pytest.mark.asyncio
async def test_token_in_object_body_is_accepted(settings):
    server = FalServer(authorize=httpx.Response(200, json={"token": "jwt-obj"}))
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))

    assert await FalTokenIssuer(client, 300, settings=settings)("user-1") == "jwt-obj"
    await client.aclose()


@pytest.mark.asyncio
async def test_token_failure_stops_before_synthesis(settings):
    server = FalServer(authorize=httpx.Response(401, json={"error_message": "bad api key"}))
    synth = make_synth(server, settings)

    with pytest.raises(TokenIssuanceFailure) as exc_info:
        await synth.generate("Hello", "voice-1")

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "bad api key"
    assert server.paths() == ["/authorize"]
    assert len(synth.token_cache) == 0
    await synth.aclose()


@pytest.mark.asyncio
async def test_token_is_reused_across_calls(settings):
    server = FalServer()
    synth = make_synth(server, settings)

    await synth.generate("one", "v")
    stream = await synth.stream("two", "v")
    await stream.read_all()

    assert server.paths().count("/authorize") == 1
    assert {r.url.params["fal_jwt_token"] for r in server.requests[1:]} == {"jwt-1"}
    synth.token_cache.clear()
    await synth.aclose()


# ── Streaming ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_stream_returns_response_bytes(settings):
    server = FalServer(stream_chunks=(b"ID3", b"\x04\x00", b"frame"))
    synth = make_synth(server, settings)

    stream = await synth.stream("Hello", "voice-1", SynthesisOptions(speed=1.5, seed=42))
    audio = await stream.read_all()

    assert audio == b"ID3\x04\x00frame"
    request = server.requests[-1]
    assert request.headers["accept"] == "audio/mpeg"
    body = json.loads(request.content)
    assert body["text"] == "Hello"
    assert body["speed"] == 1.5
    assert body["seed"] == 42
    assert body["output_format"] == "mp3"
    assert body["sample_rate"] == 24000
    synth.token_cache.clear()
    await synth.aclose()


@pytest.mark.asyncio
async def test_non_mp3_stream_requests_generic_audio(settings):
    server = FalServer()
    synth = make_synth(server, settings)

    stream = await synth.stream("Hello", "voice-1", SynthesisOptions(output_format=OutputFormat.MULAW))
    await stream.aclose()

    assert server.requests[-1].headers["accept"] == "audio/basic"
    synth.token_cache.clear()
    await synth.aclose()


@pytest.mark.asyncio
async def test_stream_http_error_is_structured(settings):
    class Failing(FalServer):
        def __call__(self, request):
            if request.url.path == "/playht-tts/stream":
                self.requests.append(request)
                return httpx.Response(503, json={"error_message": "overloaded"})
            return super().__call__(request)

    synth = make_synth(Failing(), settings)

    with pytest.raises(TransportFailure) as exc_info:
        await synth.stream("Hello", "voice-1")

    assert exc_info.value.status_code == 503
    assert exc_info.value.message == "overloaded"
    assert exc_info.value.body == {"error_message": "overloaded"}
    synth.token_cache.clear()
    await synth.aclose()


@pytest.mark.asyncio
async def test_network_error_is_structured(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/authorize":
            return httpx.Response(200, json="jwt")
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    synth = FalSynthesizer(http_client=client, settings=settings)

    with pytest.raises(TransportFailure) as exc_info:
        await synth.stream("Hello", "voice-1")

    assert exc_info.value.code == "ConnectError"
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    synth.token_cache.clear()
    await client.aclose()


# ── Batch ──────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_generate_returns_url_and_request_id(settings):
    server = FalServer(
        speech=httpx.Response(200, json={"audio": {"url": "X"}}, headers={"x-fal-request-id": "Y"}),
    )
    synth = make_synth(server, settings)

    result = await synth.generate("Hello", "voice-1")

    assert result == GenerationResult(audio_url="X", generation_id="Y")
    assert server.requests[-1].headers["accept"] == "application/json"
    synth.token_cache.clear()
    await synth.aclose()


@pytest.mark.asyncio
async def test_rate_limit_surfaces_error_message(settings):
    server = FalServer(speech=httpx.Response(429, json={"error_message": "rate limited"}))
    synth = make_synth(server, settings)

    with pytest.raises(TransportFailure) as exc_info:
        await synth.generate("Hello", "voice-1")

    assert exc_info.value.message == "rate limited"
    assert exc_info.value.status_code == 429
    synth.token_cache.clear()
    await synth.aclose()


@pytest.mark.asyncio
async def test_missing_request_id_header_is_protocol_error(settings):
    server = FalServer(speech=httpx.Response(200, json={"audio": {"url": "X"}}))
    synth = make_synth(server, settings)

    with pytest.raises(UpstreamProtocolError):
        await synth.generate("Hello", "voice-1")

    synth.token_cache.clear()
    await synth.aclose()


@pytest.mark.asyncio
async def test_missing_audio_url_is_protocol_error(settings):
    server = FalServer(
        speech=httpx.Response(200, json={"images": []}, headers={"x-fal-request-id": "Y"}),
    )
    synth = make_synth(server, settings)

    with pytest.raises(UpstreamProtocolError) as exc_info:
        await synth.generate("Hello", "voice-1")

    assert exc_info.value.body == {"images": []}
    synth.token_cache.clear()
    await synth.aclose()
