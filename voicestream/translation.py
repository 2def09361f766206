"""
Option translation: one pure function per wire protocol.

Nothing here touches the network or any shared state; every function is
total over legal inputs and applies a default for every optional field.
Unset values are dropped from the resulting payload.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional

from voicestream.core.errors import InvalidOption
from voicestream.options import (
    Emotion,
    OutputFormat,
    Quality,
    RpcFormat,
    RpcQuality,
    SynthesisRequest,
)

DEFAULT_QUALITY = Quality.MEDIUM.value
DEFAULT_OUTPUT_FORMAT = OutputFormat.MP3.value
DEFAULT_SPEED = 1
DEFAULT_SAMPLE_RATE = 24000

EMOTION_CODES: Mapping[Emotion, Optional[int]] = {
    Emotion.FEMALE_HAPPY: 3,
    Emotion.FEMALE_SAD: 5,
    Emotion.FEMALE_ANGRY: 0,
    Emotion.FEMALE_FEARFUL: 2,
    Emotion.FEMALE_DISGUST: 1,
    Emotion.FEMALE_SURPRISED: 6,
    Emotion.MALE_HAPPY: 10,
    Emotion.MALE_SAD: 12,
    Emotion.MALE_ANGRY: 7,
    Emotion.MALE_FEARFUL: 9,
    Emotion.MALE_DISGUST: 8,
    Emotion.MALE_SURPRISED: 13,
    Emotion.HAPPY: None,
    Emotion.SAD: None,
    Emotion.ANGRY: None,
    Emotion.FEARFUL: None,
    Emotion.DISGUST: None,
    Emotion.SURPRISED: None,
}

RPC_FORMATS: Mapping[OutputFormat, RpcFormat] = {
    OutputFormat.MP3: RpcFormat.MP3,
    OutputFormat.MULAW: RpcFormat.MULAW,
    OutputFormat.WAV: RpcFormat.WAV,
    OutputFormat.OGG: RpcFormat.OGG,
    OutputFormat.FLAC: RpcFormat.FLAC,
}

# NOTE: every tier above draft collapses to QUALITY_HIGH. Kept as the
# service currently behaves; revisit once its tier semantics are published.
RPC_QUALITIES: Mapping[Quality, RpcQuality] = {
    Quality.DRAFT: RpcQuality.DRAFT,
    Quality.LOW: RpcQuality.HIGH,
    Quality.MEDIUM: RpcQuality.HIGH,
    Quality.HIGH: RpcQuality.HIGH,
    Quality.PREMIUM: RpcQuality.HIGH,
}


# ── Binary RPC ─────────────────────────────────────────────────────────────────

def convert_output_format(value: Any) -> RpcFormat:
    if value is None:
        return RpcFormat.MP3
    return RPC_FORMATS[_coerce(OutputFormat, value, "output_format")]


def convert_quality(value: Any) -> RpcQuality:
    if value is None:
        return RpcQuality.DRAFT
    return RPC_QUALITIES[_coerce(Quality, value, "quality")]


def emotion_code(value: Any) -> int:
    """Map a gendered emotion label to its speech-attribute code."""
    try:
        emotion = Emotion(value)
    except ValueError:
        code = None
    else:
        code = EMOTION_CODES[emotion]
    if code is None:
        raise InvalidOption(
            "Invalid emotion. Please use a gendered emotion.",
            option="emotion",
            value=_plain(value),
        )
    return code


def to_rpc_request(request: SynthesisRequest) -> Dict[str, Any]:
    """Build the binary streaming RPC request, validating every enumeration."""
    opts = request.options
    speech_attributes = emotion_code(opts.emotion) if opts.emotion else None
    return _compact({
        "text": [request.text],
        "voice": request.voice,
        "quality": convert_quality(opts.quality).value,
        "format": convert_output_format(opts.output_format).value,
        "sample_rate": opts.sample_rate,
        "speed": opts.speed,
        "seed": opts.seed,
        "temperature": opts.temperature,
        "style_guidance": opts.style_guidance,
        "voice_guidance": opts.voice_guidance,
        "speech_attributes": speech_attributes,
    })


# ── HTTP (JSON) ────────────────────────────────────────────────────────────────

def output_format_of(request: SynthesisRequest) -> str:
    return _plain(request.options.output_format) or DEFAULT_OUTPUT_FORMAT


def accept_header(output_format: Any) -> str:
    return "audio/mpeg" if _plain(output_format) == OutputFormat.MP3.value else "audio/basic"


def to_fal_payload(request: SynthesisRequest) -> Dict[str, Any]:
    opts = request.options
    return _compact({
        "text": request.text,
        "voice": request.voice,
        "quality": _plain(opts.quality) or DEFAULT_QUALITY,
        "output_format": output_format_of(request),
        "speed": opts.speed or DEFAULT_SPEED,
        "sample_rate": opts.sample_rate or DEFAULT_SAMPLE_RATE,
        "seed": opts.seed,
        "temperature": opts.temperature,
        "voice_engine": _plain(opts.voice_engine),
        "emotion": _plain(opts.emotion),
        "voice_guidance": opts.voice_guidance,
        "text_guidance": opts.text_guidance,
        "style_guidance": opts.style_guidance,
    })


def to_v2_payload(request: SynthesisRequest) -> Dict[str, Any]:
    opts = request.options
    return _compact({
        "text": request.text,
        "voice": request.voice,
        "quality": _plain(opts.quality) or DEFAULT_QUALITY,
        "output_format": output_format_of(request),
        "speed": opts.speed or DEFAULT_SPEED,
        "sample_rate": opts.sample_rate or DEFAULT_SAMPLE_RATE,
        "seed": opts.seed,
        "temperature": opts.temperature,
    })


# ── Helpers ────────────────────────────────────────────────────────────────────

def _coerce(enum_cls: type, value: Any, option: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidOption(
            f"Unsupported {option}: {_plain(value)!r}",
            option=option,
            value=_plain(value),
        ) from None


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}
