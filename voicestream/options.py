"""
User-facing request model shared by every synthesizer.

Options are deliberately loose: each field accepts either an enum member or
the equivalent plain string. The binary RPC translation validates them
strictly; the HTTP translations pass them through as given.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class Quality(str, Enum):
    DRAFT = "draft"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    PREMIUM = "premium"


class OutputFormat(str, Enum):
    MP3 = "mp3"
    MULAW = "mulaw"
    WAV = "wav"
    OGG = "ogg"
    FLAC = "flac"


class Emotion(str, Enum):
    FEMALE_HAPPY = "female_happy"
    FEMALE_SAD = "female_sad"
    FEMALE_ANGRY = "female_angry"
    FEMALE_FEARFUL = "female_fearful"
    FEMALE_DISGUST = "female_disgust"
    FEMALE_SURPRISED = "female_surprised"
    MALE_HAPPY = "male_happy"
    MALE_SAD = "male_sad"
    MALE_ANGRY = "male_angry"
    MALE_FEARFUL = "male_fearful"
    MALE_DISGUST = "male_disgust"
    MALE_SURPRISED = "male_surprised"
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    FEARFUL = "fearful"
    DISGUST = "disgust"
    SURPRISED = "surprised"


class VoiceEngine(str, Enum):
    PLAYHT2 = "PlayHT2.0"
    PLAYHT2_TURBO = "PlayHT2.0-turbo"
    PLAYHT1 = "PlayHT1.0"


# Protobuf enum names; the generated message classes accept these directly.
class RpcFormat(str, Enum):
    MP3 = "FORMAT_MP3"
    MULAW = "FORMAT_MULAW"
    WAV = "FORMAT_WAV"
    OGG = "FORMAT_OGG"
    FLAC = "FORMAT_FLAC"


class RpcQuality(str, Enum):
    DRAFT = "QUALITY_DRAFT"
    HIGH = "QUALITY_HIGH"


@dataclass(frozen=True)
class SynthesisOptions:
    quality: Optional[Union[Quality, str]] = None
    output_format: Optional[Union[OutputFormat, str]] = None
    sample_rate: Optional[int] = None
    speed: Optional[float] = None
    seed: Optional[int] = None
    temperature: Optional[float] = None
    voice_guidance: Optional[float] = None
    style_guidance: Optional[float] = None
    text_guidance: Optional[float] = None
    emotion: Optional[Union[Emotion, str]] = None
    voice_engine: Optional[Union[VoiceEngine, str]] = None


@dataclass(frozen=True)
class SynthesisRequest:
    text: str
    voice: str
    options: SynthesisOptions = field(default_factory=SynthesisOptions)


@dataclass(frozen=True)
class GenerationResult:
    audio_url: str
    generation_id: str
