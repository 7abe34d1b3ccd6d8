"""Encoding presets resolved from quality names and platform targets."""

import logging
from dataclasses import dataclass, replace
from typing import Optional

logger = logging.getLogger(__name__)

STANDARD_CRF = 23


@dataclass(frozen=True)
class QualityPreset:
    """Video quality mapped from a quality name."""

    name: str
    crf: int
    preset: str

    @classmethod
    def from_name(cls, name: Optional[str]) -> "QualityPreset":
        """Look up a quality preset. Unknown names resolve to ``standard``."""
        return QUALITY_PRESETS.get((name or "").lower(), QUALITY_PRESETS["standard"])


@dataclass(frozen=True)
class EncodingPreset:
    """Full encoder settings: video quality plus audio parameters."""

    crf: int
    preset: str
    audio_bitrate: str = "128k"
    audio_samplerate: int = 44100

    @classmethod
    def from_quality(cls, quality: QualityPreset) -> "EncodingPreset":
        return cls(crf=quality.crf, preset=quality.preset)


QUALITY_PRESETS = {
    "draft": QualityPreset("draft", crf=28, preset="ultrafast"),
    "standard": QualityPreset("standard", crf=STANDARD_CRF, preset="medium"),
    "high": QualityPreset("high", crf=18, preset="slow"),
}

PLATFORM_PRESETS = {
    "youtube-hd": EncodingPreset(crf=18, preset="slow", audio_bitrate="384k", audio_samplerate=48000),
    "youtube-4k": EncodingPreset(crf=18, preset="medium", audio_bitrate="384k", audio_samplerate=48000),
    "instagram-reels": EncodingPreset(crf=20, preset="medium", audio_bitrate="128k", audio_samplerate=44100),
    "tiktok": EncodingPreset(crf=20, preset="medium", audio_bitrate="128k", audio_samplerate=44100),
    "whatsapp": EncodingPreset(crf=26, preset="fast", audio_bitrate="96k", audio_samplerate=44100),
    "youtube-shorts": EncodingPreset(crf=20, preset="medium", audio_bitrate="256k", audio_samplerate=48000),
    "twitter": EncodingPreset(crf=22, preset="medium", audio_bitrate="128k", audio_samplerate=44100),
}


def resolve_encoding(quality: QualityPreset, platform: Optional[str] = None) -> EncodingPreset:
    """Resolve encoder settings for a quality and an optional platform.

    A platform preset keeps its own speed preset and audio settings; its CRF is
    shifted by the quality's offset from ``standard`` (draft +5, high -5) and
    never drops below 1.
    """
    if platform is None:
        return EncodingPreset.from_quality(quality)

    base = PLATFORM_PRESETS.get(platform)
    if base is None:
        logger.warning(f"Unknown platform preset \"{platform}\", using quality '{quality.name}'")
        return EncodingPreset.from_quality(quality)

    offset = quality.crf - STANDARD_CRF
    return replace(base, crf=max(base.crf + offset, 1))
