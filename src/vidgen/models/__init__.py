"""Data models for the video renderer."""

from .scene import (
    AutoDuration,
    BackgroundConfig,
    DurationPolicy,
    FixedDuration,
    FormatOverride,
    Scene,
    SceneAudio,
    apply_format_overrides,
    parse_duration,
    resolve_asset_path,
)
from .project import (
    FormatConfig,
    OutputConfig,
    ProjectConfig,
    ProjectInfo,
    SubtitleConfig,
    ThemeConfig,
    VideoConfig,
    VoiceConfig,
    resolve_formats,
)
from .manifest import Manifest
from .render import FormatOutput, FormatSpec

__all__ = [
    "AutoDuration",
    "BackgroundConfig",
    "DurationPolicy",
    "FixedDuration",
    "FormatOverride",
    "Scene",
    "SceneAudio",
    "apply_format_overrides",
    "parse_duration",
    "resolve_asset_path",
    "FormatConfig",
    "OutputConfig",
    "ProjectConfig",
    "ProjectInfo",
    "SubtitleConfig",
    "ThemeConfig",
    "VideoConfig",
    "VoiceConfig",
    "resolve_formats",
    "Manifest",
    "FormatOutput",
    "FormatSpec",
]
