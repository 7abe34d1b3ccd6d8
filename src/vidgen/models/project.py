"""Project configuration model."""

from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from .render import FormatSpec


class ProjectInfo(BaseModel):
    """Project identity."""

    name: str = Field(..., description="Project name, used for output file names")
    version: str = Field(default="1.0.0", description="Project version")


class FormatConfig(BaseModel):
    """A named output format."""

    width: int = Field(..., description="Viewport width in pixels", gt=0)
    height: int = Field(..., description="Viewport height in pixels", gt=0)
    label: Optional[str] = Field(None, description="Human readable label")
    platform: Optional[str] = Field(None, description="Platform encoding preset name")


class VideoConfig(BaseModel):
    """Video settings."""

    fps: int = Field(default=30, description="Frames per second", gt=0)
    width: int = Field(default=1920, description="Default viewport width", gt=0)
    height: int = Field(default=1080, description="Default viewport height", gt=0)
    default_transition: Optional[str] = Field(None, description="Transition used between scenes")
    default_transition_duration: float = Field(default=0.5, description="Transition length", ge=0)
    formats: Optional[Dict[str, FormatConfig]] = Field(None, description="Named output formats")
    parallel_scenes: Optional[int] = Field(None, description="Max scenes captured at once", ge=1)

    @property
    def max_parallel(self) -> int:
        return self.parallel_scenes or 4


class VoiceConfig(BaseModel):
    """Narration settings."""

    engine: str = Field(default="native", description="Narration engine name")
    default_voice: Optional[str] = Field(None, description="Voice used when a scene sets none")
    speed: float = Field(default=1.0, description="Speech rate multiplier", gt=0)
    padding_before: float = Field(default=0.5, description="Silence before narration", ge=0)
    padding_after: float = Field(default=0.5, description="Silence after narration", ge=0)
    auto_fallback_duration: float = Field(
        default=3.0, description="Duration of auto scenes without narration", ge=0
    )


class ThemeConfig(BaseModel):
    """Theme values passed to templates."""

    primary: str = "#2563EB"
    secondary: str = "#7C3AED"
    background: str = "#0F172A"
    text: str = "#F8FAFC"
    font_heading: str = "Inter"
    font_body: str = "Inter"


class SubtitleConfig(BaseModel):
    """Subtitle output settings."""

    enabled: bool = Field(default=False, description="Write an .srt next to the video")
    max_words_per_line: int = Field(default=6, description="Words per subtitle entry", ge=1)
    burn_in: bool = Field(default=False, description="Burn subtitles into the video")


class OutputConfig(BaseModel):
    """Output settings."""

    directory: str = Field(default="./output", description="Output directory")
    quality: str = Field(default="standard", description="draft, standard or high")
    subtitles: SubtitleConfig = Field(default_factory=SubtitleConfig)


class ProjectConfig(BaseModel):
    """Full project configuration."""

    project: ProjectInfo
    video: VideoConfig = Field(default_factory=VideoConfig)
    voice: VoiceConfig = Field(default_factory=VoiceConfig)
    theme: ThemeConfig = Field(default_factory=ThemeConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @property
    def slug(self) -> str:
        """File-name safe project name."""
        chars = [c if c.isalnum() else "-" for c in self.project.name.lower()]
        slug = "".join(chars).strip("-")
        return slug or "video"


def resolve_formats(
    config: ProjectConfig,
    format_filter: Optional[Sequence[str]] = None,
) -> List[FormatSpec]:
    """Resolve the output formats to render.

    Declared formats are returned sorted by name, filtered by ``format_filter``
    when given. Without declared formats a single implicit ``default`` format
    uses the project's video size.
    """
    if not config.video.formats:
        return [FormatSpec(name="default", width=config.video.width, height=config.video.height)]

    return [
        FormatSpec(name=name, width=fc.width, height=fc.height, platform=fc.platform)
        for name, fc in sorted(config.video.formats.items())
        if format_filter is None or name in format_filter
    ]
