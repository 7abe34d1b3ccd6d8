"""Scene data model."""

import math
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field, field_validator


class AutoDuration(BaseModel):
    """Duration derived from narration length plus padding."""

    class Config:
        """Pydantic config."""
        frozen = True

    def __str__(self) -> str:
        return "auto"


class FixedDuration(BaseModel):
    """Explicit duration in seconds."""

    seconds: float = Field(..., description="Scene duration in seconds", gt=0)

    class Config:
        """Pydantic config."""
        frozen = True

    def __str__(self) -> str:
        return f"{self.seconds:g}s"


DurationPolicy = Union[AutoDuration, FixedDuration]


def parse_duration(value: Any) -> DurationPolicy:
    """Parse a manifest duration value.

    Accepts ``"auto"`` (any case) or ``None`` for auto, and numbers or
    numeric strings with an optional ``s`` suffix ("5", "2.5s") for fixed.

    Raises:
        ValueError: If the value is neither.
    """
    if isinstance(value, (AutoDuration, FixedDuration)):
        return value
    if value is None:
        return AutoDuration()
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}. Expected 'auto' or seconds")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if text.lower() == "auto":
            return AutoDuration()
        if text.endswith("s"):
            text = text[:-1].strip()
        try:
            seconds = float(text)
        except ValueError:
            raise ValueError(f"Invalid duration: {value!r}. Expected 'auto' or seconds") from None
    elif isinstance(value, dict) and "seconds" in value:
        seconds = float(value["seconds"])
    else:
        raise ValueError(f"Invalid duration: {value!r}. Expected 'auto' or seconds")

    if not math.isfinite(seconds) or seconds <= 0:
        raise ValueError(f"Invalid duration: {value!r}. Must be a positive number")
    return FixedDuration(seconds=seconds)


class BackgroundConfig(BaseModel):
    """Scene background override."""

    color: Optional[str] = Field(None, description="CSS color")
    image: Optional[str] = Field(None, description="Path or URL of a background image")

    class Config:
        """Pydantic config."""
        frozen = True


class SceneAudio(BaseModel):
    """Per-scene background music."""

    music: Optional[str] = Field(None, description="Path to a music file (supports @assets/)")
    music_volume: Optional[float] = Field(None, description="Music volume 0.0-1.0", ge=0)

    class Config:
        """Pydantic config."""
        frozen = True


class FormatOverride(BaseModel):
    """Overrides applied when rendering a specific output format."""

    props: Optional[Dict[str, Any]] = Field(None, description="Props merged over the scene props")
    background: Optional[BackgroundConfig] = Field(None, description="Background replacement")

    class Config:
        """Pydantic config."""
        frozen = True


class Scene(BaseModel):
    """Represents a single scene in the video."""

    id: str = Field(default="", description="Scene identifier")
    template: str = Field(..., description="Template name used to render the scene")
    props: Dict[str, Any] = Field(default_factory=dict, description="Template properties")
    duration: DurationPolicy = Field(default_factory=AutoDuration, description="'auto' or seconds")
    background: Optional[BackgroundConfig] = Field(None, description="Background override")
    transition_in: Optional[str] = Field(None, description="Transition into this scene")
    transition_out: Optional[str] = Field(None, description="Transition out of this scene")
    transition_duration: Optional[float] = Field(None, description="Transition length override", ge=0)
    voice: Optional[str] = Field(None, description="Narration voice id")
    audio: Optional[SceneAudio] = Field(None, description="Background music settings")
    format_overrides: Optional[Dict[str, FormatOverride]] = Field(
        None, description="Per-format prop/background overrides"
    )
    script: str = Field(default="", description="Narration text")

    class Config:
        """Pydantic config."""
        frozen = True

    @field_validator("duration", mode="before")
    @classmethod
    def _coerce_duration(cls, value: Any) -> DurationPolicy:
        return parse_duration(value)

    @property
    def is_auto(self) -> bool:
        return isinstance(self.duration, AutoDuration)

    @property
    def narration_text(self) -> str:
        return self.script.strip()


def apply_format_overrides(scene: Scene, format_name: str) -> Scene:
    """Return a copy of ``scene`` with the overrides for ``format_name`` merged in.

    Override props are merged over the scene props and an override background
    replaces the scene background. The input scene is never modified.
    """
    override = (scene.format_overrides or {}).get(format_name)
    if override is None:
        return scene

    props = dict(scene.props)
    if override.props:
        props.update(override.props)

    return scene.model_copy(
        update={
            "props": props,
            "background": override.background or scene.background,
        }
    )


def resolve_asset_path(raw: str, project_dir: Path) -> Path:
    """Resolve an asset reference relative to the project directory."""
    if raw.startswith("@assets/"):
        return project_dir / "assets" / raw[len("@assets/"):]
    path = Path(raw).expanduser()
    if path.is_absolute():
        return path
    return project_dir / path
