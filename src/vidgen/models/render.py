"""Render input/output models."""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class FormatSpec(BaseModel):
    """One output format: viewport size plus optional platform preset."""

    name: str = Field(..., description="Format name")
    width: int = Field(..., description="Viewport width", gt=0)
    height: int = Field(..., description="Viewport height", gt=0)
    platform: Optional[str] = Field(None, description="Platform encoding preset name")

    class Config:
        """Pydantic config."""
        frozen = True


class FormatOutput(BaseModel):
    """Result of rendering one format."""

    format_name: str = Field(..., description="Format name")
    output_path: Path = Field(..., description="Finished video file")
    effective_durations: List[float] = Field(..., description="Per-scene durations in seconds")
    subtitle_path: Optional[Path] = Field(None, description="Subtitle file, if written")

    class Config:
        """Pydantic config."""
        frozen = True

    @property
    def total_duration(self) -> float:
        return sum(self.effective_durations)
