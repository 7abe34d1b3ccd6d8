"""Configuration management."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables
load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


class Config(BaseModel):
    """Application configuration."""

    # Binaries
    ffmpeg_bin: str = Field(
        default_factory=lambda: os.getenv("VIDGEN_FFMPEG", "ffmpeg"),
        description="FFmpeg executable used for encoding and concatenation"
    )

    # Rendering surface
    headless: bool = Field(
        default_factory=lambda: _env_flag("VIDGEN_HEADLESS", True),
        description="Run Chromium without a visible window"
    )
    browser_args: list[str] = Field(
        default_factory=lambda: [
            "--hide-scrollbars",
            "--disable-gpu",
            "--no-sandbox",
            "--disable-dev-shm-usage",
        ],
        description="Extra Chromium launch flags"
    )

    # Paths
    cache_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.environ["VIDGEN_CACHE_DIR"]) if os.getenv("VIDGEN_CACHE_DIR") else None
        ),
        description="Narration cache directory (defaults to <project>/assets/voiceover)"
    )

    # Logging
    log_level: str = Field(
        default_factory=lambda: os.getenv("VIDGEN_LOG_LEVEL", "INFO"),
        description="Default log level when --verbose is not given"
    )

    class Config:
        """Pydantic config."""
        frozen = False

    def load_project_env(self, project_dir: Path) -> None:
        """Load a project's ``.env`` file (API keys for narration engines)."""
        env_file = project_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)


# Global config instance
config = Config()
