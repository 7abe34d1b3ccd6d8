"""Media probing helpers."""

import logging
from pathlib import Path

from moviepy import AudioFileClip, VideoFileClip

logger = logging.getLogger(__name__)


def get_audio_duration(audio_path: Path) -> float:
    """Get the duration of an audio file.

    Args:
        audio_path: Path to audio file.

    Returns:
        Duration in seconds.

    Raises:
        FileNotFoundError: If audio file doesn't exist.
    """
    if not audio_path.exists():
        raise FileNotFoundError(f"Audio file not found: {audio_path}")

    audio = AudioFileClip(str(audio_path))
    try:
        return float(audio.duration)
    finally:
        audio.close()


def has_audio_stream(video_path: Path) -> bool:
    """Check whether a video file carries an audio stream.

    Unreadable files are reported as silent.
    """
    try:
        clip = VideoFileClip(str(video_path))
    except (OSError, KeyError) as e:
        logger.warning(f"Could not probe {video_path}: {e}")
        return False
    try:
        return clip.audio is not None
    finally:
        clip.close()
