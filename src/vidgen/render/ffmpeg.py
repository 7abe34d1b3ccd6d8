"""FFmpeg command execution."""

import asyncio
import logging
import shutil
from typing import List, Optional, Sequence

from ..config import config
from ..errors import EncodingError

logger = logging.getLogger(__name__)


def ffmpeg_command(*args: str) -> List[str]:
    """Build a full ffmpeg command line, always overwriting the output."""
    return [config.ffmpeg_bin, "-hide_banner", "-y", *args]


def check_ffmpeg_available() -> bool:
    """Check if FFmpeg is installed and available in PATH."""
    return shutil.which(config.ffmpeg_bin) is not None


def last_line(text: str, default: str = "unknown error") -> str:
    """Return the last non-empty line of ``text``."""
    for line in reversed(text.splitlines()):
        if line.strip():
            return line.strip()
    return default


async def run_ffmpeg(cmd: Sequence[str], label: str = "ffmpeg", timeout: Optional[float] = None) -> None:
    """Run an ffmpeg command to completion.

    Args:
        cmd: Full command line, usually from :func:`ffmpeg_command`.
        label: Short description used in log and error messages.
        timeout: Optional timeout in seconds.

    Raises:
        EncodingError: If the process cannot be spawned, times out or exits
            non-zero. The last line of stderr becomes the message.
    """
    logger.debug(f"{label}: {' '.join(cmd)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise EncodingError(f"Failed to spawn ffmpeg for {label}: {e}") from e

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise EncodingError(f"{label} timed out after {timeout}s") from None

    if process.returncode != 0:
        text = stderr.decode(errors="replace") if stderr else ""
        tail = last_line(text)
        logger.error(f"{label} failed (exit {process.returncode}): {tail}")
        raise EncodingError(
            f"{label} failed (exit {process.returncode}): {tail}",
            returncode=process.returncode,
            stderr_tail=tail,
        )
