"""Per-scene video encoding.

A scene is encoded by one ffmpeg process. Animated scenes stream PNG frames
into the process's stdin; static scenes loop a single image for the scene's
duration. Both modes share the same audio graph.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..errors import EncodingError
from .ffmpeg import ffmpeg_command, last_line, run_ffmpeg
from .presets import EncodingPreset

logger = logging.getLogger(__name__)

DEFAULT_MUSIC_VOLUME = 0.3


@dataclass(frozen=True)
class AudioTracks:
    """Audio inputs for one scene."""

    narration: Optional[Path] = None
    music: Optional[Path] = None
    music_volume: float = DEFAULT_MUSIC_VOLUME
    # Silence inserted before the narration starts, in seconds.
    narration_delay: float = 0.0

    @property
    def delay_ms(self) -> int:
        return max(int(round(self.narration_delay * 1000)), 0)


def audio_input_args(tracks: AudioTracks) -> List[str]:
    """Input arguments for the audio tracks: narration first, then music."""
    args: List[str] = []
    if tracks.narration is not None:
        args += ["-i", str(tracks.narration)]
    if tracks.music is not None:
        args += ["-i", str(tracks.music)]
    return args


def audio_output_args(tracks: AudioTracks, preset: EncodingPreset) -> List[str]:
    """Filter, mapping and codec arguments for the audio graph.

    - no tracks: no audio stream
    - narration only: optional ``adelay`` applied as a simple audio filter
    - music only: volume-scaled music
    - both: delayed narration mixed with volume-scaled music, stopping with
      the narration and using a short dropout transition
    """
    has_voice = tracks.narration is not None
    has_music = tracks.music is not None
    if not has_voice and not has_music:
        return []

    delay = tracks.delay_ms
    volume = f"{tracks.music_volume:.2f}"
    args: List[str] = []

    if has_voice and has_music:
        voice_chain = f"[1:a]adelay={delay}|{delay},volume=1.0[voice]" if delay > 0 else "[1:a]volume=1.0[voice]"
        graph = (
            f"{voice_chain};[2:a]volume={volume}[music];"
            "[voice][music]amix=inputs=2:duration=first:dropout_transition=2[aout]"
        )
        args += ["-filter_complex", graph, "-map", "0:v", "-map", "[aout]"]
    elif has_voice:
        args += ["-map", "0:v", "-map", "1:a"]
        if delay > 0:
            args += ["-af", f"adelay={delay}|{delay}"]
    else:
        args += ["-filter_complex", f"[1:a]volume={volume}[aout]", "-map", "0:v", "-map", "[aout]"]

    args += [
        "-c:a", "aac",
        "-b:a", preset.audio_bitrate,
        "-ar", str(preset.audio_samplerate),
    ]
    return args


def video_output_args(preset: EncodingPreset) -> List[str]:
    return [
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        "-crf", str(preset.crf),
        "-preset", preset.preset,
        "-movflags", "+faststart",
    ]


class SceneEncoder:
    """An ffmpeg process that turns a stream of PNG frames into one scene video.

    The process's stderr is drained by a background task while frames are
    written, so neither side can block on a full pipe.

    Usage::

        encoder = SceneEncoder(path, fps, width, height, duration, preset, tracks)
        await encoder.start()
        for png in frames:
            await encoder.write_frame(png)
        await encoder.finish()
    """

    def __init__(
        self,
        output_path: Path,
        fps: int,
        width: int,
        height: int,
        duration: float,
        preset: EncodingPreset,
        tracks: Optional[AudioTracks] = None,
    ) -> None:
        self.output_path = output_path
        self.fps = fps
        self.width = width
        self.height = height
        self.duration = duration
        self.preset = preset
        self.tracks = tracks or AudioTracks()
        self.frames_written = 0
        self._process: Optional[asyncio.subprocess.Process] = None
        self._stderr_task: Optional["asyncio.Task[str]"] = None

    def command(self) -> List[str]:
        """Full ffmpeg command line for this scene."""
        return ffmpeg_command(
            "-f", "image2pipe",
            "-vcodec", "png",
            "-framerate", str(self.fps),
            "-s", f"{self.width}x{self.height}",
            "-i", "-",
            *audio_input_args(self.tracks),
            *video_output_args(self.preset),
            *audio_output_args(self.tracks, self.preset),
            "-t", f"{self.duration:.3f}",
            str(self.output_path),
        )

    async def start(self) -> None:
        """Spawn the encoder process."""
        cmd = self.command()
        logger.debug(
            f"Spawning encoder: {self.width}x{self.height} @ {self.fps}fps, "
            f"crf={self.preset.crf} -> {self.output_path.name}"
        )
        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EncodingError(f"Failed to spawn ffmpeg: {e}") from e
        self._stderr_task = asyncio.create_task(self._drain_stderr())

    async def _drain_stderr(self) -> str:
        if self._process is None or self._process.stderr is None:
            raise EncodingError("Encoder is not running")
        chunks = []
        while True:
            chunk = await self._process.stderr.read(65536)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks).decode(errors="replace")

    async def write_frame(self, png_data: bytes) -> None:
        """Write one PNG frame to the encoder's stdin."""
        if self._process is None or self._process.stdin is None:
            raise EncodingError("Encoder is not running")
        try:
            self._process.stdin.write(png_data)
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            returncode = await self._process.wait()
            tail = last_line(await self._collect_stderr())
            raise EncodingError(
                f"ffmpeg stopped accepting frames (exit {returncode}): {tail}",
                returncode=returncode,
                stderr_tail=tail,
            ) from e
        self.frames_written += 1

    async def finish(self) -> Path:
        """Close stdin, wait for ffmpeg to exit and return the output path.

        Raises:
            EncodingError: If ffmpeg exits non-zero; the last line of its
                diagnostic output is the message.
        """
        if self._process is None:
            raise EncodingError("Encoder was never started")

        if self._process.stdin is not None and not self._process.stdin.is_closing():
            self._process.stdin.close()
            try:
                await self._process.stdin.wait_closed()
            except (BrokenPipeError, ConnectionResetError):
                pass

        returncode = await self._process.wait()
        stderr = await self._collect_stderr()

        if returncode != 0:
            tail = last_line(stderr)
            raise EncodingError(
                f"FFmpeg encoding failed (exit {returncode}): {tail}",
                returncode=returncode,
                stderr_tail=tail,
            )

        logger.debug(f"Encoded {self.frames_written} frames -> {self.output_path}")
        return self.output_path

    async def abort(self) -> None:
        """Kill the encoder without finalising its output."""
        if self._process is None or self._process.returncode is not None:
            return
        self._process.kill()
        await self._process.wait()
        await self._collect_stderr()
        self.output_path.unlink(missing_ok=True)

    async def _collect_stderr(self) -> str:
        if self._stderr_task is None:
            return ""
        return await self._stderr_task


def static_command(
    image_path: Path,
    output_path: Path,
    fps: int,
    duration: float,
    preset: EncodingPreset,
    tracks: Optional[AudioTracks] = None,
) -> List[str]:
    """ffmpeg command that loops ``image_path`` for ``duration`` seconds."""
    tracks = tracks or AudioTracks()
    return ffmpeg_command(
        "-loop", "1",
        "-framerate", str(fps),
        "-i", str(image_path),
        *audio_input_args(tracks),
        *video_output_args(preset),
        *audio_output_args(tracks, preset),
        "-t", f"{duration:.3f}",
        str(output_path),
    )


async def encode_static(
    png_data: bytes,
    output_path: Path,
    fps: int,
    duration: float,
    preset: EncodingPreset,
    tracks: Optional[AudioTracks] = None,
) -> Path:
    """Encode a scene from a single captured frame looped to its duration."""
    image_path = output_path.with_name(f"{output_path.stem}-still.png")
    image_path.write_bytes(png_data)
    try:
        await run_ffmpeg(
            static_command(image_path, output_path, fps, duration, preset, tracks),
            label=f"static encode {output_path.name}",
        )
    finally:
        image_path.unlink(missing_ok=True)
    return output_path
