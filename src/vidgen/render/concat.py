"""Joining scene videos into the final output."""

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import EncodingError, SubtitleError
from .encoder import video_output_args
from .ffmpeg import ffmpeg_command, run_ffmpeg
from .media import has_audio_stream
from .presets import EncodingPreset
from .transitions import SceneTransition

logger = logging.getLogger(__name__)

# Boundaries without a transition still go through xfade with this length.
INSTANT_CUT = 0.001
# Common audio format for cross-faded scene audio.
CROSSFADE_SAMPLE_RATE = 22050


@dataclass(frozen=True)
class TransitionGraph:
    """A filter graph joining scene inputs with cross-fades."""

    filter_complex: str
    has_audio: bool


def build_transition_graph(
    scene_durations: Sequence[float],
    transitions: Sequence[Optional[SceneTransition]],
    audio_flags: Sequence[bool],
) -> TransitionGraph:
    """Build the xfade/acrossfade graph for ``len(scene_durations)`` inputs.

    Boundary ``i`` blends at the cumulative duration of scenes ``0..i`` minus
    the cumulative transition time consumed so far, clamped at 0. Boundaries
    without a transition become a near-zero fade so every boundary takes the
    same path. Audio is built only when at least one scene has audio; silent
    scenes are padded with generated silence trimmed to their duration.
    """
    n = len(scene_durations)
    if n < 2:
        raise ValueError("A transition graph needs at least two scenes")
    if len(transitions) != n - 1:
        raise ValueError(f"Expected {n - 1} transitions, got {len(transitions)}")

    parts: List[str] = []
    offset = 0.0
    for i, transition in enumerate(transitions):
        name = transition.type.xfade_name if transition else "fade"
        length = transition.duration if transition else INSTANT_CUT
        offset += scene_durations[i] - length

        source = "[0:v]" if i == 0 else f"[v{i}]"
        target = "[vout]" if i == n - 2 else f"[v{i + 1}]"
        parts.append(
            f"{source}[{i + 1}:v]xfade=transition={name}:"
            f"duration={length:.3f}:offset={max(offset, 0.0):.3f}{target}"
        )

    any_audio = any(audio_flags)
    if any_audio:
        for i, (has_audio, duration) in enumerate(zip(audio_flags, scene_durations)):
            if has_audio:
                parts.append(
                    f"[{i}:a]aformat=sample_rates={CROSSFADE_SAMPLE_RATE}:"
                    f"channel_layouts=stereo,asetpts=PTS-STARTPTS[sa{i}]"
                )
            else:
                parts.append(
                    f"anullsrc=cl=stereo:r={CROSSFADE_SAMPLE_RATE}[silence{i}];"
                    f"[silence{i}]atrim=0:{duration:.3f},asetpts=PTS-STARTPTS[sa{i}]"
                )

        for i, transition in enumerate(transitions):
            length = transition.duration if transition else INSTANT_CUT
            source = "[sa0]" if i == 0 else f"[a{i}]"
            target = "[aout]" if i == n - 2 else f"[a{i + 1}]"
            parts.append(f"{source}[sa{i + 1}]acrossfade=d={length:.3f}:c1=tri:c2=tri{target}")

    return TransitionGraph(filter_complex=";".join(parts), has_audio=any_audio)


async def copy_scene(scene_file: Path, output_path: Path) -> Path:
    """Copy a single scene to the output unchanged."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread(shutil.copyfile, scene_file, output_path)
    return output_path


async def concat_scenes(scene_files: Sequence[Path], output_path: Path) -> Path:
    """Join scenes with the concat demuxer, copying streams without re-encoding."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    list_file = output_path.with_name(f".{output_path.stem}.concat.txt")
    lines = ["ffconcat version 1.0"] + [f"file '{Path(p).resolve()}'" for p in scene_files]
    list_file.write_text("\n".join(lines) + "\n", encoding="utf-8")

    logger.debug(f"concat: list file {list_file} ({len(scene_files)} scenes)")
    try:
        await run_ffmpeg(
            ffmpeg_command(
                "-f", "concat",
                "-safe", "0",
                "-i", str(list_file),
                "-c", "copy",
                "-movflags", "+faststart",
                str(output_path),
            ),
            label="concat",
        )
    finally:
        list_file.unlink(missing_ok=True)
    return output_path


async def concat_with_crossfades(
    scene_files: Sequence[Path],
    scene_durations: Sequence[float],
    transitions: Sequence[Optional[SceneTransition]],
    output_path: Path,
    preset: EncodingPreset,
) -> Path:
    """Re-encode all scenes through a cross-fade filter graph."""
    audio_flags = await asyncio.gather(
        *(asyncio.to_thread(has_audio_stream, Path(f)) for f in scene_files)
    )
    graph = build_transition_graph(scene_durations, transitions, audio_flags)

    inputs: List[str] = []
    for scene_file in scene_files:
        inputs += ["-i", str(scene_file)]

    maps = ["-map", "[vout]"]
    audio_args: List[str] = []
    if graph.has_audio:
        maps += ["-map", "[aout]"]
        audio_args = [
            "-c:a", "aac",
            "-b:a", preset.audio_bitrate,
            "-ar", str(preset.audio_samplerate),
        ]

    output_path.parent.mkdir(parents=True, exist_ok=True)
    await run_ffmpeg(
        ffmpeg_command(
            *inputs,
            "-filter_complex", graph.filter_complex,
            *maps,
            *video_output_args(preset),
            *audio_args,
            str(output_path),
        ),
        label="xfade concat",
    )
    return output_path


async def concat_scenes_with_transitions(
    scene_files: Sequence[Path],
    scene_durations: Sequence[float],
    transitions: Sequence[Optional[SceneTransition]],
    output_path: Path,
    preset: EncodingPreset,
) -> Path:
    """Join per-scene videos into ``output_path``.

    - one scene: byte-for-byte copy
    - no transitions: stream-copy concatenation
    - any transition: full re-encode through a cross-fade graph
    """
    if not scene_files:
        raise EncodingError("No scene files to concatenate")
    if len(scene_files) == 1:
        return await copy_scene(Path(scene_files[0]), output_path)
    if not any(t is not None for t in transitions):
        return await concat_scenes(scene_files, output_path)
    return await concat_with_crossfades(scene_files, scene_durations, transitions, output_path, preset)


def subtitles_filter(srt_path: Path) -> str:
    # Backslashes and colons must be escaped inside filter arguments.
    escaped = str(srt_path).replace("\\", "/").replace(":", "\\:")
    return (
        f"subtitles=filename='{escaped}':"
        "force_style='FontSize=24,PrimaryColour=&H00FFFFFF,Alignment=2'"
    )


async def burn_in_subtitles(video_path: Path, srt_path: Path) -> Path:
    """Re-encode ``video_path`` in place with ``srt_path`` rendered into the picture.

    Raises:
        SubtitleError: If ffmpeg fails. The original video is left in place.
    """
    tmp_path = video_path.with_name(f"{video_path.stem}.tmp{video_path.suffix}")
    video_path.replace(tmp_path)
    try:
        await run_ffmpeg(
            ffmpeg_command(
                "-i", str(tmp_path),
                "-vf", subtitles_filter(srt_path),
                "-c:a", "copy",
                str(video_path),
            ),
            label="subtitle burn-in",
        )
    except EncodingError as e:
        video_path.unlink(missing_ok=True)
        tmp_path.replace(video_path)
        raise SubtitleError(f"Subtitle burn-in failed: {e.message}") from e
    tmp_path.unlink(missing_ok=True)
    return video_path
