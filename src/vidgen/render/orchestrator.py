"""End-to-end rendering of a project into one video per output format."""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from ..config import config
from ..errors import CaptureError, ConfigError, EncodingError, NarrationError, SubtitleError, VidgenError
from ..models.manifest import Manifest
from ..models.render import FormatOutput, FormatSpec
from ..models.project import resolve_formats
from ..models.scene import apply_format_overrides, resolve_asset_path
from ..services.narration import NarrationEngine, create_engine
from ..services.templates import FileTemplateRenderer, TemplateRenderer
from ..subtitles import SubtitleEntry, estimate_word_timestamps, group_into_subtitles, write_srt
from .browser import FrameCaptureSession, SceneJob
from .browser import launch_surface as default_launch_surface
from .concat import burn_in_subtitles, concat_scenes_with_transitions
from .encoder import DEFAULT_MUSIC_VOLUME, AudioTracks
from .presets import QualityPreset, resolve_encoding
from .progress import ProgressCallback, RenderProgress, total_steps
from .timing import resolve_duration, total_frames
from .transitions import resolve_transitions

logger = logging.getLogger(__name__)

# (width, height) -> async context manager yielding a surface with new_tab().
SurfaceFactory = Callable[[int, int], Any]


def output_name(slug: str, format_name: str, format_count: int) -> str:
    """File name of a format's video: ``slug.mp4`` for a lone default format."""
    if format_count == 1 and format_name == "default":
        return f"{slug}.mp4"
    return f"{slug}-{format_name}.mp4"


def build_subtitle_entries(
    texts: Sequence[str],
    narration_durations: Sequence[Optional[float]],
    scene_durations: Sequence[float],
    narration_delay: float,
    max_words: int,
) -> List[SubtitleEntry]:
    """Subtitle entries for every narrated scene, timed on the final video.

    Each scene's words are spread over its narration, which starts
    ``narration_delay`` seconds into the scene.
    """
    entries: List[SubtitleEntry] = []
    scene_start = 0.0
    for text, spoken, duration in zip(texts, narration_durations, scene_durations):
        if text and spoken is not None:
            words = estimate_word_timestamps(text, min(spoken, duration))
            entries += group_into_subtitles(
                words,
                max_words,
                offset=scene_start + narration_delay,
                start_index=len(entries) + 1,
            )
        scene_start += duration
    return entries


def as_render_error(error: Exception, action: str) -> VidgenError:
    """Wrap a non-vidgen failure: file system errors as encoding, the rest as capture."""
    if isinstance(error, OSError):
        return EncodingError(f"{action} failed: {error}")
    return CaptureError(f"{action} failed: {error}")


class RenderOrchestrator:
    """Drives a full render.

    Narration, durations and transitions are resolved once; then each format
    is rendered in turn on its own surface: scenes are captured concurrently,
    joined, and optionally subtitled.
    """

    def __init__(
        self,
        manifest: Manifest,
        project_dir: Path,
        fps: Optional[int] = None,
        quality: Optional[str] = None,
        output_dir: Optional[Path] = None,
        formats: Optional[Sequence[str]] = None,
        progress: Optional[ProgressCallback] = None,
        templates: Optional[TemplateRenderer] = None,
        narration: Optional[NarrationEngine] = None,
        launch_surface: Optional[SurfaceFactory] = None,
    ) -> None:
        if not manifest.scenes:
            raise ConfigError("Manifest has no scenes to render")

        self.manifest = manifest
        self.project_dir = project_dir
        self.fps = fps or manifest.video.fps
        self.quality = QualityPreset.from_name(quality or manifest.output.quality)
        self.output_dir = output_dir or (project_dir / manifest.output.directory)
        self.formats: List[FormatSpec] = resolve_formats(manifest, formats)
        if not self.formats:
            raise ConfigError(f"No output formats match {', '.join(formats or [])}")

        self.templates = templates or FileTemplateRenderer(project_dir)
        self.narration = narration
        self.launch_surface = launch_surface or default_launch_surface
        self.progress = RenderProgress(total_steps(len(manifest.scenes), len(self.formats)), progress)

        self.narration_paths: List[Optional[Path]] = []
        self.narration_durations: List[Optional[float]] = []
        self.durations: List[float] = []

    async def run(self) -> List[FormatOutput]:
        manifest = self.manifest
        logger.info(
            f"Rendering \"{manifest.project.name}\": {len(manifest.scenes)} scene(s), "
            f"{len(self.formats)} format(s) @ {self.fps}fps, quality={self.quality.name}"
        )
        config.load_project_env(self.project_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix="vidgen-") as tmp:
            work_dir = Path(tmp)
            await self.synthesize_narration(work_dir)
            self.resolve_durations()
            transitions = resolve_transitions(manifest.scenes, manifest.video)

            outputs = []
            for fmt in self.formats:
                outputs.append(await self.render_format(fmt, transitions, work_dir / fmt.name))

        self.progress.complete("Render complete")
        return outputs

    def narration_engine(self) -> Optional[NarrationEngine]:
        if self.narration is not None:
            return self.narration
        cache_dir = config.cache_dir or (self.project_dir / "assets" / "voiceover")
        try:
            engine = create_engine(self.manifest.voice, cache_dir=cache_dir)
        except NarrationError as e:
            logger.warning(f"Narration unavailable ({e}), rendering without voiceover")
            return None
        logger.info(f"Narration engine: {engine.name}")
        return engine

    async def synthesize_narration(self, work_dir: Path) -> None:
        """Synthesize every scene's narration once for the whole render."""
        scenes = self.manifest.scenes
        voice = self.manifest.voice
        engine = self.narration_engine() if any(s.narration_text for s in scenes) else None

        for i, scene in enumerate(scenes):
            path, seconds = None, None
            text = scene.narration_text
            if text and engine is not None:
                try:
                    result = await asyncio.to_thread(
                        engine.synthesize,
                        text,
                        scene.voice or voice.default_voice,
                        voice.speed,
                        work_dir / f"scene-{i:03d}.wav",
                    )
                    path, seconds = result.audio_path, result.duration_seconds
                    tag = " (cached)" if result.cached else ""
                    logger.info(f"Narration scene {i + 1}: {seconds:.1f}s{tag}")
                except Exception as e:
                    logger.warning(f"Narration scene {i + 1} failed ({e}), rendering silent")
            self.narration_paths.append(path)
            self.narration_durations.append(seconds)
            self.progress.advance(f"Narration {i + 1}/{len(scenes)}")

    def resolve_durations(self) -> None:
        voice = self.manifest.voice
        for i, scene in enumerate(self.manifest.scenes):
            duration = resolve_duration(
                scene.duration,
                self.narration_durations[i],
                voice.padding_before,
                voice.padding_after,
                voice.auto_fallback_duration,
            )
            if scene.is_auto:
                source = "narration + padding" if self.narration_durations[i] is not None else "fallback"
                logger.info(f"Scene {i + 1}: duration auto -> {duration:.1f}s ({source})")
            self.durations.append(duration)

    def scene_jobs(self, fmt: FormatSpec, fmt_dir: Path) -> List[SceneJob]:
        voice = self.manifest.voice
        jobs = []
        for i, scene in enumerate(self.manifest.scenes):
            scene = apply_format_overrides(scene, fmt.name)
            narration = self.narration_paths[i]
            music, volume = None, DEFAULT_MUSIC_VOLUME
            if scene.audio is not None:
                if scene.audio.music:
                    music = resolve_asset_path(scene.audio.music, self.project_dir)
                if scene.audio.music_volume is not None:
                    volume = scene.audio.music_volume

            delay = voice.padding_before if narration is not None else 0.0
            jobs.append(
                SceneJob(
                    index=i,
                    scene=scene,
                    duration=self.durations[i],
                    output_path=fmt_dir / f"scene-{i:03d}.mp4",
                    tracks=AudioTracks(
                        narration=narration,
                        music=music,
                        music_volume=volume,
                        narration_delay=delay,
                    ),
                    content_start=delay,
                    content_end_padding=voice.padding_after if narration is not None else 0.0,
                )
            )
        return jobs

    async def capture_all(self, session: FrameCaptureSession, jobs: List[SceneJob], fmt: FormatSpec) -> List[Path]:
        """Capture every scene with bounded concurrency.

        All scenes settle before a failure is raised; the first failure in
        scene order wins.
        """
        semaphore = asyncio.Semaphore(self.manifest.video.max_parallel)

        def captured(index: int) -> None:
            self.progress.advance(f"Scene {index + 1} captured ({fmt.name})")

        def encoded(index: int) -> None:
            self.progress.advance(f"Scene {index + 1} encoded ({fmt.name})")

        async def run(job: SceneJob) -> Path:
            async with semaphore:
                return await session.capture(job, on_captured=captured, on_encoded=encoded)

        results = await asyncio.gather(*(run(job) for job in jobs), return_exceptions=True)
        for i, result in enumerate(results):
            if isinstance(result, VidgenError):
                raise result.with_context(scene_index=i, format_name=fmt.name)
            if isinstance(result, Exception):
                error = as_render_error(result, "Scene capture")
                raise error.with_context(scene_index=i, format_name=fmt.name) from result
            if isinstance(result, BaseException):
                raise result
        return list(results)

    async def render_format(self, fmt: FormatSpec, transitions: list, fmt_dir: Path) -> FormatOutput:
        preset = resolve_encoding(self.quality, fmt.platform)
        platform = f" (platform: {fmt.platform})" if fmt.platform else ""
        logger.info(f"Format \"{fmt.name}\": {fmt.width}x{fmt.height}{platform}")

        fmt_dir.mkdir(parents=True, exist_ok=True)
        jobs = self.scene_jobs(fmt, fmt_dir)

        async with self.launch_surface(fmt.width, fmt.height) as surface:
            session = FrameCaptureSession(
                surface, self.templates, self.manifest.theme, fmt.width, fmt.height, self.fps, preset
            )
            scene_files = await self.capture_all(session, jobs, fmt)

        output_path = self.output_dir / output_name(self.manifest.slug, fmt.name, len(self.formats))
        if len(scene_files) > 1:
            joined = "with transitions" if any(transitions) else "by stream copy"
            logger.info(f"Concatenating {len(scene_files)} scenes {joined}")
        try:
            await concat_scenes_with_transitions(scene_files, self.durations, transitions, output_path, preset)
        except VidgenError as e:
            raise e.with_context(format_name=fmt.name)
        except OSError as e:
            raise EncodingError(f"Concatenation failed: {e}").with_context(format_name=fmt.name) from e
        self.progress.advance(f"Format \"{fmt.name}\" concatenated")
        logger.info(f"Output: {output_path}")

        subtitle_path = await self.write_subtitles(output_path)

        return FormatOutput(
            format_name=fmt.name,
            output_path=output_path,
            effective_durations=list(self.durations),
            subtitle_path=subtitle_path,
        )

    async def write_subtitles(self, output_path: Path) -> Optional[Path]:
        """Write (and optionally burn in) subtitles. Failures are logged, not raised."""
        settings = self.manifest.output.subtitles
        if not settings.enabled:
            return None

        entries = build_subtitle_entries(
            [s.narration_text for s in self.manifest.scenes],
            self.narration_durations,
            self.durations,
            self.manifest.voice.padding_before,
            settings.max_words_per_line,
        )
        if not entries:
            return None

        srt_path = output_path.with_suffix(".srt")
        try:
            write_srt(entries, srt_path)
        except OSError as e:
            logger.warning(f"Failed to write subtitles {srt_path}: {e}")
            return None
        logger.info(f"Subtitles: {srt_path}")

        if settings.burn_in:
            try:
                await burn_in_subtitles(output_path, srt_path)
                logger.info(f"Subtitles burned in: {output_path}")
            except SubtitleError as e:
                logger.warning(f"{e}; keeping video without burned-in captions")
        return srt_path


async def render_project(
    manifest: Manifest,
    project_dir: Path,
    *,
    fps: Optional[int] = None,
    quality: Optional[str] = None,
    output_dir: Optional[Path] = None,
    formats: Optional[Sequence[str]] = None,
    progress: Optional[ProgressCallback] = None,
    templates: Optional[TemplateRenderer] = None,
    narration: Optional[NarrationEngine] = None,
    launch_surface: Optional[SurfaceFactory] = None,
) -> List[FormatOutput]:
    """Render ``manifest`` into one video per output format.

    Args:
        manifest: Loaded project manifest.
        project_dir: Directory templates, assets and relative paths resolve against.
        fps: Frame rate override.
        quality: Quality preset name override.
        output_dir: Output directory override.
        formats: Names of the declared formats to render; all when omitted.
        progress: Called with ``(done, total, message)`` as work completes.
        templates: Template renderer; defaults to the project's template files.
        narration: Narration engine; defaults to the project's voice settings.
        launch_surface: Surface factory; defaults to headless Chromium.

    Returns:
        One :class:`FormatOutput` per rendered format, in format name order.

    Raises:
        ConfigError: If the project cannot be rendered as configured.
        TemplateError: If a scene template fails.
        CaptureError: If the browser fails.
        EncodingError: If ffmpeg fails.
    """
    orchestrator = RenderOrchestrator(
        manifest,
        project_dir,
        fps=fps,
        quality=quality,
        output_dir=output_dir,
        formats=formats,
        progress=progress,
        templates=templates,
        narration=narration,
        launch_surface=launch_surface,
    )
    return await orchestrator.run()


async def render_preview(
    manifest: Manifest,
    project_dir: Path,
    scene_index: int,
    frame: int,
    *,
    format_name: Optional[str] = None,
    fps: Optional[int] = None,
    templates: Optional[TemplateRenderer] = None,
    launch_surface: Optional[SurfaceFactory] = None,
) -> bytes:
    """Render one frame of one scene to PNG bytes.

    Narration is not synthesized, so auto-duration scenes use the fallback
    duration to count their frames.

    Raises:
        ConfigError: If the scene, frame or format is out of range.
        TemplateError: If the scene template fails.
        CaptureError: If the browser fails.
    """
    scenes = manifest.scenes
    if not 0 <= scene_index < len(scenes):
        raise ConfigError(f"Scene {scene_index + 1} out of range (project has {len(scenes)})")

    matching = resolve_formats(manifest, [format_name] if format_name else None)
    if not matching:
        raise ConfigError(f"No output format named {format_name}")
    fmt = matching[0]

    scene = apply_format_overrides(scenes[scene_index], fmt.name)
    fps = fps or manifest.video.fps
    voice = manifest.voice
    if scene.is_auto:
        logger.warning(
            f"Scene {scene_index + 1} has auto duration, previewing with the "
            f"{voice.auto_fallback_duration:.1f}s fallback (narration is not synthesized)"
        )
    duration = resolve_duration(
        scene.duration, None, voice.padding_before, voice.padding_after, voice.auto_fallback_duration
    )
    frames = max(total_frames(duration, fps), 1)
    if not 0 <= frame < frames:
        raise ConfigError(f"Frame {frame} out of range (scene has {frames} frames, 0-indexed)")

    config.load_project_env(project_dir)
    preset = resolve_encoding(QualityPreset.from_name(manifest.output.quality), fmt.platform)
    launch = launch_surface or default_launch_surface
    logger.info(f"Previewing scene {scene_index + 1} frame {frame}/{frames} ({fmt.width}x{fmt.height})")

    async with launch(fmt.width, fmt.height) as surface:
        session = FrameCaptureSession(
            surface,
            templates or FileTemplateRenderer(project_dir),
            manifest.theme,
            fmt.width,
            fmt.height,
            fps,
            preset,
        )
        return await session.capture_frame(scene, frame, frames, duration)
