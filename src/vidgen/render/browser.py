"""Browser-based frame capture.

Scenes are HTML documents rendered in a headless Chromium tab. Animated
scenes are re-rendered and screenshotted once per frame, with the frame
position exposed to the markup as CSS custom properties. Scenes whose markup
never reads those properties are captured once and looped.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Union

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from ..config import config
from ..errors import CaptureError
from ..models.project import ThemeConfig
from ..models.scene import Scene
from ..services.templates import TemplateRenderer
from .encoder import AudioTracks, SceneEncoder, encode_static
from .presets import EncodingPreset
from .timing import content_progress, frame_progress, total_frames

logger = logging.getLogger(__name__)

# Custom properties that make a scene animated when referenced.
FRAME_PROPERTIES = ("--frame", "--progress", "--total-frames", "--content-progress")

SET_FRAME_PROPERTIES = """
([frame, totalFrames, progress, contentProgress]) => {
    const style = document.documentElement.style;
    style.setProperty('--frame', String(frame));
    style.setProperty('--total-frames', String(totalFrames));
    style.setProperty('--progress', String(progress));
    style.setProperty('--content-progress', String(contentProgress));
}
"""


class RenderSurface:
    """A headless Chromium instance sized for one output format.

    Usage::

        async with RenderSurface(1920, 1080) as surface:
            page = await surface.new_tab()
    """

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self._playwright = None
        self._browser = None

    async def __aenter__(self) -> "RenderSurface":
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def launch(self) -> None:
        """Start Playwright and launch Chromium.

        Raises:
            CaptureError: If the browser cannot be started.
        """
        logger.info(f"Launching browser ({self.width}x{self.height})")
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=config.headless,
                args=config.browser_args,
            )
        except PlaywrightError as e:
            await self.close()
            raise CaptureError(f"Failed to launch browser: {e}") from e

    async def new_tab(self) -> Any:
        """Open a page with the surface's viewport."""
        if self._browser is None:
            raise CaptureError("Browser is not running")
        try:
            return await self._browser.new_page(
                viewport={"width": self.width, "height": self.height},
                device_scale_factor=1,
            )
        except PlaywrightError as e:
            raise CaptureError(f"Failed to create page: {e}") from e

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


def launch_surface(width: int, height: int) -> RenderSurface:
    """Default surface factory used by the render orchestrator."""
    return RenderSurface(width, height)


@dataclass(frozen=True)
class StaticScene:
    """A scene whose first frame is its only frame."""

    html: str


@dataclass(frozen=True)
class AnimatedScene:
    """A scene that reads the per-frame custom properties."""

    html: str


def classify_scene(html: str) -> Union[StaticScene, AnimatedScene]:
    """Classify rendered markup as static or animated."""
    if any(prop in html for prop in FRAME_PROPERTIES):
        return AnimatedScene(html)
    return StaticScene(html)


@dataclass
class SceneJob:
    """Everything needed to capture and encode one scene for one format."""

    index: int
    scene: Scene
    duration: float
    output_path: Path
    tracks: AudioTracks = field(default_factory=AudioTracks)
    # Content window for --content-progress, in seconds.
    content_start: float = 0.0
    content_end_padding: float = 0.0


# Called with the scene index once all frames are captured and once encoded.
StepCallback = Callable[[int], None]


class FrameCaptureSession:
    """Captures scenes on one surface and encodes them.

    Each :meth:`capture` call owns its own tab and its own encoder, so calls
    may run concurrently on the same surface.
    """

    def __init__(
        self,
        surface: Any,
        renderer: TemplateRenderer,
        theme: ThemeConfig,
        width: int,
        height: int,
        fps: int,
        preset: EncodingPreset,
    ) -> None:
        self.surface = surface
        self.renderer = renderer
        self.theme = theme
        self.width = width
        self.height = height
        self.fps = fps
        self.preset = preset

    def render_frame(self, scene: Scene, frame: int, frames: int) -> str:
        return self.renderer.render(scene, self.theme, self.width, self.height, frame, frames)

    async def capture(
        self,
        job: SceneJob,
        on_captured: Optional[StepCallback] = None,
        on_encoded: Optional[StepCallback] = None,
    ) -> Path:
        """Capture and encode ``job``'s scene, returning the scene video path.

        Raises:
            TemplateError: If the scene's template fails to render.
            CaptureError: If the surface fails.
            EncodingError: If the encoder fails.
        """
        frames = max(total_frames(job.duration, self.fps), 1)
        kind = classify_scene(self.render_frame(job.scene, 0, frames))

        page = await self.surface.new_tab()
        try:
            if isinstance(kind, StaticScene):
                logger.info(f"Scene {job.index + 1}: static, 1 frame captured ({job.duration:.1f}s)")
                png = await self._screenshot(page, kind.html)
                if on_captured:
                    on_captured(job.index)
                path = await encode_static(
                    png, job.output_path, self.fps, job.duration, self.preset, job.tracks
                )
            else:
                logger.info(f"Scene {job.index + 1}: {frames} frames ({job.duration:.1f}s)")
                path = await self._capture_animated(page, job, kind.html, frames, on_captured)
        finally:
            await self._close_tab(page)

        if on_encoded:
            on_encoded(job.index)
        return path

    async def capture_frame(self, scene: Scene, frame: int, frames: int, duration: float) -> bytes:
        """Render a single frame of ``scene`` to PNG bytes with the frame properties set."""
        html = self.render_frame(scene, frame, frames)
        values = [
            frame,
            frames,
            frame_progress(frame, frames),
            content_progress(frame, frames, self.fps, duration, 0.0, 0.0),
        ]
        page = await self.surface.new_tab()
        try:
            return await self._screenshot(page, html, values)
        finally:
            await self._close_tab(page)

    async def _capture_animated(
        self,
        page: Any,
        job: SceneJob,
        first_html: str,
        frames: int,
        on_captured: Optional[StepCallback],
    ) -> Path:
        encoder = SceneEncoder(
            job.output_path,
            self.fps,
            self.width,
            self.height,
            job.duration,
            self.preset,
            job.tracks,
        )
        await encoder.start()
        try:
            for frame in range(frames):
                html = first_html if frame == 0 else self.render_frame(job.scene, frame, frames)
                values = [
                    frame,
                    frames,
                    frame_progress(frame, frames),
                    content_progress(
                        frame, frames, self.fps, job.duration,
                        job.content_start, job.content_end_padding,
                    ),
                ]
                png = await self._screenshot(page, html, values)
                await encoder.write_frame(png)
        except BaseException:
            # Includes cancellation, so no partial scene is finalised.
            await encoder.abort()
            raise

        if on_captured:
            on_captured(job.index)
        return await encoder.finish()

    async def _screenshot(self, page: Any, html: str, values: Optional[list] = None) -> bytes:
        try:
            await page.set_content(html)
            if values is not None:
                await page.evaluate(SET_FRAME_PROPERTIES, values)
            return await page.screenshot(type="png", full_page=False)
        except PlaywrightError as e:
            raise CaptureError(f"Frame capture failed: {e}") from e

    async def _close_tab(self, page: Any) -> None:
        try:
            await page.close()
        except PlaywrightError as e:
            logger.warning(f"Failed to close tab: {e}")
