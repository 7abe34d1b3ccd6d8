"""
Pytest fixtures for vidgen tests.
"""
import pytest
from typing import List

from vidgen.models import Manifest, Scene, ThemeConfig, VideoConfig
from vidgen.services.templates import TemplateRenderer


class FakePage:
    """Stands in for a browser tab."""

    def __init__(self):
        self.contents: List[str] = []
        self.evaluations: List[list] = []
        self.closed = False

    async def set_content(self, html):
        self.contents.append(html)

    async def evaluate(self, script, values=None):
        self.evaluations.append(values)

    async def screenshot(self, **kwargs):
        return b"\x89PNG-frame-%d" % len(self.contents)

    async def close(self):
        self.closed = True


class FakeSurface:
    """Stands in for a launched browser; records the tabs it opened."""

    def __init__(self, width: int = 1920, height: int = 1080):
        self.width = width
        self.height = height
        self.pages: List[FakePage] = []
        self.entered = False
        self.exited = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited = True

    async def new_tab(self):
        page = FakePage()
        self.pages.append(page)
        return page


class StaticRenderer(TemplateRenderer):
    """Renders every scene as markup without frame properties."""

    def __init__(self):
        self.calls = []

    def render(self, scene, theme, width, height, frame, total_frames):
        self.calls.append((scene.template, frame))
        return f"<html><body>{scene.template} {width}x{height}</body></html>"


class AnimatedRenderer(TemplateRenderer):
    """Renders markup that reads the frame progress."""

    def render(self, scene, theme, width, height, frame, total_frames):
        return f"<div style=\"opacity: var(--progress)\">{frame}/{total_frames}</div>"


@pytest.fixture
def make_scene():
    """Create a scene from keyword fields."""
    def _create_scene(template: str = "card", **fields):
        return Scene(template=template, **fields)
    return _create_scene


@pytest.fixture
def video_config():
    """Video settings with a project-wide fade."""
    return VideoConfig(default_transition="fade", default_transition_duration=0.5)


@pytest.fixture
def theme():
    return ThemeConfig()


@pytest.fixture
def make_manifest():
    """Create a manifest with fixed-duration scenes."""
    def _create_manifest(durations=(3.0, 4.0), formats=None, **sections):
        video = dict(sections.pop("video", {}))
        if formats is not None:
            video["formats"] = formats
        return Manifest(
            project={"name": "Demo Video"},
            video=video,
            scenes=[{"template": "card", "duration": d} for d in durations],
            **sections,
        )
    return _create_manifest


@pytest.fixture
def fake_surface_factory():
    """Surface factory recording every surface it creates."""
    surfaces: List[FakeSurface] = []

    def _launch(width, height):
        surface = FakeSurface(width, height)
        surfaces.append(surface)
        return surface

    _launch.surfaces = surfaces
    return _launch
