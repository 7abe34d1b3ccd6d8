"""
Tests for the render orchestrator.
"""
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from vidgen.errors import CaptureError, ConfigError, EncodingError, NarrationError
from vidgen.render.orchestrator import build_subtitle_entries, output_name, render_preview, render_project
from vidgen.services.narration import NarrationEngine, SynthesisResult

from conftest import AnimatedRenderer, StaticRenderer


async def fake_encode_static(png, output_path, fps, duration, preset, tracks=None):
    output_path.write_bytes(b"scene")
    return output_path


async def fake_run_ffmpeg(cmd, label=None):
    Path(cmd[-1]).write_bytes(b"joined")


class FixedNarration(NarrationEngine):
    """Narration engine that returns a fixed duration per call."""

    name = "fixed"

    def __init__(self, seconds=2.0, fail_on=None):
        self.seconds = seconds
        self.fail_on = fail_on
        self.calls = []

    def synthesize(self, text, voice, speed, output_path):
        self.calls.append(text)
        if text == self.fail_on:
            raise NarrationError("engine crashed")
        output_path.write_bytes(b"wav")
        return SynthesisResult(audio_path=output_path, duration_seconds=self.seconds)


class TestOutputName:
    """Tests for output file naming."""

    def test_single_default_format(self):
        assert output_name("demo", "default", 1) == "demo.mp4"

    def test_named_formats(self):
        assert output_name("demo", "vertical", 2) == "demo-vertical.mp4"
        assert output_name("demo", "vertical", 1) == "demo-vertical.mp4"


@patch("vidgen.render.concat.run_ffmpeg", new=AsyncMock(side_effect=fake_run_ffmpeg))
@patch("vidgen.render.browser.encode_static", new=AsyncMock(side_effect=fake_encode_static))
class TestRenderProject:
    """End-to-end tests with the browser and ffmpeg replaced."""

    @pytest.mark.asyncio
    async def test_two_fixed_scenes(self, make_manifest, fake_surface_factory, tmp_path):
        """Two fixed scenes render to one file with their durations."""
        manifest = make_manifest(durations=(3.0, 4.0))

        outputs = await render_project(
            manifest,
            tmp_path,
            templates=StaticRenderer(),
            launch_surface=fake_surface_factory,
        )

        assert len(outputs) == 1
        result = outputs[0]
        assert result.format_name == "default"
        assert result.output_path == tmp_path / "output" / "demo-video.mp4"
        assert result.output_path.exists()
        assert result.effective_durations == [3.0, 4.0]
        assert result.subtitle_path is None
        assert not list((tmp_path / "output").glob("*.srt"))

        surface = fake_surface_factory.surfaces[0]
        assert surface.entered and surface.exited
        assert all(page.closed for page in surface.pages)

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, make_manifest, fake_surface_factory, tmp_path):
        """2 scenes x 2 formats: reports never decrease and finish exactly once."""
        manifest = make_manifest(
            formats={
                "landscape": {"width": 1920, "height": 1080},
                "vertical": {"width": 1080, "height": 1920},
            }
        )
        reports = []

        outputs = await render_project(
            manifest,
            tmp_path,
            templates=StaticRenderer(),
            launch_surface=fake_surface_factory,
            progress=lambda done, total, message: reports.append((done, total)),
        )

        assert [o.format_name for o in outputs] == ["landscape", "vertical"]
        assert {total for _, total in reports} == {12}
        dones = [done for done, _ in reports]
        assert dones == sorted(dones)
        assert dones.count(12) == 1
        assert dones[-1] == 12
        assert [(s.width, s.height) for s in fake_surface_factory.surfaces] == [(1920, 1080), (1080, 1920)]

    @pytest.mark.asyncio
    async def test_format_filter_and_output_dir(self, make_manifest, fake_surface_factory, tmp_path):
        manifest = make_manifest(
            formats={
                "landscape": {"width": 1920, "height": 1080},
                "vertical": {"width": 1080, "height": 1920, "platform": "tiktok"},
            }
        )
        outputs = await render_project(
            manifest,
            tmp_path,
            output_dir=tmp_path / "renders",
            formats=["vertical"],
            templates=StaticRenderer(),
            launch_surface=fake_surface_factory,
        )
        assert [o.output_path for o in outputs] == [tmp_path / "renders" / "demo-video-vertical.mp4"]

    @pytest.mark.asyncio
    async def test_narration_drives_auto_duration(self, make_manifest, fake_surface_factory, tmp_path):
        manifest = make_manifest(durations=("auto", "auto", 5.0))
        manifest = manifest.model_copy(
            update={
                "scenes": [
                    manifest.scenes[0].model_copy(update={"script": "Hello there"}),
                    manifest.scenes[1].model_copy(update={"script": "This one fails"}),
                    manifest.scenes[2].model_copy(update={"script": "Fixed wins"}),
                ]
            }
        )
        engine = FixedNarration(seconds=2.0, fail_on="This one fails")

        outputs = await render_project(
            manifest,
            tmp_path,
            templates=StaticRenderer(),
            narration=engine,
            launch_surface=fake_surface_factory,
        )

        # 2.0 + 0.5 + 0.5, fallback 3.0, fixed 5.0
        assert outputs[0].effective_durations == [3.0, 3.0, 5.0]
        assert engine.calls == ["Hello there", "This one fails", "Fixed wins"]

    @pytest.mark.asyncio
    async def test_subtitles_written(self, make_manifest, fake_surface_factory, tmp_path):
        manifest = make_manifest(durations=("auto",), output={"subtitles": {"enabled": True}})
        manifest = manifest.model_copy(
            update={"scenes": [manifest.scenes[0].model_copy(update={"script": "one two three"})]}
        )

        outputs = await render_project(
            manifest,
            tmp_path,
            templates=StaticRenderer(),
            narration=FixedNarration(seconds=1.5),
            launch_surface=fake_surface_factory,
        )

        srt = outputs[0].subtitle_path
        assert srt == tmp_path / "output" / "demo-video.srt"
        assert srt.read_text().startswith("1\n00:00:00,500 --> 00:00:02,000\none two three\n")

    @pytest.mark.asyncio
    async def test_failure_annotated_with_scene_and_format(self, make_manifest, fake_surface_factory, tmp_path):
        """The first failing scene in scene order is raised after all scenes settle."""
        manifest = make_manifest(durations=(1.0, 2.0, 3.0))

        async def fail_some(png, output_path, fps, duration, preset, tracks=None):
            if duration in (2.0, 3.0):
                raise EncodingError(f"scene at {duration}s failed")
            return await fake_encode_static(png, output_path, fps, duration, preset, tracks)

        encode = AsyncMock(side_effect=fail_some)
        with patch("vidgen.render.browser.encode_static", encode):
            with pytest.raises(EncodingError) as exc_info:
                await render_project(
                    manifest,
                    tmp_path,
                    templates=StaticRenderer(),
                    launch_surface=fake_surface_factory,
                )

        assert encode.await_count == 3
        assert exc_info.value.scene_index == 1
        assert exc_info.value.format_name == "default"
        assert "scene 2" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_os_error_wrapped_with_context(self, make_manifest, fake_surface_factory, tmp_path):
        manifest = make_manifest(durations=(1.0, 2.0))
        encode = AsyncMock(side_effect=OSError(28, "No space left on device"))
        with patch("vidgen.render.browser.encode_static", encode):
            with pytest.raises(EncodingError) as exc_info:
                await render_project(
                    manifest,
                    tmp_path,
                    templates=StaticRenderer(),
                    launch_surface=fake_surface_factory,
                )

        error = exc_info.value
        assert error.kind == "encoding"
        assert error.scene_index == 0
        assert error.format_name == "default"
        assert "No space left on device" in str(error)
        assert isinstance(error.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_unexpected_capture_failure_is_capture_error(self, make_manifest, fake_surface_factory, tmp_path):
        manifest = make_manifest(durations=(1.0,))
        encode = AsyncMock(side_effect=RuntimeError("surface went away"))
        with patch("vidgen.render.browser.encode_static", encode):
            with pytest.raises(CaptureError) as exc_info:
                await render_project(
                    manifest,
                    tmp_path,
                    templates=StaticRenderer(),
                    launch_surface=fake_surface_factory,
                )
        assert exc_info.value.scene_index == 0

    @pytest.mark.asyncio
    async def test_concat_os_error_wrapped(self, make_manifest, fake_surface_factory, tmp_path):
        manifest = make_manifest(durations=(1.0, 2.0))
        concat = AsyncMock(side_effect=PermissionError("output is read-only"))
        with patch("vidgen.render.orchestrator.concat_scenes_with_transitions", concat):
            with pytest.raises(EncodingError) as exc_info:
                await render_project(
                    manifest,
                    tmp_path,
                    templates=StaticRenderer(),
                    launch_surface=fake_surface_factory,
                )
        assert exc_info.value.format_name == "default"
        assert "read-only" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unexpected_narration_failure_is_silent(self, make_manifest, fake_surface_factory, tmp_path):
        """Any engine failure leaves the scene silent on its fallback duration."""

        class CrashingNarration(FixedNarration):
            def synthesize(self, text, voice, speed, output_path):
                raise RuntimeError("audio backend crashed")

        manifest = make_manifest(durations=("auto",))
        manifest = manifest.model_copy(
            update={"scenes": [manifest.scenes[0].model_copy(update={"script": "Hello"})]}
        )
        outputs = await render_project(
            manifest,
            tmp_path,
            templates=StaticRenderer(),
            narration=CrashingNarration(),
            launch_surface=fake_surface_factory,
        )
        assert outputs[0].effective_durations == [3.0]

    @pytest.mark.asyncio
    async def test_no_scenes(self, make_manifest, tmp_path):
        with pytest.raises(ConfigError):
            await render_project(make_manifest(durations=()), tmp_path, templates=StaticRenderer())

    @pytest.mark.asyncio
    async def test_unknown_format_filter(self, make_manifest, tmp_path):
        manifest = make_manifest(formats={"landscape": {"width": 1920, "height": 1080}})
        with pytest.raises(ConfigError):
            await render_project(manifest, tmp_path, formats=["square"], templates=StaticRenderer())


class TestBuildSubtitleEntries:
    """Tests for subtitle placement across scenes."""

    def test_offsets_follow_scene_starts(self):
        entries = build_subtitle_entries(
            ["", "a b c d"],
            [None, 2.0],
            [3.0, 3.0],
            narration_delay=0.5,
            max_words=2,
        )
        assert [e.index for e in entries] == [1, 2]
        assert entries[0].start == pytest.approx(3.5)
        assert entries[1].end == pytest.approx(5.5)
        assert entries[0].text == "a b"


class TestRenderPreview:
    """Tests for single-frame previews."""

    @pytest.mark.asyncio
    async def test_frame_properties_set(self, make_manifest, fake_surface_factory, tmp_path):
        manifest = make_manifest(
            durations=(1.0, 2.0),
            formats={"vertical": {"width": 1080, "height": 1920}},
        )

        png = await render_preview(
            manifest,
            tmp_path,
            1,
            15,
            templates=AnimatedRenderer(),
            launch_surface=fake_surface_factory,
        )

        assert png.startswith(b"\x89PNG")
        surface = fake_surface_factory.surfaces[0]
        assert (surface.width, surface.height) == (1080, 1920)
        assert surface.entered and surface.exited
        page = surface.pages[0]
        assert page.contents == ["<div style=\"opacity: var(--progress)\">15/60</div>"]
        frame, frames, progress, content = page.evaluations[0]
        assert (frame, frames) == (15, 60)
        assert progress == pytest.approx(0.25)
        assert content == pytest.approx(0.25)
        assert page.closed

    @pytest.mark.asyncio
    async def test_auto_scene_uses_fallback(self, make_manifest, fake_surface_factory, tmp_path):
        manifest = make_manifest(durations=("auto",))

        await render_preview(
            manifest, tmp_path, 0, 89, templates=AnimatedRenderer(), launch_surface=fake_surface_factory
        )
        assert fake_surface_factory.surfaces[0].pages[0].evaluations[0][:2] == [89, 90]

        with pytest.raises(ConfigError):
            await render_preview(
                manifest, tmp_path, 0, 90, templates=AnimatedRenderer(), launch_surface=fake_surface_factory
            )

    @pytest.mark.asyncio
    async def test_scene_out_of_range(self, make_manifest, fake_surface_factory, tmp_path):
        with pytest.raises(ConfigError, match="Scene 3 out of range"):
            await render_preview(
                make_manifest(), tmp_path, 2, 0, templates=StaticRenderer(), launch_surface=fake_surface_factory
            )
        assert fake_surface_factory.surfaces == []

    @pytest.mark.asyncio
    async def test_frame_out_of_range(self, make_manifest, fake_surface_factory, tmp_path):
        manifest = make_manifest(durations=(1.0,))
        with pytest.raises(ConfigError, match="Frame 30 out of range"):
            await render_preview(
                manifest, tmp_path, 0, 30, templates=StaticRenderer(), launch_surface=fake_surface_factory
            )
        assert fake_surface_factory.surfaces == []

    @pytest.mark.asyncio
    async def test_unknown_format(self, make_manifest, fake_surface_factory, tmp_path):
        with pytest.raises(ConfigError):
            await render_preview(
                make_manifest(),
                tmp_path,
                0,
                0,
                format_name="square",
                templates=StaticRenderer(),
                launch_surface=fake_surface_factory,
            )
