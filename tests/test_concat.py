"""
Unit tests for scene concatenation.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vidgen.errors import EncodingError, SubtitleError
from vidgen.render.concat import (
    build_transition_graph,
    burn_in_subtitles,
    concat_scenes_with_transitions,
    subtitles_filter,
)
from vidgen.render.presets import EncodingPreset
from vidgen.render.transitions import SceneTransition, TransitionType

PRESET = EncodingPreset(crf=23, preset="medium")
FADE = SceneTransition(TransitionType.FADE, 0.5)


def make_scene_files(tmp_path, count):
    files = []
    for i in range(count):
        path = tmp_path / f"scene-{i:03d}.mp4"
        path.write_bytes(f"scene {i} bytes".encode())
        files.append(path)
    return files


class TestRouting:
    """Tests for concat_scenes_with_transitions routing."""

    @pytest.mark.asyncio
    async def test_single_scene_is_byte_copy(self, tmp_path):
        """A single scene is copied unchanged, without ffmpeg."""
        files = make_scene_files(tmp_path, 1)
        output = tmp_path / "out" / "video.mp4"

        with patch("vidgen.render.concat.run_ffmpeg", new_callable=AsyncMock) as mock_run_ffmpeg:
            result = await concat_scenes_with_transitions(files, [3.0], [], output, PRESET)

        assert result == output
        assert output.read_bytes() == files[0].read_bytes()
        mock_run_ffmpeg.assert_not_called()

    @pytest.mark.asyncio
    @patch("vidgen.render.concat.build_transition_graph")
    @patch("vidgen.render.concat.run_ffmpeg", new_callable=AsyncMock)
    async def test_no_transitions_uses_stream_copy(self, mock_run_ffmpeg, mock_build_graph, tmp_path):
        """Without transitions the filter graph is never built."""
        files = make_scene_files(tmp_path, 3)
        output = tmp_path / "video.mp4"
        list_contents = []

        async def capture_list(cmd, label=None):
            list_file = cmd[cmd.index("-i") + 1]
            list_contents.append(open(list_file).read())

        mock_run_ffmpeg.side_effect = capture_list

        await concat_scenes_with_transitions(files, [3.0, 4.0, 5.0], [None, None], output, PRESET)

        mock_build_graph.assert_not_called()
        cmd = mock_run_ffmpeg.call_args[0][0]
        assert cmd[cmd.index("-f") + 1] == "concat"
        assert cmd[cmd.index("-c") + 1] == "copy"
        assert list_contents[0].startswith("ffconcat version 1.0")
        assert list_contents[0].count("file '") == 3
        # list file is removed afterwards
        assert not list(tmp_path.glob(".*.concat.txt"))

    @pytest.mark.asyncio
    @patch("vidgen.render.concat.has_audio_stream", MagicMock(return_value=False))
    @patch("vidgen.render.concat.run_ffmpeg", new_callable=AsyncMock)
    async def test_transition_reencodes(self, mock_run_ffmpeg, tmp_path):
        files = make_scene_files(tmp_path, 2)
        output = tmp_path / "video.mp4"

        await concat_scenes_with_transitions(files, [3.0, 4.0], [FADE], output, PRESET)

        cmd = mock_run_ffmpeg.call_args[0][0]
        graph = cmd[cmd.index("-filter_complex") + 1]
        assert "xfade=transition=fade:duration=0.500:offset=2.500[vout]" in graph
        assert "[aout]" not in cmd
        assert cmd[cmd.index("-c:v") + 1] == "libx264"

    @pytest.mark.asyncio
    async def test_no_scenes(self, tmp_path):
        with pytest.raises(EncodingError):
            await concat_scenes_with_transitions([], [], [], tmp_path / "video.mp4", PRESET)


class TestBuildTransitionGraph:
    """Tests for the cross-fade filter graph."""

    def test_offsets_accumulate(self):
        graph = build_transition_graph(
            [3.0, 4.0, 5.0],
            [FADE, SceneTransition(TransitionType.ZOOM, 1.0)],
            [False, False, False],
        )
        parts = graph.filter_complex.split(";")
        assert parts[0] == "[0:v][1:v]xfade=transition=fade:duration=0.500:offset=2.500[v1]"
        assert parts[1] == "[v1][2:v]xfade=transition=smoothup:duration=1.000:offset=5.500[vout]"
        assert graph.has_audio is False

    def test_missing_transition_is_instant_fade(self):
        graph = build_transition_graph([3.0, 4.0, 5.0], [FADE, None], [False, False, False])
        assert "transition=fade:duration=0.001:offset=6.499[vout]" in graph.filter_complex

    def test_offset_clamped_at_zero(self):
        graph = build_transition_graph([0.2, 4.0], [FADE], [False, False])
        assert "offset=0.000" in graph.filter_complex

    def test_silent_scenes_padded_when_any_has_audio(self):
        graph = build_transition_graph([3.0, 4.0], [FADE], [True, False])
        assert graph.has_audio is True
        assert "[0:a]aformat=sample_rates=22050:channel_layouts=stereo,asetpts=PTS-STARTPTS[sa0]" in graph.filter_complex
        assert "anullsrc=cl=stereo:r=22050" in graph.filter_complex
        assert "atrim=0:4.000" in graph.filter_complex
        assert "[sa0][sa1]acrossfade=d=0.500:c1=tri:c2=tri[aout]" in graph.filter_complex

    def test_transition_count_must_match(self):
        with pytest.raises(ValueError):
            build_transition_graph([3.0, 4.0], [], [False, False])


class TestBurnInSubtitles:
    """Tests for subtitle burn-in."""

    def test_filter_escapes_path(self):
        value = subtitles_filter("C:\\videos\\demo.srt")
        assert "filename='C\\:/videos/demo.srt'" in value
        assert "Alignment=2" in value

    @pytest.mark.asyncio
    @patch("vidgen.render.concat.run_ffmpeg", new_callable=AsyncMock)
    async def test_failure_restores_original(self, mock_run_ffmpeg, tmp_path):
        video = tmp_path / "demo.mp4"
        video.write_bytes(b"original video")
        srt = tmp_path / "demo.srt"
        srt.write_text("1\n00:00:00,000 --> 00:00:01,000\nHi\n")
        mock_run_ffmpeg.side_effect = EncodingError("subtitles failed", returncode=1)

        with pytest.raises(SubtitleError):
            await burn_in_subtitles(video, srt)

        assert video.read_bytes() == b"original video"
        assert not (tmp_path / "demo.tmp.mp4").exists()

    @pytest.mark.asyncio
    @patch("vidgen.render.concat.run_ffmpeg", new_callable=AsyncMock)
    async def test_success_removes_temp(self, mock_run_ffmpeg, tmp_path):
        video = tmp_path / "demo.mp4"
        video.write_bytes(b"original video")
        srt = tmp_path / "demo.srt"
        srt.write_text("")

        async def write_output(cmd, label=None):
            video.write_bytes(b"captioned video")

        mock_run_ffmpeg.side_effect = write_output

        await burn_in_subtitles(video, srt)
        assert video.read_bytes() == b"captioned video"
        assert not (tmp_path / "demo.tmp.mp4").exists()
