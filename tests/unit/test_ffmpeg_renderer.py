"""Tests for FFmpeg Renderer (command and filter construction only)."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from reelforge.core.exceptions import RenderCommandError
from reelforge.models.schemas import Scene, TextStyle
from reelforge.services.ffmpeg_renderer import FFmpegRenderer, parse_filter_names, resolve_ffmpeg_binary

FILTERS_OUTPUT = """Filters:
  T.. = Timeline support
  .S. = Slice threading
  ..C = Command support
  A = Audio input/output
  | = Source or sink filter
 ... abench            A->A       Benchmark part of a filtergraph.
 TSC crop              V->V       Crop the input video.
 T.C drawtext          V->V       Draw text on top of video frames using libfreetype library.
 ... color             |->V       Provide an uniformly colored input.
"""
NO_DRAWTEXT_OUTPUT = FILTERS_OUTPUT.replace(
    " T.C drawtext          V->V       Draw text on top of video frames using libfreetype library.\n", ""
)


@pytest.fixture
def renderer(settings, logger):
    """Create FFmpegRenderer instance for testing."""
    return FFmpegRenderer(settings, logger)


def _text_scene(content, start=0, end=3, **text):
    return Scene.model_validate(
        {"kind": "text-overlay", "start": start, "end": end, "text": {"content": content, **text}}
    )


def test_binary_comes_from_settings(renderer):
    assert renderer.ffmpeg == "ffmpeg"


def test_video_filters_scale_crop_then_scene_filters(renderer):
    """Test frame normalization comes first and scene filters get the scene window."""
    scene = Scene.model_validate({"start": 1, "end": 2.5, "filters": ["eq=contrast=1.2"]})
    filters = renderer.build_video_filters([scene], {})

    assert filters == [
        "scale=1080:1920:force_original_aspect_ratio=increase",
        "crop=1080:1920",
        "eq=contrast=1.2:enable=between(t\\,1\\,2.5)",
    ]


def test_drawtext_substitutes_variables_and_sets_defaults(renderer):
    """Test overlay text, default font size, window and default box."""
    drawtext = renderer.build_drawtext(_text_scene("Hi {{name}}"), {"name": "Ana"})

    assert drawtext.startswith("drawtext=text=Hi Ana:")
    assert "expansion=none" in drawtext
    assert "fontsize=48" in drawtext
    assert "enable=between(t\\,0\\,3)" in drawtext
    assert "box=1" in drawtext
    assert "boxcolor=black@0.5" in drawtext


def test_drawtext_escapes_special_characters(renderer):
    """Test colons and quotes in overlay text are escaped."""
    drawtext = renderer.build_drawtext(_text_scene("Time: it's 5"), {})
    assert "text=Time\\\\: it\\\\'s 5:" in drawtext


def test_drawtext_wraps_to_max_width(renderer):
    """Test text is wrapped when max width is below 100%."""
    scene = _text_scene("one two three four five six", style={"maxWidth": 50})
    drawtext = renderer.build_drawtext(scene, {})
    assert "text=one two three four\nfive six:" in drawtext


def test_drawtext_position_and_style(renderer):
    """Test anchor expressions, stroke and disabled background."""
    scene = _text_scene(
        "Hello",
        position={"x": 25, "y": 80},
        style={"fontSize": 60, "color": "rgba(255,0,0,1)", "stroke": "black", "strokeWidth": 2, "background": False},
    )
    drawtext = renderer.build_drawtext(scene, {})

    assert "fontsize=60" in drawtext
    assert "fontcolor=0xff0000@1" in drawtext
    assert "x=max(0\\,min(main_w-text_w\\,(main_w*0.2500)-(text_w/2)))" in drawtext
    assert "y=max(0\\,min(main_h-text_h\\,(main_h*0.8000)-(text_h/2)))" in drawtext
    assert "box=0" in drawtext
    assert "bordercolor=black" in drawtext
    assert "borderw=2" in drawtext


def test_drawtext_uses_base_style(renderer):
    """Test template-level style applies under the scene's own style."""
    base = TextStyle(font_size=72, background_color="blue")
    drawtext = renderer.build_drawtext(_text_scene("Hello"), {}, base_style=base)

    assert "fontsize=72" in drawtext
    assert "boxcolor=blue" in drawtext


def test_scene_without_text_has_no_drawtext(renderer):
    assert renderer.build_drawtext(Scene(output_start=0, output_end=1), {}) is None


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_cut_segment_uses_stream_copy(mock_run, renderer, tmp_path):
    """Test cutting seeks, limits duration and copies streams."""
    mock_run.return_value = MagicMock(returncode=0, stderr="")
    renderer.cut_segment(Path("in.mp4"), 1.5, 4.0, tmp_path / "out.mp4", timeout=10)

    cmd = mock_run.call_args[0][0]
    assert cmd[:2] == ["ffmpeg", "-y"]
    assert cmd[cmd.index("-ss") + 1] == "1.500"
    assert cmd[cmd.index("-t") + 1] == "2.500"
    assert cmd[cmd.index("-c") + 1] == "copy"
    assert mock_run.call_args[1]["timeout"] == 10


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_concat_uses_demuxer(mock_run, renderer, tmp_path):
    """Test concatenation uses the concat demuxer with stream copy."""
    mock_run.return_value = MagicMock(returncode=0, stderr="")
    renderer.concat(tmp_path / "concat.txt", tmp_path / "joined.mp4")

    cmd = mock_run.call_args[0][0]
    assert ["-f", "concat", "-safe", "0"] == cmd[2:6]
    assert cmd[-3:] == ["-c", "copy", str(tmp_path / "joined.mp4")]


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_render_builds_trimmed_command(mock_run, renderer, tmp_path):
    """Test a scene render seeks to the slice and bounds its duration."""
    mock_run.return_value = MagicMock(returncode=0, stderr="", stdout=FILTERS_OUTPUT)
    scene = _text_scene("Hello", start=0, end=2)
    renderer.render(scene, Path("in.mp4"), {}, 3.0, 5.0, tmp_path / "scene.mp4")

    cmd = mock_run.call_args[0][0]
    assert cmd[cmd.index("-ss") + 1] == "3.000"
    assert cmd[cmd.index("-t") + 1] == "2.000"
    assert cmd[cmd.index("-c:v") + 1] == "libx264"
    assert "drawtext=" in cmd[cmd.index("-vf") + 1]


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_render_from_start_omits_seek(mock_run, renderer, tmp_path):
    mock_run.return_value = MagicMock(returncode=0, stderr="", stdout=FILTERS_OUTPUT)
    renderer.render(_text_scene("Hello"), Path("in.mp4"), {}, 0.0, 3.0, tmp_path / "scene.mp4")
    assert "-ss" not in mock_run.call_args[0][0]


def test_render_rejects_empty_window(renderer, tmp_path):
    with pytest.raises(RenderCommandError):
        renderer.render(_text_scene("Hello"), Path("in.mp4"), {}, 3.0, 3.0, tmp_path / "scene.mp4")


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_nonzero_exit_raises(mock_run, renderer, tmp_path):
    """Test a failing ffmpeg run raises with the stderr tail."""
    mock_run.return_value = MagicMock(returncode=1, stderr="Invalid data found when processing input")

    with pytest.raises(RenderCommandError, match="Invalid data found"):
        renderer.concat(tmp_path / "concat.txt", tmp_path / "joined.mp4")


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_timeout_raises(mock_run, renderer, tmp_path):
    """Test an ffmpeg timeout is reported as timed out."""
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="ffmpeg", timeout=1.0)

    with pytest.raises(RenderCommandError) as exc_info:
        renderer.cut_segment(Path("in.mp4"), 0, 1, tmp_path / "out.mp4", timeout=1.0)
    assert exc_info.value.timed_out


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_missing_binary_raises(mock_run, renderer, tmp_path):
    mock_run.side_effect = FileNotFoundError("ffmpeg")

    with pytest.raises(RenderCommandError, match="could not start ffmpeg"):
        renderer.concat(tmp_path / "concat.txt", tmp_path / "joined.mp4")


def test_parse_filter_names():
    assert parse_filter_names(FILTERS_OUTPUT) == {"abench", "crop", "drawtext", "color"}


@patch("reelforge.services.ffmpeg_renderer.imageio_ffmpeg.get_ffmpeg_exe", return_value="/bundled/ffmpeg")
@patch("reelforge.services.ffmpeg_renderer.shutil.which", return_value="/usr/bin/ffmpeg")
def test_binary_prefers_ffmpeg_on_path(mock_which, mock_bundled, settings):
    """Test an unset binary resolves to ffmpeg on PATH before the bundled one."""
    settings.ffmpeg_binary = None
    assert resolve_ffmpeg_binary(settings) == "/usr/bin/ffmpeg"

    mock_which.return_value = None
    assert resolve_ffmpeg_binary(settings) == "/bundled/ffmpeg"


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_text_render_without_drawtext_raises(mock_run, renderer, tmp_path):
    """Test a binary lacking drawtext fails with a clear error before rendering."""
    mock_run.return_value = MagicMock(returncode=0, stderr="", stdout=NO_DRAWTEXT_OUTPUT)

    with pytest.raises(RenderCommandError, match="without the drawtext filter"):
        renderer.render(_text_scene("Hello"), Path("in.mp4"), {}, 0.0, 3.0, tmp_path / "scene.mp4")

    assert mock_run.call_count == 1
    assert mock_run.call_args[0][0] == ["ffmpeg", "-hide_banner", "-filters"]


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_filter_query_runs_once(mock_run, renderer, tmp_path):
    mock_run.return_value = MagicMock(returncode=0, stderr="", stdout=FILTERS_OUTPUT)

    renderer.render(_text_scene("One"), Path("in.mp4"), {}, 0.0, 3.0, tmp_path / "a.mp4")
    renderer.render(_text_scene("Two"), Path("in.mp4"), {}, 0.0, 3.0, tmp_path / "b.mp4")

    queries = [c for c in mock_run.call_args_list if c[0][0][1:] == ["-hide_banner", "-filters"]]
    assert len(queries) == 1
    assert mock_run.call_count == 3


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_text_free_render_skips_filter_query(mock_run, renderer, tmp_path):
    mock_run.return_value = MagicMock(returncode=0, stderr="")
    renderer.render(Scene(output_start=0, output_end=1), Path("in.mp4"), {}, 0.0, 1.0, tmp_path / "scene.mp4")

    assert mock_run.call_count == 1
    assert "drawtext" not in mock_run.call_args[0][0][mock_run.call_args[0][0].index("-vf") + 1]


@patch("reelforge.services.ffmpeg_renderer.subprocess.run")
def test_short_scene_renders_its_exact_length(mock_run, renderer, tmp_path):
    """Test a scene shorter than 0.1s is not padded past its window."""
    mock_run.return_value = MagicMock(returncode=0, stderr="")
    renderer.render(Scene(output_start=0, output_end=0.05), Path("in.mp4"), {}, 2.0, 2.05, tmp_path / "scene.mp4")

    cmd = mock_run.call_args[0][0]
    assert cmd[cmd.index("-t") + 1] == "0.050"
