"""Tests for Assembler service."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from reelforge.core.exceptions import AssemblyFailed
from reelforge.services.assembler import Assembler, build_concat_manifest
from reelforge.services.render_workspace import RenderWorkspace


@pytest.fixture
def workspace(work_root, logger):
    workspace = RenderWorkspace(logger, temp_root=work_root)
    workspace.open()
    yield workspace
    workspace.teardown()


def _clips(workspace, *payloads):
    paths = []
    for i, payload in enumerate(payloads):
        path = workspace.new_path(f"scene_{i:03d}", ".mp4")
        path.write_bytes(payload)
        paths.append(path)
    return paths


def test_manifest_escapes_single_quotes():
    """Test an apostrophe in a path is written as '\\''."""
    manifest = build_concat_manifest([Path("/tmp/o'brien_clip.mp4")])
    assert manifest == "file '/tmp/o'\\''brien_clip.mp4'\n"


def test_manifest_lists_clips_in_order():
    """Test one line per clip, in the given order."""
    manifest = build_concat_manifest([Path("/tmp/a.mp4"), Path("/tmp/b.mp4")])
    assert manifest.splitlines() == ["file '/tmp/a.mp4'", "file '/tmp/b.mp4'"]


def test_zero_clips_raises(settings, logger, fake_renderer, workspace):
    """Test assembling nothing raises AssemblyFailed."""
    with pytest.raises(AssemblyFailed):
        Assembler(settings, logger, fake_renderer).assemble([], workspace)


def test_single_clip_skips_concatenation(settings, logger, fake_renderer, workspace):
    """Test a single clip is returned verbatim without a manifest."""
    clips = _clips(workspace, b"only-clip")

    data = Assembler(settings, logger, fake_renderer).assemble(clips, workspace)

    assert data == b"only-clip"
    assert fake_renderer.concat_calls == []
    assert workspace.tracked_paths == clips


def test_multiple_clips_are_concatenated_in_order(settings, logger, fake_renderer, workspace):
    """Test clips are joined in order and manifest/output are tracked."""
    clips = _clips(workspace, b"one;", b"two;", b"three;")

    data = Assembler(settings, logger, fake_renderer).assemble(clips, workspace)

    assert data == b"one;two;three;"
    assert fake_renderer.concat_calls == [clips]
    tracked_names = [p.name for p in workspace.tracked_paths]
    assert any(name.startswith("concat_") and name.endswith(".txt") for name in tracked_names)
    assert any(name.startswith("joined_") and name.endswith(".mp4") for name in tracked_names)


def test_assembly_is_repeatable(settings, logger, fake_renderer, workspace):
    """Test identical inputs give identical output."""
    clips = _clips(workspace, b"a;", b"b;")
    assembler = Assembler(settings, logger, fake_renderer)

    assert assembler.assemble(clips, workspace) == assembler.assemble(clips, workspace)


def test_concat_failure_raises_assembly_failed(settings, logger, make_renderer, workspace):
    """Test an ffmpeg concat failure surfaces as AssemblyFailed."""
    clips = _clips(workspace, b"a;", b"b;")
    renderer = make_renderer(fail_concat=True)

    with pytest.raises(AssemblyFailed) as exc_info:
        Assembler(settings, logger, renderer).assemble(clips, workspace)
    assert exc_info.value.stage == "assemble"
    assert "codec mismatch" in str(exc_info.value)


def test_unexpected_concat_error_raises_assembly_failed(settings, logger, workspace):
    """Test any exception from the concat operation surfaces as AssemblyFailed."""
    clips = _clips(workspace, b"a;", b"b;")
    renderer = MagicMock()
    renderer.concat.side_effect = ValueError("bad manifest")

    with pytest.raises(AssemblyFailed, match="bad manifest") as exc_info:
        Assembler(settings, logger, renderer).assemble(clips, workspace)
    assert isinstance(exc_info.value.cause, ValueError)
