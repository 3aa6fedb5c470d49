"""Shared pytest fixtures and configuration."""

import threading
import time
from pathlib import Path
from typing import Optional, Sequence

import pytest

from reelforge.core.config import Settings
from reelforge.core.exceptions import DurationProbeFailed, RenderCommandError, SourceFetchFailed
from reelforge.core.logging_config import get_logger
from reelforge.models.schemas import Scene, TextStyle


def read_manifest(manifest_path: Path) -> list[Path]:
    """Parse a concat manifest written by the assembler."""
    paths = []
    for line in manifest_path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        assert line.startswith("file '") and line.endswith("'"), line
        quoted = line[len("file "):]
        paths.append(Path(quoted[1:-1].replace("'\\''", "'")))
    return paths


class FakeRenderer:
    """In-process stand-in for ffmpeg: writes small marker files instead of video."""

    def __init__(
        self,
        fail_on_trim_start: Optional[float] = None,
        fail_concat: bool = False,
        fail_cut: bool = False,
        delays: Optional[dict[float, float]] = None,
    ):
        self.fail_on_trim_start = fail_on_trim_start
        self.fail_concat = fail_concat
        self.fail_cut = fail_cut
        self.delays = delays or {}
        self.render_calls: list[dict] = []
        self.template_calls: list[dict] = []
        self.cut_calls: list[tuple[float, float]] = []
        self.concat_calls: list[list[Path]] = []
        self._lock = threading.Lock()

    def render(
        self,
        scene: Scene,
        source_path: Path,
        content: dict[str, str],
        trim_start: float,
        trim_end: float,
        output_path: Path,
        output_format: str = "mp4",
        base_style: Optional[TextStyle] = None,
        timeout: Optional[float] = None,
    ) -> Path:
        with self._lock:
            self.render_calls.append(
                {"scene": scene, "trim_start": trim_start, "trim_end": trim_end, "output_path": output_path}
            )
        delay = self.delays.get(trim_start)
        if delay:
            time.sleep(delay)
        if self.fail_on_trim_start is not None and abs(trim_start - self.fail_on_trim_start) < 1e-9:
            raise RenderCommandError("render", "ffmpeg exited with code 1: boom")
        output_path.write_bytes(f"clip:{trim_start:.2f}-{trim_end:.2f};".encode())
        return output_path

    def render_template(
        self,
        scenes: Sequence[Scene],
        source_path: Path,
        content: dict[str, str],
        duration: float,
        output_path: Path,
        output_format: str = "mp4",
        base_style: Optional[TextStyle] = None,
        timeout: Optional[float] = None,
    ) -> Path:
        self.template_calls.append({"scenes": list(scenes), "duration": duration, "source_path": source_path})
        output_path.write_bytes(b"template:" + Path(source_path).read_bytes())
        return output_path

    def cut_segment(
        self, source_path: Path, start: float, end: float, output_path: Path, timeout: Optional[float] = None
    ) -> Path:
        self.cut_calls.append((start, end))
        if self.fail_cut:
            raise RenderCommandError("cut", "ffmpeg exited with code 1: bad input")
        output_path.write_bytes(f"cut:{start:.2f}-{end:.2f};".encode())
        return output_path

    def concat(self, manifest_path: Path, output_path: Path, timeout: Optional[float] = None) -> Path:
        paths = read_manifest(manifest_path)
        self.concat_calls.append(paths)
        if self.fail_concat:
            raise RenderCommandError("concat", "ffmpeg exited with code 1: codec mismatch")
        output_path.write_bytes(b"".join(path.read_bytes() for path in paths))
        return output_path


class FakeFootageSource:
    """Writes placeholder footage, or fails like an unreachable URL."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.fetched: list[tuple[str, Path]] = []

    def fetch(self, url: str, destination: Path, timeout: Optional[float] = None) -> Path:
        self.fetched.append((url, destination))
        if self.error is not None:
            raise self.error
        destination.write_bytes(b"source-footage")
        return destination


class FakeDurationProbe:
    """Reports a fixed duration, or fails like an unreadable file."""

    def __init__(self, duration: float = 10.0, error: Optional[Exception] = None, delay: float = 0.0):
        self.duration = duration
        self.error = error
        self.delay = delay

    def probe(self, path: Path) -> float:
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.duration


@pytest.fixture
def work_root(tmp_path):
    """Parent directory for job workspaces."""
    return tmp_path / "work"


@pytest.fixture
def settings(work_root):
    """Create test settings instance."""
    return Settings(
        temp_root=str(work_root),
        ffmpeg_binary="ffmpeg",
        max_parallel_scene_renders=2,
        render_timeout_seconds=30.0,
    )


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


@pytest.fixture
def fake_renderer():
    return FakeRenderer()


@pytest.fixture
def make_renderer():
    """Factory for renderers configured to fail at a given step."""
    return FakeRenderer


@pytest.fixture
def footage_source():
    return FakeFootageSource()


@pytest.fixture
def failing_footage_source():
    return FakeFootageSource(error=SourceFetchFailed("Failed to download source video (404)", status=404))


@pytest.fixture
def duration_probe():
    return FakeDurationProbe(duration=10.0)


@pytest.fixture
def failing_duration_probe():
    return FakeDurationProbe(error=DurationProbeFailed("Could not read duration of source.mp4: moov atom not found"))


@pytest.fixture
def make_probe():
    return FakeDurationProbe


@pytest.fixture
def make_footage_source():
    return FakeFootageSource
