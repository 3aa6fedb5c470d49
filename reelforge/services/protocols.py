"""Interfaces of the external collaborators the render pipeline drives."""

from pathlib import Path
from typing import Optional, Protocol, Sequence

from reelforge.models.schemas import Scene, TextStyle


class SegmentRenderer(Protocol):
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
        """Burn one scene onto [trim_start, trim_end) of the source; return the clip path."""

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
        """Burn every scene, at its own output window, onto the first `duration` seconds of the source."""

    def cut_segment(
        self, source_path: Path, start: float, end: float, output_path: Path, timeout: Optional[float] = None
    ) -> Path:
        """Stream-copy [start, end) of the source into output_path."""

    def concat(self, manifest_path: Path, output_path: Path, timeout: Optional[float] = None) -> Path:
        """Stream-copy the clips listed in a concat manifest into output_path."""


class FootageSource(Protocol):
    def fetch(self, url: str, destination: Path, timeout: Optional[float] = None) -> Path:
        """Download the footage at url to destination."""


class DurationProbe(Protocol):
    def probe(self, path: Path) -> float:
        """Return the footage duration in seconds."""
