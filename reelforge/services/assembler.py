"""Assembler - joins per-scene clips into one video with stream copy."""

from pathlib import Path
from typing import Any, Optional, Sequence

from reelforge.core.config import Settings
from reelforge.core.exceptions import AssemblyFailed, RenderPipelineError
from reelforge.services.protocols import SegmentRenderer
from reelforge.services.render_workspace import RenderWorkspace
from reelforge.utils.deadline import JobDeadline
from reelforge.utils.text_utils import escape_concat_path


def build_concat_manifest(clip_paths: Sequence[Path]) -> str:
    """
    Build an ffmpeg concat-demuxer manifest.

    Raises:
        AssemblyFailed: If there are no clips to list
    """
    if not clip_paths:
        raise AssemblyFailed("No clips to concatenate")
    return "\n".join(f"file {escape_concat_path(str(path))}" for path in clip_paths) + "\n"


class Assembler:
    """Concatenates ordered clips; a single clip is passed through untouched."""

    def __init__(self, settings: Settings, logger: Any, renderer: SegmentRenderer):
        """
        Initialize assembler.

        Args:
            settings: Application settings
            logger: Logger instance
            renderer: Provides the stream-copy concat operation
        """
        self.settings = settings
        self.logger = logger
        self.renderer = renderer

    def assemble_to_path(
        self,
        clip_paths: Sequence[Path],
        workspace: RenderWorkspace,
        deadline: Optional[JobDeadline] = None,
        output_format: Optional[str] = None,
    ) -> Path:
        """
        Join clips into one file and return its path.

        A single clip is returned as-is (no manifest, no re-encode).

        Raises:
            AssemblyFailed: If there are no clips or concatenation fails
        """
        if not clip_paths:
            raise AssemblyFailed("No clips to assemble")
        if len(clip_paths) == 1:
            self.logger.info("Single clip, skipping concatenation")
            return Path(clip_paths[0])

        output_format = output_format or self.settings.output_format
        if deadline is not None:
            deadline.check("assemble")

        manifest_path = workspace.new_path("concat", ".txt")
        joined_path = workspace.new_path("joined", f".{output_format}")
        try:
            manifest_path.write_text(build_concat_manifest(clip_paths), encoding="utf-8")
        except OSError as e:
            raise AssemblyFailed(f"Could not write concat manifest: {e}", cause=e) from e

        self.logger.info(f"Concatenating {len(clip_paths)} clips (stream copy)")
        try:
            self.renderer.concat(
                manifest_path,
                joined_path,
                timeout=deadline.remaining() if deadline is not None else None,
            )
        except RenderPipelineError:
            raise
        except Exception as e:
            raise AssemblyFailed(f"Concatenation failed: {e}", cause=e) from e

        if not joined_path.exists():
            raise AssemblyFailed("Concatenation produced no output file")
        return joined_path

    def assemble(
        self,
        clip_paths: Sequence[Path],
        workspace: RenderWorkspace,
        deadline: Optional[JobDeadline] = None,
        output_format: Optional[str] = None,
    ) -> bytes:
        """Join clips and return the final video bytes."""
        final_path = self.assemble_to_path(clip_paths, workspace, deadline, output_format)
        try:
            return final_path.read_bytes()
        except OSError as e:
            raise AssemblyFailed(f"Could not read assembled video: {e}", cause=e) from e
