"""Render pipeline error taxonomy.

Every stage failure derives from RenderPipelineError and carries the name of
the stage that failed so the API layer can report it.
"""

from typing import Optional


class RenderPipelineError(Exception):
    """Base class for all failures surfaced by a render job."""

    stage: str = "pipeline"
    status_code: int = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class InvalidTemplate(RenderPipelineError):
    """Template has no scenes or is missing required fields."""

    stage = "template"
    status_code = 400


class NoValidSegments(RenderPipelineError):
    """Every candidate time range was degenerate after normalization."""

    stage = "normalize"
    status_code = 400


class SourceFetchFailed(RenderPipelineError):
    """Source footage could not be downloaded."""

    stage = "fetch"
    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None, cause: Optional[BaseException] = None):
        super().__init__(message, cause=cause)
        self.status = status


class DurationProbeFailed(RenderPipelineError):
    """Source footage duration could not be measured."""

    stage = "probe"
    status_code = 422


class SceneRenderFailed(RenderPipelineError):
    """One scene's render call failed; the whole job fails with it."""

    stage = "render"
    status_code = 500

    def __init__(self, scene_index: int, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Scene {scene_index} failed to render: {message}", cause=cause)
        self.scene_index = scene_index
        self.detail = message


class AssemblyFailed(RenderPipelineError):
    """Concatenation of the rendered clips failed."""

    stage = "assemble"
    status_code = 500


class RenderTimeout(RenderPipelineError):
    """The job exceeded its wall-clock budget."""

    stage = "timeout"
    status_code = 504


class CleanupFailed(RenderPipelineError):
    """A temporary file could not be removed. Logged, never raised to callers."""

    stage = "cleanup"


class RenderCommandError(Exception):
    """An external ffmpeg invocation exited non-zero or timed out."""

    def __init__(self, command: str, message: str, timed_out: bool = False):
        super().__init__(f"{command}: {message}")
        self.command = command
        self.message = message
        self.timed_out = timed_out
