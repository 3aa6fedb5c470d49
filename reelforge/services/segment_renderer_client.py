"""Segment Renderer Client - renders one intermediate clip per mapped scene."""

from pathlib import Path
from typing import Any, Optional, Sequence

from reelforge.core.config import Settings
from reelforge.core.exceptions import RenderPipelineError, SceneRenderFailed
from reelforge.models.schemas import Scene, SceneVideoMapping, TextStyle
from reelforge.services.protocols import SegmentRenderer
from reelforge.services.render_workspace import RenderWorkspace
from reelforge.utils.deadline import JobDeadline
from reelforge.utils.error_handler import format_error_message
from reelforge.utils.parallel_executor import ParallelExecutor


def clone_scene_for_render(mapping: SceneVideoMapping) -> Scene:
    """
    Derive the per-call scene: own deep copy of the overlay, timing reset to [0, duration].

    The copy never shares style or position objects with the template, so a
    later edit to one clip's overlay cannot leak into a sibling clip.
    """
    return mapping.scene.model_copy(
        update={
            "output_start": 0.0,
            "output_end": mapping.duration,
            "video_start": None,
            "video_end": None,
        },
        deep=True,
    )


class SegmentRendererClient:
    """Drives the external single-segment render operation for every scene."""

    def __init__(self, settings: Settings, logger: Any, renderer: SegmentRenderer):
        """
        Initialize renderer client.

        Args:
            settings: Application settings
            logger: Logger instance
            renderer: Injected single-segment render operation
        """
        self.settings = settings
        self.logger = logger
        self.renderer = renderer
        self.parallel_executor = ParallelExecutor(settings, logger)

    def render_scenes(
        self,
        mappings: Sequence[SceneVideoMapping],
        source_path: Path,
        content: dict[str, str],
        workspace: RenderWorkspace,
        deadline: Optional[JobDeadline] = None,
        base_style: Optional[TextStyle] = None,
        output_format: Optional[str] = None,
    ) -> list[Path]:
        """
        Render every mapped scene into its own clip.

        Scenes render on a bounded pool; the returned paths are always in
        scene order. Each clip path is tracked by the workspace before the
        renderer is invoked.

        Args:
            mappings: Scene mappings in template order
            source_path: Local source footage
            content: Template variables
            workspace: Job workspace that owns the clips
            deadline: Job deadline
            base_style: Template-level text style
            output_format: Container format (default from settings)

        Returns:
            Clip paths, one per mapping, in scene order

        Raises:
            SceneRenderFailed: For the first scene that fails (whole job fails)
        """
        output_format = output_format or self.settings.output_format

        tasks = []
        task_names = []
        for mapping in mappings:

            def _task(mapping: SceneVideoMapping = mapping) -> Path:
                return self._render_one(
                    mapping, source_path, content, workspace, deadline, base_style, output_format
                )

            tasks.append(_task)
            task_names.append(f"scene_{mapping.scene_index}")

        self.logger.info(f"Rendering {len(tasks)} scene(s)")
        return self.parallel_executor.execute_ordered(tasks, task_names=task_names, deadline=deadline)

    def _render_one(
        self,
        mapping: SceneVideoMapping,
        source_path: Path,
        content: dict[str, str],
        workspace: RenderWorkspace,
        deadline: Optional[JobDeadline],
        base_style: Optional[TextStyle],
        output_format: str,
    ) -> Path:
        index = mapping.scene_index
        if deadline is not None:
            deadline.check(f"render scene {index}")

        scene = clone_scene_for_render(mapping)
        output_path = workspace.new_path(f"scene_{index:03d}", f".{output_format}")
        trim_start = mapping.video_start
        trim_end = mapping.resolved_video_end

        self.logger.debug(
            f"Scene {index}: output {mapping.output_start:.2f}-{mapping.output_end:.2f}s, "
            f"footage {trim_start:.2f}-{trim_end:.2f}s"
        )
        try:
            clip_path = self.renderer.render(
                scene=scene,
                source_path=source_path,
                content=content,
                trim_start=trim_start,
                trim_end=trim_end,
                output_path=output_path,
                output_format=output_format,
                base_style=base_style,
                timeout=deadline.remaining() if deadline is not None else None,
            )
        except RenderPipelineError:
            raise
        except Exception as e:
            # The renderer is injected; anything it raises fails this scene.
            self.logger.error(
                format_error_message("Rendering scene", e, context={"scene_index": index, "job": workspace.job_id})
            )
            raise SceneRenderFailed(index, str(e), cause=e) from e

        clip_path = Path(clip_path)
        if clip_path != output_path:
            workspace.track(clip_path)
        if not clip_path.exists():
            raise SceneRenderFailed(index, f"renderer reported {clip_path.name} but no file was written")
        return clip_path
