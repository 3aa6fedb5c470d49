"""Render pipeline orchestrator - template + source footage → one composited video."""

import argparse
import json
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from reelforge.core.config import Settings, settings
from reelforge.core.exceptions import (
    AssemblyFailed,
    DurationProbeFailed,
    InvalidTemplate,
    RenderPipelineError,
    RenderTimeout,
    SceneRenderFailed,
    SourceFetchFailed,
)
from reelforge.core.logging_config import get_logger, log_stage, setup_logging
from reelforge.models.schemas import RenderResult, SegmentSelection, VideoTemplate
from reelforge.services.assembler import Assembler
from reelforge.services.duration_probe import MoviepyDurationProbe
from reelforge.services.ffmpeg_renderer import FFmpegRenderer
from reelforge.services.footage_source import HttpFootageSource, source_suffix
from reelforge.services.protocols import DurationProbe, FootageSource, SegmentRenderer
from reelforge.services.render_workspace import RenderWorkspace
from reelforge.services.scene_mapper import SceneMapper
from reelforge.services.segment_normalizer import SegmentNormalizer
from reelforge.services.segment_renderer_client import SegmentRendererClient
from reelforge.utils.deadline import JobDeadline
from reelforge.utils.error_handler import format_error_message, get_stage_suggestion


class RenderPipeline:
    """Coordinates one render job: fetch, probe, map, render, assemble, clean up."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        renderer: Optional[SegmentRenderer] = None,
        footage_source: Optional[FootageSource] = None,
        duration_probe: Optional[DurationProbe] = None,
    ):
        """
        Initialize render pipeline.

        Args:
            settings: Application settings
            logger: Logger instance
            renderer: Single-segment render operation (default: FFmpegRenderer)
            footage_source: Footage downloader (default: HttpFootageSource)
            duration_probe: Duration probe (default: MoviepyDurationProbe)
        """
        self.settings = settings
        self.logger = logger
        self.renderer = renderer or FFmpegRenderer(settings, logger)
        self.footage_source = footage_source or HttpFootageSource(settings, logger)
        self.duration_probe = duration_probe or MoviepyDurationProbe(settings, logger)

    # ------------------------------------------------------------------
    # Job kinds
    # ------------------------------------------------------------------

    def render_template_video(
        self,
        video_url: str,
        template: Any,
        content: Optional[dict[str, str]] = None,
    ) -> RenderResult:
        """
        Render a template over one source video.

        Args:
            video_url: Source footage URL or local path
            template: VideoTemplate or raw template payload
            content: Template variables ({{key}} -> value)

        Returns:
            RenderResult with the final video bytes

        Raises:
            RenderPipelineError: Subclass naming the stage that failed
        """
        content = content or {}
        with self._job("template render") as (log, workspace, deadline):
            with self._stage(log, deadline, "template"):
                video_template = self._load_template(template)

            source_path = self._fetch(log, workspace, deadline, video_url)
            source_duration = self._probe(log, deadline, source_path)

            with self._stage(log, deadline, "map", scenes=len(video_template.scenes)):
                mapper = SceneMapper(self.settings, log)
                mappings = mapper.map_scenes(video_template.scenes, source_duration)
                mapper.validate_mappings(mappings, source_duration)

            with self._stage(log, deadline, "render", scenes=len(mappings)):
                client = SegmentRendererClient(self.settings, log, self.renderer)
                clip_paths = client.render_scenes(
                    mappings,
                    source_path,
                    content,
                    workspace,
                    deadline=deadline,
                    base_style=video_template.text_style,
                )

            with self._stage(log, deadline, "assemble", clips=len(clip_paths)):
                data = Assembler(self.settings, log, self.renderer).assemble(clip_paths, workspace, deadline)

            return RenderResult(
                data=data,
                format=self.settings.output_format,
                scene_count=len(mappings),
                segment_count=len(mappings),
            )

    def render_segment_video(
        self,
        video_url: str,
        segments: Sequence[SegmentSelection],
        template: Any,
        content: Optional[dict[str, str]] = None,
    ) -> RenderResult:
        """
        Cut selected segments, join them, then render the template over the result.

        Args:
            video_url: Source footage URL or local path
            segments: Candidate segments (user adjustments take precedence)
            template: VideoTemplate or raw template payload
            content: Template variables

        Returns:
            RenderResult with the final video bytes

        Raises:
            RenderPipelineError: Subclass naming the stage that failed
        """
        content = content or {}
        with self._job("segment render") as (log, workspace, deadline):
            with self._stage(log, deadline, "template"):
                video_template = self._load_template(template)

            source_path = self._fetch(log, workspace, deadline, video_url)
            source_duration = self._probe(log, deadline, source_path)

            with self._stage(log, deadline, "normalize", candidates=len(segments)):
                ranges = SegmentNormalizer(self.settings, log).normalize_selections(segments, source_duration)

            with self._stage(log, deadline, "cut", segments=len(ranges)):
                cut_paths = []
                for i, segment_range in enumerate(ranges):
                    deadline.check(f"cut segment {i}")
                    cut_path = workspace.new_path(f"segment_{i:03d}", source_path.suffix or ".mp4")
                    try:
                        self.renderer.cut_segment(
                            source_path,
                            segment_range.source_start,
                            segment_range.source_end,
                            cut_path,
                            timeout=deadline.remaining(),
                        )
                    except RenderPipelineError:
                        raise
                    except Exception as e:
                        raise AssemblyFailed(f"Could not cut segment {i}: {e}", cause=e) from e
                    cut_paths.append(cut_path)

            assembler = Assembler(self.settings, log, self.renderer)
            with self._stage(log, deadline, "assemble", clips=len(cut_paths)):
                merged_path = assembler.assemble_to_path(
                    cut_paths, workspace, deadline, output_format=source_path.suffix.lstrip(".") or "mp4"
                )

            merged_duration = sum(segment_range.duration for segment_range in ranges)
            render_duration = min(video_template.total_duration or merged_duration, merged_duration)

            with self._stage(log, deadline, "render", scenes=len(video_template.scenes)):
                output_path = workspace.new_path("final", f".{self.settings.output_format}")
                try:
                    self.renderer.render_template(
                        video_template.scenes,
                        merged_path,
                        content,
                        render_duration,
                        output_path,
                        output_format=self.settings.output_format,
                        base_style=video_template.text_style,
                        timeout=deadline.remaining(),
                    )
                    data = output_path.read_bytes()
                except RenderPipelineError:
                    raise
                except Exception as e:
                    raise SceneRenderFailed(0, f"template render over merged footage failed: {e}", cause=e) from e

            return RenderResult(
                data=data,
                format=self.settings.output_format,
                scene_count=len(video_template.scenes),
                segment_count=len(ranges),
            )

    # ------------------------------------------------------------------
    # Shared stages
    # ------------------------------------------------------------------

    @contextmanager
    def _job(self, kind: str) -> Iterator[tuple[Any, RenderWorkspace, JobDeadline]]:
        """Open a workspace and deadline for one job; always tear the workspace down."""
        job_id = uuid.uuid4().hex[:12]
        log = self.logger.bind(job_id=job_id)
        deadline = JobDeadline(self.settings.render_timeout_seconds)
        start_time = time.time()

        log.info("=" * 60)
        log.info(f"Starting {kind} job {job_id} (timeout {self.settings.render_timeout_seconds:.0f}s)")
        log.info("=" * 60)

        with RenderWorkspace(log, temp_root=self.settings.temp_root, job_id=job_id) as workspace:
            try:
                yield log, workspace, deadline
            except RenderPipelineError as e:
                log.error(
                    format_error_message(
                        f"Render job {job_id}",
                        e,
                        context={"stage": e.stage},
                        suggestion=get_stage_suggestion(e.stage, e),
                    )
                )
                raise
        log.info(f"✅ {kind} job {job_id} finished in {time.time() - start_time:.2f}s")

    @contextmanager
    def _stage(self, log: Any, deadline: JobDeadline, stage: str, **details: Any) -> Iterator[None]:
        """Run one stage under the deadline; failures after expiry become RenderTimeout."""
        deadline.check(stage)
        try:
            with log_stage(log, stage, **details):
                yield
        except RenderTimeout:
            raise
        except Exception as e:
            if deadline.expired:
                raise RenderTimeout(
                    f"Render job exceeded {deadline.timeout_seconds:.0f}s during stage '{stage}': {e}", cause=e
                ) from e
            raise

    def _load_template(self, template: Any) -> VideoTemplate:
        if isinstance(template, VideoTemplate):
            if not template.scenes:
                raise InvalidTemplate("Template must include at least one scene.")
            return template
        return VideoTemplate.from_payload(template)

    def _fetch(self, log: Any, workspace: RenderWorkspace, deadline: JobDeadline, video_url: str) -> Path:
        with self._stage(log, deadline, "fetch", url=video_url):
            destination = workspace.new_path("source", source_suffix(video_url))
            try:
                fetched = Path(self.footage_source.fetch(video_url, destination, timeout=deadline.remaining()))
            except RenderPipelineError:
                raise
            except Exception as e:
                raise SourceFetchFailed(f"Failed to fetch source video {video_url}: {e}", cause=e) from e
            # Files outside the workspace belong to the caller and are never removed.
            if fetched != destination and fetched.resolve().is_relative_to(workspace.directory.resolve()):
                workspace.track(fetched)
        return fetched

    def _probe(self, log: Any, deadline: JobDeadline, source_path: Path) -> float:
        with self._stage(log, deadline, "probe"):
            try:
                return self.duration_probe.probe(source_path)
            except RenderPipelineError:
                raise
            except Exception as e:
                raise DurationProbeFailed(f"Could not read duration of {source_path.name}: {e}", cause=e) from e


# ----------------------------------------------------------------------
# CLI
# ----------------------------------------------------------------------


def _parse_content(pairs: Optional[list[str]]) -> dict[str, str]:
    content = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid --content value '{pair}', expected key=value")
        content[key] = value
    return content


def _load_json(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entrypoint for the render pipeline."""
    parser = argparse.ArgumentParser(
        description="Reelforge - render a video template over source footage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--template",
        type=str,
        required=True,
        help="Path to the template JSON file",
    )
    parser.add_argument(
        "--video",
        type=str,
        required=True,
        help="Source footage URL (http/https/file) or local path",
    )
    parser.add_argument(
        "--content",
        type=str,
        nargs="*",
        default=None,
        help="Template variables as key=value pairs (e.g., title='Day one')",
    )
    parser.add_argument(
        "--segments",
        type=str,
        default=None,
        help="Path to a JSON list of segment selections; enables segment compose mode",
    )
    parser.add_argument(
        "--output",
        type=str,
        required=True,
        help="Where to write the rendered video",
    )
    parser.add_argument(
        "--max-parallel",
        type=int,
        default=None,
        help=f"Maximum concurrent scene renders (default: {settings.max_parallel_scene_renders})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=f"Job timeout in seconds (default: {settings.render_timeout_seconds:.0f})",
    )

    args = parser.parse_args(argv)

    try:
        content = _parse_content(args.content)
    except ValueError as e:
        parser.error(str(e))

    overrides: dict[str, Any] = {}
    if args.max_parallel is not None:
        if args.max_parallel < 1:
            parser.error("--max-parallel must be >= 1")
        overrides["max_parallel_scene_renders"] = args.max_parallel
    if args.timeout is not None:
        overrides["render_timeout_seconds"] = args.timeout
    run_settings = settings.model_copy(update=overrides)

    setup_logging(log_level=run_settings.log_level)
    logger = get_logger(__name__)

    logger.info("=" * 60)
    logger.info("Reelforge - Render Pipeline")
    logger.info(f"Template: {args.template}")
    logger.info(f"Source: {args.video}")
    if args.segments:
        logger.info(f"Mode: SEGMENT COMPOSE ({args.segments})")
    else:
        logger.info("Mode: TEMPLATE RENDER")
    logger.info("=" * 60)

    try:
        template = _load_json(args.template)
        segments_payload = _load_json(args.segments) if args.segments else None
    except (OSError, json.JSONDecodeError) as e:
        logger.error(format_error_message("Loading input files", e))
        return 1

    pipeline = RenderPipeline(run_settings, logger)
    try:
        if segments_payload is not None:
            if not isinstance(segments_payload, list):
                logger.error("Segments file must contain a JSON list")
                return 1
            segments = [SegmentSelection.model_validate(item) for item in segments_payload]
            result = pipeline.render_segment_video(args.video, segments, template, content)
        else:
            result = pipeline.render_template_video(args.video, template, content)
    except RenderPipelineError as e:
        logger.error(f"Render failed at stage '{e.stage}': {e.message}")
        return 1
    except ValueError as e:
        # pydantic ValidationError for malformed segment selections
        logger.error(format_error_message("Parsing segments", e))
        return 1

    output_path = Path(args.output)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(result.data)
    except OSError as e:
        logger.error(format_error_message("Writing output", e, context={"path": str(output_path)}))
        return 1

    logger.info("=" * 60)
    logger.info(f"✅ Rendered {result.scene_count} scene(s) → {output_path} ({len(result.data) / 1024:.0f}KB)")
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
