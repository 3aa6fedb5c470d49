"""FastAPI routes for video rendering."""

import base64
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from reelforge.core.config import settings
from reelforge.core.exceptions import RenderPipelineError
from reelforge.core.logging_config import get_logger
from reelforge.models.schemas import RenderResponse, RenderResult, SegmentRenderRequest, TemplateRenderRequest
from reelforge.pipelines.run_render_pipeline import RenderPipeline
from reelforge.utils.error_handler import build_error_payload

router = APIRouter(prefix="/render", tags=["render"])


def get_pipeline(logger: Any) -> RenderPipeline:
    """Build a render pipeline with the default ffmpeg, HTTP and moviepy collaborators."""
    return RenderPipeline(settings, logger)


def _to_response(result: RenderResult) -> RenderResponse:
    return RenderResponse(
        video_data=base64.b64encode(result.data).decode("ascii"),
        mime_type=result.mime_type,
        scene_count=result.scene_count,
        segment_count=result.segment_count,
    )


def _error_response(error: Exception) -> JSONResponse:
    status_code = error.status_code if isinstance(error, RenderPipelineError) else 500
    return JSONResponse(status_code=status_code, content=build_error_payload(error, settings))


# Handlers are sync so FastAPI runs the blocking pipeline in its threadpool.


@router.post("", response_model=RenderResponse, response_model_by_alias=True)
def render_template(request: TemplateRenderRequest) -> Any:
    """
    Render a template over one source video.

    Pipeline:
    fetch → probe → map scenes → render scenes (bounded parallel) → concatenate
    """
    logger = get_logger(__name__, video_url=request.video_url)
    logger.info("Template render requested")

    try:
        result = get_pipeline(logger).render_template_video(request.video_url, request.template, request.content)
    except RenderPipelineError as e:
        logger.error(f"Render failed at stage '{e.stage}': {e.message}")
        return _error_response(e)
    except Exception as e:
        logger.exception(f"Unexpected error rendering video: {e}")
        return _error_response(e)

    return _to_response(result)


@router.post("/segments", response_model=RenderResponse, response_model_by_alias=True)
def render_segments(request: SegmentRenderRequest) -> Any:
    """
    Compose selected footage segments, then render a template over them.

    Pipeline:
    fetch → probe → normalize segments → cut → concatenate → render template
    """
    logger = get_logger(__name__, video_url=request.video_url)
    logger.info(f"Segment render requested ({len(request.segments)} segments)")

    try:
        result = get_pipeline(logger).render_segment_video(
            request.video_url, request.segments, request.template, request.content
        )
    except RenderPipelineError as e:
        logger.error(f"Render failed at stage '{e.stage}': {e.message}")
        return _error_response(e)
    except Exception as e:
        logger.exception(f"Unexpected error rendering video: {e}")
        return _error_response(e)

    return _to_response(result)
