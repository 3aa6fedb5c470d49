"""Error Handler - provides user-friendly error messages and API error payloads."""

import traceback
from typing import Any, Optional

from reelforge.core.exceptions import RenderPipelineError


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a user-friendly error message.

    Args:
        operation: What operation was being performed (e.g., "Rendering scene")
        error: The exception that occurred
        context: Additional context (e.g., {"scene_index": 2, "job": "a1b2c3"})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    error_type = type(error).__name__
    error_msg = str(error)

    # Build context string
    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items()]
        context_str = f" ({', '.join(context_parts)})"

    # Build message
    message = f"❌ {operation} failed{context_str}\n"
    message += f"   Error: {error_type}: {error_msg}"

    if suggestion:
        message += f"\n   💡 Suggestion: {suggestion}"

    return message


def get_stage_suggestion(stage: str, error: Exception) -> Optional[str]:
    """
    Get a suggestion for how to handle a render stage failure.

    Args:
        stage: Failing stage ("template", "normalize", "fetch", "probe", "render", "assemble", "timeout")
        error: The exception

    Returns:
        Suggestion string or None
    """
    error_msg = str(error).lower()

    if stage == "template":
        return "Check that the template has at least one scene with numeric start/end times."

    elif stage == "normalize":
        return "Every selected segment was shorter than 0.05s or outside the source video. Re-select segments."

    elif stage == "fetch":
        if "404" in error_msg or "not found" in error_msg:
            return "The source video URL does not exist. Check the URL or upload the file again."
        elif "403" in error_msg or "401" in error_msg:
            return "The source video URL is not publicly readable. Use a signed or public URL."
        elif "timeout" in error_msg or "exceeded" in error_msg:
            return "Download timed out. Try a smaller source file or a faster host."
        else:
            return "Source video could not be downloaded. Check the URL and network access."

    elif stage == "probe":
        return "The source file is not a readable video. Re-encode it to mp4 (h264) and try again."

    elif stage == "render":
        if "no such file" in error_msg or "not found" in error_msg:
            return "ffmpeg could not be found. Set FFMPEG_BINARY or install imageio-ffmpeg."
        elif "font" in error_msg:
            return "A text overlay font could not be loaded. Use a fontFamily installed on the host."
        else:
            return "A scene failed to render. Check the scene's text, filters and footage window."

    elif stage == "assemble":
        return "Rendered clips could not be joined. They must share codec and resolution."

    elif stage == "timeout":
        return "The render exceeded its time budget. Use fewer scenes or a shorter source video."

    return None


def build_error_payload(error: Exception, settings: Any) -> dict[str, Any]:
    """
    Build the JSON body returned to clients for a failed render.

    The stack trace is only included outside production.

    Args:
        error: The exception that ended the job
        settings: Application settings (``is_production`` decides stack exposure)

    Returns:
        Dict with ``error``, ``stage``, ``details`` and optionally ``stack``
    """
    if isinstance(error, RenderPipelineError):
        stage = error.stage
        details = error.message
    else:
        stage = "pipeline"
        details = str(error) or type(error).__name__

    payload: dict[str, Any] = {
        "error": "Failed to render video",
        "stage": stage,
        "details": details,
    }

    suggestion = get_stage_suggestion(stage, error)
    if suggestion:
        payload["suggestion"] = suggestion

    if not getattr(settings, "is_production", False):
        payload["stack"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))

    return payload
