"""Pydantic models and schemas for the render pipeline."""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from reelforge.core.exceptions import InvalidTemplate

# Minimum length of a usable footage slice in seconds.
MIN_SEGMENT_SECONDS = 0.05
# Allowed difference between a footage override and its output window.
SLICE_LENGTH_TOLERANCE = 1e-3


class _CamelModel(BaseModel):
    """Base model accepting both snake_case and camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Enums
# ============================================================================


class SceneKind(str, Enum):
    """Closed set of scene variants a template may contain."""

    VIDEO_SEGMENT = "video-segment"
    TEXT_OVERLAY = "text-overlay"


class MappingStrategy(str, Enum):
    """How scenes pick their slice of source footage."""

    PASSTHROUGH = "passthrough"
    PROPORTIONAL = "proportional"


# ============================================================================
# Text Overlay Models
# ============================================================================


class TextPosition(_CamelModel):
    """Overlay anchor, normalized to 0-1 of the frame."""

    x: float = Field(default=0.5, ge=0.0, le=100.0, description="Horizontal anchor (0-1, or 0-100 percent)")
    y: float = Field(default=0.5, ge=0.0, le=100.0, description="Vertical anchor (0-1, or 0-100 percent)")

    @model_validator(mode="after")
    def _normalize_percentages(self) -> "TextPosition":
        # Editors send either fractions or percentages.
        if self.x > 1.0:
            self.x = self.x / 100.0
        if self.y > 1.0:
            self.y = self.y / 100.0
        return self


class TextStyle(_CamelModel):
    """Visual style of a text overlay."""

    font_size: Optional[int] = Field(default=None, gt=0, description="Font size in pixels")
    font_weight: str = Field(default="400", description="CSS-like font weight")
    color: str = Field(default="#ffffff", description="Text color (ffmpeg color syntax)")
    stroke: Optional[str] = Field(default=None, description="Outline color")
    stroke_width: Optional[float] = Field(default=None, ge=0, description="Outline width in pixels")
    max_width: Optional[float] = Field(
        default=None, gt=0, le=100, description="Maximum text width as percent of frame width"
    )
    background: Union[bool, str, None] = Field(
        default=None, description="False disables the box; a string sets the box color"
    )
    background_color: Optional[str] = Field(default=None, description="Box color when background is True")
    box_border_width: Optional[int] = Field(default=None, ge=0, description="Padding around the box in pixels")
    line_height_multiplier: Optional[float] = Field(default=None, gt=0, description="Line height relative to font size")
    background_radius: Optional[int] = Field(default=None, ge=0, description="Box corner radius (informational)")
    font_family: Optional[str] = Field(default=None, description="Font family or font file path")

    def merged_with_base(self, base: Optional["TextStyle"]) -> "TextStyle":
        """Return this style layered over a template-level base style."""
        if base is None:
            return self.model_copy(deep=True)
        data = base.model_dump(exclude_unset=True)
        data.update(self.model_dump(exclude_unset=True))
        return TextStyle(**data)


class TextOverlay(_CamelModel):
    """Text burned onto a scene."""

    id: Optional[str] = Field(default=None, description="Overlay identifier")
    content: str = Field(default="", description="Overlay text, may contain {{variable}} placeholders")
    position: TextPosition = Field(default_factory=TextPosition, description="Anchor position")
    style: TextStyle = Field(default_factory=TextStyle, description="Overlay style")


# ============================================================================
# Template Models
# ============================================================================


class Scene(_CamelModel):
    """One timed entry in a template's ordered scene list."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    kind: SceneKind = Field(default=SceneKind.VIDEO_SEGMENT, description="Scene variant")
    output_start: float = Field(
        ...,
        validation_alias=AliasChoices("output_start", "outputStart", "start"),
        description="Start in the final output timeline (seconds)",
    )
    output_end: float = Field(
        ...,
        validation_alias=AliasChoices("output_end", "outputEnd", "end"),
        description="End in the final output timeline (seconds)",
    )
    text: Optional[TextOverlay] = Field(default=None, description="Optional text overlay")
    filters: list[str] = Field(default_factory=list, description="Extra ffmpeg video filters for this scene")
    video_start: Optional[float] = Field(default=None, description="Explicit source-footage slice start")
    video_end: Optional[float] = Field(default=None, description="Explicit source-footage slice end")

    @model_validator(mode="after")
    def _check_invariants(self) -> "Scene":
        if self.output_start < 0:
            raise ValueError(f"output_start must be >= 0, got {self.output_start}")
        if self.output_end <= self.output_start:
            raise ValueError(
                f"output_end ({self.output_end}) must be greater than output_start ({self.output_start})"
            )
        if self.kind == SceneKind.TEXT_OVERLAY and (self.text is None or not self.text.content.strip()):
            raise ValueError("text-overlay scenes require text with non-empty content")
        if (self.video_start is None) != (self.video_end is None):
            raise ValueError("video_start and video_end must be given together")
        if self.video_start is not None:
            if self.video_start < 0:
                raise ValueError(f"video_start must be >= 0, got {self.video_start}")
            if self.video_end <= self.video_start:
                raise ValueError(
                    f"video_end ({self.video_end}) must be greater than video_start ({self.video_start})"
                )
            slice_length = self.video_end - self.video_start
            if abs(slice_length - (self.output_end - self.output_start)) > SLICE_LENGTH_TOLERANCE:
                raise ValueError(
                    f"footage slice {self.video_start}-{self.video_end} lasts {slice_length:g}s but the scene "
                    f"lasts {self.output_end - self.output_start:g}s; footage is sampled 1:1"
                )
        return self

    @property
    def duration(self) -> float:
        """Length of the scene's output window."""
        return self.output_end - self.output_start

    @property
    def has_footage_override(self) -> bool:
        return self.video_start is not None and self.video_end is not None


class VideoTemplate(_CamelModel):
    """An ordered collection of scenes plus overall target duration."""

    name: Optional[str] = Field(default=None, description="Template name")
    duration: Optional[float] = Field(default=None, gt=0, description="Target duration in seconds")
    scenes: list[Scene] = Field(default_factory=list, description="Ordered scenes")
    text_style: Optional[TextStyle] = Field(default=None, description="Base style applied under every overlay")

    @property
    def total_duration(self) -> float:
        """Declared duration, or the end of the last scene."""
        if self.duration is not None:
            return self.duration
        return max((scene.output_end for scene in self.scenes), default=0.0)

    @classmethod
    def from_payload(cls, payload: Any) -> "VideoTemplate":
        """
        Build a template from an untrusted payload.

        Raises:
            InvalidTemplate: If the payload is not a template or has no scenes
        """
        if not isinstance(payload, dict):
            raise InvalidTemplate("Template must be a JSON object")
        try:
            template = cls.model_validate(payload)
        except ValidationError as e:
            raise InvalidTemplate(f"Template is malformed: {e}", cause=e) from e
        if not template.scenes:
            raise InvalidTemplate("Template must include at least one scene.")
        return template


# ============================================================================
# Mapping / Segment Models
# ============================================================================


class SceneVideoMapping(BaseModel):
    """Correspondence between a scene's output window and a footage slice."""

    scene: Scene = Field(..., description="Copy of the originating scene")
    scene_index: int = Field(..., ge=0, description="Position of the scene in the template")
    output_start: float = Field(..., description="Scene start in the output timeline")
    output_end: float = Field(..., description="Scene end in the output timeline")
    video_start: float = Field(..., ge=0.0, description="Slice start in the source footage")
    video_end: Optional[float] = Field(default=None, description="Slice end in the source footage")

    @property
    def duration(self) -> float:
        return self.output_end - self.output_start

    @property
    def resolved_video_end(self) -> float:
        """Explicit slice end, or start plus the scene's own duration."""
        if self.video_end is not None:
            return self.video_end
        return self.video_start + self.duration


class VideoSegmentRange(_CamelModel):
    """A source-footage interval, raw before normalization."""

    source_start: float = Field(..., description="Slice start in seconds")
    source_end: float = Field(..., description="Slice end in seconds")

    @property
    def duration(self) -> float:
        return self.source_end - self.source_start


class SegmentSelection(_CamelModel):
    """A user- or planner-selected segment of the source footage."""

    id: str = Field(..., description="Segment identifier")
    start_time: float = Field(..., description="Detected segment start")
    end_time: float = Field(..., description="Detected segment end")
    adjusted_start_time: Optional[float] = Field(default=None, description="User-adjusted start")
    adjusted_end_time: Optional[float] = Field(default=None, description="User-adjusted end")
    quality: Optional[float] = Field(default=None, description="Quality rating")

    def to_range(self) -> VideoSegmentRange:
        """Candidate range, preferring user adjustments."""
        start = self.adjusted_start_time if self.adjusted_start_time is not None else self.start_time
        end = self.adjusted_end_time if self.adjusted_end_time is not None else self.end_time
        return VideoSegmentRange(source_start=start, source_end=end)


# ============================================================================
# Results & API Models
# ============================================================================


class RenderResult(BaseModel):
    """Final rendered video handed back to the caller."""

    data: bytes = Field(..., description="Rendered video bytes")
    format: str = Field(default="mp4", description="Container format tag")
    scene_count: int = Field(default=0, description="Number of scenes rendered")
    segment_count: int = Field(default=0, description="Number of footage segments used")

    @property
    def mime_type(self) -> str:
        return f"video/{self.format}"


class TemplateRenderRequest(_CamelModel):
    """Render a template over one source video."""

    video_url: str = Field(..., description="URL of the source footage")
    template: dict[str, Any] = Field(..., description="Template payload")
    content: dict[str, str] = Field(default_factory=dict, description="Template variables ({{key}} -> value)")


class SegmentRenderRequest(_CamelModel):
    """Compose selected footage segments, then render a template over them."""

    video_url: str = Field(..., description="URL of the source footage")
    segments: list[SegmentSelection] = Field(default_factory=list, description="Candidate segments")
    template: dict[str, Any] = Field(..., description="Template payload")
    content: dict[str, str] = Field(default_factory=dict, description="Template variables ({{key}} -> value)")


class RenderResponse(_CamelModel):
    """Rendered video returned over HTTP."""

    video_data: str = Field(..., description="Base64-encoded video")
    mime_type: str = Field(..., description="MIME type of the video")
    scene_count: int = Field(default=0, description="Number of scenes rendered")
    segment_count: int = Field(default=0, description="Number of footage segments used")
