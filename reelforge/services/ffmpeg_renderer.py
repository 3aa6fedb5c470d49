"""FFmpeg Renderer - default single-segment compositor, trimmer and concatenator."""

import shutil
import subprocess
import threading
from pathlib import Path
from typing import Any, Optional, Sequence

import imageio_ffmpeg

from reelforge.core.config import Settings
from reelforge.core.exceptions import RenderCommandError
from reelforge.models.schemas import Scene, TextStyle
from reelforge.utils.text_utils import (
    escape_filter_value,
    max_chars_for_width,
    replace_template_variables,
    to_ffmpeg_color,
    wrap_text,
)

DEFAULT_BOX_COLOR = "black@0.5"
DEFAULT_BOX_BORDER = 5
DEFAULT_LINE_HEIGHT = 1.35

# Codec used when the configured one cannot go into the container.
_WEBM_CODEC = "libvpx-vp9"


def resolve_ffmpeg_binary(settings: Settings) -> str:
    """Configured ffmpeg path, then ffmpeg on PATH, then the binary bundled with imageio-ffmpeg."""
    return getattr(settings, "ffmpeg_binary", None) or shutil.which("ffmpeg") or imageio_ffmpeg.get_ffmpeg_exe()


def parse_filter_names(filters_output: str) -> set[str]:
    """Filter names from `ffmpeg -filters` output (rows look like ' T.. drawtext  V->V  ...')."""
    names = set()
    for line in filters_output.splitlines():
        parts = line.split()
        if len(parts) >= 3 and "->" in parts[2]:
            names.add(parts[1])
    return names


class FFmpegRenderer:
    """Renders scenes onto source footage by shelling out to ffmpeg."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize ffmpeg renderer.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.ffmpeg = resolve_ffmpeg_binary(settings)
        self.frame_width, self.frame_height = settings.output_size
        self._filters: Optional[set[str]] = None
        self._filters_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

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
        """
        Render one scene onto a slice of the source footage.

        The scene's timing is relative to the slice (it starts at 0).

        Raises:
            RenderCommandError: If ffmpeg fails or times out
        """
        duration = trim_end - trim_start
        if duration <= 0:
            raise RenderCommandError("render", f"empty trim window {trim_start:.3f}s-{trim_end:.3f}s")
        return self._render(
            [scene], source_path, content, trim_start, duration, output_path, output_format, base_style, timeout
        )

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
        """Render every scene, at its own output window, over the first `duration` seconds."""
        return self._render(scenes, source_path, content, 0.0, duration, output_path, output_format, base_style, timeout)

    def cut_segment(
        self, source_path: Path, start: float, end: float, output_path: Path, timeout: Optional[float] = None
    ) -> Path:
        """Stream-copy [start, end) of the source (fast, keyframe-aligned)."""
        cmd = [
            self.ffmpeg, "-y",
            "-ss", f"{start:.3f}",
            "-i", str(source_path),
            "-t", f"{end - start:.3f}",
            "-c", "copy",
            str(output_path),
        ]
        self._run(cmd, "cut", timeout)
        return output_path

    def concat(self, manifest_path: Path, output_path: Path, timeout: Optional[float] = None) -> Path:
        """Join the clips listed in a concat manifest without re-encoding."""
        cmd = [
            self.ffmpeg, "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(manifest_path),
            "-c", "copy",
            str(output_path),
        ]
        self._run(cmd, "concat", timeout)
        return output_path

    # ------------------------------------------------------------------
    # Filter graph construction
    # ------------------------------------------------------------------

    def build_video_filters(
        self,
        scenes: Sequence[Scene],
        content: dict[str, str],
        base_style: Optional[TextStyle] = None,
    ) -> list[str]:
        """Scale/crop to the output frame, then scene filters, then text overlays."""
        w, h = self.frame_width, self.frame_height
        filters = [
            f"scale={w}:{h}:force_original_aspect_ratio=increase",
            f"crop={w}:{h}",
        ]
        for scene in scenes:
            window = self._enable_expr(scene)
            for extra in scene.filters:
                filters.append(f"{extra}:{window}")
        for scene in scenes:
            drawtext = self.build_drawtext(scene, content, base_style)
            if drawtext:
                filters.append(drawtext)
        return filters

    def build_drawtext(
        self,
        scene: Scene,
        content: dict[str, str],
        base_style: Optional[TextStyle] = None,
    ) -> Optional[str]:
        """
        Build the drawtext filter for a scene's overlay.

        Returns None when the scene has no text to draw.
        """
        if scene.text is None or not scene.text.content:
            return None

        style = scene.text.style.merged_with_base(base_style)
        font_size = style.font_size or self.settings.default_font_size
        max_width = style.max_width or 100.0

        text = replace_template_variables(scene.text.content, content)
        if max_width < 100:
            lines = wrap_text(text, max_chars_for_width(max_width, self.frame_width, font_size))
        else:
            lines = [text]
        escaped_text = self._escape_text("\n".join(lines))

        anchor_x = max(0.0, min(1.0, scene.text.position.x))
        anchor_y = max(0.0, min(1.0, scene.text.position.y))
        x_expr = f"max(0\\,min(main_w-text_w\\,(main_w*{anchor_x:.4f})-(text_w/2)))"
        y_expr = f"max(0\\,min(main_h-text_h\\,(main_h*{anchor_y:.4f})-(text_h/2)))"

        options = [
            f"text={escaped_text}",
            "expansion=none",
            f"fontsize={font_size}",
            f"fontcolor={escape_filter_value(to_ffmpeg_color(style.color))}",
            f"x={x_expr}",
            f"y={y_expr}",
            self._enable_expr(scene),
        ]

        if style.font_family:
            family = escape_filter_value(style.font_family)
            if style.font_family.lower().endswith((".ttf", ".otf", ".ttc")):
                options.append(f"fontfile={family}")
            else:
                options.append(f"font={family}")

        line_height = style.line_height_multiplier or DEFAULT_LINE_HEIGHT
        line_spacing = (line_height - 1) * font_size
        if abs(line_spacing) > 0.01:
            options.append(f"line_spacing={line_spacing:.2f}")

        box_color = self._box_color(style)
        if box_color:
            options.extend([
                "box=1",
                f"boxcolor={escape_filter_value(to_ffmpeg_color(box_color))}",
                f"boxborderw={style.box_border_width if style.box_border_width is not None else DEFAULT_BOX_BORDER}",
            ])
        else:
            options.append("box=0")

        if style.stroke and style.stroke_width:
            options.append(f"bordercolor={escape_filter_value(to_ffmpeg_color(style.stroke))}")
            options.append(f"borderw={style.stroke_width:g}")

        return "drawtext=" + ":".join(options)

    @staticmethod
    def _enable_expr(scene: Scene) -> str:
        return f"enable=between(t\\,{scene.output_start:g}\\,{scene.output_end:g})"

    @staticmethod
    def _box_color(style: TextStyle) -> Optional[str]:
        if style.background is False:
            return None
        if isinstance(style.background, str):
            return style.background
        if style.background_color:
            return style.background_color
        return DEFAULT_BOX_COLOR

    @staticmethod
    def _escape_text(text: str) -> str:
        # Two levels of unescaping: filtergraph, then the option parser.
        escaped = escape_filter_value(text)
        return escaped.replace(";", "\\;").replace("[", "\\[").replace("]", "\\]")

    # ------------------------------------------------------------------
    # Process execution
    # ------------------------------------------------------------------

    def _render(
        self,
        scenes: Sequence[Scene],
        source_path: Path,
        content: dict[str, str],
        trim_start: float,
        duration: float,
        output_path: Path,
        output_format: str,
        base_style: Optional[TextStyle],
        timeout: Optional[float],
    ) -> Path:
        codec = self.settings.video_codec
        if output_format == "webm" and codec in {"libx264", "libx265", "h264_nvenc"}:
            codec = _WEBM_CODEC

        video_filters = self.build_video_filters(scenes, content, base_style)
        if any(f.startswith("drawtext=") for f in video_filters) and "drawtext" not in self.available_filters():
            raise RenderCommandError(
                "render",
                f"{self.ffmpeg} was built without the drawtext filter (libfreetype); "
                "set FFMPEG_BINARY to an ffmpeg build that includes it",
            )

        cmd = [self.ffmpeg, "-y"]
        if trim_start > 0:
            cmd.extend(["-ss", f"{trim_start:.3f}"])
        cmd.extend([
            "-i", str(source_path),
            "-t", f"{duration:.3f}",
            "-vf", ",".join(video_filters),
            "-an",
            "-c:v", codec,
            "-pix_fmt", "yuv420p",
            "-f", output_format,
            str(output_path),
        ])
        self._run(cmd, "render", timeout)
        return output_path

    def available_filters(self) -> set[str]:
        """Filters compiled into the ffmpeg binary, queried once per renderer."""
        with self._filters_lock:
            if self._filters is None:
                try:
                    result = subprocess.run(
                        [self.ffmpeg, "-hide_banner", "-filters"], capture_output=True, text=True, timeout=30
                    )
                except (subprocess.TimeoutExpired, OSError) as e:
                    raise RenderCommandError("filters", f"could not query ffmpeg filters: {e}") from e
                self._filters = parse_filter_names(result.stdout or "")
                self.logger.debug(f"{self.ffmpeg} provides {len(self._filters)} filters")
            return self._filters

    def _run(self, cmd: list[str], label: str, timeout: Optional[float]) -> None:
        self.logger.debug(f"FFmpeg {label}: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise RenderCommandError(label, f"timed out after {timeout:.1f}s", timed_out=True) from e
        except OSError as e:
            raise RenderCommandError(label, f"could not start ffmpeg: {e}") from e
        if result.returncode != 0:
            stderr_tail = (result.stderr or "").strip()[-500:]
            raise RenderCommandError(label, f"ffmpeg exited with code {result.returncode}: {stderr_tail}")
