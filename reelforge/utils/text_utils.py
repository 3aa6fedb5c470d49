"""Text utility functions for overlay rendering."""

# This module is part of reelforge.utils package

import re

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")
_RGBA = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9]*\.?[0-9]+)\s*)?\)$",
    re.IGNORECASE,
)

# Average glyph width relative to font size, used for wrapping.
APPROX_CHAR_WIDTH_RATIO = 0.6


def replace_template_variables(text: str, content: dict[str, str]) -> str:
    """
    Substitute {{key}} placeholders with values from content.

    Unknown placeholders are left untouched.

    Args:
        text: Overlay text.
        content: Template variables.

    Returns:
        Text with known placeholders replaced.
    """

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key in content:
            return str(content[key])
        return match.group(0)

    return _PLACEHOLDER.sub(_replace, text or "")


def wrap_text(text: str, max_chars_per_line: int) -> list[str]:
    """
    Greedy word wrap.

    Words longer than the limit get a line of their own rather than being split.

    Args:
        text: Text to wrap.
        max_chars_per_line: Line length limit in characters.

    Returns:
        Wrapped lines (a single empty line for blank input).
    """
    if not text or not text.strip():
        return [""]

    lines = []
    current_line = ""
    for word in text.split():
        if not current_line:
            current_line = word
        elif len(current_line) + 1 + len(word) > max_chars_per_line:
            lines.append(current_line)
            current_line = word
        else:
            current_line = f"{current_line} {word}"
    if current_line:
        lines.append(current_line)
    return lines


def max_chars_for_width(max_width_percent: float, frame_width: int, font_size: int) -> int:
    """Approximate how many characters fit in a percentage of the frame width."""
    max_width_px = max(10.0, (max_width_percent / 100.0) * frame_width)
    return max(1, int(max_width_px // (font_size * APPROX_CHAR_WIDTH_RATIO)))


def to_ffmpeg_color(value: str) -> str:
    """
    Convert CSS-style colors to ffmpeg color syntax.

    'rgba(0,0,0,0.35)' becomes '0x000000@0.35'; anything else passes through.
    """
    match = _RGBA.match(value.strip())
    if not match:
        return value.strip()
    r, g, b = (min(255, int(match.group(i))) for i in (1, 2, 3))
    color = f"0x{r:02x}{g:02x}{b:02x}"
    if match.group(4) is not None:
        alpha = max(0.0, min(1.0, float(match.group(4))))
        color = f"{color}@{alpha:g}"
    return color


def escape_filter_value(value: str) -> str:
    """Escape a value (path, font name) for use inside an ffmpeg filter argument."""
    return value.replace("\\", "\\\\\\\\").replace(":", "\\\\:").replace("'", "\\\\'").replace(",", "\\,")


def escape_concat_path(path: str) -> str:
    """
    Quote a path for an ffmpeg concat manifest line.

    The path is wrapped in single quotes and every embedded quote is written
    as '\\'' so the demuxer reads it as one literal path.
    """
    return "'" + path.replace("'", "'\\''") + "'"
