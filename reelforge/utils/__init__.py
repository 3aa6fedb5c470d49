"""Utility functions for the Reelforge render engine."""

from reelforge.utils.deadline import JobDeadline
from reelforge.utils.text_utils import escape_concat_path, replace_template_variables, wrap_text

__all__ = [
    "JobDeadline",
    "escape_concat_path",
    "replace_template_variables",
    "wrap_text",
]
