"""Duration Probe - measures source footage length."""

from pathlib import Path
from typing import Any

from moviepy import VideoFileClip

from reelforge.core.config import Settings
from reelforge.core.exceptions import DurationProbeFailed


class MoviepyDurationProbe:
    """Reads footage duration from the container via moviepy."""

    def __init__(self, settings: Settings, logger: Any):
        self.settings = settings
        self.logger = logger

    def probe(self, path: Path) -> float:
        """
        Return the footage duration in seconds.

        Raises:
            DurationProbeFailed: If the file cannot be read or reports no duration
        """
        try:
            with VideoFileClip(str(path), audio=False) as clip:
                duration = clip.duration
        except Exception as e:
            raise DurationProbeFailed(f"Could not read duration of {Path(path).name}: {e}", cause=e) from e

        if not duration or duration <= 0:
            raise DurationProbeFailed(f"Source video {Path(path).name} reports no duration")

        self.logger.info(f"Source footage duration: {duration:.2f}s")
        return float(duration)
