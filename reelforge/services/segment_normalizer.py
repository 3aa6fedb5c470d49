"""Segment Normalizer - clamps candidate footage ranges to the real source duration."""

from typing import Any, Iterable, Optional

from reelforge.core.config import Settings
from reelforge.core.exceptions import NoValidSegments
from reelforge.models.schemas import MIN_SEGMENT_SECONDS, SegmentSelection, VideoSegmentRange

# Float slack when comparing a slice length against the floor.
_EPSILON = 1e-9


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]; high wins when the bounds cross."""
    return min(max(value, low), high)


class SegmentNormalizer:
    """Validates user- or planner-supplied time ranges against source footage."""

    def __init__(self, settings: Settings, logger: Any, min_segment_seconds: float = MIN_SEGMENT_SECONDS):
        """
        Initialize segment normalizer.

        Args:
            settings: Application settings
            logger: Logger instance
            min_segment_seconds: Shortest slice kept (default 0.05s)
        """
        self.settings = settings
        self.logger = logger
        self.min_segment_seconds = min_segment_seconds

    def normalize_range(self, candidate: VideoSegmentRange, source_duration: float) -> Optional[VideoSegmentRange]:
        """
        Clamp a single candidate into the footage, or reject it.

        Zero-length and inverted candidates are rejected rather than expanded.
        A candidate that runs past the end of the footage keeps its end pinned
        to the footage end and has its start pulled back far enough to meet
        the minimum length.

        Args:
            candidate: Raw range
            source_duration: Authoritative footage duration in seconds

        Returns:
            The normalized range, or None if it cannot satisfy the floor
        """
        floor = self.min_segment_seconds
        if candidate.source_end - candidate.source_start + _EPSILON < floor:
            return None

        safe_start = clamp(candidate.source_start, 0.0, max(0.0, source_duration - floor))
        safe_end = clamp(candidate.source_end, safe_start + floor, source_duration)

        if safe_end - safe_start + _EPSILON < floor:
            return None
        return VideoSegmentRange(source_start=safe_start, source_end=safe_end)

    def normalize(
        self, candidates: Iterable[VideoSegmentRange], source_duration: float
    ) -> list[VideoSegmentRange]:
        """
        Normalize candidate ranges, dropping every degenerate one.

        Args:
            candidates: Raw ranges in caller order
            source_duration: Authoritative footage duration in seconds

        Returns:
            Kept ranges, in input order

        Raises:
            NoValidSegments: If no candidate survives normalization
        """
        candidates = list(candidates)
        normalized = []
        for i, candidate in enumerate(candidates):
            result = self.normalize_range(candidate, source_duration)
            if result is None:
                self.logger.warning(
                    f"Dropping segment {i} ({candidate.source_start:.3f}s-{candidate.source_end:.3f}s): "
                    f"shorter than {self.min_segment_seconds}s within {source_duration:.3f}s of footage"
                )
                continue
            if (result.source_start, result.source_end) != (candidate.source_start, candidate.source_end):
                self.logger.debug(
                    f"Segment {i} clamped to {result.source_start:.3f}s-{result.source_end:.3f}s"
                )
            normalized.append(result)

        if not normalized:
            raise NoValidSegments(
                f"No valid segments to render: all {len(candidates)} candidate(s) were degenerate "
                f"against {source_duration:.3f}s of footage. Adjust timestamps and try again."
            )

        self.logger.info(f"Normalized {len(normalized)}/{len(candidates)} segments")
        return normalized

    def normalize_selections(
        self, selections: Iterable[SegmentSelection], source_duration: float
    ) -> list[VideoSegmentRange]:
        """Normalize selections, honouring user-adjusted start/end times."""
        return self.normalize([selection.to_range() for selection in selections], source_duration)
