"""Scene Mapper - maps template scenes onto slices of the source footage."""

from typing import Any, Optional, Sequence

from reelforge.core.config import Settings
from reelforge.core.exceptions import InvalidTemplate, SceneRenderFailed
from reelforge.models.schemas import SLICE_LENGTH_TOLERANCE, MappingStrategy, Scene, SceneVideoMapping

# Slack allowed past the probed duration; container durations are rounded.
_DURATION_TOLERANCE = 1e-3


class SceneMapper:
    """Computes, for each scene, the slice of source footage it samples."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize scene mapper.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        try:
            self.strategy = MappingStrategy(getattr(settings, "mapping_strategy", MappingStrategy.PASSTHROUGH.value))
        except ValueError:
            self.logger.warning(
                f"Invalid mapping strategy '{settings.mapping_strategy}', defaulting to passthrough"
            )
            self.strategy = MappingStrategy.PASSTHROUGH

    def map_scenes(
        self,
        scenes: Sequence[Scene],
        source_duration: float,
        strategy: Optional[MappingStrategy] = None,
    ) -> list[SceneVideoMapping]:
        """
        Map every scene to a footage slice, preserving scene order.

        Passthrough (default): a scene samples the footage at the same offset
        it occupies in the output timeline. Proportional: the footage is cut
        into equal slots, one per scene. Either way the slice is exactly as
        long as the scene; explicit per-scene overrides always win.

        No clamping happens here; see validate_mappings.

        Args:
            scenes: Ordered template scenes
            source_duration: Footage duration in seconds
            strategy: Override for the configured strategy

        Returns:
            One mapping per scene, in input order

        Raises:
            InvalidTemplate: If scenes is empty
        """
        if not scenes:
            raise InvalidTemplate("Template must include at least one scene.")

        strategy = strategy or self.strategy
        slot = source_duration / len(scenes)

        mappings = []
        for index, scene in enumerate(scenes):
            if scene.has_footage_override:
                video_start = scene.video_start
                video_end = scene.video_end
            else:
                if strategy == MappingStrategy.PROPORTIONAL:
                    video_start = index * slot
                else:
                    video_start = scene.output_start
                video_end = video_start + scene.duration

            mappings.append(
                SceneVideoMapping(
                    scene=scene.model_copy(deep=True),
                    scene_index=index,
                    output_start=scene.output_start,
                    output_end=scene.output_end,
                    video_start=video_start,
                    video_end=video_end,
                )
            )

        self.logger.info(
            f"Mapped {len(mappings)} scenes onto {source_duration:.2f}s of footage ({strategy.value})"
        )
        return mappings

    def validate_mappings(self, mappings: Sequence[SceneVideoMapping], source_duration: float) -> None:
        """
        Reject trim windows that fall outside the footage or differ in length from their scene.

        Truncating would desynchronize burned-in overlay timing from the
        visible footage, so an out-of-range slice fails its scene instead.

        Raises:
            SceneRenderFailed: For the first scene whose slice is out of range
        """
        for mapping in mappings:
            start = mapping.video_start
            end = mapping.resolved_video_end
            if start < 0 or end > source_duration + _DURATION_TOLERANCE:
                raise SceneRenderFailed(
                    mapping.scene_index,
                    f"trim window {start:.3f}s-{end:.3f}s is outside the source footage "
                    f"(0s-{source_duration:.3f}s)",
                )
            if end - start <= 0:
                raise SceneRenderFailed(mapping.scene_index, f"empty trim window {start:.3f}s-{end:.3f}s")
            if abs((end - start) - mapping.duration) > SLICE_LENGTH_TOLERANCE:
                raise SceneRenderFailed(
                    mapping.scene_index,
                    f"trim window {start:.3f}s-{end:.3f}s does not match the scene's "
                    f"{mapping.duration:.3f}s output window",
                )
