"""Pipeline orchestrators for the Reelforge render engine."""

from reelforge.pipelines.run_render_pipeline import RenderPipeline, main

__all__ = ["RenderPipeline", "main"]
