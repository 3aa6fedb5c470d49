#!/usr/bin/env python3
"""
Main CLI entrypoint for the Reelforge render engine.

This is a convenience wrapper that imports and runs the render pipeline orchestrator.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from reelforge.pipelines.run_render_pipeline import main

if __name__ == "__main__":
    sys.exit(main())
