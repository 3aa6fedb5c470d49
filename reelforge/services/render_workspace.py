"""Render Workspace - owns every temporary file a render job creates."""

import shutil
import tempfile
import uuid
from pathlib import Path
from threading import Lock
from typing import Any, Optional, Union

from reelforge.core.exceptions import CleanupFailed


class RenderWorkspace:
    """
    Job-scoped resource arena.

    Creates one process-unique working directory on entry and removes every
    tracked path (then the directory) on exit, whatever the outcome. Paths
    are tracked as soon as they are created, so a mid-pipeline failure still
    cleans up everything made so far. Deletion failures are logged and
    swallowed so they never mask the job's real result.
    """

    def __init__(self, logger: Any, temp_root: Optional[Union[str, Path]] = None, job_id: Optional[str] = None):
        """
        Initialize workspace.

        Args:
            logger: Logger instance
            temp_root: Parent directory for the working directory (default: system temp dir)
            job_id: Identifier used in the directory name
        """
        self.logger = logger
        self.temp_root = Path(temp_root) if temp_root else None
        self.job_id = job_id or uuid.uuid4().hex[:12]
        self.directory: Optional[Path] = None
        self._paths: dict[Path, None] = {}
        self._lock = Lock()
        self._torn_down = False

    def __enter__(self) -> "RenderWorkspace":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.teardown()
        return False

    def open(self) -> Path:
        """Create the working directory."""
        if self.temp_root is not None:
            self.temp_root.mkdir(parents=True, exist_ok=True)
        self.directory = Path(
            tempfile.mkdtemp(prefix=f"reelforge-{self.job_id}-", dir=str(self.temp_root) if self.temp_root else None)
        )
        self.logger.debug(f"Workspace created: {self.directory}")
        return self.directory

    @property
    def tracked_paths(self) -> list[Path]:
        """Snapshot of tracked paths in creation order."""
        with self._lock:
            return list(self._paths)

    def track(self, path: Union[str, Path]) -> Path:
        """
        Register a path for removal at teardown.

        Args:
            path: File created (or about to be created) by the job

        Returns:
            The path as a Path
        """
        path = Path(path)
        with self._lock:
            if self._torn_down:
                raise RuntimeError(f"Workspace {self.job_id} is already torn down; cannot track {path}")
            self._paths[path] = None
        return path

    def new_path(self, prefix: str, suffix: str = "") -> Path:
        """Reserve and track a unique file path inside the working directory."""
        if self.directory is None:
            raise RuntimeError("Workspace is not open")
        return self.track(self.directory / f"{prefix}_{uuid.uuid4().hex[:8]}{suffix}")

    def teardown(self) -> None:
        """Remove every tracked path once, then the working directory. Idempotent."""
        with self._lock:
            if self._torn_down:
                return
            self._torn_down = True
            paths = list(self._paths)

        removed = 0
        for path in paths:
            try:
                path.unlink(missing_ok=True)
                removed += 1
            except OSError as e:
                self._log_cleanup_failure(CleanupFailed(f"Could not remove {path}: {e}", cause=e))

        if self.directory is not None:
            try:
                shutil.rmtree(self.directory)
            except FileNotFoundError:
                pass
            except OSError as e:
                self._log_cleanup_failure(CleanupFailed(f"Could not remove {self.directory}: {e}", cause=e))

        self.logger.debug(f"Workspace {self.job_id} cleaned up ({removed}/{len(paths)} tracked paths)")

    def _log_cleanup_failure(self, error: CleanupFailed) -> None:
        self.logger.warning(f"Cleanup failed: {error}")
