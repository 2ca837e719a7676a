"""Workspace management for analyzer state and reports.

Everything the analyzer persists lives under one directory inside the
analyzed root (``.project-analyzer`` unless ``PROJECT_ANALYZER_STORAGE_DIR``
names another): the scan state used to spot new TODOs and any written
reports.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .analyzer_logging import log_error_with_context, log_operation, observability_hooks
from .formatters import generate_report_filename, write_output
from .models import ProcessedTodo, ScanState
from .scanner import load_state, save_state

logger = logging.getLogger("project_analyzer.workspace")


class AnalyzerWorkspace:
    """Manage analyzer artifacts within a repository."""

    STORAGE_DIR_ENV = "PROJECT_ANALYZER_STORAGE_DIR"
    DEFAULT_STORAGE_DIR = ".project-analyzer"

    def __init__(self, root: Path | str):
        root_path = Path(root).expanduser()
        if not root_path.is_dir():
            raise FileNotFoundError(f"Root path does not exist: {root}")

        self.root = root_path.resolve()
        self.base_dir = self.root / (os.getenv(self.STORAGE_DIR_ENV) or self.DEFAULT_STORAGE_DIR)
        self.scans_dir = self.base_dir / "scans"

    @property
    def storage_dir_name(self) -> str:
        return self.base_dir.name

    @property
    def state_path(self) -> Path:
        return self.base_dir / "state.json"

    def ensure_directories(self) -> None:
        """Create the workspace directories; nothing is written until needed."""
        try:
            self.scans_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create workspace directories: {e}")
            raise RuntimeError(f"Could not initialize workspace at {self.root}: {e}") from e

    # ------------------------------------------------------------------
    # Scan state
    # ------------------------------------------------------------------

    def load_state(self) -> Optional[ScanState]:
        return load_state(self.state_path)

    def previous_hashes(self) -> set[str]:
        state = self.load_state()
        return state.hashes() if state else set()

    def save_state(
        self,
        processed_todos: Sequence[ProcessedTodo],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Path:
        """Persist the snapshot later scans diff against."""
        try:
            self.ensure_directories()
            with log_operation("save_state", path=str(self.state_path), todos=len(processed_todos)):
                path = save_state(self.state_path, processed_todos, metadata)
            observability_hooks.log_pipeline_event(
                "state_saved",
                root_path=str(self.root),
                path=str(path),
                todos=len(processed_todos),
            )
            return path
        except Exception as e:
            logger.error(f"Failed to save scan state: {e}")
            log_error_with_context(e, {"operation": "save_state", "path": str(self.state_path)})
            raise

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def save_report(self, content: str, format: str = "json", prefix: str = "todo-scan") -> Path:
        """Write a rendered report into the scans directory."""
        self.ensure_directories()
        path = write_output(content, self.scans_dir / generate_report_filename(format, prefix))
        observability_hooks.log_pipeline_event("report_saved", root_path=str(self.root), path=str(path))
        return path

    def list_reports(self) -> List[Dict[str, str]]:
        if not self.scans_dir.exists():
            return []
        return [
            {"name": path.name, "path": str(path)}
            for path in sorted(self.scans_dir.iterdir())
            if path.is_file()
        ]
