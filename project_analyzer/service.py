"""Orchestration of the analyzer pipeline for the server and CLI surfaces.

Each public method runs one pipeline (scan, new-TODO diff, completion,
implementation detection, repository stats) and returns a plain dict. A
missing root raises when the service is created; failures inside a
pipeline come back as ``{"error": ..., "suggestion": ...}`` payloads.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .analyzer_logging import log_error_with_context, log_operation, log_performance
from .completion import analyze_completions, get_completion_stats, get_top_cleanup_candidates
from .feature_detector import (
    DetectionOptions,
    analyze_implementation,
    get_progress_by_plan,
    get_top_unimplemented_features,
)
from .formatters import (
    format_as_json,
    format_completion_report_as_markdown,
    format_implementation_report_as_markdown,
    format_output,
    generate_cleanup_action_list,
)
from .git_info import get_git_provider
from .models import ScanResult
from .scanner import ScanOptions, filter_todos, find_new_todos, process_scan_results, scan_todos
from .traversal import get_repository_stats
from .workspace import AnalyzerWorkspace

logger = logging.getLogger("project_analyzer.service")


class AnalyzerService:
    """Runs analyzer pipelines against one repository root."""

    def __init__(self, root: Path | str):
        self.workspace = AnalyzerWorkspace(root)

    @property
    def root(self) -> Path:
        return self.workspace.root

    def scan_options(
        self,
        include_patterns: Optional[List[str]] = None,
        exclude_patterns: Optional[List[str]] = None,
        use_gitignore: bool = True,
        max_depth: int = 10,
        include_completed: bool = False,
        exclude_archives: bool = False,
    ) -> ScanOptions:
        """Scan options for the root; the workspace directory is never scanned."""
        excludes = list(exclude_patterns or [])
        excludes.append(f"{self.workspace.storage_dir_name}/")
        return ScanOptions(
            root_path=str(self.root),
            include_patterns=list(include_patterns or ["**/*"]),
            exclude_patterns=excludes,
            use_gitignore=use_gitignore,
            max_depth=max_depth,
            include_completed=include_completed,
            exclude_archives=exclude_archives,
        )

    def run_scan(self, options: Optional[ScanOptions] = None) -> ScanResult:
        """Scan and attach ids and hashes to every TODO."""
        return process_scan_results(scan_todos(options or self.scan_options()))

    def _save_report(self, payload: Dict[str, Any], content: str, output_format: Optional[str], prefix: str) -> None:
        report_format = output_format if "rendered" in payload and output_format else "json"
        payload["report_path"] = str(self.workspace.save_report(content, report_format, prefix))

    # ------------------------------------------------------------------
    # TODO scanning
    # ------------------------------------------------------------------

    @log_performance("service_scan")
    def scan(
        self,
        options: Optional[ScanOptions] = None,
        priority: Optional[List[str]] = None,
        todo_type: Optional[List[str]] = None,
        file: Optional[List[str]] = None,
        search_term: Optional[str] = None,
        save_state: bool = False,
        output_format: Optional[str] = None,
        save_report: bool = False,
    ) -> Dict[str, Any]:
        """Scan the root and optionally filter, render, snapshot and archive the result."""
        try:
            with log_operation("scan", root=str(self.root)):
                result = self.run_scan(options)
                todos = filter_todos(result.todos, priority, todo_type, file, search_term)

                payload: Dict[str, Any] = {
                    "root_path": result.root_path,
                    "scan_date": result.scan_date,
                    "summary": result.summary.to_dict(),
                    "todos": [todo.to_dict() for todo in todos],
                    "count": len(todos),
                    "message": f"Found {len(todos)} TODOs in {result.summary.files_scanned} files",
                }
                if output_format:
                    payload["rendered"] = format_output(result, output_format)
                if save_state:
                    path = self.workspace.save_state(result.todos, {"root_path": result.root_path})
                    payload["state_path"] = str(path)
                if save_report:
                    self._save_report(payload, payload.get("rendered") or format_as_json(result),
                                      output_format, "todo-scan")
                return payload

        except Exception as e:
            logger.error(f"Failed to scan {self.root}: {e}")
            log_error_with_context(e, {"operation": "scan", "root": str(self.root)})
            return {
                "error": f"Failed to scan repository: {e}",
                "suggestion": "Check that the root is readable and the include/exclude patterns are valid",
                "todos": [],
                "count": 0,
            }

    @log_performance("service_find_new_todos")
    def find_new_todos(self, options: Optional[ScanOptions] = None, save: bool = True) -> Dict[str, Any]:
        """TODOs absent from the previous snapshot; refreshes the snapshot when ``save``."""
        try:
            previous_state = self.workspace.load_state()
            previous = previous_state.hashes() if previous_state else set()
            result = self.run_scan(options)
            new_todos = find_new_todos(result.todos, previous)

            payload: Dict[str, Any] = {
                "root_path": result.root_path,
                "new_todos": [todo.to_dict() for todo in new_todos],
                "count": len(new_todos),
                "total_todos": len(result.todos),
                "first_run": previous_state is None,
                "message": f"{len(new_todos)} new TODOs since last scan"
                if previous_state is not None
                else f"No previous scan found; recorded {len(result.todos)} TODOs",
            }
            if save:
                payload["state_path"] = str(
                    self.workspace.save_state(result.todos, {"root_path": result.root_path})
                )
            return payload

        except Exception as e:
            logger.error(f"Failed to diff TODOs for {self.root}: {e}")
            log_error_with_context(e, {"operation": "find_new_todos", "root": str(self.root)})
            return {
                "error": f"Failed to find new TODOs: {e}",
                "suggestion": f"Delete {self.workspace.state_path} to start from a fresh snapshot",
                "new_todos": [],
                "count": 0,
            }

    # ------------------------------------------------------------------
    # Completion analysis
    # ------------------------------------------------------------------

    @log_performance("service_analyze_completion")
    def analyze_completion(
        self,
        options: Optional[ScanOptions] = None,
        use_git: bool = False,
        min_confidence: int = 0,
        output_format: Optional[str] = None,
        save_report: bool = False,
    ) -> Dict[str, Any]:
        """Score every scanned TODO for completion."""
        try:
            with log_operation("analyze_completion", root=str(self.root), use_git=use_git):
                result = self.run_scan(options)
                provider = get_git_provider(self.root) if use_git else None
                report = analyze_completions(result.todos, str(self.root), provider)

                analyses = [a for a in report.analyses if a.confidence >= min_confidence]
                payload: Dict[str, Any] = {
                    "root_path": str(self.root),
                    "total_todos": report.total_todos,
                    "likely_completed": report.likely_completed,
                    "probably_completed": report.probably_completed,
                    "possibly_completed": report.possibly_completed,
                    "active_count": report.active_count,
                    "summary": report.summary.to_dict(),
                    "recommendations": report.recommendations.to_dict(),
                    "analyses": [a.to_dict() for a in analyses],
                    "stats": get_completion_stats(report),
                    "cleanup_candidates": get_top_cleanup_candidates(report),
                    "cleanup_actions": generate_cleanup_action_list(analyses),
                    "message": f"{report.likely_completed + report.probably_completed} of "
                               f"{report.total_todos} TODOs look completed",
                }
                if output_format == "markdown":
                    payload["rendered"] = format_completion_report_as_markdown(report)
                if save_report:
                    self._save_report(payload, payload.get("rendered") or format_as_json(report),
                                      output_format, "completion")
                return payload

        except Exception as e:
            logger.error(f"Failed to analyze completion for {self.root}: {e}")
            log_error_with_context(e, {"operation": "analyze_completion", "root": str(self.root)})
            return {
                "error": f"Failed to analyze completion: {e}",
                "suggestion": "Run scan first to confirm the repository can be read",
                "analyses": [],
            }

    # ------------------------------------------------------------------
    # Feature implementation detection
    # ------------------------------------------------------------------

    @log_performance("service_detect_features")
    def detect_features(
        self,
        planning_paths: Optional[List[str]] = None,
        min_confidence: int = 0,
        include_checked: bool = False,
        output_format: Optional[str] = None,
        save_report: bool = False,
    ) -> Dict[str, Any]:
        """Reconcile ``*_PLAN.md`` checklists against the code."""
        options = DetectionOptions(
            root_path=str(self.root),
            min_confidence=min_confidence,
            include_checked=include_checked,
        )
        if planning_paths:
            options.planning_paths = list(planning_paths)

        try:
            with log_operation("detect_features", root=str(self.root)):
                report = analyze_implementation(options)
                payload: Dict[str, Any] = {
                    "root_path": str(self.root),
                    "plan_documents": [doc.path for doc in report.plan_documents],
                    "summary": report.summary.to_dict(),
                    "by_plan": get_progress_by_plan(report),
                    "detections": [d.to_dict() for d in report.detections],
                    "top_unimplemented": [d.to_dict() for d in get_top_unimplemented_features(report)],
                    "message": f"{report.summary.implemented} of {report.summary.total_features} "
                               f"planned features appear implemented",
                }
                if output_format == "markdown":
                    payload["rendered"] = format_implementation_report_as_markdown(report)
                if save_report:
                    self._save_report(payload, payload.get("rendered") or format_as_json(report),
                                      output_format, "features")
                return payload

        except Exception as e:
            logger.error(f"Failed to detect features for {self.root}: {e}")
            log_error_with_context(e, {"operation": "detect_features", "root": str(self.root)})
            return {
                "error": f"Failed to detect feature implementation: {e}",
                "suggestion": "Check that planning documents are named *_PLAN.md and readable",
                "detections": [],
            }

    # ------------------------------------------------------------------
    # Repository stats
    # ------------------------------------------------------------------

    def repository_stats(self, include_git: bool = False, stale_days: int = 180) -> Dict[str, Any]:
        """File and line counts; with ``include_git``, branch info and files untouched for ``stale_days``."""
        try:
            stats = get_repository_stats(str(self.root))
            payload: Dict[str, Any] = {
                "root_path": str(self.root),
                "total_files": stats["total_files"],
                "total_lines": stats["total_lines"],
                "files_by_extension": stats["files_by_extension"],
                "largest_files": [info.to_dict() for info in stats["largest_files"]],
            }
            if include_git:
                provider = get_git_provider(self.root)
                payload["git"] = provider.get_repo_info().to_dict()
                payload["stale_files"] = provider.get_stale_files(stale_days)
            return payload
        except Exception as e:
            logger.error(f"Failed to collect repository stats for {self.root}: {e}")
            log_error_with_context(e, {"operation": "repository_stats", "root": str(self.root)})
            return {
                "error": f"Failed to collect repository stats: {e}",
                "suggestion": "Check that the root is readable",
            }
