"""MCP server exposing the project analyzer pipelines as tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from project_analyzer.analyzer_logging import setup_logging
from project_analyzer.service import AnalyzerService

mcp = FastMCP("project-analyzer")

ROOT_ENV = "PROJECT_ANALYZER_ROOT"


def _resolve_root(root: Optional[str]) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    return Path.cwd().resolve()


def _service(root: Optional[str]) -> AnalyzerService:
    return AnalyzerService(_resolve_root(root))


@mcp.tool()
def scan_todos(
    root: Optional[str] = None,
    include: Optional[List[str]] = None,
    exclude: Optional[List[str]] = None,
    use_gitignore: bool = True,
    include_completed: bool = False,
    exclude_archives: bool = False,
    priority: Optional[List[str]] = None,
    todo_type: Optional[List[str]] = None,
    search: Optional[str] = None,
    output_format: Optional[str] = None,
    save_state: bool = False,
    save_report: bool = False,
) -> Dict[str, Any]:
    """Scan a repository for TODO, FIXME, HACK, BUG and markdown task markers.
    Results can be filtered by priority (high/medium/low), marker type and a
    search term. Set output_format to markdown, github, csv or summary to get a
    rendered report alongside the structured items. save_report keeps a copy
    of the report under the analyzer workspace."""

    service = _service(root)
    options = service.scan_options(
        include_patterns=include,
        exclude_patterns=exclude,
        use_gitignore=use_gitignore,
        include_completed=include_completed,
        exclude_archives=exclude_archives,
    )
    return service.scan(
        options,
        priority=priority,
        todo_type=todo_type,
        search_term=search,
        save_state=save_state,
        output_format=output_format,
        save_report=save_report,
    )


@mcp.tool()
def find_new_todos(root: Optional[str] = None, save: bool = True) -> Dict[str, Any]:
    """List TODOs added since the previous recorded scan.
    The first call records a snapshot; later calls report only the difference."""

    return _service(root).find_new_todos(save=save)


@mcp.tool()
def analyze_completion(
    root: Optional[str] = None,
    min_confidence: int = 0,
    use_git: bool = False,
    exclude_archives: bool = False,
    output_format: Optional[str] = None,
    save_report: bool = False,
) -> Dict[str, Any]:
    """Estimate how likely each TODO is already done.
    Confidence blends explicit completion markers, nearby completion notes and
    signs the document is outdated; 70 or more means likely completed."""

    service = _service(root)
    options = service.scan_options(exclude_archives=exclude_archives)
    return service.analyze_completion(
        options,
        use_git=use_git,
        min_confidence=min_confidence,
        output_format=output_format,
        save_report=save_report,
    )


@mcp.tool()
def detect_features(
    root: Optional[str] = None,
    planning_paths: Optional[List[str]] = None,
    min_confidence: int = 0,
    include_checked: bool = False,
    output_format: Optional[str] = None,
    save_report: bool = False,
) -> Dict[str, Any]:
    """Check the unchecked items of *_PLAN.md documents against the code.
    Each feature is reported as implemented, partial or missing with the
    evidence found (planned files, imports, tests, keyword hits)."""

    return _service(root).detect_features(
        planning_paths=planning_paths,
        min_confidence=min_confidence,
        include_checked=include_checked,
        output_format=output_format,
        save_report=save_report,
    )


@mcp.tool()
def repository_stats(root: Optional[str] = None, include_git: bool = False, stale_days: int = 180) -> Dict[str, Any]:
    """Count scannable files and lines, grouped by extension.
    With include_git, also report the branch and files untouched for stale_days."""

    return _service(root).repository_stats(include_git=include_git, stale_days=stale_days)


@mcp.resource("project-analyzer://state")
def resource_state() -> str:
    """Resource view of the last recorded scan snapshot."""

    try:
        service = _service(None)
    except (ValueError, FileNotFoundError) as e:
        return f"No project root available: {e}"

    state = service.workspace.load_state()
    if state is None:
        return "No scan has been recorded yet. Call find_new_todos to record one."

    lines = [
        "Project Analyzer State",
        f"Last updated: {state.last_updated}",
        f"Recorded TODOs: {len(state.processed_todos)}",
    ]
    for todo in state.processed_todos[:20]:
        lines.append(f"- [{todo.type}] {todo.file}:{todo.line} {todo.content}")
    return "\n".join(lines)


@mcp.resource("project-analyzer://reports")
def resource_reports() -> str:
    """Resource listing of reports saved under the analyzer workspace."""

    try:
        service = _service(None)
    except (ValueError, FileNotFoundError) as e:
        return f"No project root available: {e}"

    reports = service.workspace.list_reports()
    if not reports:
        return "No reports saved yet. Pass save_report=true to a scan or analysis tool."
    return "\n".join(f"- {report['name']}: {report['path']}" for report in reports)


if __name__ == "__main__":
    setup_logging(os.getenv("PROJECT_ANALYZER_LOG_LEVEL", "INFO"), os.getenv("PROJECT_ANALYZER_LOG_FILE"))
    mcp.run(transport="stdio")
