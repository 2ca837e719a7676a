"""Command-line entry point: ``project-analyzer scan|completion|features|stats``."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .analyzer_logging import setup_logging
from .completion import analyze_completions, get_top_cleanup_candidates
from .feature_detector import DetectionOptions, analyze_implementation
from .formatters import (
    GROUP_BY_CHOICES,
    OUTPUT_FORMATS,
    format_as_json,
    format_cleanup_candidates,
    format_completion_report_as_markdown,
    format_completion_summary,
    format_implementation_report_as_markdown,
    format_implementation_summary,
    format_output,
    write_output,
)
from .git_info import get_git_provider
from .scanner import find_new_todos, summarize
from .service import AnalyzerService

logger = logging.getLogger("project_analyzer.cli")


def _add_scan_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--include", nargs="+", default=None, help="Include file patterns (glob)")
    parser.add_argument("--exclude", nargs="+", default=None, help="Exclude file patterns (glob)")
    parser.add_argument("--no-gitignore", action="store_true", help="Don't use .gitignore")
    parser.add_argument("--exclude-archives", action="store_true", help="Exclude TODOs from archive directories")
    parser.add_argument("--max-depth", type=int, default=10, help="Maximum directory depth")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="project-analyzer",
        description="Scan a codebase for TODOs, completed work and planned features",
    )
    parser.add_argument("--log-level", default=os.getenv("PROJECT_ANALYZER_LOG_LEVEL", "WARNING"))
    parser.add_argument("--log-file", type=Path, default=os.getenv("PROJECT_ANALYZER_LOG_FILE"))
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Scan for TODO items")
    scan.add_argument("path", nargs="?", default=".")
    scan.add_argument("-o", "--output", type=Path, help="Output file path")
    scan.add_argument("-f", "--format", choices=OUTPUT_FORMATS, default="markdown")
    scan.add_argument("-g", "--group-by", choices=GROUP_BY_CHOICES, default="file")
    scan.add_argument("--include-completed", action="store_true", help="Include completed tasks")
    scan.add_argument("--compact", action="store_true", help="Compact JSON output")
    scan.add_argument("--only-new", action="store_true", help="Only show TODOs not in the saved state")
    scan.add_argument("--save-state", action="store_true", help="Record this scan for --only-new")
    _add_scan_arguments(scan)

    completion = subparsers.add_parser("completion", help="Find TODOs that look completed")
    completion.add_argument("path", nargs="?", default=".")
    completion.add_argument("-o", "--output", type=Path, help="Output file path")
    completion.add_argument("-f", "--format", choices=("json", "markdown", "summary"), default="markdown")
    completion.add_argument("--min-confidence", type=int, default=70, help="Minimum confidence level (0-100)")
    completion.add_argument("--use-git", action="store_true", help="Use git history for extra evidence")
    _add_scan_arguments(completion)

    features = subparsers.add_parser("features", help="Check planned features against the code")
    features.add_argument("path", nargs="?", default=".")
    features.add_argument("-o", "--output", type=Path, help="Output file path")
    features.add_argument("-f", "--format", choices=("json", "markdown", "summary"), default="markdown")
    features.add_argument("--min-confidence", type=int, default=0, help="Minimum confidence level (0-100)")
    features.add_argument("--planning-paths", nargs="+", default=None,
                          help="Directories to search for planning documents")
    features.add_argument("--include-checked", action="store_true",
                          help="Include features already marked as checked")

    stats = subparsers.add_parser("stats", help="Repository statistics")
    stats.add_argument("path", nargs="?", default=".")
    stats.add_argument("--git", action="store_true", help="Include branch info and stale files from git")
    stats.add_argument("--stale-days", type=int, default=180, help="Age in days after which a file counts as stale")

    return parser


def _emit(content: str, output: Optional[Path]) -> None:
    if output:
        write_output(content, output)
        print(f"Output written to: {output}")
    else:
        print(content)


def _scan_options(service: AnalyzerService, args: argparse.Namespace, include_completed: bool = False):
    return service.scan_options(
        include_patterns=args.include,
        exclude_patterns=args.exclude,
        use_gitignore=not args.no_gitignore,
        max_depth=args.max_depth,
        include_completed=include_completed,
        exclude_archives=args.exclude_archives,
    )


def run_scan(args: argparse.Namespace) -> int:
    service = AnalyzerService(args.path)
    result = service.run_scan(_scan_options(service, args, args.include_completed))
    all_todos = result.todos

    if args.only_new:
        new_todos = find_new_todos(result.todos, service.workspace.previous_hashes())
        print(f"Found {len(new_todos)} new TODOs (out of {len(result.todos)} total)", file=sys.stderr)
        result.todos = new_todos
        result.summary = summarize(new_todos, result.summary.files_scanned, result.summary.scan_duration)

    _emit(format_output(result, args.format, args.group_by, args.compact), args.output)

    if args.save_state or args.only_new:
        service.workspace.save_state(all_todos)
    return 0


def run_completion(args: argparse.Namespace) -> int:
    service = AnalyzerService(args.path)
    result = service.run_scan(_scan_options(service, args))
    provider = get_git_provider(service.root) if args.use_git else None
    report = analyze_completions(result.todos, str(service.root), provider)

    if args.format == "json":
        content = format_as_json(report)
    elif args.format == "summary":
        content = format_completion_summary(report)
    else:
        content = format_completion_report_as_markdown(report)
        candidates = get_top_cleanup_candidates(report)
        if candidates:
            content += "\n" + format_cleanup_candidates(candidates)

    _emit(content, args.output)
    likely = [a for a in report.analyses if a.confidence >= args.min_confidence]
    print(f"{len(likely)} TODOs at or above {args.min_confidence}% confidence", file=sys.stderr)
    return 0


def run_features(args: argparse.Namespace) -> int:
    options = DetectionOptions(
        root_path=args.path,
        min_confidence=args.min_confidence,
        include_checked=args.include_checked,
    )
    if args.planning_paths:
        options.planning_paths = args.planning_paths
    report = analyze_implementation(options)

    if args.format == "json":
        content = format_as_json(report)
    elif args.format == "summary":
        content = format_implementation_summary(report)
    else:
        content = format_implementation_report_as_markdown(report)
    _emit(content, args.output)
    return 0


def run_stats(args: argparse.Namespace) -> int:
    stats = AnalyzerService(args.path).repository_stats(include_git=args.git, stale_days=args.stale_days)
    print(json.dumps(stats, indent=2))
    return 0


COMMANDS = {
    "scan": run_scan,
    "completion": run_completion,
    "features": run_features,
    "stats": run_stats,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level.upper(), args.log_file)

    try:
        return COMMANDS[args.command](args)
    except FileNotFoundError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
