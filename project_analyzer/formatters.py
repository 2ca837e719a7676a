"""Text renderings of scan, completion and implementation reports."""

from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .completion import get_completion_stats
from .feature_detector import get_progress_by_plan, get_top_unimplemented_features
from .models import CompletionAnalysis, CompletionReport, ImplementationReport, ScanResult, TodoItem
from .scanner import group_todos_by_file, group_todos_by_priority

logger = logging.getLogger("project_analyzer.formatters")

OUTPUT_FORMATS = ("json", "markdown", "github", "csv", "summary")
GROUP_BY_CHOICES = ("file", "priority", "type", "none")

PRIORITY_ICONS = {"high": "🔴", "medium": "🟡", "low": "🟢"}


def _percent(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole else 0.0


# ----------------------------------------------------------------------
# Scan results
# ----------------------------------------------------------------------


def format_as_json(data: Any, compact: bool = False) -> str:
    """Serialize anything with a ``to_dict`` (or plain data) as JSON."""
    payload = data.to_dict() if hasattr(data, "to_dict") else data
    if compact:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


def _format_todo_list(todos: Sequence[TodoItem], lines: List[str]) -> None:
    for todo in todos:
        lines.append(f"- {PRIORITY_ICONS.get(todo.priority, '')} **[{todo.type}]** {todo.content}")
        lines.append(f"  - 📁 {todo.file}:{todo.line}")


def format_as_markdown(result: ScanResult, group_by: str = "file") -> str:
    summary = result.summary
    lines = [
        "# TODO Scan Report",
        "",
        f"**Repository:** {result.root_path}",
        f"**Scan Date:** {result.scan_date}",
        f"**Total TODOs:** {summary.total_todos}",
        "",
        "## Summary",
        "",
        "### By Priority",
        f"- 🔴 High: {summary.by_priority.get('high', 0)}",
        f"- 🟡 Medium: {summary.by_priority.get('medium', 0)}",
        f"- 🟢 Low: {summary.by_priority.get('low', 0)}",
        "",
        "### By Type",
    ]
    lines.extend(f"- {todo_type}: {count}" for todo_type, count in summary.by_type.items())
    lines.extend([
        "",
        f"**Files Scanned:** {summary.files_scanned}",
        f"**Scan Duration:** {summary.scan_duration}ms",
        "",
        "## TODOs",
        "",
    ])

    if not result.todos:
        lines.append("*No TODOs found*")
        return "\n".join(lines)

    if group_by == "file":
        for file, file_todos in group_todos_by_file(result.todos).items():
            lines.extend([f"### {file}", ""])
            _format_todo_list(file_todos, lines)
            lines.append("")
    elif group_by == "priority":
        by_priority = group_todos_by_priority(result.todos)
        for priority in ("high", "medium", "low"):
            priority_todos = by_priority.get(priority)
            if priority_todos:
                lines.extend([f"### {PRIORITY_ICONS[priority]} {priority.capitalize()} Priority", ""])
                _format_todo_list(priority_todos, lines)
                lines.append("")
    elif group_by == "type":
        by_type: Dict[str, List[TodoItem]] = {}
        for todo in result.todos:
            by_type.setdefault(todo.type, []).append(todo)
        for todo_type, type_todos in by_type.items():
            lines.extend([f"### {todo_type}", ""])
            _format_todo_list(type_todos, lines)
            lines.append("")
    else:
        _format_todo_list(result.todos, lines)

    return "\n".join(lines)


def format_as_github(result: ScanResult) -> str:
    """One issue-template block per TODO."""
    lines: List[str] = []
    for todo in result.todos:
        title = todo.content[:50] + ("..." if len(todo.content) > 50 else "")
        label = todo.type.lower().replace(" ", "-")
        lines.extend([
            "---",
            f'title: "[{todo.type}] {title}"',
            f"labels: todo, {todo.priority}-priority, {label}",
            "---",
            "",
            "## Description",
            todo.content,
            "",
            "## Source",
            f"- **File:** `{todo.file}`",
            f"- **Line:** {todo.line}",
            f"- **Priority:** {todo.priority}",
            f"- **Type:** {todo.type}",
            "",
            "## Context",
            "```",
            todo.raw_text,
            "```",
            "",
        ])
    return "\n".join(lines)


def format_as_csv(result: ScanResult) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Type", "Priority", "Content", "File", "Line"])
    for todo in result.todos:
        writer.writerow([todo.type, todo.priority, todo.content, todo.file, todo.line])
    return buffer.getvalue().rstrip("\n")


def format_summary(result: ScanResult) -> str:
    summary = result.summary
    lines = [
        "TODO Scan Summary",
        "=================",
        f"Repository: {result.root_path}",
        f"Scan Date: {result.scan_date}",
        f"Total TODOs: {summary.total_todos}",
        "",
        "By Priority:",
        f"  High: {summary.by_priority.get('high', 0)}",
        f"  Medium: {summary.by_priority.get('medium', 0)}",
        f"  Low: {summary.by_priority.get('low', 0)}",
        "",
        "By Type:",
    ]
    lines.extend(f"  {todo_type}: {count}" for todo_type, count in summary.by_type.items())
    lines.extend([
        "",
        f"Files Scanned: {summary.files_scanned}",
        f"Scan Duration: {summary.scan_duration}ms",
    ])
    return "\n".join(lines)


def format_output(result: ScanResult, format: str = "json", group_by: str = "file", compact: bool = False) -> str:
    if format == "markdown":
        return format_as_markdown(result, group_by)
    if format == "github":
        return format_as_github(result)
    if format == "csv":
        return format_as_csv(result)
    if format == "summary":
        return format_summary(result)
    return format_as_json(result, compact)


# ----------------------------------------------------------------------
# Completion reports
# ----------------------------------------------------------------------


def _analysis_line(analysis: CompletionAnalysis) -> str:
    todo = analysis.todo
    return f"- **{todo.file}:{todo.line}** - {todo.content} ({analysis.confidence:.1f}%)"


def format_completion_report_as_markdown(report: CompletionReport) -> str:
    stats = get_completion_stats(report)
    actions = stats["recommended_actions"]
    recommendations = report.recommendations

    lines = [
        "# TODO Completion Analysis Report",
        "",
        f"**Total TODOs Analyzed:** {report.total_todos}",
        f"**Completion Rate:** {stats['completion_rate']:.1f}%",
        "",
        "## 📊 Summary",
        "",
        "### Confidence Distribution",
        "",
        f"- ✅ **Very High (90-100%)**: {report.summary.very_high_confidence} TODOs",
        f"- ⚠️ **High (70-89%)**: {report.summary.high_confidence} TODOs",
        f"- ❓ **Medium (50-69%)**: {report.summary.medium_confidence} TODOs",
        f"- 📋 **Low (30-49%)**: {report.summary.low_confidence} TODOs",
        f"- 🔴 **Active (<30%)**: {report.summary.active} TODOs",
        "",
        "### 🎯 Recommended Actions",
        "",
        f"- **Safe to Close**: {actions['close']} TODOs",
        f"- **Needs Review**: {actions['review']} TODOs",
        f"- **Verify Status**: {actions['verify']} TODOs",
        f"- **Keep Active**: {actions['keep']} TODOs",
        "",
        "### 🧹 Cleanup Potential",
        "",
        f"If all high-confidence items are completed, you could reduce your TODO list by "
        f"**{stats['potential_cleanup']} items** "
        f"({_percent(stats['potential_cleanup'], report.total_todos):.1f}%)",
        "",
    ]

    if recommendations.safe_to_close:
        lines.extend([
            "## ✅ Safe to Close (90%+ Confidence)",
            "",
            f"{len(recommendations.safe_to_close)} TODOs can be safely marked as complete:",
            "",
        ])
        for analysis in recommendations.safe_to_close[:20]:
            lines.extend([
                f"### {analysis.todo.file}:{analysis.todo.line}",
                f"**Confidence:** {analysis.confidence:.1f}%",
                f"**TODO:** {analysis.todo.content}",
                "",
                "**Reasons:**",
            ])
            lines.extend(f"- {reason}" for reason in analysis.reasons)
            lines.append("")
        if len(recommendations.safe_to_close) > 20:
            lines.extend([f"*... and {len(recommendations.safe_to_close) - 20} more*", ""])

    sections = (
        ("## ⚠️ Needs Review (70-89% Confidence)", "probably completed but should be verified",
         recommendations.needs_review, 15),
        ("## ❓ Possibly Completed (50-69% Confidence)", "may be completed - flag for review",
         recommendations.possibly_done, 10),
    )
    for heading, blurb, analyses, limit in sections:
        if not analyses:
            continue
        lines.extend([heading, "", f"{len(analyses)} TODOs {blurb}:", ""])
        lines.extend(_analysis_line(analysis) for analysis in analyses[:limit])
        if len(analyses) > limit:
            lines.append(f"- *... and {len(analyses) - limit} more*")
        lines.append("")

    return "\n".join(lines)


def format_completion_summary(report: CompletionReport) -> str:
    stats = get_completion_stats(report)
    actions = stats["recommended_actions"]
    lines = [
        "TODO Completion Analysis Summary",
        "=================================",
        f"Total TODOs: {report.total_todos}",
        f"Completion Rate: {stats['completion_rate']:.1f}%",
        "",
        "Confidence Distribution:",
        f"  Very High (90-100%): {report.summary.very_high_confidence}",
        f"  High (70-89%):       {report.summary.high_confidence}",
        f"  Medium (50-69%):     {report.summary.medium_confidence}",
        f"  Low (30-49%):        {report.summary.low_confidence}",
        f"  Active (<30%):       {report.summary.active}",
        "",
        "Recommended Actions:",
        f"  Safe to Close:  {actions['close']}",
        f"  Needs Review:   {actions['review']}",
        f"  Verify Status:  {actions['verify']}",
        f"  Keep Active:    {actions['keep']}",
        "",
        f"Potential Cleanup: {stats['potential_cleanup']} TODOs "
        f"({_percent(stats['potential_cleanup'], report.total_todos):.1f}%)",
    ]
    return "\n".join(lines)


def format_cleanup_candidates(candidates: Sequence[Dict[str, Any]]) -> str:
    lines = ["## 📁 Top Files for Cleanup", "", "Files with the most likely-completed TODOs:", ""]
    for candidate in candidates:
        lines.append(
            f"- **{candidate['file']}** - {candidate['count']} TODOs "
            f"(avg confidence: {candidate['avg_confidence']:.1f}%)"
        )
    lines.append("")
    return "\n".join(lines)


def generate_cleanup_action_list(
    analyses: Sequence[CompletionAnalysis],
    min_confidence: int = 90,
) -> List[Dict[str, Any]]:
    """Machine-readable cleanup actions, most confident first."""
    actions = []
    for analysis in analyses:
        if analysis.confidence < min_confidence:
            continue
        if analysis.confidence >= 90:
            action = "mark-complete"
        elif analysis.confidence >= 70:
            action = "review"
        else:
            action = "verify"
        actions.append({
            "file": analysis.todo.file,
            "line": analysis.todo.line,
            "action": action,
            "confidence": analysis.confidence,
            "todo": analysis.todo.content,
        })
    actions.sort(key=lambda a: a["confidence"], reverse=True)
    return actions


# ----------------------------------------------------------------------
# Implementation reports
# ----------------------------------------------------------------------


def create_progress_bar(percentage: int, width: int = 20) -> str:
    filled = round(percentage / 100 * width)
    return "█" * filled + "░" * (width - filled)


def format_implementation_report_as_markdown(report: ImplementationReport) -> str:
    summary = report.summary
    total = summary.total_features
    lines = [
        "# Feature Implementation Analysis",
        "",
        f"**Generated:** {datetime.now(timezone.utc).isoformat()}",
        f"**Total Features Analyzed:** {total}",
        "",
        "## Overall Summary",
        "",
        f"- ✅ **Implemented:** {summary.implemented} ({round(_percent(summary.implemented, total))}%)",
        f"- ⚠️  **Partial:** {summary.partial} ({round(_percent(summary.partial, total))}%)",
        f"- ❌ **Missing:** {summary.missing} ({round(_percent(summary.missing, total))}%)",
        f"- 📊 **Average Confidence:** {summary.avg_confidence}%",
        "",
        "## Progress by Planning Document",
        "",
    ]

    for plan in get_progress_by_plan(report):
        lines.extend([
            f"### {plan['plan']}",
            "",
            f"{create_progress_bar(plan['progress'])} **{plan['progress']}%** "
            f"({plan['implemented']}/{plan['total']} implemented)",
            "",
            f"- ✅ Implemented: {plan['implemented']}",
            f"- ⚠️  Partial: {plan['partial']}",
            f"- ❌ Missing: {plan['missing']}",
            "",
        ])

    lines.extend(["## Top Priority: Unimplemented Features", ""])
    pending = get_top_unimplemented_features(report, 15)
    if not pending:
        lines.extend(["🎉 All features appear to be implemented!", ""])

    for detection in pending:
        icon = "⚠️" if detection.status == "partial" else "❌"
        evidence = detection.evidence
        lines.extend([
            f"### {icon} {detection.feature.description}",
            "",
            f"**Plan:** {Path(detection.plan_document).stem}",
            f"**Status:** {detection.status} ({detection.confidence}% confidence)",
            f"**Recommendation:** {detection.recommendation}",
            "",
        ])
        if evidence.files_found:
            lines.append("**Files Found:**")
            lines.extend(f"- {file}" for file in evidence.files_found)
            lines.append("")
        if evidence.usage_detected:
            lines.append("**Usage Detected:**")
            lines.extend(
                f"- {usage.file}:{usage.line} - `{usage.import_statement}`"
                for usage in evidence.usage_detected[:3]
            )
            if len(evidence.usage_detected) > 3:
                lines.append(f"- ... and {len(evidence.usage_detected) - 3} more")
            lines.append("")
        if evidence.tests_found:
            lines.append("**Tests Found:**")
            lines.extend(f"- {test}" for test in evidence.tests_found)
            lines.append("")
        lines.extend(["---", ""])

    lines.extend(["## Implemented Features (High Confidence)", ""])
    implemented = sorted(
        (d for d in report.detections if d.status == "implemented" and d.confidence >= 70),
        key=lambda d: d.confidence,
        reverse=True,
    )[:20]
    if not implemented:
        lines.extend(["No features detected as implemented with high confidence.", ""])

    for detection in implemented:
        evidence = detection.evidence
        parts = []
        if evidence.files_found:
            parts.append(f"{len(evidence.files_found)} file(s)")
        if evidence.tests_found:
            parts.append(f"{len(evidence.tests_found)} test(s)")
        if evidence.usage_detected:
            parts.append(f"{len(evidence.usage_detected)} usage(s)")
        lines.extend([
            f"### ✅ {detection.feature.description}",
            "",
            f"**Plan:** {Path(detection.plan_document).stem}",
            f"**Confidence:** {detection.confidence}%",
            "",
        ])
        if parts:
            lines.extend([f"**Evidence:** {', '.join(parts)}", ""])

    return "\n".join(lines)


def format_implementation_summary(report: ImplementationReport) -> str:
    summary = report.summary
    lines = [
        "Feature Implementation Summary",
        "==============================",
        f"Planning Documents: {len(report.plan_documents)}",
        f"Total Features: {summary.total_features}",
        f"  Implemented: {summary.implemented}",
        f"  Partial:     {summary.partial}",
        f"  Missing:     {summary.missing}",
        f"Average Confidence: {summary.avg_confidence}%",
        "",
        "By Plan:",
    ]
    for plan in get_progress_by_plan(report):
        lines.append(f"  {plan['plan']}: {plan['progress']}% ({plan['implemented']}/{plan['total']})")
    return "\n".join(lines)


# ----------------------------------------------------------------------
# Output files
# ----------------------------------------------------------------------


REPORT_EXTENSIONS = {"markdown": "md", "github": "md", "csv": "csv", "summary": "txt", "json": "json"}


def generate_report_filename(format: str, prefix: str = "todo-scan") -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    extension = REPORT_EXTENSIONS.get(format, "json")
    return f"{prefix}-{timestamp}.{extension}"


def write_output(content: str, output_path: str | Path) -> Path:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info(f"Output written to: {path}")
    return path
