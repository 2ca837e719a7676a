"""Completion detection and reporting for scanned TODOs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .analyzer_logging import log_completion_analysis, log_file_skipped, log_performance
from .completion_patterns import (
    analyze_context,
    calculate_completion_confidence,
    check_direct_completion,
    generate_suggestions,
    is_in_archived_path,
    is_in_old_document,
)
from .git_info import GitInfoProvider, check_git_evidence
from .models import (
    COMPLETION_THRESHOLD,
    CompletionAnalysis,
    CompletionRecommendations,
    CompletionReport,
    CompletionSummary,
    TodoItem,
)

logger = logging.getLogger("project_analyzer.completion")

ARCHIVED_REASON = "File is in archived directory"


def analyze_todo_completion(
    todo: TodoItem,
    file_content: str,
    file_path: str,
    git_provider: Optional[GitInfoProvider] = None,
) -> CompletionAnalysis:
    """Score how likely a single TODO is already resolved."""
    reasons: List[str] = []

    direct_check = check_direct_completion(todo.raw_text)
    if direct_check.is_completed:
        reasons.append(direct_check.reason)

    context_check = analyze_context(file_content, todo.line)
    if context_check.has_completion_indicator:
        reasons.extend(context_check.indicators)

    old_doc_check = is_in_old_document(file_path, file_content)
    if old_doc_check.is_old:
        reasons.extend(old_doc_check.reasons)

    if is_in_archived_path(file_path) and ARCHIVED_REASON not in reasons:
        reasons.append(ARCHIVED_REASON)

    confidence = round(calculate_completion_confidence(direct_check, context_check, old_doc_check))

    git_evidence = None
    if git_provider is not None:
        git_evidence = check_git_evidence(git_provider, todo.content, file_path)
        if git_evidence.has_evidence:
            reasons.extend(f"Git: {line}" for line in git_evidence.evidence)

    return CompletionAnalysis(
        todo=todo,
        confidence=confidence,
        is_likely_completed=confidence >= COMPLETION_THRESHOLD,
        reasons=reasons,
        suggestions=generate_suggestions(confidence),
        git_evidence=git_evidence,
    )


def summarize_analyses(analyses: Sequence[CompletionAnalysis]) -> CompletionSummary:
    summary = CompletionSummary()
    for analysis in analyses:
        if analysis.confidence >= 90:
            summary.very_high_confidence += 1
        elif analysis.confidence >= 70:
            summary.high_confidence += 1
        elif analysis.confidence >= 50:
            summary.medium_confidence += 1
        elif analysis.confidence >= 30:
            summary.low_confidence += 1
        else:
            summary.active += 1
    return summary


def recommend(analyses: Sequence[CompletionAnalysis]) -> CompletionRecommendations:
    return CompletionRecommendations(
        safe_to_close=[a for a in analyses if a.confidence >= 90],
        needs_review=[a for a in analyses if 70 <= a.confidence < 90],
        possibly_done=[a for a in analyses if 50 <= a.confidence < 70],
    )


def build_completion_report(total_todos: int, analyses: List[CompletionAnalysis]) -> CompletionReport:
    summary = summarize_analyses(analyses)
    return CompletionReport(
        total_todos=total_todos,
        likely_completed=summary.very_high_confidence,
        probably_completed=summary.high_confidence,
        possibly_completed=summary.medium_confidence,
        active_count=summary.low_confidence + summary.active,
        analyses=analyses,
        summary=summary,
        recommendations=recommend(analyses),
    )


@log_performance("analyze_completions")
def analyze_completions(
    todos: Sequence[TodoItem],
    root_path: str,
    git_provider: Optional[GitInfoProvider] = None,
) -> CompletionReport:
    """Analyze every TODO for completion, reading each file once.

    TODOs in files that can no longer be read are skipped entirely.
    """
    analyses: List[CompletionAnalysis] = []
    root = Path(root_path)

    by_file: Dict[str, List[TodoItem]] = {}
    for todo in todos:
        by_file.setdefault(todo.file, []).append(todo)

    for relative_path, file_todos in by_file.items():
        full_path = root / relative_path
        try:
            file_content = full_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            log_file_skipped(str(full_path), f"could not read for completion analysis ({e})")
            continue

        for todo in file_todos:
            analyses.append(analyze_todo_completion(todo, file_content, relative_path, git_provider))

    report = build_completion_report(len(todos), analyses)
    log_completion_analysis(
        root_path,
        analyzed=len(analyses),
        likely_completed=report.likely_completed + report.probably_completed,
    )
    return report


def filter_by_completion_status(
    analyses: Iterable[CompletionAnalysis],
    include_completed: bool = False,
    min_confidence: int = 0,
) -> List[TodoItem]:
    """TODOs that pass the completion filter, in analysis order."""
    return [
        a.todo
        for a in analyses
        if (include_completed or not a.is_likely_completed) and a.confidence >= min_confidence
    ]


def get_completion_stats(report: CompletionReport) -> Dict[str, object]:
    likely_done = report.likely_completed + report.probably_completed
    return {
        "completion_rate": (likely_done / report.total_todos) * 100 if report.total_todos else 0.0,
        "recommended_actions": {
            "close": len(report.recommendations.safe_to_close),
            "review": len(report.recommendations.needs_review),
            "verify": len(report.recommendations.possibly_done),
            "keep": report.active_count,
        },
        "potential_cleanup": likely_done,
    }


def group_completed_by_file(
    analyses: Iterable[CompletionAnalysis],
    min_confidence: int = COMPLETION_THRESHOLD,
) -> Dict[str, List[CompletionAnalysis]]:
    grouped: Dict[str, List[CompletionAnalysis]] = {}
    for analysis in analyses:
        if analysis.confidence >= min_confidence:
            grouped.setdefault(analysis.todo.file, []).append(analysis)
    return grouped


def get_top_cleanup_candidates(report: CompletionReport, limit: int = 10) -> List[Dict[str, object]]:
    """Files with the most likely-completed TODOs."""
    candidates = []
    for file, analyses in group_completed_by_file(report.analyses).items():
        candidates.append({
            "file": file,
            "count": len(analyses),
            "avg_confidence": sum(a.confidence for a in analyses) / len(analyses),
        })
    candidates.sort(key=lambda c: c["count"], reverse=True)
    return candidates[:limit]
