"""Patterns and scoring rules for detecting completed TODOs.

Three independent checks feed the final confidence:

* the direct check looks at the marker text itself,
* the context check looks at the lines surrounding the marker,
* the old-document check looks at the path and header of the containing file.

Each check only counts toward the weighted average when its own flag fired.
"""

from __future__ import annotations

import re
from typing import List, Sequence, Tuple

from .models import CompletionIndicator, ContextCheck, DirectCheck, OldDocumentCheck

DIRECT_WEIGHT = 1.5
CONTEXT_WEIGHT = 1.2
OLD_DOCUMENT_WEIGHT = 0.8

CONTEXT_LINES = 3
HEADER_LENGTH = 500
OLD_YEARS = ("2020", "2021", "2022", "2023")

COMPLETION_INDICATORS: Tuple[CompletionIndicator, ...] = (
    # Explicit completion markers
    CompletionIndicator(
        pattern=re.compile(r"\[x\]|\[X\]|✓|✅|☑", re.IGNORECASE),
        confidence=95,
        description="Task explicitly marked as completed",
        context_required=False,
    ),
    CompletionIndicator(
        pattern=re.compile(r"\b(completed|done|finished|implemented|resolved|fixed|merged)\b", re.IGNORECASE),
        confidence=80,
        description="Contains completion keywords",
        context_required=True,
    ),
    CompletionIndicator(
        pattern=re.compile(r"\b(status:\s*(done|complete|implemented|finished))\b", re.IGNORECASE),
        confidence=90,
        description="Explicit status indicator",
        context_required=True,
    ),
    # Temporal indicators
    CompletionIndicator(
        pattern=re.compile(
            r"\b(as of|completed on|done on|finished on)\s+\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}",
            re.IGNORECASE,
        ),
        confidence=85,
        description="Date-stamped completion",
        context_required=True,
    ),
    CompletionIndicator(
        pattern=re.compile(r"\b(deployed|shipped|released|live|in production)\b", re.IGNORECASE),
        confidence=75,
        description="Deployment/release indicators",
        context_required=True,
    ),
    # Strikethrough and formatting
    CompletionIndicator(
        pattern=re.compile(r"~~.+~~|<del>.+</del>|<strike>.+</strike>", re.IGNORECASE),
        confidence=90,
        description="Strikethrough formatting",
        context_required=False,
    ),
    # Archive indicators
    CompletionIndicator(
        pattern=re.compile(
            r"\b(archived|obsolete|deprecated|no longer needed|cancelled|not needed)\b",
            re.IGNORECASE,
        ),
        confidence=85,
        description="Task is archived or obsolete",
        context_required=True,
    ),
    # Update indicators
    CompletionIndicator(
        pattern=re.compile(r"\bupdate:?\s*(done|complete|this is now (done|completed|working))", re.IGNORECASE),
        confidence=80,
        description="Update notes indicating completion",
        context_required=True,
    ),
)

# Patterns that suggest a file/section is outdated
OUTDATED_INDICATORS: Tuple[re.Pattern, ...] = (
    re.compile(r"\b(old|legacy|archived|superseded|replaced by|migrated to)\b", re.IGNORECASE),
    re.compile(r"\b(phase\s+[0-9])\b", re.IGNORECASE),
    re.compile(r"\b(\d{4})\b"),
    re.compile(r"\bv[0-9]+\.[0-9]+", re.IGNORECASE),
)

ARCHIVE_PATH_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"_archive/", re.IGNORECASE),
    re.compile(r"/archive/", re.IGNORECASE),
    re.compile(r"/old/", re.IGNORECASE),
    re.compile(r"/deprecated/", re.IGNORECASE),
    re.compile(r"/legacy/", re.IGNORECASE),
    re.compile(r"\.old\.", re.IGNORECASE),
    re.compile(r"\.backup\.", re.IGNORECASE),
    re.compile(r"_old_", re.IGNORECASE),
    re.compile(r"_deprecated_", re.IGNORECASE),
)

_VERSION_PATTERN = re.compile(r"version\s*:?\s*([0-9]+\.[0-9]+)", re.IGNORECASE)
_PHASE_PATTERN = re.compile(r"phase[_\s-]?([0-9]+)", re.IGNORECASE)
_OLD_YEAR_PATTERN = re.compile(r"\b(" + "|".join(OLD_YEARS) + r")\b")


def _normalized_path(file_path: str) -> str:
    # Relative paths get a leading slash so "archive/x.md" reads like "/archive/"
    path = file_path.replace("\\", "/")
    return path if path.startswith("/") else "/" + path


def is_in_archived_path(file_path: str) -> bool:
    """Check if a file path sits in an archive-like location."""
    path = _normalized_path(file_path)
    return any(pattern.search(path) for pattern in ARCHIVE_PATH_PATTERNS)


def analyze_context(
    content: str,
    todo_line: int,
    context_lines: int = CONTEXT_LINES,
    indicators: Sequence[CompletionIndicator] = COMPLETION_INDICATORS,
) -> ContextCheck:
    """Score the window of lines around a TODO for completion language.

    The context confidence is the mean of every matching indicator's
    confidence, not their sum.
    """
    lines = content.split("\n")
    start_line = max(0, todo_line - context_lines - 1)
    end_line = min(len(lines), todo_line + context_lines)
    context_text = "\n".join(lines[start_line:end_line])

    found: List[str] = []
    total_confidence = 0
    for indicator in indicators:
        if not indicator.context_required:
            continue
        if indicator.pattern.search(context_text):
            found.append(indicator.description)
            total_confidence += indicator.confidence

    average = total_confidence / len(found) if found else 0.0
    return ContextCheck(
        has_completion_indicator=bool(found),
        confidence=average,
        indicators=found,
    )


def check_direct_completion(
    todo_text: str,
    indicators: Sequence[CompletionIndicator] = COMPLETION_INDICATORS,
) -> DirectCheck:
    """Check if the TODO text itself carries a completion marker."""
    for indicator in indicators:
        if indicator.context_required:
            continue
        if indicator.pattern.search(todo_text):
            return DirectCheck(
                is_completed=True,
                confidence=indicator.confidence,
                reason=indicator.description,
            )
    return DirectCheck()


def is_in_old_document(file_path: str, file_content: str) -> OldDocumentCheck:
    """Detect whether a TODO lives in an old or archived document."""
    reasons: List[str] = []
    confidence = 0

    if is_in_archived_path(file_path):
        reasons.append("File is in archived directory")
        confidence += 70

    version_match = _VERSION_PATTERN.search(file_content)
    if version_match and float(version_match.group(1)) < 1.0:
        reasons.append(f"Old version: {version_match.group(1)}")
        confidence += 30

    phase_match = _PHASE_PATTERN.search(file_path)
    if phase_match:
        phase = int(phase_match.group(1))
        if phase <= 2:
            reasons.append(f"Early phase document: Phase {phase}")
            confidence += 40

    if len(_OLD_YEAR_PATTERN.findall(file_content)) > 3:
        reasons.append("Document contains multiple old dates")
        confidence += 20

    header = file_content[:HEADER_LENGTH]
    for pattern in OUTDATED_INDICATORS:
        match = pattern.search(header)
        if match:
            reasons.append(f'Document header mentions: "{match.group(0)}"')
            confidence += 25

    return OldDocumentCheck(
        is_old=confidence >= 50,
        confidence=min(confidence, 100),
        reasons=reasons,
    )


def calculate_completion_confidence(
    direct_check: DirectCheck,
    context_check: ContextCheck,
    old_doc_check: OldDocumentCheck,
) -> float:
    """Blend the three sub-checks into a 0-100 confidence.

    final = sum(confidence * weight) / sum(weight) over the checks that
    fired, or 0 when none did.
    """
    weighted = 0.0
    weight = 0.0

    if direct_check.is_completed:
        weighted += direct_check.confidence * DIRECT_WEIGHT
        weight += DIRECT_WEIGHT

    if context_check.has_completion_indicator:
        weighted += context_check.confidence * CONTEXT_WEIGHT
        weight += CONTEXT_WEIGHT

    if old_doc_check.is_old:
        weighted += old_doc_check.confidence * OLD_DOCUMENT_WEIGHT
        weight += OLD_DOCUMENT_WEIGHT

    return min(weighted / weight, 100.0) if weight > 0 else 0.0


def generate_suggestions(confidence: float) -> List[str]:
    """Recommended next actions for a confidence bucket."""
    if confidence >= 90:
        return [
            "✅ Very likely completed - safe to close",
            "Consider marking as [x] or removing from active tasks",
        ]
    if confidence >= 70:
        return [
            "⚠️ Probably completed - recommend manual review",
            "Check git history or ask team to confirm",
        ]
    if confidence >= 50:
        return [
            "❓ Possibly completed - needs verification",
            "Review recent commits or deployment history",
        ]
    if confidence >= 30:
        return [
            "📋 May be completed - low confidence",
            "Keep in TODO list but flag for review",
        ]
    return ["🔴 Appears active - no completion indicators"]
