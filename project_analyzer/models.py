"""Data models for the project analyzer.

This module contains the core data structures shared by the scanner,
the completion analyzer and the feature-implementation detector:
TODO items, completion judgments, planning documents and the reports
assembled from them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Pattern

PRIORITIES = ("high", "medium", "low")

COMPLETION_THRESHOLD = 70


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ----------------------------------------------------------------------
# Pattern catalog entries
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TodoPattern:
    """A regex that recognizes one kind of TODO marker."""

    name: str
    regex: Pattern[str]
    priority: str
    category: str


@dataclass(frozen=True, slots=True)
class CompletionIndicator:
    """A regex signalling that a marker has been resolved."""

    pattern: Pattern[str]
    confidence: int
    description: str
    context_required: bool


# ----------------------------------------------------------------------
# Scanner entities
# ----------------------------------------------------------------------


@dataclass(slots=True)
class TodoItem:
    """A single detected marker."""

    type: str
    content: str
    file: str
    line: int
    priority: str
    category: str
    raw_text: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "type": self.type,
            "content": self.content,
            "file": self.file,
            "line": self.line,
            "priority": self.priority,
            "category": self.category,
            "rawText": self.raw_text,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TodoItem":
        """Create from dictionary representation."""
        return cls(
            type=data["type"],
            content=data["content"],
            file=data["file"],
            line=int(data["line"]),
            priority=data.get("priority", "medium"),
            category=data.get("category", "code"),
            raw_text=data.get("rawText", data["content"]),
        )


@dataclass(slots=True)
class ProcessedTodo(TodoItem):
    """A TODO item carrying the identifiers used for state tracking."""

    id: str = ""
    hash: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = TodoItem.to_dict(self)
        data["id"] = self.id
        data["hash"] = self.hash
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessedTodo":
        item = TodoItem.from_dict(data)
        return cls(
            type=item.type,
            content=item.content,
            file=item.file,
            line=item.line,
            priority=item.priority,
            category=item.category,
            raw_text=item.raw_text,
            id=data.get("id", ""),
            hash=data.get("hash", ""),
        )


@dataclass(slots=True)
class FileInfo:
    """A file selected for scanning."""

    path: str
    relative_path: str
    size: int
    extension: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "relative_path": self.relative_path,
            "size": self.size,
            "extension": self.extension,
        }


@dataclass(slots=True)
class ScanSummary:
    """Counts over the filtered set of TODO items."""

    total_todos: int = 0
    by_priority: Dict[str, int] = field(default_factory=lambda: {p: 0 for p in PRIORITIES})
    by_type: Dict[str, int] = field(default_factory=dict)
    by_file: Dict[str, int] = field(default_factory=dict)
    files_scanned: int = 0
    scan_duration: int = 0  # milliseconds

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "total_todos": self.total_todos,
            "by_priority": dict(self.by_priority),
            "by_type": dict(self.by_type),
            "by_file": dict(self.by_file),
            "files_scanned": self.files_scanned,
            "scan_duration": self.scan_duration,
        }


@dataclass(slots=True)
class ScanResult:
    """Outcome of one scanner invocation."""

    todos: List[TodoItem]
    summary: ScanSummary
    scan_date: str
    root_path: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "todos": [todo.to_dict() for todo in self.todos],
            "summary": self.summary.to_dict(),
            "scan_date": self.scan_date,
            "root_path": self.root_path,
        }


@dataclass(slots=True)
class ScanState:
    """Snapshot persisted between runs to find newly appeared TODOs."""

    processed_todos: List[ProcessedTodo] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    last_updated: str = field(default_factory=utc_now_iso)

    def hashes(self) -> set[str]:
        return {todo.hash for todo in self.processed_todos if todo.hash}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastUpdated": self.last_updated,
            "processedTodos": [todo.to_dict() for todo in self.processed_todos],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanState":
        todos = data.get("processedTodos")
        if not isinstance(todos, list):
            raise ValueError("State file has no processedTodos list")
        return cls(
            processed_todos=[ProcessedTodo.from_dict(todo) for todo in todos],
            metadata=data.get("metadata") or {},
            last_updated=data.get("lastUpdated", utc_now_iso()),
        )


# ----------------------------------------------------------------------
# Completion analysis entities
# ----------------------------------------------------------------------


@dataclass(slots=True)
class DirectCheck:
    """Completion markers found in the marker text itself."""

    is_completed: bool = False
    confidence: int = 0
    reason: str = ""


@dataclass(slots=True)
class ContextCheck:
    """Completion language found in the lines around a marker."""

    has_completion_indicator: bool = False
    confidence: float = 0.0
    indicators: List[str] = field(default_factory=list)


@dataclass(slots=True)
class OldDocumentCheck:
    """Signals that the containing document is archived or outdated."""

    is_old: bool = False
    confidence: int = 0
    reasons: List[str] = field(default_factory=list)


@dataclass(slots=True)
class GitRepoInfo:
    is_git_repo: bool = False
    current_branch: str = ""
    has_remote: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_git_repo": self.is_git_repo,
            "current_branch": self.current_branch,
            "has_remote": self.has_remote,
        }


@dataclass(slots=True)
class GitFileInfo:
    exists: bool = False
    last_modified: Optional[datetime] = None
    commit_count: int = 0
    is_tracked: bool = False


@dataclass(slots=True)
class GitCommit:
    commit: str
    date: str
    message: str


@dataclass(slots=True)
class GitEvidence:
    """History signals gathered for one TODO."""

    has_evidence: bool = False
    confidence: int = 0
    evidence: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_evidence": self.has_evidence,
            "confidence": self.confidence,
            "evidence": list(self.evidence),
        }


@dataclass(slots=True)
class CompletionAnalysis:
    """Derived judgment about one TODO item."""

    todo: TodoItem
    confidence: int
    is_likely_completed: bool
    reasons: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    git_evidence: Optional[GitEvidence] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "todo": self.todo.to_dict(),
            "confidence": self.confidence,
            "is_likely_completed": self.is_likely_completed,
            "reasons": list(self.reasons),
            "suggestions": list(self.suggestions),
            "git_evidence": self.git_evidence.to_dict() if self.git_evidence else None,
        }


@dataclass(slots=True)
class CompletionSummary:
    very_high_confidence: int = 0  # >= 90
    high_confidence: int = 0       # 70-89
    medium_confidence: int = 0     # 50-69
    low_confidence: int = 0        # 30-49
    active: int = 0                # < 30

    def to_dict(self) -> Dict[str, int]:
        return {
            "very_high_confidence": self.very_high_confidence,
            "high_confidence": self.high_confidence,
            "medium_confidence": self.medium_confidence,
            "low_confidence": self.low_confidence,
            "active": self.active,
        }


@dataclass(slots=True)
class CompletionRecommendations:
    safe_to_close: List[CompletionAnalysis] = field(default_factory=list)
    needs_review: List[CompletionAnalysis] = field(default_factory=list)
    possibly_done: List[CompletionAnalysis] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "safe_to_close": [a.to_dict() for a in self.safe_to_close],
            "needs_review": [a.to_dict() for a in self.needs_review],
            "possibly_done": [a.to_dict() for a in self.possibly_done],
        }


@dataclass(slots=True)
class CompletionReport:
    """Aggregate of completion analyses for a set of TODOs."""

    total_todos: int
    likely_completed: int
    probably_completed: int
    possibly_completed: int
    active_count: int
    analyses: List[CompletionAnalysis]
    summary: CompletionSummary
    recommendations: CompletionRecommendations

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "total_todos": self.total_todos,
            "likely_completed": self.likely_completed,
            "probably_completed": self.probably_completed,
            "possibly_completed": self.possibly_completed,
            "active_count": self.active_count,
            "analyses": [a.to_dict() for a in self.analyses],
            "summary": self.summary.to_dict(),
            "recommendations": self.recommendations.to_dict(),
        }


# ----------------------------------------------------------------------
# Feature-implementation entities
# ----------------------------------------------------------------------


@dataclass(slots=True)
class Feature:
    """A checklist item from a planning document."""

    description: str
    line: int
    checked: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "line": self.line, "checked": self.checked}


@dataclass(slots=True)
class PlannedFile:
    """A source path a planning document says it will create or modify."""

    path: str
    type: str  # 'create' or 'modify'
    mentioned: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "type": self.type, "mentioned": self.mentioned}


@dataclass(slots=True)
class PlanningDocument:
    path: str
    title: str
    features: List[Feature] = field(default_factory=list)
    files: List[PlannedFile] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "title": self.title,
            "features": [f.to_dict() for f in self.features],
            "files": [f.to_dict() for f in self.files],
        }


@dataclass(slots=True)
class CodeMatch:
    file: str
    line: int
    snippet: str
    confidence: int

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file, "line": self.line, "snippet": self.snippet, "confidence": self.confidence}


@dataclass(slots=True)
class ImportUsage:
    file: str
    line: int
    import_statement: str

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file, "line": self.line, "import_statement": self.import_statement}


@dataclass(slots=True)
class ImplementationEvidence:
    """Concrete signals backing an implementation-confidence score."""

    files_found: List[str] = field(default_factory=list)
    code_patterns: List[CodeMatch] = field(default_factory=list)
    tests_found: List[str] = field(default_factory=list)
    usage_detected: List[ImportUsage] = field(default_factory=list)
    last_modified: Optional[datetime] = None

    def is_empty(self) -> bool:
        return not (self.files_found or self.code_patterns or self.tests_found or self.usage_detected)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "files_found": list(self.files_found),
            "code_patterns": [m.to_dict() for m in self.code_patterns],
            "tests_found": list(self.tests_found),
            "usage_detected": [u.to_dict() for u in self.usage_detected],
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }


@dataclass(slots=True)
class FeatureDetection:
    feature: Feature
    plan_document: str
    status: str
    confidence: int
    evidence: ImplementationEvidence
    recommendation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "feature": self.feature.to_dict(),
            "plan_document": self.plan_document,
            "status": self.status,
            "confidence": self.confidence,
            "evidence": self.evidence.to_dict(),
            "recommendation": self.recommendation,
        }


@dataclass(slots=True)
class PlanProgress:
    total: int = 0
    implemented: int = 0
    partial: int = 0
    missing: int = 0
    progress: int = 0  # percentage

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "implemented": self.implemented,
            "partial": self.partial,
            "missing": self.missing,
            "progress": self.progress,
        }


@dataclass(slots=True)
class ImplementationSummary:
    total_features: int = 0
    implemented: int = 0
    partial: int = 0
    missing: int = 0
    avg_confidence: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_features": self.total_features,
            "implemented": self.implemented,
            "partial": self.partial,
            "missing": self.missing,
            "avg_confidence": self.avg_confidence,
        }


@dataclass(slots=True)
class ImplementationReport:
    plan_documents: List[PlanningDocument]
    detections: List[FeatureDetection]
    summary: ImplementationSummary
    by_plan: Dict[str, PlanProgress] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "plan_documents": [doc.to_dict() for doc in self.plan_documents],
            "detections": [d.to_dict() for d in self.detections],
            "summary": self.summary.to_dict(),
            "by_plan": {name: progress.to_dict() for name, progress in self.by_plan.items()},
        }
