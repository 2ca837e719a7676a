"""Core TODO scanner.

Walks the files selected by :mod:`project_analyzer.traversal`, applies the
pattern catalog to each file and assembles a :class:`ScanResult`. Also
provides the hashing and state helpers used to report only TODOs that
appeared since a previous run.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from .analyzer_logging import log_error_with_context, log_performance, log_scan_completed
from .completion_patterns import is_in_archived_path
from .models import (
    ProcessedTodo,
    ScanResult,
    ScanState,
    ScanSummary,
    TodoItem,
    TodoPattern,
    utc_now_iso,
)
from .patterns import DEFAULT_CATALOG, PatternCatalog
from .traversal import DEFAULT_MAX_FILE_SIZE, TraversalOptions, read_file_safely, traverse_files

logger = logging.getLogger("project_analyzer.scanner")

UNCHECKED_TASK = "Unchecked Task"


@dataclass(slots=True)
class ScanOptions:
    root_path: str
    include_patterns: List[str] = field(default_factory=lambda: ["**/*"])
    exclude_patterns: List[str] = field(default_factory=list)
    use_gitignore: bool = True
    max_depth: int = 10
    follow_symlinks: bool = False
    patterns: Optional[Sequence[TodoPattern]] = None
    include_completed: bool = False
    exclude_archives: bool = False
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def traversal_options(self) -> TraversalOptions:
        return TraversalOptions(
            root_path=self.root_path,
            include_patterns=list(self.include_patterns),
            exclude_patterns=list(self.exclude_patterns),
            use_gitignore=self.use_gitignore,
            max_depth=self.max_depth,
            follow_symlinks=self.follow_symlinks,
        )


def generate_todo_hash(todo: TodoItem) -> str:
    """MD5 of ``file:line:type:content``; stable for unchanged content."""
    key = f"{todo.file}:{todo.line}:{todo.type}:{todo.content}"
    return hashlib.md5(key.encode("utf-8")).hexdigest()


def _generate_todo_id(index: int) -> str:
    return f"todo-{int(time.time() * 1000)}-{index}"


def extract_todos_from_content(
    content: str,
    file_path: str,
    patterns: Iterable[TodoPattern],
) -> List[TodoItem]:
    """Extract TODO items from file content, ordered by line.

    A match is attributed to the line holding its first character.
    """
    todos: List[TodoItem] = []

    for pattern in patterns:
        for match in pattern.regex.finditer(content):
            matched_text = match.group(0)
            captured = match.group(1) if match.re.groups else None
            todo_content = (captured or matched_text).strip()
            line_number = content.count("\n", 0, match.start()) + 1

            todos.append(
                TodoItem(
                    type=pattern.name,
                    content=todo_content,
                    file=file_path,
                    line=line_number,
                    priority=pattern.priority,
                    category=pattern.category,
                    raw_text=matched_text,
                )
            )

    todos.sort(key=lambda todo: todo.line)
    return todos


def is_checked_item(todo: TodoItem) -> bool:
    """True when the item carries a ticked checkbox and is not an unchecked task."""
    if todo.type == UNCHECKED_TASK:
        return False
    return "[x]" in todo.raw_text or "[X]" in todo.raw_text


def summarize(todos: Sequence[TodoItem], files_scanned: int, duration_ms: int) -> ScanSummary:
    summary = ScanSummary(total_todos=len(todos), files_scanned=files_scanned, scan_duration=duration_ms)
    for todo in todos:
        summary.by_priority[todo.priority] = summary.by_priority.get(todo.priority, 0) + 1
        summary.by_type[todo.type] = summary.by_type.get(todo.type, 0) + 1
        summary.by_file[todo.file] = summary.by_file.get(todo.file, 0) + 1
    return summary


@log_performance("scan_todos")
def scan_todos(options: ScanOptions, catalog: PatternCatalog = DEFAULT_CATALOG) -> ScanResult:
    """Scan a directory tree for TODO items.

    Raises FileNotFoundError when the root does not exist; unreadable or
    oversize files are skipped with a warning.
    """
    start = time.perf_counter()
    files = traverse_files(options.traversal_options(), catalog)

    all_todos: List[TodoItem] = []
    for info in files:
        content = read_file_safely(info.path, options.max_file_size)
        if content is None:
            continue
        file_patterns = options.patterns if options.patterns is not None else catalog.patterns_for_file(info.path)
        all_todos.extend(extract_todos_from_content(content, info.relative_path, file_patterns))

    filtered = all_todos
    if options.exclude_archives:
        filtered = [todo for todo in filtered if not is_in_archived_path(todo.file)]
    if not options.include_completed:
        filtered = [todo for todo in filtered if not is_checked_item(todo)]

    duration_ms = int((time.perf_counter() - start) * 1000)
    summary = summarize(filtered, len(files), duration_ms)

    logger.info(f"Scanned {len(files)} files under {options.root_path}: {len(filtered)} TODOs")
    log_scan_completed(options.root_path, summary.total_todos, summary.files_scanned)

    return ScanResult(
        todos=filtered,
        summary=summary,
        scan_date=utc_now_iso(),
        root_path=options.root_path,
    )


def process_todos(todos: Sequence[TodoItem]) -> List[ProcessedTodo]:
    """Attach an id and a content hash to each TODO."""
    processed = []
    for index, todo in enumerate(todos):
        processed.append(
            ProcessedTodo(
                type=todo.type,
                content=todo.content,
                file=todo.file,
                line=todo.line,
                priority=todo.priority,
                category=todo.category,
                raw_text=todo.raw_text,
                id=_generate_todo_id(index),
                hash=generate_todo_hash(todo),
            )
        )
    return processed


def process_scan_results(result: ScanResult) -> ScanResult:
    """Return a copy of the result whose TODOs carry ids and hashes."""
    return ScanResult(
        todos=process_todos(result.todos),
        summary=result.summary,
        scan_date=result.scan_date,
        root_path=result.root_path,
    )


def load_state(state_path: str | Path) -> Optional[ScanState]:
    """Load a previous scan snapshot; None if it is missing or unreadable."""
    path = Path(state_path)
    if not path.exists():
        return None
    try:
        return ScanState.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, KeyError, TypeError) as e:
        log_error_with_context(e, {"operation": "load_state", "state_path": str(path)})
        return None


def load_previous_state(state_path: str | Path) -> Set[str]:
    """Hashes of every TODO recorded in the previous snapshot."""
    state = load_state(state_path)
    return state.hashes() if state else set()


def save_state(
    state_path: str | Path,
    processed_todos: Sequence[ProcessedTodo],
    metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """Write the snapshot used by later runs to spot new TODOs."""
    path = Path(state_path)
    state = ScanState(processed_todos=list(processed_todos), metadata=dict(metadata or {}))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")
    logger.debug(f"Saved {len(processed_todos)} TODOs to {path}")
    return path


def find_new_todos(current_todos: Sequence[ProcessedTodo], previous_hashes: Set[str]) -> List[ProcessedTodo]:
    return [todo for todo in current_todos if todo.hash not in previous_hashes]


def group_todos_by_file(todos: Iterable[TodoItem]) -> Dict[str, List[TodoItem]]:
    grouped: Dict[str, List[TodoItem]] = {}
    for todo in todos:
        grouped.setdefault(todo.file, []).append(todo)
    return grouped


def group_todos_by_priority(todos: Iterable[TodoItem]) -> Dict[str, List[TodoItem]]:
    grouped: Dict[str, List[TodoItem]] = {}
    for todo in todos:
        grouped.setdefault(todo.priority, []).append(todo)
    return grouped


def filter_todos(
    todos: Iterable[TodoItem],
    priority: Optional[Sequence[str]] = None,
    type: Optional[Sequence[str]] = None,
    file: Optional[Sequence[str]] = None,
    search_term: Optional[str] = None,
) -> List[TodoItem]:
    """Filter TODOs by priority, type, file substring and search term."""
    result = []
    needle = search_term.lower() if search_term else None
    for todo in todos:
        if priority and todo.priority not in priority:
            continue
        if type and todo.type not in type:
            continue
        if file and not any(fragment in todo.file for fragment in file):
            continue
        if needle and needle not in todo.content.lower() and needle not in todo.file.lower():
            continue
        result.append(todo)
    return result

