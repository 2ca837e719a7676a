"""Feature implementation detection primitives.

Parses planning documents (markdown checklists) and gathers evidence that
the features they describe exist in the code: planned files on disk, keyword
hits, import statements and test files.
"""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from .analyzer_logging import log_error_with_context
from .models import (
    CodeMatch,
    Feature,
    FeatureDetection,
    ImplementationEvidence,
    ImportUsage,
    PlannedFile,
    PlanningDocument,
)

logger = logging.getLogger("project_analyzer.features")

PLAN_SUFFIX = "_PLAN.md"
KEYWORD_MATCH_CONFIDENCE = 50
IMPLEMENTED_CUTOFF = 40

KEYWORD_SEARCH_EXCLUDES = frozenset({"node_modules", ".git", "dist", "build", ".next"})

STOP_WORDS = frozenset({"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"})

# Sentence-initial verbs are capitalized but never name a component
ACTION_VERBS = frozenset({
    "Add", "Allow", "Build", "Create", "Display", "Enable", "Fix", "Implement",
    "Improve", "Integrate", "Make", "Move", "Refactor", "Remove", "Show",
    "Support", "Update", "Use", "Wire",
})

_TITLE_PATTERN = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_CHECKLIST_PATTERN = re.compile(r"^[\s-]*\[([xX ])\]\s*(.+)$")
_PLANNED_FILE_PATTERN = re.compile(r"(?:File:|Path:|`)\s*(/[\w/.\-]+\.(?:tsx?|jsx?|css|json|py))")
_COMPONENT_PATTERN = re.compile(r"\b[A-Z][a-zA-Z0-9]+\b")

_KEYWORD_FILE_PATTERN = re.compile(r"\.(tsx?|jsx?|css|scss|py)$", re.IGNORECASE)
_IMPORT_FILE_PATTERN = re.compile(r"\.(tsx?|jsx?|py)$", re.IGNORECASE)
_TEST_FILE_PATTERN = re.compile(r"(\.test\.|\.spec\.|__tests__)")
_PY_TEST_FILE_PATTERN = re.compile(r"^test_.*\.py$|_test\.py$")
_TEST_SUFFIX_PATTERN = re.compile(r"\.(test|spec)\.(tsx?|jsx?)$")

VERIFICATION_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"^run\s+", re.IGNORECASE),
    re.compile(r"^test\s+", re.IGNORECASE),
    re.compile(r"^verify\s+", re.IGNORECASE),
    re.compile(r"^check\s+", re.IGNORECASE),
    re.compile(r"^ensure\s+", re.IGNORECASE),
    re.compile(r"\bpass(es)?\b", re.IGNORECASE),
    re.compile(r"\bno\s+errors?\b", re.IGNORECASE),
    re.compile(r"lighthouse\s+score", re.IGNORECASE),
    re.compile(r"git\s+commit", re.IGNORECASE),
    re.compile(r"documentation\s+updated?", re.IGNORECASE),
)


def is_verification_item(description: str) -> bool:
    """Process steps (run/test/verify...) are not features."""
    return any(pattern.search(description) for pattern in VERIFICATION_PATTERNS)


def parse_planning_content(content: str, file_path: str) -> PlanningDocument:
    """Extract title, checklist features and planned files from markdown."""
    title_match = _TITLE_PATTERN.search(content)
    title = title_match.group(1).strip() if title_match else Path(file_path).name.removesuffix(".md")

    document = PlanningDocument(path=file_path, title=title)
    for index, line in enumerate(content.split("\n")):
        checklist_match = _CHECKLIST_PATTERN.match(line)
        if checklist_match:
            description = checklist_match.group(2).strip()
            if not is_verification_item(description):
                document.features.append(
                    Feature(
                        description=description,
                        line=index + 1,
                        checked=checklist_match.group(1).lower() == "x",
                    )
                )

        file_match = _PLANNED_FILE_PATTERN.search(line)
        if file_match:
            document.files.append(
                PlannedFile(
                    path=file_match.group(1),
                    type="create" if "NEW:" in line else "modify",
                )
            )

    return document


def parse_planning_document(file_path: str | Path) -> Optional[PlanningDocument]:
    """Parse a planning document; None (with an error log) if unreadable."""
    try:
        content = Path(file_path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        log_error_with_context(e, {"operation": "parse_planning_document", "path": str(file_path)})
        return None
    return parse_planning_content(content, str(file_path))


def _walk_files(root: Path, skip_dir) -> Iterator[Path]:
    """Yield files under root in a stable order, pruning directories by name."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not skip_dir(d))
        for name in sorted(filenames):
            yield Path(dirpath) / name


def _skip_hidden_and_modules(name: str) -> bool:
    return name.startswith(".") or name == "node_modules"


def find_planning_documents(root_path: str | Path) -> List[str]:
    """All ``*_PLAN.md`` files under a directory."""
    return [
        str(path)
        for path in _walk_files(Path(root_path), _skip_hidden_and_modules)
        if path.name.endswith(PLAN_SUFFIX)
    ]


def _candidate_paths(file_path: str, root_path: str | Path) -> List[Path]:
    root = Path(root_path)
    return [Path(file_path), root / file_path.lstrip("/")]


def resolve_planned_file(file_path: str, root_path: str | Path) -> Optional[Path]:
    """Locate a planned file as given, or relative to the root."""
    for candidate in _candidate_paths(file_path, root_path):
        if candidate.exists():
            return candidate
    return None


def check_file_exists(file_path: str, root_path: str | Path) -> bool:
    return resolve_planned_file(file_path, root_path) is not None


def _read_lines(path: Path) -> Optional[List[str]]:
    try:
        return path.read_text(encoding="utf-8", errors="replace").split("\n")
    except OSError:
        logger.debug(f"Unable to read {path}")
        return None


def search_for_keywords(
    keywords: Sequence[str],
    root_path: str | Path,
    exclude_dirs: frozenset = KEYWORD_SEARCH_EXCLUDES,
) -> List[CodeMatch]:
    """Every source line mentioning a keyword (case-insensitive)."""
    root = Path(root_path)
    compiled = [re.compile(re.escape(keyword), re.IGNORECASE) for keyword in keywords]
    matches: List[CodeMatch] = []

    for path in _walk_files(root, lambda name: name in exclude_dirs):
        if not _KEYWORD_FILE_PATTERN.search(path.name):
            continue
        lines = _read_lines(path)
        if lines is None:
            continue
        relative = path.relative_to(root).as_posix()
        for regex in compiled:
            for index, line in enumerate(lines):
                if regex.search(line):
                    matches.append(
                        CodeMatch(
                            file=relative,
                            line=index + 1,
                            snippet=line.strip(),
                            confidence=KEYWORD_MATCH_CONFIDENCE,
                        )
                    )
    return matches


def _import_patterns(component_name: str) -> List[re.Pattern]:
    name = re.escape(component_name)
    return [
        re.compile(rf"import\s+.*{name}.*from", re.IGNORECASE),
        re.compile(rf"from\s+['\"].*{name}", re.IGNORECASE),
        re.compile(rf"require\s*\(\s*['\"].*{name}", re.IGNORECASE),
        re.compile(rf"^\s*from\s+[\w.]+\s+import\s+.*\b{name}\b", re.IGNORECASE),
        re.compile(rf"^\s*import\s+[\w.]*{name}", re.IGNORECASE),
    ]


def find_import_usage(component_name: str, root_path: str | Path) -> List[ImportUsage]:
    """Import statements referencing a component; one hit per line."""
    root = Path(root_path)
    patterns = _import_patterns(component_name)
    usages: List[ImportUsage] = []

    for path in _walk_files(root, _skip_hidden_and_modules):
        if not _IMPORT_FILE_PATTERN.search(path.name):
            continue
        lines = _read_lines(path)
        if lines is None:
            continue
        relative = path.relative_to(root).as_posix()
        for index, line in enumerate(lines):
            if any(pattern.search(line) for pattern in patterns):
                usages.append(ImportUsage(file=relative, line=index + 1, import_statement=line.strip()))
    return usages


def _is_test_for(name: str, component_name: str) -> bool:
    if _TEST_FILE_PATTERN.search(name):
        return component_name in name or _TEST_SUFFIX_PATTERN.sub("", name) == component_name
    if _PY_TEST_FILE_PATTERN.search(name):
        return component_name.lower() in name.lower()
    return False


def find_test_files(component_name: str, root_path: str | Path) -> List[str]:
    """Test files named after a component."""
    root = Path(root_path)
    return [
        path.relative_to(root).as_posix()
        for path in _walk_files(root, _skip_hidden_and_modules)
        if _is_test_for(path.name, component_name)
    ]


def extract_keywords(feature: str) -> List[str]:
    """Meaningful words of a description plus PascalCase and camelCase variants."""
    words = [
        word
        for word in re.split(r"\s+", re.sub(r"[^\w\s-]", " ", feature.lower()))
        if len(word) > 3 and word not in STOP_WORDS
    ]

    keywords: List[str] = []

    def add(keyword: str) -> None:
        if keyword not in keywords:
            keywords.append(keyword)

    for word in words:
        add(word)
    for word in words:
        add(word[0].upper() + word[1:])
        if "-" in word:
            add(re.sub(r"-([a-z])", lambda m: m.group(1).upper(), word))
    return keywords


def find_component_name(description: str) -> Optional[str]:
    """First capitalized identifier that is not a leading action verb."""
    for match in _COMPONENT_PATTERN.finditer(description):
        if match.group(0) not in ACTION_VERBS:
            return match.group(0)
    return None


def check_implementation_patterns(
    files_found: Sequence[str],
    feature_description: str,
    root_path: str | Path,
) -> Tuple[int, int]:
    """Count (found_patterns, total_checked) over at most five planned files."""
    found_patterns = 0
    total_checked = 0
    keywords = extract_keywords(feature_description)[:3]

    for planned in files_found[:5]:
        path = resolve_planned_file(planned, root_path)
        if path is None:
            continue
        try:
            content = path.read_text(encoding="utf-8", errors="replace").lower()
        except OSError:
            continue
        total_checked += 1

        if any(keyword.lower() in content for keyword in keywords):
            found_patterns += 1

        suffix = path.suffix.lower()
        if suffix in (".css", ".scss"):
            if "@keyframes" in content or "animation:" in content:
                found_patterns += 1
        elif suffix in (".tsx", ".jsx"):
            if "classname=" in content or "animate-" in content:
                found_patterns += 1
        elif suffix in (".ts", ".js"):
            if "export" in content or "function" in content:
                found_patterns += 1
        elif suffix == ".py":
            if "def " in content or "class " in content:
                found_patterns += 1

    return found_patterns, total_checked


def calculate_implementation_confidence(
    evidence: ImplementationEvidence,
    feature_description: str = "",
    root_path: str | Path = "",
) -> int:
    """Tiered confidence that a feature is implemented.

    Hard evidence (files plus usage or tests) outranks files alone, which
    outranks usage alone; keyword hits by themselves never exceed 40.
    """
    has_files = bool(evidence.files_found)
    has_tests = bool(evidence.tests_found)
    has_usage = bool(evidence.usage_detected)

    pattern_bonus = 0
    if has_files and root_path and feature_description:
        found, checked = check_implementation_patterns(evidence.files_found, feature_description, root_path)
        if checked > 0:
            pattern_bonus = round((found / checked) * 10)

    if has_files and (has_usage or has_tests):
        score = 80
        if has_usage:
            score += min(len(evidence.usage_detected) * 5, 15)
        if has_tests:
            score += 10
        score += pattern_bonus
        return min(score, 100)

    if has_files:
        return min(60 + pattern_bonus, 80)

    if has_usage:
        return 50 + min(len(evidence.usage_detected) * 5, 20)

    if evidence.code_patterns:
        average = sum(match.confidence for match in evidence.code_patterns) / len(evidence.code_patterns)
        return min(round(average * 0.8), 40)

    return 0


def determine_status(confidence: int) -> str:
    """Existence, not quality: any real evidence counts as implemented."""
    if confidence >= IMPLEMENTED_CUTOFF:
        return "implemented"
    if confidence > 0:
        return "partial"
    return "missing"


def generate_recommendation(detection: FeatureDetection) -> str:
    confidence = detection.confidence
    evidence = detection.evidence

    if detection.status == "implemented":
        if evidence.tests_found:
            return f"✅ Appears implemented with test coverage ({confidence}% confidence)"
        return f"✅ Appears implemented ({confidence}% confidence) - Consider adding tests"

    if detection.status == "partial":
        if evidence.files_found:
            return f"⚠️  Partially implemented ({confidence}% confidence) - Files exist but usage unclear"
        return f"⚠️  Partially implemented ({confidence}% confidence) - Some code patterns found"

    return f"❌ No implementation detected ({confidence}% confidence) - Feature appears missing"


def last_modified_of(paths: Sequence[Path]) -> Optional[datetime]:
    latest = None
    for path in paths:
        try:
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        except OSError:
            continue
        if latest is None or modified > latest:
            latest = modified
    return latest
