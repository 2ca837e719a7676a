"""File traversal for walking repository directories.

Selection rules, applied in order:

1. ``include_patterns``, matched as globs against the relative path,
2. ``.gitignore`` rules from the scan root (when ``use_gitignore`` is set),
3. the hardcoded block-list of dependency, build and artifact paths,
4. caller ``exclude_patterns``,
5. the scannable-extension allow-list of the pattern catalog.

Rules 2-4 share gitignore semantics and are evaluated together, so a later
line can override an earlier one. Results are sorted by relative path so
repeated scans diff cleanly.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pathspec import GitIgnoreSpec
from wcmatch import glob

from .analyzer_logging import log_file_skipped
from .models import FileInfo
from .patterns import DEFAULT_CATALOG, PatternCatalog, file_extension

logger = logging.getLogger("project_analyzer.traversal")

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024

INCLUDE_GLOB_FLAGS = glob.GLOBSTAR | glob.DOTGLOB

ALWAYS_IGNORED = (
    "node_modules/",
    ".git/",
    "dist/",
    "build/",
    "coverage/",
    ".env",
    ".env.local",
    "*.log",
    ".DS_Store",
    "Thumbs.db",
    "*.pyc",
    "__pycache__/",
    ".vscode/",
    ".idea/",
    "*.iml",
    "vendor/",
    "target/",
    "*.class",
    "*.jar",
    "*.war",
    "*.ear",
)


@dataclass(slots=True)
class TraversalOptions:
    root_path: str
    include_patterns: List[str] = field(default_factory=lambda: ["**/*"])
    exclude_patterns: List[str] = field(default_factory=list)
    use_gitignore: bool = True
    max_depth: int = 10
    follow_symlinks: bool = False


class IgnoreMatcher:
    """Gitignore-style matcher over an ordered list of rule lines.

    Later lines override earlier ones, so a ``!pattern`` re-includes what a
    previous line ignored. Directories are matched with a trailing slash.
    """

    def __init__(self, lines: Optional[Iterable[str]] = None):
        self.lines: List[str] = []
        self._spec = GitIgnoreSpec.from_lines([])
        if lines:
            self.add(lines)

    def add(self, lines: Iterable[str]) -> "IgnoreMatcher":
        self.lines.extend(line.rstrip("\r\n") for line in lines)
        self._spec = GitIgnoreSpec.from_lines(self.lines)
        return self

    def ignores(self, rel_path: str, is_dir: bool = False) -> bool:
        rel_path = rel_path.replace("\\", "/").strip("/")
        if is_dir:
            rel_path += "/"
        return self._spec.match_file(rel_path)


def load_gitignore(root: Path) -> List[str]:
    """Rule lines from the root .gitignore, if present."""
    gitignore_path = root / ".gitignore"
    if not gitignore_path.is_file():
        return []
    try:
        content = gitignore_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning(f"Unable to read {gitignore_path}: {e}")
        return []
    return content.splitlines()


def build_ignore_matcher(
    root: Path,
    use_gitignore: bool = True,
    exclude_patterns: Iterable[str] = (),
) -> IgnoreMatcher:
    matcher = IgnoreMatcher()
    if use_gitignore:
        matcher.add(load_gitignore(root))
    matcher.add(ALWAYS_IGNORED)
    matcher.add(exclude_patterns)
    return matcher


def matches_include(rel_path: str, patterns: Iterable[str]) -> bool:
    """Glob match where ``*`` stays within one segment and ``**`` spans any number, including none."""
    patterns = list(patterns)
    return bool(patterns) and glob.globmatch(rel_path, patterns, flags=INCLUDE_GLOB_FLAGS)


def traverse_files(
    options: TraversalOptions,
    catalog: PatternCatalog = DEFAULT_CATALOG,
) -> List[FileInfo]:
    """Return every scannable file under the root, sorted by relative path.

    Raises FileNotFoundError if the root does not exist. Files that cannot be
    stat'ed are skipped with a warning.
    """
    root = Path(options.root_path)
    if not root.exists():
        raise FileNotFoundError(f"Root path does not exist: {options.root_path}")
    root = root.resolve()

    matcher = build_ignore_matcher(root, options.use_gitignore, options.exclude_patterns)
    files: Dict[str, FileInfo] = {}

    for dirpath, dirnames, filenames in os.walk(
        root,
        followlinks=options.follow_symlinks,
        onerror=lambda e: log_file_skipped(str(e.filename), f"unreadable directory ({e.strerror})"),
    ):
        current = Path(dirpath)
        rel_dir = current.relative_to(root).as_posix()
        depth = 0 if rel_dir == "." else rel_dir.count("/") + 1

        kept_dirs = []
        for name in sorted(dirnames):
            rel = name if depth == 0 else f"{rel_dir}/{name}"
            if depth + 1 >= options.max_depth:
                continue
            if matcher.ignores(rel, is_dir=True):
                continue
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in filenames:
            rel = name if depth == 0 else f"{rel_dir}/{name}"
            if not matches_include(rel, options.include_patterns):
                continue
            if matcher.ignores(rel):
                continue
            if not catalog.should_scan(rel):
                continue

            full_path = current / name
            try:
                stats = full_path.stat()
            except OSError as e:
                log_file_skipped(str(full_path), f"unable to stat ({e})")
                continue
            if not full_path.is_file():
                continue

            files[rel] = FileInfo(
                path=str(full_path),
                relative_path=rel,
                size=stats.st_size,
                extension=file_extension(name),
            )

    return [files[rel] for rel in sorted(files)]


def read_file_safely(file_path: str | Path, max_size: int = DEFAULT_MAX_FILE_SIZE) -> Optional[str]:
    """Read a text file, returning None for oversize or unreadable files."""
    path = Path(file_path)
    try:
        size = path.stat().st_size
        if size > max_size:
            log_file_skipped(str(path), f"file too large ({size} bytes)")
            return None
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        log_file_skipped(str(path), f"read error ({e})")
        return None


def count_file_lines(file_path: str | Path) -> int:
    try:
        return Path(file_path).read_text(encoding="utf-8", errors="replace").count("\n") + 1
    except OSError:
        return 0


def get_repository_stats(root_path: str) -> Dict[str, object]:
    """Totals, per-extension counts and the ten largest scannable files."""
    files = traverse_files(TraversalOptions(root_path=root_path))

    total_lines = 0
    files_by_extension: Dict[str, int] = {}
    for info in files:
        total_lines += count_file_lines(info.path)
        ext = info.extension or "no-extension"
        files_by_extension[ext] = files_by_extension.get(ext, 0) + 1

    largest = sorted(files, key=lambda f: f.size, reverse=True)[:10]

    return {
        "total_files": len(files),
        "total_lines": total_lines,
        "files_by_extension": files_by_extension,
        "largest_files": largest,
    }
