"""Pattern definitions for identifying TODO items in code and markdown files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Tuple

from .models import TodoPattern

_COMMENT_LEAD = r"(?:\/\/|#|\/\*|\*|<!--)"


def _code_marker(name: str, priority: str) -> TodoPattern:
    return TodoPattern(
        name=name,
        regex=re.compile(
            _COMMENT_LEAD + r"\s*" + name + r":?\s*([^\r\n]+?)(?:\*\/|-->)?\r?$",
            re.IGNORECASE | re.MULTILINE,
        ),
        priority=priority,
        category="code",
    )


# Code comment patterns for various programming languages
CODE_PATTERNS: Tuple[TodoPattern, ...] = (
    _code_marker("TODO", "medium"),
    _code_marker("FIXME", "high"),
    _code_marker("HACK", "low"),
    _code_marker("BUG", "high"),
    _code_marker("OPTIMIZE", "low"),
    _code_marker("REFACTOR", "medium"),
    _code_marker("NOTE", "low"),
    _code_marker("XXX", "medium"),
)

MARKDOWN_PATTERNS: Tuple[TodoPattern, ...] = (
    TodoPattern(
        name="Unchecked Task",
        regex=re.compile(r"^[ \t]*-[ \t]+\[ \][ \t]+([^\r\n]+?)\r?$", re.MULTILINE),
        priority="medium",
        category="markdown",
    ),
    TodoPattern(
        name="TODO Section",
        # heading followed by every line up to the next heading or end of text
        regex=re.compile(
            r"^#+[ \t]*(?:TODO|To[ \t]*Do|Tasks?)(?:[ \t]*:)?[ \t]*(?:\r?\n)+((?:^(?!#).*\n?)*)",
            re.IGNORECASE | re.MULTILINE,
        ),
        priority="medium",
        category="markdown",
    ),
    TodoPattern(
        name="Action Item",
        regex=re.compile(r"^(?:Action\s*Item|AI)(?:\s*\d*)?:\s*([^\r\n]+?)\r?$", re.IGNORECASE | re.MULTILINE),
        priority="high",
        category="markdown",
    ),
    TodoPattern(
        name="Incomplete Note",
        regex=re.compile(r"\[(?:TBD|TBA|WIP|INCOMPLETE)\]", re.IGNORECASE),
        priority="medium",
        category="markdown",
    ),
)

ALL_PATTERNS: Tuple[TodoPattern, ...] = CODE_PATTERNS + MARKDOWN_PATTERNS

MARKDOWN_EXTENSIONS = frozenset({"md", "mdx", "markdown"})

CODE_EXTENSIONS = frozenset({
    "js", "jsx", "ts", "tsx", "py", "java", "cpp", "c", "cs", "go", "rs", "rb",
    "php", "swift", "kt", "scala", "r", "sh", "bash",
})

SCANNABLE_EXTENSIONS = frozenset({
    "md", "mdx", "markdown", "txt", "rst",
    "js", "jsx", "ts", "tsx", "mjs", "cjs",
    "py", "pyw", "pyx",
    "java", "kt", "kts",
    "cpp", "c", "h", "hpp", "cc", "cxx",
    "cs", "vb",
    "go",
    "rs",
    "rb", "erb",
    "php", "phtml",
    "swift",
    "scala", "sc",
    "r", "rmd",
    "sh", "bash", "zsh", "fish",
    "yaml", "yml",
    "json", "jsonc",
    "xml", "html", "htm",
    "sql",
    "dart",
    "lua",
    "perl", "pl",
    "julia", "jl",
    "vue", "svelte",
})


def file_extension(file_path: str) -> str:
    """Lower-cased extension without the dot ('' when there is none)."""
    suffix = PurePath(file_path).suffix
    return suffix[1:].lower() if suffix else ""


@dataclass(frozen=True, slots=True)
class PatternCatalog:
    """Read-only pattern tables, selected per file extension."""

    code: Tuple[TodoPattern, ...] = CODE_PATTERNS
    markdown: Tuple[TodoPattern, ...] = MARKDOWN_PATTERNS
    markdown_extensions: frozenset = MARKDOWN_EXTENSIONS
    code_extensions: frozenset = CODE_EXTENSIONS
    scannable_extensions: frozenset = SCANNABLE_EXTENSIONS

    @property
    def all(self) -> Tuple[TodoPattern, ...]:
        return self.code + self.markdown

    def patterns_for_file(self, file_path: str) -> Tuple[TodoPattern, ...]:
        ext = file_extension(file_path)
        if ext in self.markdown_extensions:
            # markdown can carry fenced code blocks
            return self.markdown + self.code
        if ext in self.code_extensions:
            return self.code
        return self.all

    def should_scan(self, file_path: str) -> bool:
        return file_extension(file_path) in self.scannable_extensions


DEFAULT_CATALOG = PatternCatalog()


def get_patterns_for_file(file_path: str) -> Tuple[TodoPattern, ...]:
    """Get patterns based on file extension."""
    return DEFAULT_CATALOG.patterns_for_file(file_path)


def should_scan_file(file_path: str) -> bool:
    """Check if a file should be scanned based on its extension."""
    return DEFAULT_CATALOG.should_scan(file_path)
