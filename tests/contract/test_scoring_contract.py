"""
Contract tests for scanning and scoring behavior.

Each class pins one externally visible rule: what the scanner may report,
how completion confidence is blended and bounded, how feature status is
derived, and the end-to-end scenarios built on those rules.
"""

import pytest
from pathlib import Path
from unittest.mock import patch

from project_analyzer.completion import analyze_todo_completion
from project_analyzer.completion_patterns import calculate_completion_confidence
from project_analyzer.feature_detection import determine_status
from project_analyzer.feature_detector import DetectionOptions, analyze_implementation
from project_analyzer.models import ContextCheck, DirectCheck, OldDocumentCheck, TodoItem
from project_analyzer.scanner import (
    ScanOptions,
    find_new_todos,
    load_previous_state,
    process_scan_results,
    save_state,
    scan_todos,
)


def write(root: Path, relative: str, content: str = "") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def scan(root: Path, **options):
    return scan_todos(ScanOptions(root_path=str(root), **options))


class TestIgnoredFilesContract:
    """Contract: ignored files never produce TODO items."""

    @pytest.mark.parametrize(
        "relative",
        [
            "node_modules/pkg/index.js",
            "dist/bundle.js",
            "build/out.py",
            "coverage/report.js",
            "__pycache__/mod.py",
            "private/plan.md",
            "notes.draft.md",
        ],
    )
    def test_ignored_file_yields_nothing(self, tmp_path, relative):
        """
        Given: A TODO inside a block-listed or .gitignore'd location
        When: The repository is scanned
        Then: No TODO item points at that file
        """
        write(tmp_path, ".gitignore", "private/\n*.draft.md\n")
        write(tmp_path, relative, "// TODO: should never be reported\n- [ ] hidden\n")
        write(tmp_path, "src/main.py", "# TODO: visible\n")

        result = scan(tmp_path)

        assert [t.file for t in result.todos] == ["src/main.py"]


class TestCheckedItemContract:
    """Contract: ticked checkboxes are dropped unless completed items are requested."""

    def test_checked_comment_filtered(self, tmp_path):
        """
        Given: A TODO comment carrying [X]
        When: Scanned with and without include_completed
        Then: It only appears when completed items are requested
        """
        write(tmp_path, "src/app.ts", "// TODO: [X] migrate config\n")

        assert scan(tmp_path).todos == []
        assert len(scan(tmp_path, include_completed=True).todos) == 1

    def test_unchecked_task_always_kept(self, tmp_path):
        """
        Given: An unchecked markdown task whose text mentions [x]
        When: Scanned with default options
        Then: The unchecked task is still reported
        """
        write(tmp_path, "plan.md", "- [ ] plot [x] against time\n")

        assert [t.type for t in scan(tmp_path).todos] == ["Unchecked Task"]


class TestCompletionBlendContract:
    """Contract: completion confidence is a weighted blend of fired checks."""

    def test_direct_only(self):
        """Given only a direct hit of 95, the final score is 95."""
        direct = DirectCheck(is_completed=True, confidence=95)

        assert calculate_completion_confidence(direct, ContextCheck(), OldDocumentCheck()) == 95

    def test_adding_context(self):
        """Adding a context hit of 80 moves the score to 88.3."""
        direct = DirectCheck(is_completed=True, confidence=95)
        context = ContextCheck(has_completion_indicator=True, confidence=80)

        score = calculate_completion_confidence(direct, context, OldDocumentCheck())

        assert score == pytest.approx((95 * 1.5 + 80 * 1.2) / (1.5 + 1.2))
        assert round(score, 1) == 88.3

    @pytest.mark.parametrize("extra", [90, 95, 100])
    def test_stronger_extra_check_never_lowers(self, extra):
        """A further fired check at or above the current score never lowers it."""
        direct = DirectCheck(is_completed=True, confidence=90)
        before = calculate_completion_confidence(direct, ContextCheck(), OldDocumentCheck())

        context = ContextCheck(has_completion_indicator=True, confidence=extra)
        after = calculate_completion_confidence(direct, context, OldDocumentCheck())

        assert after >= before

    @pytest.mark.parametrize("raw, expected", [(70, True), (69, False)])
    def test_likely_completed_boundary(self, raw, expected):
        """
        Given: A blended confidence of 70 or 69
        When: A TODO is analyzed
        Then: Only 70 counts as likely completed
        """
        todo = TodoItem(type="TODO", content="x", file="a.ts", line=1, priority="medium",
                        category="code", raw_text="// TODO: x")

        with patch("project_analyzer.completion.calculate_completion_confidence", return_value=raw):
            analysis = analyze_todo_completion(todo, "// TODO: x\n", "a.ts")

        assert analysis.confidence == raw
        assert analysis.is_likely_completed is expected


class TestFeatureStatusContract:
    """Contract: feature status uses fixed cutoffs."""

    @pytest.mark.parametrize("confidence, status", [(40, "implemented"), (39, "partial"), (0, "missing")])
    def test_status_boundaries(self, confidence, status):
        assert determine_status(confidence) == status


class TestHashStabilityContract:
    """Contract: unchanged files hash identically across scans."""

    def test_rescan_has_empty_diff(self, tmp_path):
        """
        Given: A saved snapshot of a repository
        When: The untouched repository is scanned again
        Then: Hashes match and no new TODOs are found
        """
        repo = tmp_path / "repo"
        write(repo, "src/app.py", "# TODO: one\n# FIXME: two\n")
        write(repo, "notes.md", "- [ ] three\n")

        first = process_scan_results(scan(repo))
        state_path = save_state(tmp_path / "state" / "state.json", first.todos)
        second = process_scan_results(scan(repo))

        assert [t.hash for t in first.todos] == [t.hash for t in second.todos]
        assert find_new_todos(second.todos, load_previous_state(state_path)) == []


class TestEndToEndScenarios:
    """Contract: end-to-end scenarios."""

    def test_plain_todo_is_active(self, tmp_path):
        """
        Given: // TODO: fix this on line 5 with no completion language nearby
        When: Scanned and analyzed
        Then: One medium TODO on line 5 with confidence 0
        """
        content = "const a = 1;\nconst b = 2;\n\nfunction run() {\n  // TODO: fix this\n}\n"
        write(tmp_path, "src/app.ts", content)

        result = scan(tmp_path)

        assert len(result.todos) == 1
        todo = result.todos[0]
        assert (todo.type, todo.line, todo.priority) == ("TODO", 5, "medium")

        analysis = analyze_todo_completion(todo, content, todo.file)
        assert analysis.confidence == 0
        assert analysis.is_likely_completed is False

    def test_checked_markdown_task(self, tmp_path):
        """
        Given: The markdown line - [x] Ship feature X
        When: Scanned with defaults, and analyzed directly
        Then: The scanner reports nothing and the analyzer scores at least 95
        """
        write(tmp_path, "tasks.md", "- [x] Ship feature X\n")

        assert scan(tmp_path).todos == []

        todo = TodoItem(type="Unchecked Task", content="Ship feature X", file="tasks.md", line=1,
                        priority="medium", category="markdown", raw_text="- [x] Ship feature X")
        analysis = analyze_todo_completion(todo, "- [x] Ship feature X\n", "tasks.md")
        assert analysis.confidence >= 95
        assert analysis.is_likely_completed

    def test_planned_feature_with_usage_and_tests(self, tmp_path):
        """
        Given: A plan naming File: /src/foo.ts for "Implement Foo widget",
               the file imported twice and one matching test file
        When: Implementation is analyzed
        Then: Confidence is 80 + 10 + 10 + pattern bonus, clamped to 100
        """
        write(tmp_path, "docs/FOO_PLAN.md", "# Foo\n\n- [ ] Implement Foo widget\n- File: /src/foo.ts\n")
        write(tmp_path, "src/foo.ts", "export function Foo() {}\n")
        write(tmp_path, "src/a.ts", "import { Foo } from './foo';\n")
        write(tmp_path, "src/b.ts", "import Foo from './foo';\n")
        write(tmp_path, "src/Foo.test.ts", "describe('widget', () => {});\n")

        report = analyze_implementation(DetectionOptions(root_path=str(tmp_path)))

        detection = report.detections[0]
        assert len(detection.evidence.usage_detected) == 2
        assert len(detection.evidence.tests_found) == 1
        assert detection.confidence == 100
        assert detection.status == "implemented"

    def test_archived_directory_excluded(self, tmp_path):
        """
        Given: Only files under archive/2022-old-plan/ that contain TODOs
        When: Scanned with exclude_archives
        Then: No TODO items are returned
        """
        write(tmp_path, "archive/2022-old-plan/plan.md", "- [ ] migrate users\n<!-- TODO: tidy -->\n")
        write(tmp_path, "archive/2022-old-plan/job.py", "# TODO: retry failed jobs\n")

        assert len(scan(tmp_path).todos) == 3
        assert scan(tmp_path, exclude_archives=True).todos == []
