"""Unit tests for completion detection."""

import pytest
from unittest.mock import patch

from project_analyzer.completion import (
    ARCHIVED_REASON,
    analyze_completions,
    analyze_todo_completion,
    build_completion_report,
    filter_by_completion_status,
    get_completion_stats,
    get_top_cleanup_candidates,
    group_completed_by_file,
)
from project_analyzer.completion_patterns import (
    analyze_context,
    calculate_completion_confidence,
    check_direct_completion,
    generate_suggestions,
    is_in_archived_path,
    is_in_old_document,
)
from project_analyzer.git_info import GitInfoProvider
from project_analyzer.models import (
    CompletionAnalysis,
    ContextCheck,
    DirectCheck,
    GitCommit,
    OldDocumentCheck,
    TodoItem,
)

CLEAN_SOURCE = "const a = 1;\nconst b = 2;\n\nfunction run() {\n  // TODO: fix this\n}\n"


def todo(**overrides):
    data = dict(
        type="TODO",
        content="fix this",
        file="src/app.ts",
        line=5,
        priority="medium",
        category="code",
        raw_text="// TODO: fix this",
    )
    data.update(overrides)
    return TodoItem(**data)


def analysis(confidence, file="src/app.ts"):
    return CompletionAnalysis(todo=todo(file=file), confidence=confidence, is_likely_completed=confidence >= 70)


class TestDirectCheck:
    """Test cases for check_direct_completion."""

    def test_explicit_checkbox(self):
        check = check_direct_completion("- [x] Ship feature X")

        assert check == DirectCheck(is_completed=True, confidence=95, reason="Task explicitly marked as completed")

    @pytest.mark.parametrize("text", ["✅ migrate db", "done ✓", "[X] upper case"])
    def test_other_explicit_markers(self, text):
        assert check_direct_completion(text).confidence == 95

    def test_strikethrough(self):
        check = check_direct_completion("// TODO: ~~remove flag~~")

        assert check.confidence == 90
        assert check.reason == "Strikethrough formatting"

    def test_context_indicators_ignored(self):
        assert not check_direct_completion("// TODO: this is done").is_completed


class TestContextCheck:
    """Test cases for analyze_context."""

    def test_mean_of_matching_indicators(self):
        content = "line\n// TODO: retry logic\nStatus: done\n"

        check = analyze_context(content, 2)

        assert check.has_completion_indicator
        assert check.indicators == ["Contains completion keywords", "Explicit status indicator"]
        assert check.confidence == pytest.approx(85.0)

    def test_window_is_three_lines(self):
        lines = ["filler"] * 20
        lines[9] = "// TODO: ship it"
        lines[13] = "deployed last week"

        assert not analyze_context("\n".join(lines), 10).has_completion_indicator

        lines[12] = "deployed last week"
        check = analyze_context("\n".join(lines), 10)
        assert check.indicators == ["Deployment/release indicators"]
        assert check.confidence == 75

    def test_no_indicators(self):
        assert analyze_context(CLEAN_SOURCE, 5) == ContextCheck()


class TestOldDocument:
    """Test cases for archive paths and old-document detection."""

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("archive/plan.md", True),
            ("docs/_archive/plan.md", True),
            ("src/legacy/api.py", True),
            ("notes.old.md", True),
            ("src/deprecated_api.py", False),
            ("docs/archives.md", False),
        ],
    )
    def test_archived_path(self, path, expected):
        assert is_in_archived_path(path) is expected

    def test_archived_path_is_old(self):
        check = is_in_old_document("docs/archive/plan.md", "plain content")

        assert check.is_old
        assert check.confidence == 70
        assert check.reasons == ["File is in archived directory"]

    def test_old_version_alone_is_not_old(self):
        check = is_in_old_document("docs/release.md", "intro\n\n" + "x" * 600 + "\nversion: 0.9")

        assert check.confidence == 30
        assert not check.is_old

    def test_early_phase_and_version(self):
        check = is_in_old_document("docs/phase-2/plan.md", "intro\n\n" + "x" * 600 + "\nversion: 0.5")

        assert check.confidence == 70
        assert "Early phase document: Phase 2" in check.reasons

    def test_late_phase_ignored(self):
        assert is_in_old_document("docs/phase3/plan.md", "text").confidence == 0

    def test_header_indicators_and_cap(self):
        content = "This legacy plan was superseded.\nversion: 0.2\n"

        check = is_in_old_document("archive/plan.md", content)

        assert check.confidence == 100
        assert 'Document header mentions: "legacy"' in check.reasons

    def test_many_old_dates(self):
        body = "x" * 600 + "\n2020 2021 2022 2023"
        check = is_in_old_document("notes.md", body)

        assert check.reasons == ["Document contains multiple old dates"]
        assert check.confidence == 20


class TestConfidenceBlend:
    """Test cases for calculate_completion_confidence."""

    def test_nothing_fired(self):
        assert calculate_completion_confidence(DirectCheck(), ContextCheck(), OldDocumentCheck()) == 0

    def test_direct_only(self):
        direct = DirectCheck(is_completed=True, confidence=95)

        assert calculate_completion_confidence(direct, ContextCheck(), OldDocumentCheck()) == 95

    def test_direct_and_context(self):
        direct = DirectCheck(is_completed=True, confidence=95)
        context = ContextCheck(has_completion_indicator=True, confidence=80)

        result = calculate_completion_confidence(direct, context, OldDocumentCheck())

        assert result == pytest.approx((95 * 1.5 + 80 * 1.2) / 2.7)
        assert round(result, 1) == 88.3

    def test_unfired_check_is_ignored(self):
        old = OldDocumentCheck(is_old=False, confidence=45)
        context = ContextCheck(has_completion_indicator=True, confidence=80)

        assert calculate_completion_confidence(DirectCheck(), context, old) == 80

    @pytest.mark.parametrize(
        "confidence, first",
        [
            (95, "✅ Very likely completed - safe to close"),
            (90, "✅ Very likely completed - safe to close"),
            (89, "⚠️ Probably completed - recommend manual review"),
            (70, "⚠️ Probably completed - recommend manual review"),
            (50, "❓ Possibly completed - needs verification"),
            (30, "📋 May be completed - low confidence"),
            (29, "🔴 Appears active - no completion indicators"),
        ],
    )
    def test_suggestion_tiers(self, confidence, first):
        assert generate_suggestions(confidence)[0] == first


class TestAnalyzeTodo:
    """Test cases for analyze_todo_completion."""

    def test_active_todo(self):
        result = analyze_todo_completion(todo(), CLEAN_SOURCE, "src/app.ts")

        assert result.confidence == 0
        assert not result.is_likely_completed
        assert result.reasons == []
        assert result.suggestions == ["🔴 Appears active - no completion indicators"]

    def test_checked_markdown_item(self):
        item = todo(type="TODO", file="docs/tasks.md", line=1, raw_text="- [x] Ship feature X")

        result = analyze_todo_completion(item, "- [x] Ship feature X\n", "docs/tasks.md")

        assert result.confidence == 95
        assert result.is_likely_completed

    def test_blend_is_rounded(self):
        item = todo(raw_text="// TODO: [x] fix this")
        content = "a\nb\nc\nd\n// TODO: [x] fix this\nfixed in the last release cycle\n"

        result = analyze_todo_completion(item, content, "src/app.ts")

        assert result.confidence == 88
        assert result.reasons == ["Task explicitly marked as completed", "Contains completion keywords"]

    @pytest.mark.parametrize("raw, expected", [(70.0, True), (69.0, False), (69.4, False)])
    def test_threshold_is_inclusive_at_seventy(self, raw, expected):
        with patch("project_analyzer.completion.calculate_completion_confidence", return_value=raw):
            result = analyze_todo_completion(todo(), CLEAN_SOURCE, "src/app.ts")

        assert result.is_likely_completed is expected

    def test_archived_reason_not_duplicated(self):
        result = analyze_todo_completion(todo(file="archive/app.ts"), CLEAN_SOURCE, "archive/app.ts")

        assert result.reasons.count(ARCHIVED_REASON) == 1
        assert result.confidence == 70

    def test_git_evidence_attached_without_changing_score(self):
        class HistoryProvider(GitInfoProvider):
            def search_history(self, search_term, max_results=10):
                return [GitCommit(commit="abc123", date="2024-01-01", message=f"Handle {search_term}")]

        item = todo(content="handle")
        result = analyze_todo_completion(item, CLEAN_SOURCE, "src/app.ts", HistoryProvider())

        assert result.confidence == 0
        assert result.git_evidence.has_evidence
        assert result.git_evidence.confidence == 15
        assert 'Git: Found 1 commits mentioning "handle"' in result.reasons


class TestReports:
    """Test cases for report assembly and helpers."""

    def test_buckets_and_recommendations(self):
        analyses = [analysis(c) for c in (95, 90, 75, 60, 40, 10)]

        report = build_completion_report(7, analyses)

        assert report.total_todos == 7
        assert report.likely_completed == 2
        assert report.probably_completed == 1
        assert report.possibly_completed == 1
        assert report.active_count == 2
        assert report.summary.low_confidence == 1
        assert report.summary.active == 1
        assert [a.confidence for a in report.recommendations.safe_to_close] == [95, 90]
        assert [a.confidence for a in report.recommendations.needs_review] == [75]
        assert [a.confidence for a in report.recommendations.possibly_done] == [60]

    def test_analyze_completions_reads_files(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "app.ts").write_text(CLEAN_SOURCE, encoding="utf-8")
        todos = [todo(), todo(file="src/gone.ts")]

        report = analyze_completions(todos, str(tmp_path))

        assert report.total_todos == 2
        assert len(report.analyses) == 1
        assert report.analyses[0].confidence == 0

    def test_filter_by_completion_status(self):
        analyses = [analysis(95), analysis(40), analysis(10)]

        assert [t.file for t in filter_by_completion_status(analyses)] == ["src/app.ts", "src/app.ts"]
        assert len(filter_by_completion_status(analyses, include_completed=True)) == 3
        assert len(filter_by_completion_status(analyses, min_confidence=20)) == 1

    def test_completion_stats(self):
        report = build_completion_report(4, [analysis(95), analysis(80), analysis(55), analysis(5)])

        stats = get_completion_stats(report)

        assert stats["completion_rate"] == 50.0
        assert stats["recommended_actions"] == {"close": 1, "review": 1, "verify": 1, "keep": 1}
        assert stats["potential_cleanup"] == 2

    def test_completion_stats_empty(self):
        assert get_completion_stats(build_completion_report(0, []))["completion_rate"] == 0.0

    def test_cleanup_candidates(self):
        analyses = [
            analysis(95, "a.md"),
            analysis(75, "a.md"),
            analysis(90, "b.md"),
            analysis(20, "c.md"),
        ]
        report = build_completion_report(4, analyses)

        assert get_top_cleanup_candidates(report) == [
            {"file": "a.md", "count": 2, "avg_confidence": 85.0},
            {"file": "b.md", "count": 1, "avg_confidence": 90.0},
        ]
        assert list(group_completed_by_file(analyses, min_confidence=90)) == ["a.md", "b.md"]
