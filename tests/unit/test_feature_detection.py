"""Unit tests for planning-document parsing and feature detection."""

import pytest
from pathlib import Path

from project_analyzer.feature_detection import (
    calculate_implementation_confidence,
    check_file_exists,
    check_implementation_patterns,
    determine_status,
    extract_keywords,
    find_component_name,
    find_import_usage,
    find_planning_documents,
    find_test_files,
    is_verification_item,
    parse_planning_content,
    parse_planning_document,
    search_for_keywords,
)
from project_analyzer.feature_detector import (
    DetectionOptions,
    analyze_implementation,
    get_progress_by_plan,
    get_top_unimplemented_features,
    summarize_detections,
)
from project_analyzer.models import (
    CodeMatch,
    Feature,
    FeatureDetection,
    ImplementationEvidence,
    ImplementationReport,
    ImportUsage,
)

FOO_PLAN = """# Foo Plan

- [ ] Implement Foo widget
- [x] Build Bar panel
- [ ] Run the test suite
- File: /src/foo.ts
"""

IDEAS_PLAN = """# Ideas

- [ ] Add Quantum teleporter
"""


def write(root: Path, relative: str, content: str = "") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def foo_project(tmp_path):
    write(tmp_path, "docs/FOO_PLAN.md", FOO_PLAN)
    write(tmp_path, "docs/IDEAS_PLAN.md", IDEAS_PLAN)
    write(tmp_path, "src/foo.ts", "export function Foo() {}\n")
    write(tmp_path, "src/a.ts", "import { Foo } from './foo';\n")
    write(tmp_path, "src/b.ts", "import Foo from './foo';\n")
    write(tmp_path, "src/Foo.test.ts", "describe('widget', () => {});\n")
    return tmp_path


def detection(plan, status, confidence):
    return FeatureDetection(
        feature=Feature(description=f"{status} {confidence}", line=1, checked=False),
        plan_document=plan,
        status=status,
        confidence=confidence,
        evidence=ImplementationEvidence(),
    )


class TestPlanningDocuments:
    """Test cases for planning-document parsing."""

    def test_parse_features_and_files(self):
        content = FOO_PLAN + "NEW: `/src/components/Bar.tsx`\n"

        document = parse_planning_content(content, "docs/FOO_PLAN.md")

        assert document.title == "Foo Plan"
        assert [(f.description, f.line, f.checked) for f in document.features] == [
            ("Implement Foo widget", 3, False),
            ("Build Bar panel", 4, True),
        ]
        assert [(f.path, f.type) for f in document.files] == [
            ("/src/foo.ts", "modify"),
            ("/src/components/Bar.tsx", "create"),
        ]

    def test_title_falls_back_to_file_name(self):
        document = parse_planning_content("- [ ] Add Foo\n", "docs/FOO_PLAN.md")

        assert document.title == "FOO_PLAN"

    def test_unreadable_document_is_none(self, tmp_path):
        assert parse_planning_document(tmp_path / "MISSING_PLAN.md") is None

    @pytest.mark.parametrize(
        "description, expected",
        [
            ("Run npm test", True),
            ("Verify the layout on mobile", True),
            ("All unit tests pass", True),
            ("Build completes with no errors", True),
            ("Lighthouse score above 90", True),
            ("Git commit the changes", True),
            ("Add Foo widget", False),
            ("Support passwordless login", False),
        ],
    )
    def test_verification_items(self, description, expected):
        assert is_verification_item(description) is expected

    def test_find_planning_documents(self, tmp_path):
        write(tmp_path, "docs/A_PLAN.md")
        write(tmp_path, "docs/notes.md")
        write(tmp_path, "node_modules/pkg/B_PLAN.md")
        write(tmp_path, ".hidden/C_PLAN.md")

        found = find_planning_documents(tmp_path)

        assert [Path(p).name for p in found] == ["A_PLAN.md"]


class TestKeywordsAndNames:
    """Test cases for keyword and component extraction."""

    def test_keywords_with_variants(self):
        assert extract_keywords("Implement Foo widget") == ["implement", "widget", "Implement", "Widget"]

    def test_hyphenated_keywords(self):
        keywords = extract_keywords("Add dark-mode toggle for the settings page")

        assert keywords == [
            "dark-mode", "toggle", "settings", "page",
            "Dark-mode", "darkMode", "Toggle", "Settings", "Page",
        ]

    @pytest.mark.parametrize(
        "description, expected",
        [
            ("Implement Foo widget", "Foo"),
            ("Add the Button component", "Button"),
            ("wire up the Sidebar", "Sidebar"),
            ("make everything faster", None),
        ],
    )
    def test_component_name(self, description, expected):
        assert find_component_name(description) == expected


class TestEvidenceSearch:
    """Test cases for code search helpers."""

    def test_check_file_exists(self, tmp_path):
        write(tmp_path, "src/foo.ts")

        assert check_file_exists("/src/foo.ts", tmp_path)
        assert check_file_exists("src/foo.ts", tmp_path)
        assert not check_file_exists("/src/bar.ts", tmp_path)

    def test_search_for_keywords(self, tmp_path):
        write(tmp_path, "src/widget.py", "class Widget:\n    pass\n")
        write(tmp_path, "docs/widget.md", "widget docs")
        write(tmp_path, "node_modules/lib/widget.js", "widget")

        matches = search_for_keywords(["widget"], tmp_path)

        assert matches == [CodeMatch(file="src/widget.py", line=1, snippet="class Widget:", confidence=50)]

    def test_import_usage_js_and_python(self, tmp_path):
        write(tmp_path, "src/app.tsx", "import { Foo } from './Foo';\nconst x = 1;\n")
        write(tmp_path, "app/main.py", "from app.widgets import Foo\n")
        write(tmp_path, "src/legacy.js", "const Foo = require('./Foo');\n")

        usages = find_import_usage("Foo", tmp_path)

        assert [(u.file, u.line) for u in usages] == [
            ("app/main.py", 1),
            ("src/app.tsx", 1),
            ("src/legacy.js", 1),
        ]

    def test_find_test_files(self, tmp_path):
        write(tmp_path, "src/Foo.test.tsx")
        write(tmp_path, "src/Foo.spec.ts")
        write(tmp_path, "tests/test_foo_widget.py")
        write(tmp_path, "src/Bar.test.ts")
        write(tmp_path, "src/Foo.tsx")

        assert find_test_files("Foo", tmp_path) == ["src/Foo.spec.ts", "src/Foo.test.tsx", "tests/test_foo_widget.py"]

    def test_implementation_patterns(self, tmp_path):
        write(tmp_path, "src/fade.css", "@keyframes fade { }\n")
        write(tmp_path, "src/widget.py", "def widget():\n    pass\n")

        found, checked = check_implementation_patterns(
            ["/src/fade.css", "/src/widget.py", "/src/missing.ts"], "Animate fade widget", tmp_path
        )

        assert checked == 2
        assert found == 4


class TestConfidence:
    """Test cases for implementation confidence tiers and status."""

    @pytest.mark.parametrize("confidence, status", [(100, "implemented"), (40, "implemented"), (39, "partial"), (1, "partial"), (0, "missing")])
    def test_status_cutoffs(self, confidence, status):
        assert determine_status(confidence) == status

    def test_nothing_found(self):
        assert calculate_implementation_confidence(ImplementationEvidence()) == 0

    def test_files_only(self):
        assert calculate_implementation_confidence(ImplementationEvidence(files_found=["/a.ts"])) == 60

    def test_files_and_tests(self):
        evidence = ImplementationEvidence(files_found=["/a.ts"], tests_found=["a.test.ts"])

        assert calculate_implementation_confidence(evidence) == 90

    def test_usage_bonus_is_capped(self):
        usages = [ImportUsage(file=f"{i}.ts", line=1, import_statement="import") for i in range(6)]

        assert calculate_implementation_confidence(ImplementationEvidence(usage_detected=usages[:3])) == 65
        assert calculate_implementation_confidence(ImplementationEvidence(usage_detected=usages)) == 70

    def test_keyword_hits_capped_at_forty(self):
        matches = [CodeMatch(file="a.ts", line=i, snippet="", confidence=50) for i in range(10)]

        assert calculate_implementation_confidence(ImplementationEvidence(code_patterns=matches)) == 40

    def test_hard_evidence_capped_at_hundred(self, foo_project):
        usages = [ImportUsage(file=f"{i}.ts", line=1, import_statement="import") for i in range(4)]
        evidence = ImplementationEvidence(files_found=["/src/foo.ts"], usage_detected=usages, tests_found=["x"])

        assert calculate_implementation_confidence(evidence, "Implement Foo widget", foo_project) == 100


class TestAnalyzeImplementation:
    """Test cases for the planning-document reconciliation pass."""

    def test_foo_widget_is_implemented(self, foo_project):
        report = analyze_implementation(DetectionOptions(root_path=str(foo_project)))
        foo = next(d for d in report.detections if d.feature.description == "Implement Foo widget")

        assert foo.status == "implemented"
        assert foo.confidence == 100
        assert foo.evidence.files_found == ["/src/foo.ts"]
        assert [u.file for u in foo.evidence.usage_detected] == ["src/a.ts", "src/b.ts"]
        assert foo.evidence.tests_found == ["src/Foo.test.ts"]
        assert foo.evidence.last_modified is not None
        assert foo.recommendation.startswith("✅ Appears implemented with test coverage")

    def test_checked_and_verification_items_skipped(self, foo_project):
        report = analyze_implementation(DetectionOptions(root_path=str(foo_project)))

        assert sorted(d.feature.description for d in report.detections) == [
            "Add Quantum teleporter",
            "Implement Foo widget",
        ]
        assert report.summary.total_features == 2
        assert report.by_plan["FOO_PLAN.md"].progress == 100
        assert report.by_plan["IDEAS_PLAN.md"].progress == 0

    def test_planned_files_count_for_every_feature_of_the_plan(self, foo_project):
        write(foo_project, "docs/FOO_PLAN.md", FOO_PLAN.replace(
            "- [ ] Run the test suite\n", "- [ ] Add Quantum teleporter\n"))

        report = analyze_implementation(DetectionOptions(root_path=str(foo_project)))
        in_foo_plan = [d for d in report.detections
                       if d.feature.description == "Add Quantum teleporter" and d.plan_document.endswith("FOO_PLAN.md")]

        assert in_foo_plan[0].evidence.files_found == ["/src/foo.ts"]
        assert in_foo_plan[0].status == "implemented"

    def test_include_checked(self, foo_project):
        report = analyze_implementation(DetectionOptions(root_path=str(foo_project), include_checked=True))

        assert "Build Bar panel" in [d.feature.description for d in report.detections]

    def test_min_confidence(self, foo_project):
        report = analyze_implementation(DetectionOptions(root_path=str(foo_project), min_confidence=50))

        assert [d.feature.description for d in report.detections] == ["Implement Foo widget"]

    def test_missing_feature(self, foo_project):
        report = analyze_implementation(DetectionOptions(root_path=str(foo_project)))
        quantum = next(d for d in report.detections if d.feature.description == "Add Quantum teleporter")

        assert quantum.status == "missing"
        assert quantum.confidence == 0
        assert quantum.recommendation.startswith("❌ No implementation detected")

    def test_plan_found_once_across_search_paths(self, tmp_path):
        write(tmp_path, "ROOT_PLAN.md", "- [ ] Add Foo\n")
        write(tmp_path, "docs/DOCS_PLAN.md", "- [ ] Add Bar\n")
        write(tmp_path, "docs/EMPTY_PLAN.md", "Nothing planned yet.\n")

        report = analyze_implementation(DetectionOptions(root_path=str(tmp_path)))

        assert sorted(Path(d.path).name for d in report.plan_documents) == ["DOCS_PLAN.md", "ROOT_PLAN.md"]
        assert len(report.detections) == 2

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            analyze_implementation(DetectionOptions(root_path=str(tmp_path / "missing")))


class TestReportHelpers:
    """Test cases for summaries, progress and prioritization."""

    def test_summary(self):
        detections = [detection("A_PLAN.md", "implemented", 90), detection("A_PLAN.md", "missing", 0)]

        summary = summarize_detections(detections)

        assert (summary.implemented, summary.partial, summary.missing) == (1, 0, 1)
        assert summary.avg_confidence == 45

    def test_progress_sorted_descending(self):
        detections = [
            detection("docs/A_PLAN.md", "missing", 0),
            detection("docs/B_PLAN.md", "implemented", 80),
            detection("docs/B_PLAN.md", "partial", 20),
            detection("docs/C_PLAN.md", "implemented", 90),
        ]
        report = ImplementationReport(plan_documents=[], detections=detections, summary=summarize_detections(detections))

        rows = get_progress_by_plan(report)

        assert [(r["plan"], r["progress"]) for r in rows] == [
            ("C_PLAN.md", 100),
            ("B_PLAN.md", 50),
            ("A_PLAN.md", 0),
        ]

    def test_top_unimplemented(self):
        detections = [
            detection("P_PLAN.md", "missing", 0),
            detection("P_PLAN.md", "partial", 10),
            detection("P_PLAN.md", "implemented", 90),
            detection("P_PLAN.md", "partial", 30),
        ]
        report = ImplementationReport(plan_documents=[], detections=detections, summary=summarize_detections(detections))

        top = get_top_unimplemented_features(report)

        assert [(d.status, d.confidence) for d in top] == [("partial", 30), ("partial", 10), ("missing", 0)]
        assert len(get_top_unimplemented_features(report, limit=1)) == 1
