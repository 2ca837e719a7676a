"""Reconcile planning documents against the code.

For every unchecked checklist item in the ``*_PLAN.md`` documents under a
root, gather implementation evidence and classify the feature as
implemented, partial or missing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from .analyzer_logging import log_feature_detection, log_performance
from .feature_detection import (
    calculate_implementation_confidence,
    determine_status,
    extract_keywords,
    find_component_name,
    find_import_usage,
    find_planning_documents,
    find_test_files,
    generate_recommendation,
    last_modified_of,
    parse_planning_document,
    resolve_planned_file,
    search_for_keywords,
)
from .models import (
    Feature,
    FeatureDetection,
    ImplementationEvidence,
    ImplementationReport,
    ImplementationSummary,
    PlanningDocument,
    PlanProgress,
)

logger = logging.getLogger("project_analyzer.features")

_STATUS_ORDER = {"partial": 0, "missing": 1, "implemented": 2}


@dataclass(slots=True)
class DetectionOptions:
    root_path: str
    planning_paths: List[str] = field(default_factory=lambda: ["docs", "memory-bank", "."])
    min_confidence: int = 0
    include_checked: bool = False


def detect_feature_implementation(
    feature: Feature,
    plan_document: PlanningDocument,
    root_path: str,
) -> FeatureDetection:
    """Gather evidence for one feature and score it."""
    evidence = ImplementationEvidence()

    resolved: List[Path] = []
    for planned in plan_document.files:
        path = resolve_planned_file(planned.path, root_path)
        if path is not None:
            evidence.files_found.append(planned.path)
            resolved.append(path)
    evidence.last_modified = last_modified_of(resolved)

    keywords = extract_keywords(feature.description)
    if keywords:
        evidence.code_patterns = search_for_keywords(keywords, root_path)

    component_name = find_component_name(feature.description)
    if component_name:
        evidence.usage_detected = find_import_usage(component_name, root_path)
        evidence.tests_found = find_test_files(component_name, root_path)

    confidence = calculate_implementation_confidence(evidence, feature.description, root_path)
    detection = FeatureDetection(
        feature=feature,
        plan_document=plan_document.path,
        status=determine_status(confidence),
        confidence=confidence,
        evidence=evidence,
    )
    detection.recommendation = generate_recommendation(detection)
    return detection


def _collect_plan_files(root: Path, planning_paths: List[str]) -> List[str]:
    seen: Dict[str, str] = {}
    search_dirs = [root / search_path for search_path in planning_paths] + [root]
    for directory in search_dirs:
        if not directory.is_dir():
            continue
        for plan_file in find_planning_documents(directory):
            seen.setdefault(str(Path(plan_file).resolve()), plan_file)
    return [seen[key] for key in sorted(seen)]


def summarize_detections(detections: List[FeatureDetection]) -> ImplementationSummary:
    summary = ImplementationSummary(total_features=len(detections))
    for detection in detections:
        if detection.status == "implemented":
            summary.implemented += 1
        elif detection.status == "partial":
            summary.partial += 1
        else:
            summary.missing += 1
    if detections:
        summary.avg_confidence = round(sum(d.confidence for d in detections) / len(detections))
    return summary


def _progress_by_plan(detections: List[FeatureDetection]) -> Dict[str, PlanProgress]:
    by_plan: Dict[str, PlanProgress] = {}
    for detection in detections:
        progress = by_plan.setdefault(Path(detection.plan_document).name, PlanProgress())
        progress.total += 1
        if detection.status == "implemented":
            progress.implemented += 1
        elif detection.status == "partial":
            progress.partial += 1
        else:
            progress.missing += 1
        progress.progress = round(progress.implemented / progress.total * 100)
    return by_plan


@log_performance("analyze_implementation")
def analyze_implementation(options: DetectionOptions) -> ImplementationReport:
    """Detect implementation evidence for every planned feature under a root.

    Raises FileNotFoundError when the root does not exist. Planning documents
    without checklist features are left out of the report.
    """
    root = Path(options.root_path)
    if not root.is_dir():
        raise FileNotFoundError(f"Root path does not exist: {options.root_path}")

    plan_files = _collect_plan_files(root, options.planning_paths)
    logger.info(f"Found {len(plan_files)} planning documents under {options.root_path}")

    plan_documents: List[PlanningDocument] = []
    for plan_file in plan_files:
        parsed = parse_planning_document(plan_file)
        if parsed is not None and parsed.features:
            plan_documents.append(parsed)

    detections: List[FeatureDetection] = []
    processed = 0
    for plan_document in plan_documents:
        logger.debug(f"Analyzing {Path(plan_document.path).name}")
        for feature in plan_document.features:
            if feature.checked and not options.include_checked:
                continue
            detection = detect_feature_implementation(feature, plan_document, options.root_path)
            processed += 1
            if detection.confidence >= options.min_confidence:
                detections.append(detection)

    logger.info(f"Analyzed {processed} features in {len(plan_documents)} documents")
    log_feature_detection(options.root_path, plan_documents=len(plan_documents), features=processed)

    return ImplementationReport(
        plan_documents=plan_documents,
        detections=detections,
        summary=summarize_detections(detections),
        by_plan=_progress_by_plan(detections),
    )


def get_top_unimplemented_features(report: ImplementationReport, limit: int = 20) -> List[FeatureDetection]:
    """Partial features first, then missing ones; higher confidence first within each."""
    pending = [d for d in report.detections if d.status != "implemented"]
    pending.sort(key=lambda d: (_STATUS_ORDER[d.status], -d.confidence))
    return pending[:limit]


def get_progress_by_plan(report: ImplementationReport) -> List[Dict[str, object]]:
    """Per-plan totals, most complete plan first."""
    rows = [
        {"plan": plan, **progress.to_dict()}
        for plan, progress in _progress_by_plan(report.detections).items()
    ]
    rows.sort(key=lambda row: row["progress"], reverse=True)
    return rows
