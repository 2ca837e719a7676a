"""Project Analyzer - TODO scanning, completion detection and feature tracking."""

from .completion import analyze_completions, analyze_todo_completion
from .feature_detector import DetectionOptions, analyze_implementation
from .models import (
    CompletionAnalysis,
    CompletionReport,
    FeatureDetection,
    ImplementationReport,
    ScanResult,
    TodoItem,
)
from .scanner import ScanOptions, scan_todos
from .service import AnalyzerService
from .workspace import AnalyzerWorkspace

__all__ = [
    "AnalyzerService",
    "AnalyzerWorkspace",
    "CompletionAnalysis",
    "CompletionReport",
    "DetectionOptions",
    "FeatureDetection",
    "ImplementationReport",
    "ScanOptions",
    "ScanResult",
    "TodoItem",
    "analyze_completions",
    "analyze_implementation",
    "analyze_todo_completion",
    "scan_todos",
]
