"""
guardrail_detect - Input security pattern detector
"""
from .violations import Severity, Violation, SecurityAnalysisResult
from .detector import (
    PatternDetector,
    analyze,
    is_path_safe,
    is_command_safe,
    is_project_name_safe,
    MAX_INPUT_LENGTH,
)
from .sanitizer import sanitize

__all__ = [
    "Severity",
    "Violation",
    "SecurityAnalysisResult",
    "PatternDetector",
    "analyze",
    "sanitize",
    "is_path_safe",
    "is_command_safe",
    "is_project_name_safe",
    "MAX_INPUT_LENGTH",
]
