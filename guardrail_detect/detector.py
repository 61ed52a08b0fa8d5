"""
guardrail_detect/detector.py - Pattern Detector

Pure function from an input string to a SecurityAnalysisResult.

Properties:
- Never raises on malformed input (non-string -> neutral secure result)
- Bounded work: inputs beyond max_input_length are scanned on a prefix
- risk_score is the sum of matched category weights, clamped to [0, 100]
"""
import json
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from .patterns import PATTERN_CHECKS, DEFAULT_WEIGHTS, DANGEROUS_COMMANDS, SAFE_PROJECT_NAME
from .sanitizer import sanitize
from .violations import SecurityAnalysisResult, Violation

logger = logging.getLogger(__name__)

# Dedicated channel for detections, routed separately from application logs
security_logger = logging.getLogger("security.detector")

MAX_INPUT_LENGTH = 100_000
MAX_RISK_SCORE = 100


def _log_security_event(event_type: str, data: dict, level: str = "info") -> None:
    log_message = json.dumps(
        {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "data": data,
        },
        separators=(",", ":"),
    )
    if level == "warning":
        security_logger.warning(log_message)
    else:
        security_logger.info(log_message)


class PatternDetector:
    """
    Runs the ordered check battery over an input string.

    Args:
        weights: Optional overrides keyed "type/pattern" (e.g.
            "script-injection/eval-usage"). Missing keys use the defaults.
        max_input_length: Characters scanned before truncation.
    """

    def __init__(
        self,
        weights: Optional[Dict[str, int]] = None,
        max_input_length: int = MAX_INPUT_LENGTH,
    ):
        unknown = set(weights or {}) - set(DEFAULT_WEIGHTS)
        if unknown:
            raise ValueError(f"Unknown pattern weight keys: {sorted(unknown)}")
        if max_input_length <= 0:
            raise ValueError("max_input_length must be positive")

        self.weights = {**DEFAULT_WEIGHTS, **(weights or {})}
        self.max_input_length = max_input_length

    def analyze(self, value) -> SecurityAnalysisResult:
        if value is None or not isinstance(value, str):
            return SecurityAnalysisResult(is_secure=True, violations=[], risk_score=0, sanitized_input="")

        text = value
        if len(text) > self.max_input_length:
            _log_security_event("input_truncated", {
                "input_length": len(text),
                "max_length": self.max_input_length,
            }, level="warning")
            text = text[:self.max_input_length]

        violations = []
        risk_score = 0
        for check in PATTERN_CHECKS:
            if check.matches(text):
                violations.append(Violation(
                    type=check.type,
                    pattern=check.pattern,
                    severity=check.severity,
                    description=check.description,
                    recommendation=check.recommendation,
                ))
                risk_score += self.weights[check.key]

        risk_score = max(0, min(risk_score, MAX_RISK_SCORE))

        if violations:
            _log_security_event("violations_detected", {
                "input_length": len(value),
                "risk_score": risk_score,
                "patterns": [f"{v.type}/{v.pattern}" for v in violations],
            })

        return SecurityAnalysisResult(
            is_secure=not violations,
            violations=violations,
            risk_score=risk_score,
            sanitized_input=sanitize(text) if violations else value,
        )


_default_detector = PatternDetector()


def analyze(value) -> SecurityAnalysisResult:
    """Analyze with the default weights. See PatternDetector.analyze."""
    return _default_detector.analyze(value)


def is_path_safe(path) -> bool:
    """True only for secure paths with a risk score under 10."""
    if not isinstance(path, str):
        return False
    result = analyze(path)
    return result.is_secure and result.risk_score < 10


def is_command_safe(command) -> bool:
    """
    True when a command carries no injection, escalation or dangerous command.

    A missing command (None) is a no-op and therefore safe.
    """
    if not isinstance(command, str):
        return True
    result = analyze(command)
    if result.has_type("command-injection") or result.has_type("privilege-escalation"):
        return False
    return DANGEROUS_COMMANDS.search(command[:MAX_INPUT_LENGTH]) is None


def is_project_name_safe(name) -> bool:
    if not isinstance(name, str):
        return False
    return bool(SAFE_PROJECT_NAME.match(name)) and analyze(name).is_secure
