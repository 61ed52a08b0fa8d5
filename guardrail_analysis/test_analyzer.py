"""
guardrail_analysis/test_analyzer.py - End-to-end analysis scenarios

Tests:
- Traversal to /etc/passwd produces a multi-vector correlation
- rm -rf / as a production command argument is critical and saturates risk
- Escalation never lowers severity
- Session and client history produce correlations
- Recommended actions follow critical count, correlations and compliance
"""
from datetime import datetime, timedelta, timezone
from itertools import product

import pytest

from guardrail_detect import Severity, Violation

from .analyzer import ViolationAnalyzer
from .enhancer import enhance_violation, escalate_severity
from .history import HistoryKey, ViolationHistory
from .models import (
    Environment,
    InputType,
    RecommendedResponse,
    SophisticationLevel,
    UserRole,
    ViolationContext,
)
from .scoring import RiskScoringConfig, calculate_violation_risk_score

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def history():
    h = ViolationHistory()
    yield h
    h.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def analyzer(history, clock):
    return ViolationAnalyzer(history, clock=clock)


def make_violation(type_="command-injection", severity=Severity.HIGH):
    return Violation(
        type=type_,
        pattern="test-pattern",
        severity=severity,
        description="test violation",
        recommendation="fix it",
    )


class TestScenarios:

    def test_traversal_to_passwd(self, analyzer):
        """Traversal plus sensitive file access correlate as a multi-vector attack."""
        context = ViolationContext(input_type=InputType.FILE_PATH)

        result = analyzer.analyze_violations("../../../etc/passwd", context)

        assert not result.is_secure
        types = {v.type for v in result.violations}
        assert {"path-traversal", "file-system"} <= types
        assert result.highest_severity == Severity.CRITICAL

        multi = [c for c in result.attack_correlations if c.attack_pattern == "multi-vector-attack"]
        assert len(multi) == 1
        correlation = multi[0]
        assert correlation.sophistication_level == SophisticationLevel.ADVANCED
        assert correlation.recommended_response == RecommendedResponse.ESCALATE
        assert all(v.correlation_id == correlation.correlation_id for v in result.violations)

        traversal = next(v for v in result.violations if v.type == "path-traversal")
        assert "CWE-22" in traversal.compliance_mapping.cwe
        assert 0 <= result.overall_risk_score <= 100

    def test_rm_rf_in_production_command_arg(self, analyzer):
        """Dangerous command in production command-arg context is critical with max risk."""
        context = ViolationContext(
            input_type=InputType.COMMAND_ARG,
            environment=Environment.PRODUCTION,
        )

        result = analyzer.analyze_violations("rm -rf /", context)

        injection = [v for v in result.violations if v.type == "command-injection"]
        assert injection
        assert all(v.severity == Severity.CRITICAL for v in injection)

        factor_names = {f.name for f in injection[0].risk_factors}
        assert {"production-environment", "direct-command-execution"} <= factor_names
        assert any(r.type == "monitoring" for r in injection[0].remediation)
        assert result.overall_risk_score == 100

        immediate = [a for a in result.recommended_actions if a.priority == "critical"]
        assert immediate
        assert immediate[0].description.startswith(f"Address {len(injection)} critical")

    def test_secure_input(self, analyzer, history):
        """Clean input yields an empty, fully compliant result and no history."""
        context = ViolationContext(input_type=InputType.PROJECT_NAME, session_id="s1")

        result = analyzer.analyze_violations("my-project", context)

        assert result.is_secure
        assert result.violations == []
        assert result.overall_risk_score == 0
        assert result.attack_correlations == []
        assert result.compliance_assessment.overall_score == 100
        assert result.recommended_actions == []
        assert HistoryKey.session("s1") not in history

    def test_non_string_input(self, analyzer):
        """Non-string input is neutral all the way through."""
        result = analyzer.analyze_violations(None, ViolationContext(input_type=InputType.URL))

        assert result.is_secure
        assert result.sanitized_input == ""
        assert result.violations == []

    def test_unkeyed_violations_not_retained(self, analyzer, history):
        """Without session or client ids nothing is kept for correlation."""
        context = ViolationContext(input_type=InputType.FILE_PATH)

        result = analyzer.analyze_violations("../../../etc/passwd", context)

        assert result.violations
        assert len(history) == 0
        assert history.evicted_count == 0


class TestEscalation:

    @pytest.mark.parametrize(
        "severity,environment,input_type,violation_type",
        list(product(
            list(Severity),
            list(Environment),
            list(InputType),
            ["command-injection", "path-traversal", "csv-injection"],
        )),
    )
    def test_never_lowers(self, severity, environment, input_type, violation_type):
        """Escalated severity is always >= the detector's severity."""
        context = ViolationContext(input_type=input_type, environment=environment)

        escalated = escalate_severity(severity, violation_type, context)

        assert escalated >= severity

    def test_production_raises_one_step(self):
        """Production lifts medium to high and high to critical; low stays."""
        context = ViolationContext(input_type=InputType.CONFIG_VALUE, environment=Environment.PRODUCTION)

        assert escalate_severity(Severity.LOW, "csv-injection", context) == Severity.LOW
        assert escalate_severity(Severity.MEDIUM, "csv-injection", context) == Severity.HIGH
        assert escalate_severity(Severity.HIGH, "csv-injection", context) == Severity.CRITICAL

    def test_command_arg_injection_is_critical(self):
        """Command injection in a command argument is critical in any environment."""
        context = ViolationContext(input_type=InputType.COMMAND_ARG, environment=Environment.TEST)

        assert escalate_severity(Severity.LOW, "command-injection", context) == Severity.CRITICAL

    def test_original_severity_kept(self):
        """Enhanced violations remember the detector's verdict."""
        context = ViolationContext(input_type=InputType.COMMAND_ARG)

        enhanced = enhance_violation(make_violation(), context, T0)

        assert enhanced.original_severity == Severity.HIGH
        assert enhanced.severity == Severity.CRITICAL
        assert enhanced.id.startswith("viol_")


class TestRiskScore:

    def test_clamped_for_admin_in_production(self):
        """Multipliers never push a score past 100."""
        context = ViolationContext(
            input_type=InputType.COMMAND_ARG,
            environment=Environment.PRODUCTION,
            user_role=UserRole.ADMIN,
        )
        enhanced = enhance_violation(make_violation(), context, T0)

        score = calculate_violation_risk_score(enhanced, context, RiskScoringConfig())

        assert score == 100

    def test_test_environment_discount(self):
        """Low severity csv issue in test scores (10 + 25) * 0.8."""
        context = ViolationContext(input_type=InputType.CONFIG_VALUE, environment=Environment.TEST)
        enhanced = enhance_violation(make_violation("csv-injection", Severity.LOW), context, T0)

        score = calculate_violation_risk_score(enhanced, context, RiskScoringConfig())

        assert score == 28

    def test_custom_weights(self):
        """Scoring magnitudes come from configuration."""
        config = RiskScoringConfig(severity_weights={"low": 0}, default_vector_weight=0)
        context = ViolationContext(input_type=InputType.URL)
        enhanced = enhance_violation(make_violation("made-up", Severity.LOW), context, T0)

        assert calculate_violation_risk_score(enhanced, context, config) == 0


class TestHistoricalCorrelation:

    def test_session_based(self, analyzer, history):
        """A second hit in the same session correlates with the first."""
        context = ViolationContext(input_type=InputType.FILE_PATH, session_id="sess-1")

        first = analyzer.analyze_violations("a;b", context)
        second = analyzer.analyze_violations("a|b", context)

        assert not any(c.attack_pattern == "session-based-attack" for c in first.attack_correlations)
        session = [c for c in second.attack_correlations if c.attack_pattern == "session-based-attack"]
        assert len(session) == 1
        assert session[0].sophistication_level == SophisticationLevel.INTERMEDIATE
        assert session[0].recommended_response == RecommendedResponse.WARN
        assert len(history.get(HistoryKey.session("sess-1"))) == len(first.violations) + len(second.violations)

    def test_persistent_client_within_window(self, analyzer, clock):
        """Client hits inside five minutes correlate as persistent."""
        context = ViolationContext(input_type=InputType.URL, client_id="10.0.0.1")

        analyzer.analyze_violations("a;b", context)
        clock.advance(60)
        result = analyzer.analyze_violations("a;b", context)

        persistent = [c for c in result.attack_correlations if c.attack_pattern == "persistent-client-attack"]
        assert len(persistent) == 1
        assert persistent[0].sophistication_level == SophisticationLevel.ADVANCED
        assert persistent[0].recommended_response == RecommendedResponse.BLOCK

    def test_persistent_client_outside_window(self, analyzer, clock):
        """Client hits older than the window do not correlate."""
        context = ViolationContext(input_type=InputType.URL, client_id="10.0.0.1")

        analyzer.analyze_violations("a;b", context)
        clock.advance(301)
        result = analyzer.analyze_violations("a;b", context)

        assert not any(c.attack_pattern == "persistent-client-attack" for c in result.attack_correlations)

    def test_correlation_recommendation(self, analyzer):
        """Any correlation adds the investigate action."""
        context = ViolationContext(input_type=InputType.FILE_PATH)

        result = analyzer.analyze_violations("../../../etc/passwd", context)

        descriptions = [a.description for a in result.recommended_actions]
        assert "Investigate correlated attack patterns and implement monitoring" in descriptions
        # Two critical findings leave the mean framework score at 82
        assert result.compliance_assessment.overall_score == 82
        assert "Improve compliance posture to meet security standards" not in descriptions

    def test_to_dict_is_plain(self, analyzer):
        """Result serializes with ids in place of nested violations."""
        context = ViolationContext(input_type=InputType.FILE_PATH)

        data = analyzer.analyze_violations("../../../etc/passwd", context).to_dict()

        assert data["attack_correlations"][0]["violation_ids"]
        assert data["violations"][0]["severity"] == "critical"
