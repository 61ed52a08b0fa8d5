"""
guardrail_audit/config.py - Audit trail settings and YAML loading.

AuditTrailConfig reads GUARDRAIL_AUDIT_* environment variables and a
.env file. load_config() reads a YAML document with two optional
sections:

    audit_trail:
      trail_name: production-trail
      max_entries: 50000
    risk_scoring:
      correlation_window_seconds: 600
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from guardrail_analysis.scoring import RiskScoringConfig

from .events import AuditEventType, AuditSeverity

logger = logging.getLogger(__name__)

MB = 1024 * 1024

CONFIG_SECTIONS = ("audit_trail", "risk_scoring")


class StorageBackend(str, Enum):
    MEMORY = "memory"
    FILE = "file"
    DATABASE = "database"
    EXTERNAL = "external"


class ChecksumAlgorithm(str, Enum):
    SHA256 = "sha256"
    SHA512 = "sha512"
    BLAKE2B = "blake2b"


class AuditTrailConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GUARDRAIL_AUDIT_",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = True
    trail_name: str = "default-audit-trail"
    description: str = "Default audit trail for security events"

    # Storage
    storage_backend: StorageBackend = StorageBackend.MEMORY
    max_entries: int = Field(10_000, gt=0)
    max_size_bytes: int = Field(50 * MB, gt=0)

    # Integrity
    enable_integrity_protection: bool = True
    checksum_algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256

    # Buffering
    batch_size: int = Field(100, gt=0)
    flush_interval_ms: int = Field(5000, ge=0)
    async_processing: bool = True

    # Retention
    default_retention_days: int = Field(365, gt=0)
    auto_rotate: bool = True
    rotation_size: int = Field(10 * MB, gt=0)

    # Filters
    enabled_event_types: list[AuditEventType] = Field(default_factory=lambda: list(AuditEventType))
    minimum_severity: AuditSeverity = AuditSeverity.INFORMATIONAL
    include_system_context: bool = True

    # Compliance
    compliance_mode: bool = False
    compliance_frameworks: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class GuardrailConfig:
    audit_trail: AuditTrailConfig
    risk_scoring: RiskScoringConfig = field(default_factory=RiskScoringConfig)


def load_config(path: str | Path) -> GuardrailConfig:
    """
    Load audit trail and risk scoring settings from a YAML file.

    Values in the file take precedence over GUARDRAIL_AUDIT_* variables.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a mapping, names an unknown
            section, or fails validation
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Guardrail config not found: {config_path}")

    raw = config_path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Guardrail config is not a valid YAML mapping: {config_path}")

    unknown = sorted(set(data) - set(CONFIG_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown config sections in {config_path}: {', '.join(unknown)}")

    audit_section = data.get("audit_trail") or {}
    scoring_section = data.get("risk_scoring") or {}
    if not isinstance(audit_section, dict) or not isinstance(scoring_section, dict):
        raise ValueError(f"Config sections must be mappings: {config_path}")

    loaded = GuardrailConfig(
        audit_trail=AuditTrailConfig(**audit_section),
        risk_scoring=RiskScoringConfig(**scoring_section),
    )
    logger.info(
        "Guardrail config loaded: trail=%s backend=%s",
        loaded.audit_trail.trail_name,
        loaded.audit_trail.storage_backend.value,
    )
    return loaded
