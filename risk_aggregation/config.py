"""
Risk Aggregation Engine - Configuration.

============================================================
PURPOSE
============================================================
Defines the configuration dataclasses for the engine:

- Scoring Oracle transport settings
- Fallback scores used when the Oracle is unavailable
- Organization aggregation settings
- Risk matrix severity thresholds

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable configurations
- Defaults reproduce the production behavior
- Environment overrides via load_config_from_env()

============================================================
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .types import RiskTrend


logger = logging.getLogger(__name__)


# ============================================================
# ORACLE CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class OracleConfig:
    """
    Configuration for the HTTP Scoring Oracle client.

    The engine itself never retries or times out an Oracle
    call; timeout_seconds is applied at the transport layer.
    """

    base_url: str = "http://localhost:54321"
    function_path: str = "/functions/v1/risk-scoring"
    access_token: Optional[str] = None
    timeout_seconds: float = 30.0

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.function_path}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "function_path": self.function_path,
            "has_access_token": self.access_token is not None,
            "timeout_seconds": self.timeout_seconds,
        }


# ============================================================
# FALLBACK CONFIGURATION
# ============================================================


def _default_org_components() -> Dict[str, float]:
    return {
        "assetSecurity": 40,
        "personnelSecurity": 45,
        "incidentManagement": 38,
        "travelSecurity": 50,
        "complianceRisk": 35,
        "geopoliticalRisk": 48,
    }


def _default_org_recommendations() -> List[str]:
    return [
        "Conduct a comprehensive security audit",
        "Review incident response procedures",
        "Enhance personnel security training",
        "Update travel security protocols",
    ]


@dataclass(frozen=True)
class FallbackConfig:
    """
    Scores returned when the Scoring Oracle cannot be used.

    ============================================================
    ENTITY FALLBACK
    ============================================================
    A neutral mid-range score. Mitigations are still applied
    on top of it so mitigated entities are not penalized
    during an outage.

    ============================================================
    ORGANIZATION FALLBACK
    ============================================================
    A static, renderable organization posture.

    ============================================================
    """

    entity_score: int = 50
    entity_confidence: float = 60.0
    entity_trend: RiskTrend = RiskTrend.STABLE
    entity_explanation: str = (
        "Unable to perform AI risk assessment. Using default risk score."
    )

    organization_score: int = 42
    organization_previous_score: int = 45
    organization_trend: RiskTrend = RiskTrend.IMPROVING
    organization_components: Dict[str, float] = field(default_factory=_default_org_components)
    organization_explanation: str = (
        "This is a fallback risk assessment based on limited data. The organization "
        "shows moderate risk levels across most categories."
    )
    organization_recommendations: List[str] = field(default_factory=_default_org_recommendations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_score": self.entity_score,
            "entity_confidence": self.entity_confidence,
            "entity_trend": self.entity_trend.value,
            "organization_score": self.organization_score,
            "organization_previous_score": self.organization_previous_score,
            "organization_trend": self.organization_trend.value,
            "organization_components": dict(self.organization_components),
        }


# ============================================================
# AGGREGATOR CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class AggregatorConfig:
    """
    Configuration for organization-level aggregation.

    ============================================================
    PREVIOUS SCORE
    ============================================================
    When neither the caller nor the score history provides a
    previous score, one may be synthesized for display only:

        previous = max(min_synthesized_previous,
                       score - randint(drop_min, drop_max))

    Synthesized values are never persisted.

    ============================================================
    """

    synthesize_previous_score: bool = True
    min_synthesized_previous: int = 10
    synthesized_drop_min: int = 5
    synthesized_drop_max: int = 10

    # Record each successful organization score to the history
    record_history: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "synthesize_previous_score": self.synthesize_previous_score,
            "min_synthesized_previous": self.min_synthesized_previous,
            "synthesized_drop_min": self.synthesized_drop_min,
            "synthesized_drop_max": self.synthesized_drop_max,
            "record_history": self.record_history,
        }


# ============================================================
# MATRIX CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class MatrixConfig:
    """
    Severity bands for the 5x5 risk matrix.

    Cell score = (impact_index + 1) * (likelihood_index + 1), 1-25.
    """

    low_max: int = 4          # 1-4: LOW
    medium_max: int = 9       # 5-9: MEDIUM
    high_max: int = 16        # 10-16: HIGH, above: CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "low_max": self.low_max,
            "medium_max": self.medium_max,
            "high_max": self.high_max,
        }


# ============================================================
# MASTER CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class EngineConfig:
    """Master configuration for the Risk Aggregation Engine."""

    oracle: OracleConfig = field(default_factory=OracleConfig)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    matrix: MatrixConfig = field(default_factory=MatrixConfig)

    engine_version: str = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "oracle": self.oracle.to_dict(),
            "fallback": self.fallback.to_dict(),
            "aggregator": self.aggregator.to_dict(),
            "matrix": self.matrix.to_dict(),
            "engine_version": self.engine_version,
        }


def get_default_config() -> EngineConfig:
    """Return the default engine configuration."""
    return EngineConfig()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env() -> EngineConfig:
    """
    Build configuration from environment variables.

    Reads a .env file first when present.

    Variables:
        RISK_ORACLE_URL: Base URL of the Scoring Oracle
        RISK_ORACLE_TOKEN: Bearer token for the Oracle
        RISK_ORACLE_TIMEOUT: Transport timeout in seconds
        RISK_SYNTHESIZE_PREVIOUS: Allow synthesized previous scores
    """
    load_dotenv()

    defaults = OracleConfig()
    base_url = os.getenv("RISK_ORACLE_URL")
    if not base_url:
        base_url = defaults.base_url
        logger.warning(f"RISK_ORACLE_URL not set, using default: {base_url}")

    timeout = defaults.timeout_seconds
    raw_timeout = os.getenv("RISK_ORACLE_TIMEOUT")
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            logger.warning(f"Invalid RISK_ORACLE_TIMEOUT '{raw_timeout}', using {timeout}s")

    return EngineConfig(
        oracle=OracleConfig(
            base_url=base_url,
            access_token=os.getenv("RISK_ORACLE_TOKEN"),
            timeout_seconds=timeout,
        ),
        aggregator=AggregatorConfig(
            synthesize_previous_score=_env_bool("RISK_SYNTHESIZE_PREVIOUS", True),
        ),
    )
