"""
Risk Aggregation Engine - Package.

============================================================
PURPOSE
============================================================
Scores an organization's protected entities (assets,
personnel, travel plans, incidents), applies mitigations,
and rolls everything into one organization risk posture.

============================================================
COMPONENTS
============================================================
1. Mitigation Reducer: raw score + mitigations -> effective score
2. Entity Score Requester: entity -> Oracle -> effective score
3. Risk Matrix Builder: risk records -> 5x5 impact/likelihood counts
4. Organization Aggregator: five concurrent reads -> Oracle ->
   composite score with trend

============================================================
USAGE
============================================================
    from risk_aggregation import (
        HttpScoringOracle,
        OrganizationAggregator,
        SqlEntityStore,
        create_database_engine,
        create_session_factory,
        load_config_from_env,
    )

    config = load_config_from_env()
    factory = create_session_factory(create_database_engine())

    async with HttpScoringOracle(config.oracle) as oracle:
        aggregator = OrganizationAggregator(
            oracle=oracle,
            store=SqlEntityStore(factory),
            config=config,
        )
        result = await aggregator.score_organization("org-1")

    print(f"Score: {result.score} ({result.percentage_change:+.1f}%)")

============================================================
"""

# Types
from .types import (
    # Enums
    RiskTrend,
    RiskLevel,
    CellSeverity,
    RiskOrdinal,
    EntityType,
    EntityCategory,
    MitigationCategory,
    PreviousScoreSource,

    # Scores
    ScorePredictions,
    RiskScore,
    AppliedMitigation,
    EffectiveRiskScore,
    OrganizationRiskScore,

    # Entities
    ScorableEntity,
    Asset,
    Personnel,
    TravelPlan,
    Incident,
    RiskRecord,
    ScoringRequest,

    # Exceptions
    RiskAggregationError,
    OracleError,
    OracleUnavailableError,
    MalformedOracleResponseError,
    EntityStoreError,
)

# Configuration
from .config import (
    OracleConfig,
    FallbackConfig,
    AggregatorConfig,
    MatrixConfig,
    EngineConfig,
    get_default_config,
    load_config_from_env,
)

# Mitigation Reducer
from .mitigation import (
    reduce_score,
    total_risk_reduction,
)

# Scoring Oracle
from .oracle import (
    ScoringOracle,
    OracleResponseSchema,
    HttpScoringOracle,
    parse_oracle_response,
)

# Entity Store
from .store import (
    EntityStore,
    SqlEntityStore,
)

# Entity Score Requester
from .requester import (
    EntityScoreRequester,
    describe_type_specific_attributes,
    rank_by_risk,
)

# Risk Matrix Builder
from .matrix import (
    RiskMatrix,
    build_matrix,
    cell_score,
    cell_severity,
)

# Organization Aggregator
from .aggregator import (
    OrganizationAggregator,
    compute_change,
)

# Persistence
from .database import (
    create_database_engine,
    create_session_factory,
    create_all_tables,
)
from .models import OrganizationRiskSnapshot
from .repository import (
    ScoreHistory,
    OrganizationRiskRepository,
    OrganizationScoreHistory,
)


__all__ = [
    # Enums
    "RiskTrend",
    "RiskLevel",
    "CellSeverity",
    "RiskOrdinal",
    "EntityType",
    "EntityCategory",
    "MitigationCategory",
    "PreviousScoreSource",

    # Scores
    "ScorePredictions",
    "RiskScore",
    "AppliedMitigation",
    "EffectiveRiskScore",
    "OrganizationRiskScore",

    # Entities
    "ScorableEntity",
    "Asset",
    "Personnel",
    "TravelPlan",
    "Incident",
    "RiskRecord",
    "ScoringRequest",

    # Exceptions
    "RiskAggregationError",
    "OracleError",
    "OracleUnavailableError",
    "MalformedOracleResponseError",
    "EntityStoreError",

    # Configuration
    "OracleConfig",
    "FallbackConfig",
    "AggregatorConfig",
    "MatrixConfig",
    "EngineConfig",
    "get_default_config",
    "load_config_from_env",

    # Mitigation Reducer
    "reduce_score",
    "total_risk_reduction",

    # Scoring Oracle
    "ScoringOracle",
    "OracleResponseSchema",
    "HttpScoringOracle",
    "parse_oracle_response",

    # Entity Store
    "EntityStore",
    "SqlEntityStore",

    # Entity Score Requester
    "EntityScoreRequester",
    "describe_type_specific_attributes",
    "rank_by_risk",

    # Risk Matrix Builder
    "RiskMatrix",
    "build_matrix",
    "cell_score",
    "cell_severity",

    # Organization Aggregator
    "OrganizationAggregator",
    "compute_change",

    # Persistence
    "create_database_engine",
    "create_session_factory",
    "create_all_tables",
    "OrganizationRiskSnapshot",
    "ScoreHistory",
    "OrganizationRiskRepository",
    "OrganizationScoreHistory",
]


__version__ = "1.0.0"
