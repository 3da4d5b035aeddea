"""
Risk Aggregation Engine - Scoring Oracle.

============================================================
PURPOSE
============================================================
Contract and HTTP client for the external Scoring Oracle.

The Oracle is a black box: it receives a typed data bundle
and answers with a score, a component breakdown, a
confidence value, a trend and optional predictions.

============================================================
CONTRACT
============================================================
Request:
    {type, data, organizationId, userId?}

Response:
    {score, components?, confidence, explanation,
     recommendations?, trend?, predictions?: {nextWeek?, nextMonth?}}

============================================================
FAILURES
============================================================
- Transport error / non-2xx -> OracleUnavailableError
- Payload fails validation  -> MalformedOracleResponseError

Callers convert both into fallback scores.

============================================================
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Protocol

import aiohttp
from pydantic import BaseModel, Field, ValidationError

from .config import OracleConfig
from .types import (
    MalformedOracleResponseError,
    OracleUnavailableError,
    RiskScore,
    RiskTrend,
    ScorePredictions,
    ScoringRequest,
)


logger = logging.getLogger(__name__)


# ============================================================
# ORACLE PROTOCOL
# ============================================================


class ScoringOracle(Protocol):
    """
    Anything able to score a ScoringRequest.

    Implementations return the raw response payload and raise
    OracleError (or any exception) on failure.
    """

    async def score(self, request: ScoringRequest) -> Dict[str, Any]:
        ...


# ============================================================
# RESPONSE SCHEMA
# ============================================================


class PredictionsSchema(BaseModel):
    next_week: Optional[float] = Field(default=None, alias="nextWeek")
    next_month: Optional[float] = Field(default=None, alias="nextMonth")

    class Config:
        populate_by_name = True


class OracleResponseSchema(BaseModel):
    """Validated Oracle response payload."""
    score: float
    components: Optional[Dict[str, float]] = None
    confidence: float
    explanation: str
    recommendations: Optional[List[str]] = None
    trend: Optional[RiskTrend] = None
    predictions: Optional[PredictionsSchema] = None


def parse_oracle_response(payload: Any) -> RiskScore:
    """
    Validate an Oracle payload and convert it to a RiskScore.

    Raises:
        MalformedOracleResponseError: If the payload is invalid
    """
    if not isinstance(payload, dict):
        raise MalformedOracleResponseError(
            f"Expected a JSON object, got {type(payload).__name__}"
        )

    try:
        parsed = OracleResponseSchema.model_validate(payload)
    except ValidationError as e:
        raise MalformedOracleResponseError(
            "Oracle response failed validation",
            original_error=e,
            context={"errors": e.errors()},
        ) from e

    predictions = None
    if parsed.predictions is not None:
        predictions = ScorePredictions(
            next_week=parsed.predictions.next_week,
            next_month=parsed.predictions.next_month,
        )

    return RiskScore(
        overall=parsed.score,
        components=parsed.components or {},
        confidence=parsed.confidence,
        trend=parsed.trend or RiskTrend.STABLE,
        explanation=parsed.explanation,
        recommendations=parsed.recommendations or [],
        predictions=predictions,
    )


# ============================================================
# HTTP ORACLE
# ============================================================


class HttpScoringOracle:
    """
    Scoring Oracle reached over HTTP.

    ============================================================
    BEHAVIOR
    ============================================================
    - One POST per call, no retry
    - Bearer token authentication
    - Timeout applied by the aiohttp session

    ============================================================
    """

    def __init__(
        self,
        config: Optional[OracleConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._config = config or OracleConfig()
        self._session = session
        self._owns_session = session is None

    async def score(self, request: ScoringRequest) -> Dict[str, Any]:
        """
        Send a scoring request.

        Returns:
            Raw response payload

        Raises:
            OracleUnavailableError: On transport failure or non-2xx
            MalformedOracleResponseError: If the body is not JSON
        """
        if not self._config.access_token:
            raise OracleUnavailableError("No access token available")

        session = await self._get_session()
        url = self._config.endpoint

        start_time = time.time()
        try:
            async with session.post(
                url,
                json=request.to_dict(),
                headers=self._get_headers(),
            ) as response:
                latency_ms = (time.time() - start_time) * 1000

                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise OracleUnavailableError(
                        f"HTTP {response.status}",
                        status_code=response.status,
                        response_body=body[:1000],
                        context={"type": request.type.value},
                    )

                try:
                    data = await response.json()
                except (aiohttp.ContentTypeError, ValueError) as e:
                    raise MalformedOracleResponseError(
                        "Oracle response is not JSON",
                        original_error=e,
                    ) from e

                logger.debug(
                    f"Oracle scored {request.type.value} for "
                    f"{request.organization_id} in {latency_ms:.1f}ms"
                )
                return data

        except aiohttp.ClientError as e:
            raise OracleUnavailableError(
                f"Connection error: {e}",
                original_error=e,
            ) from e
        except asyncio.TimeoutError as e:
            raise OracleUnavailableError(
                "Oracle request timed out",
                original_error=e,
            ) from e

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.timeout_seconds),
            )
            self._owns_session = True
        return self._session

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._config.access_token}",
        }

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "HttpScoringOracle":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
