"""
Tests for the data contracts and configuration loading.
"""

import pytest

from risk_aggregation import (
    Asset,
    EngineConfig,
    EntityType,
    OracleUnavailableError,
    OrganizationRiskScore,
    Personnel,
    RiskLevel,
    RiskScore,
    RiskTrend,
    ScoringRequest,
    get_default_config,
    load_config_from_env,
)


class TestRiskScore:
    def test_values_clamped(self):
        score = RiskScore(overall=-12, confidence=130, components={"a": 150, "b": -1})

        assert score.overall == 0
        assert score.confidence == 100
        assert score.components == {"a": 100.0, "b": 0.0}

    def test_overall_rounded_to_int(self):
        assert RiskScore(overall=66.7).overall == 67
        assert isinstance(RiskScore(overall=66.7).overall, int)

    @pytest.mark.parametrize(
        "value,expected",
        [(0, RiskLevel.LOW), (30, RiskLevel.LOW), (31, RiskLevel.MEDIUM),
         (70, RiskLevel.MEDIUM), (71, RiskLevel.HIGH), (100, RiskLevel.HIGH)],
    )
    def test_level_bands(self, value, expected):
        assert RiskScore(overall=value).level == expected

    def test_to_dict_uses_wire_names(self):
        data = RiskScore(overall=10, trend=RiskTrend.IMPROVING).to_dict()

        assert data["trend"] == "improving"
        assert "lastUpdated" in data


class TestRiskTrend:
    def test_parse(self):
        assert RiskTrend.parse("Deteriorating") == RiskTrend.DETERIORATING
        assert RiskTrend.parse("sideways") == RiskTrend.STABLE
        assert RiskTrend.parse(None, default=RiskTrend.IMPROVING) == RiskTrend.IMPROVING


class TestEntities:
    def test_asset_from_record(self):
        asset = Asset.from_record({
            "id": "a-1",
            "organization_id": "org-1",
            "name": "HQ",
            "type": "building",
            "type_specific_attributes": {"floor_count": 4},
            "location": {"city": "Nairobi"},
            "mitigations": [{"name": "CCTV", "applied_risk_reduction_score": 8}],
        })

        assert asset.asset_type == "building"
        assert asset.type_specific_attributes == {"floor_count": 4}
        assert asset.attributes == {"location": {"city": "Nairobi"}}
        assert asset.mitigations[0].applied_risk_reduction_score == 8

        payload = asset.to_payload()
        assert payload["type"] == "building"
        assert payload["location"] == {"city": "Nairobi"}
        assert payload["mitigations"][0]["name"] == "CCTV"

    def test_personnel_from_record(self):
        person = Personnel.from_record({
            "id": "p-1",
            "organization_id": "org-1",
            "name": "J. Doe",
            "work_asset_id": "a-1",
            "clearance_level": "secret",
        })

        assert person.entity_type == EntityType.PERSONNEL
        assert person.work_asset_id == "a-1"
        assert person.attributes == {"clearance_level": "secret"}


class TestScoringRequest:
    def test_user_id_omitted_when_unset(self):
        body = ScoringRequest(type=EntityType.RISK, data={}, organization_id="org-1").to_dict()

        assert body == {"type": "risk", "data": {}, "organizationId": "org-1"}

    def test_user_id_included(self):
        body = ScoringRequest(
            type=EntityType.ORGANIZATION, data={}, organization_id="org-1", user_id="u-1"
        ).to_dict()

        assert body["userId"] == "u-1"


class TestOrganizationRiskScore:
    def test_partial_and_level(self):
        result = OrganizationRiskScore(
            organization_id="org-1",
            score=75,
            previous_score=70,
            failed_categories=["risks"],
        )

        assert result.is_partial is True
        assert result.level == RiskLevel.HIGH
        assert result.to_dict()["failedCategories"] == ["risks"]


class TestErrors:
    def test_unavailable_error_to_dict(self):
        error = OracleUnavailableError("HTTP 503", status_code=503, response_body="busy")

        data = error.to_dict()

        assert data["error_type"] == "OracleUnavailableError"
        assert data["status_code"] == 503
        assert str(error) == "HTTP 503"


# =============================================================
# TEST: Configuration
# =============================================================

class TestConfig:
    def test_defaults(self):
        config = get_default_config()

        assert isinstance(config, EngineConfig)
        assert config.fallback.entity_score == 50
        assert config.fallback.organization_score == 42
        assert config.matrix.high_max == 16
        assert config.oracle.endpoint == "http://localhost:54321/functions/v1/risk-scoring"

    def test_load_from_env(self, monkeypatch):
        monkeypatch.setenv("RISK_ORACLE_URL", "https://risk.example.org")
        monkeypatch.setenv("RISK_ORACLE_TOKEN", "tok")
        monkeypatch.setenv("RISK_ORACLE_TIMEOUT", "12.5")
        monkeypatch.setenv("RISK_SYNTHESIZE_PREVIOUS", "false")

        config = load_config_from_env()

        assert config.oracle.endpoint == "https://risk.example.org/functions/v1/risk-scoring"
        assert config.oracle.access_token == "tok"
        assert config.oracle.timeout_seconds == 12.5
        assert config.aggregator.synthesize_previous_score is False
        assert config.to_dict()["oracle"]["has_access_token"] is True

    def test_invalid_timeout_keeps_default(self, monkeypatch):
        monkeypatch.setenv("RISK_ORACLE_TIMEOUT", "soon")

        config = load_config_from_env()

        assert config.oracle.timeout_seconds == 30.0
