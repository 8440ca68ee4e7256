"""
Tests for analytics configuration loading and validation
"""

import json

import pytest

from production_insights.config import CONFIG_ENV_VAR, AnalyticsConfig, load_config
from production_insights.errors import ConfigError


class TestAnalyticsConfig:

    def test_defaults(self, config):
        assert config.supply_time_days == 10
        assert config.test_time_days == 5
        assert config.production_days_for("RM 36 CB") == 18
        assert config.production_days_for("RM 36 XX") == 20
        assert config.production_days_for(None) == 20
        assert config.departments == ("design", "assembly", "wiring", "testing")
        assert config.bottleneck_delay_policy == "last"

    def test_departments_are_stored_as_tuple(self):
        config = AnalyticsConfig(departments=["assembly", "testing"])
        assert config.departments == ("assembly", "testing")

    @pytest.mark.parametrize("overrides", [
        {"bottleneck_delay_policy": "median"},
        {"max_concurrency": 0},
        {"medium_risk_score": 60},
        {"departments": []},
        {"efficiency_lookback_months": 0},
        {"trend_band": 1.5},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigError):
            AnalyticsConfig(**overrides)

    def test_round_trip_through_dict(self, config):
        data = config.to_dict()
        assert data["departments"] == ["design", "assembly", "wiring", "testing"]
        assert AnalyticsConfig.from_dict(data) == config

    def test_unknown_keys_are_rejected(self):
        with pytest.raises(ConfigError, match="supply_days"):
            AnalyticsConfig.from_dict({"supply_days": 3})

    def test_config_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            AnalyticsConfig(bottleneck_delay_policy="max")


class TestLoadConfig:

    def test_no_path_gives_defaults(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert load_config() == AnalyticsConfig()

    def test_json_overrides(self, tmp_path):
        path = tmp_path / "insights.json"
        path.write_text(json.dumps({"supply_time_days": 14, "bottleneck_delay_policy": "mean"}))

        config = load_config(str(path))

        assert config.supply_time_days == 14
        assert config.bottleneck_delay_policy == "mean"
        assert config.test_time_days == 5

    def test_environment_variable(self, tmp_path, monkeypatch):
        path = tmp_path / "insights.json"
        path.write_text(json.dumps({"max_concurrency": 2}))
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert load_config().max_concurrency == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "missing.json"))

    @pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
    def test_malformed_file(self, tmp_path, content):
        path = tmp_path / "insights.json"
        path.write_text(content)
        with pytest.raises(ConfigError):
            load_config(str(path))
