"""Tests for configuration management."""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from venueledger.config import VenueLedgerConfig


class TestConfig:
    def test_default_config(self) -> None:
        config = VenueLedgerConfig()
        assert config.currency == "KZT"
        assert config.venues.extra_venue_code == "extra"
        assert config.venues.settlement_company_codes is None
        assert config.settlement.default_base_per_shift == Decimal("8000")
        assert config.forecast.alpha == 0.5
        assert config.forecast.beta == 0.3
        assert config.forecast.clamp_fraction == 0.15
        assert config.balance.projection_factor == Decimal("0.10")
        assert config.export.delimiter == ";"

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        yaml_content = {
            "currency": "USD",
            "venues": {"extra_venue_code": "annex", "settlement_company_codes": ["ramen", "arena"]},
            "anomaly": {"income_spike_multiplier": 3},
            "forecast": {"alpha": 0.7},
        }
        config_file = tmp_path / "venueledger.yaml"
        config_file.write_text(yaml.dump(yaml_content))

        config = VenueLedgerConfig.load(str(config_file))
        assert config.currency == "USD"
        assert config.venues.extra_venue_code == "annex"
        assert config.venues.settlement_company_codes == ["ramen", "arena"]
        assert config.anomaly.income_spike_multiplier == Decimal("3")
        assert config.forecast.alpha == 0.7
        assert config.forecast.beta == 0.3

    def test_load_with_overrides(self) -> None:
        config = VenueLedgerConfig.load(None, currency="EUR", balance={"projection_factor": "0.2"})
        assert config.currency == "EUR"
        assert config.balance.projection_factor == Decimal("0.2")

    def test_env_var_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VENUELEDGER_CURRENCY", "RUB")
        monkeypatch.setenv("VENUELEDGER_EXTRA_VENUE", " Annex ")
        monkeypatch.setenv("VENUELEDGER_DEFAULT_BASE", "9500")

        config = VenueLedgerConfig.load()
        assert config.currency == "RUB"
        assert config.venues.extra_venue_code == "annex"
        assert config.settlement.default_base_per_shift == Decimal("9500")

    def test_overrides_beat_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VENUELEDGER_CURRENCY", "RUB")
        assert VenueLedgerConfig.load(currency="EUR").currency == "EUR"

    def test_env_beats_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "venueledger.yaml"
        config_file.write_text(yaml.dump({"currency": "USD", "venues": {"settlement_company_codes": ["ramen"]}}))
        monkeypatch.setenv("VENUELEDGER_EXTRA_VENUE", "annex")

        config = VenueLedgerConfig.load(str(config_file))
        assert config.currency == "USD"
        assert config.venues.extra_venue_code == "annex"
        assert config.venues.settlement_company_codes == ["ramen"]

    def test_missing_config_file(self) -> None:
        config = VenueLedgerConfig.load("/nonexistent/config.yaml")
        assert config.currency == "KZT"

    def test_empty_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        assert VenueLedgerConfig.load(str(config_file)).currency == "KZT"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"forecast": {"alpha": 1.5}},
            {"forecast": {"beta": -0.1}},
            {"anomaly": {"income_spike_multiplier": -2}},
            {"settlement": {"default_base_per_shift": -1}},
            {"export": {"delimiter": ";;"}},
        ],
    )
    def test_invalid_values(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            VenueLedgerConfig.load(**overrides)
