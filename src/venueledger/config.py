"""
VenueLedger configuration management.

Supports loading from YAML files, environment variables, and keyword overrides.
"""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class VenueConfig(BaseModel):
    """Which venues get special treatment."""

    extra_venue_code: str = Field(
        default="extra",
        description="Company code excluded from 'all companies' totals unless explicitly included",
    )
    settlement_company_codes: list[str] | None = Field(
        default=None,
        description="Venues whose shifts are paid; None means every company with a code",
    )


class SettlementConfig(BaseModel):
    """Operator pay settings."""

    default_base_per_shift: Decimal = Field(
        default=Decimal("8000"),
        ge=0,
        description="Base pay for a shift with no matching salary rule",
    )


class AnomalyConfig(BaseModel):
    """Thresholds for the anomaly detector."""

    income_spike_multiplier: Decimal = Field(default=Decimal("2"), gt=0)
    expense_spike_multiplier: Decimal = Field(default=Decimal("2.5"), gt=0)
    low_margin_ratio: Decimal = Field(default=Decimal("0.10"), ge=0, le=1)
    detect_duplicates: bool = True


class ForecastConfig(BaseModel):
    """Holt trend model parameters."""

    alpha: float = Field(default=0.5, ge=0.0, le=1.0, description="Level smoothing weight")
    beta: float = Field(default=0.3, ge=0.0, le=1.0, description="Trend smoothing weight")
    clamp_fraction: float = Field(default=0.15, ge=0.0, description="Trend limit as a fraction of the level")


class BalanceConfig(BaseModel):
    """Naive end-of-period projection."""

    projection_factor: Decimal = Field(
        default=Decimal("0.10"),
        ge=0,
        description="projected = net × (1 + factor)",
    )


class InsightConfig(BaseModel):
    """Rule thresholds for generated insights (percentages)."""

    low_margin_pct: float = 15.0
    high_margin_pct: float = 35.0
    low_cash_share_pct: float = 30.0
    expense_concentration_pct: float = 40.0
    income_change_pct: float = 20.0
    optimistic_projection_ratio: float = 1.5


class ExportConfig(BaseModel):
    """Delimited export settings."""

    delimiter: str = Field(default=";", min_length=1, max_length=1)
    encoding: str = Field(default="utf-8-sig", description="BOM keeps spreadsheet apps happy with Cyrillic")


class VenueLedgerConfig(BaseModel):
    """Root configuration for VenueLedger."""

    venues: VenueConfig = Field(default_factory=VenueConfig)
    settlement: SettlementConfig = Field(default_factory=SettlementConfig)
    anomaly: AnomalyConfig = Field(default_factory=AnomalyConfig)
    forecast: ForecastConfig = Field(default_factory=ForecastConfig)
    balance: BalanceConfig = Field(default_factory=BalanceConfig)
    insights: InsightConfig = Field(default_factory=InsightConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)

    currency: str = Field(default="KZT")

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> VenueLedgerConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

        # 2. Override from environment variables
        env_currency = os.environ.get("VENUELEDGER_CURRENCY")
        env_extra = os.environ.get("VENUELEDGER_EXTRA_VENUE")
        env_base = os.environ.get("VENUELEDGER_DEFAULT_BASE")

        if env_currency:
            data["currency"] = env_currency

        if env_extra:
            venues = data.get("venues", {})
            venues["extra_venue_code"] = env_extra.strip().lower()
            data["venues"] = venues

        if env_base:
            settlement = data.get("settlement", {})
            settlement["default_base_per_shift"] = env_base
            data["settlement"] = settlement

        # 3. Apply keyword overrides
        data.update(overrides)

        return cls.model_validate(data)
