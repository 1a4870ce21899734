"""
Forecasting — Holt's linear trend with a clamped trend term.

Provides:
- One-step-ahead forecast over a bucket series
- Per-step model states, so the trend clamp can be inspected
- Scaling of an in-progress period to its full length before forecasting
- Projection of the remaining buckets of a period
- A naive month-end run-rate projection with a confidence score

The trend is limited to ``±|level| × clamp_fraction`` after every update so a
single outlier cannot produce a runaway projection. Forecasts never go below 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Sequence

from venueledger.periods import PeriodRange, days_in_month

logger = logging.getLogger("venueledger.analyzers.forecasting")

DEFAULT_ALPHA = 0.5
DEFAULT_BETA = 0.3
DEFAULT_CLAMP = 0.15


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


@dataclass
class HoltState:
    """Level and trend after consuming one observation."""

    observation: float
    level: float
    trend: float


@dataclass
class HoltFit:
    states: list[HoltState] = field(default_factory=list)
    forecast: float = 0.0

    @property
    def level(self) -> float:
        return self.states[-1].level if self.states else 0.0

    @property
    def trend(self) -> float:
        return self.states[-1].trend if self.states else 0.0


class HoltForecaster:
    """Holt's double exponential smoothing.

    Usage::

        forecaster = HoltForecaster(alpha=0.5, beta=0.3)
        forecaster.forecast_next([100, 120, 110, 130])  # 146.53
    """

    def __init__(
        self,
        alpha: float = DEFAULT_ALPHA,
        beta: float = DEFAULT_BETA,
        clamp_fraction: float = DEFAULT_CLAMP,
    ) -> None:
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"alpha must be within [0, 1], got {alpha}")
        if not 0.0 <= beta <= 1.0:
            raise ValueError(f"beta must be within [0, 1], got {beta}")
        if clamp_fraction < 0:
            raise ValueError(f"clamp_fraction must not be negative, got {clamp_fraction}")
        self.alpha = alpha
        self.beta = beta
        self.clamp_fraction = clamp_fraction

    def fit(self, series: Sequence[float]) -> HoltFit:
        """Run the model over ``series`` and keep every intermediate state."""
        values = [float(v) for v in series]
        if not values:
            return HoltFit(states=[], forecast=0.0)
        if len(values) == 1:
            # nothing to estimate a trend from
            return HoltFit(states=[HoltState(values[0], values[0], 0.0)], forecast=values[0])

        level = values[0]
        trend = values[1] - values[0]
        states: list[HoltState] = []  # one per update, the seed is not recorded

        for y in values[1:]:
            prev_level = level
            level = self.alpha * y + (1 - self.alpha) * (level + trend)
            trend = self.beta * (level - prev_level) + (1 - self.beta) * trend

            limit = abs(level) * self.clamp_fraction
            if trend > limit:
                trend = limit
            elif trend < -limit:
                trend = -limit
            states.append(HoltState(y, level, trend))

        return HoltFit(states=states, forecast=max(0.0, level + trend))

    def forecast_next(self, series: Sequence[float]) -> float:
        return self.fit(series).forecast


def holt_forecast_next(
    series: Sequence[float],
    alpha: float = DEFAULT_ALPHA,
    beta: float = DEFAULT_BETA,
    clamp_fraction: float = DEFAULT_CLAMP,
) -> float:
    """Next value of ``series``; 0 for an empty series, the value itself for one point."""
    return HoltForecaster(alpha, beta, clamp_fraction).forecast_next(series)


def trend_direction(change_pct: float | None, flat_band: float = 1.0) -> TrendDirection:
    if change_pct is None or abs(change_pct) <= flat_band:
        return TrendDirection.FLAT
    return TrendDirection.UP if change_pct > 0 else TrendDirection.DOWN


def scale_partial_period(raw: float, elapsed_days: int, total_days: int) -> float:
    """Extrapolate a period still in progress to its full length.

    ``elapsed_days`` is clipped to ``[1, total_days]``; a complete period is
    returned unchanged.
    """
    if total_days <= 0:
        raise ValueError(f"total_days must be positive, got {total_days}")
    elapsed = min(total_days, max(1, elapsed_days))
    if elapsed >= total_days:
        return float(raw)
    return float(raw) / elapsed * total_days


@dataclass
class PeriodForecast:
    """Forecast for the period after the latest one."""

    forecast: float
    latest_estimated: float
    is_partial: bool
    trend_pct: float

    @property
    def direction(self) -> TrendDirection:
        return trend_direction(self.trend_pct)


def forecast_next_period(
    history: Sequence[float],
    in_progress: float,
    elapsed_days: int,
    total_days: int,
    *,
    forecaster: HoltForecaster | None = None,
) -> PeriodForecast:
    """Forecast the next period from completed ones plus one still running.

    The running period is scaled to its full length first, and the trend is
    reported against that estimate.
    """
    forecaster = forecaster or HoltForecaster()
    estimated = scale_partial_period(in_progress, elapsed_days, total_days)
    is_partial = min(total_days, max(1, elapsed_days)) < total_days
    forecast = forecaster.forecast_next([*history, estimated])
    trend = (forecast - estimated) / estimated * 100 if estimated > 0 else 0.0
    return PeriodForecast(
        forecast=forecast,
        latest_estimated=estimated,
        is_partial=is_partial,
        trend_pct=trend,
    )


@dataclass
class RemainderForecast:
    """Actual-to-date plus a projection of the buckets not yet seen."""

    actual: float
    next_value: float
    remaining_steps: int

    @property
    def projected_remainder(self) -> float:
        return self.next_value * self.remaining_steps

    @property
    def projected_total(self) -> float:
        return self.actual + self.projected_remainder


def forecast_remainder(
    series: Sequence[float],
    remaining_steps: int,
    *,
    forecaster: HoltForecaster | None = None,
) -> RemainderForecast:
    """Holt next value per remaining bucket, added to the sum of ``series``."""
    if remaining_steps < 0:
        raise ValueError(f"remaining_steps must not be negative, got {remaining_steps}")
    forecaster = forecaster or HoltForecaster()
    return RemainderForecast(
        actual=float(sum(series)),
        next_value=forecaster.forecast_next(series),
        remaining_steps=remaining_steps,
    )


@dataclass
class RunRateForecast:
    """Month-end projection from the average day of the selected range."""

    remaining_days: int
    income: Decimal
    profit: Decimal
    confidence: float  # percent, capped at 90


def run_rate_month_end(income: Decimal, profit: Decimal, period: PeriodRange) -> RunRateForecast:
    """Project income and profit to the end of the month of ``period.end``.

    Confidence grows with the share of the month the range covers:
    ``min(90, 60 + days / days_in_month × 30)``.
    """
    days = period.day_count
    dim = days_in_month(period.end)
    remaining = max(0, dim - period.end.day)
    income, profit = Decimal(income), Decimal(profit)
    return RunRateForecast(
        remaining_days=remaining,
        income=income + income / days * remaining,
        profit=profit + profit / days * remaining,
        confidence=min(90.0, 60.0 + days / dim * 30.0),
    )
