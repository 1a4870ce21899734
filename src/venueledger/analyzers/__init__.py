"""
VenueLedger analyzers — pure computation over transaction rows.

Each analyzer takes rows or another analyzer's result and returns plain
dataclasses. Nothing here performs I/O.
"""

from venueledger.analyzers.aggregator import AggregationResult, Aggregator, Totals
from venueledger.analyzers.anomaly import Anomaly, AnomalyDetector, AnomalyResult
from venueledger.analyzers.balance import BalanceReconciler, BalanceResult, OperatorBalanceSheet
from venueledger.analyzers.classifier import PeriodSlot, RecordClassifier, classify
from venueledger.analyzers.forecasting import HoltForecaster, holt_forecast_next
from venueledger.analyzers.insights import Insight, InsightGenerator
from venueledger.analyzers.settlement import SettlementEngine, SettlementResult

__all__ = [
    "AggregationResult",
    "Aggregator",
    "Anomaly",
    "AnomalyDetector",
    "AnomalyResult",
    "BalanceReconciler",
    "BalanceResult",
    "HoltForecaster",
    "Insight",
    "InsightGenerator",
    "OperatorBalanceSheet",
    "PeriodSlot",
    "RecordClassifier",
    "SettlementEngine",
    "SettlementResult",
    "Totals",
    "classify",
    "holt_forecast_next",
]
