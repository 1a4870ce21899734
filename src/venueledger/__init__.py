"""
VenueLedger — back-office analytics for multi-venue shift businesses.

Turns per-shift income, expense, debt and adjustment rows into period totals,
operator settlements, balances, anomaly flags, forecasts and insights.
"""

__version__ = "0.1.0"
__all__ = ["VenueLedger"]

from venueledger.engine import VenueLedger  # noqa: E402
