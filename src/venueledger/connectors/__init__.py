"""Row sources that feed the engine."""

from venueledger.connectors.base import RowSource
from venueledger.connectors.csv_connector import CSVRowSource

__all__ = ["CSVRowSource", "RowSource"]
