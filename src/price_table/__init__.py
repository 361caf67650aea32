"""price-table-server: polled crypto price snapshots served over REST and WebSocket."""

__version__ = "0.1.0"
