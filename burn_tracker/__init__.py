"""
Burn Tracker

Periodically measures how much of each tracked token was sent to burn
addresses over trailing time windows and serves the results:
- Time-window burn aggregation from the chain's event log
- Health-checked RPC provider pool with retry and failover
- Scheduled background refresh persisted to Redis
- REST API for cached burn data
"""

__version__ = "0.1.0"
