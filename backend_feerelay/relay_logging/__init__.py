"""
Structured logging for Backend FeeRelay.

JSON logs with timestamp, event_type, digest and rejection kind.
Use get_logger() in all relay modules for production-ready, aggregation-friendly output.
"""

from backend_feerelay.relay_logging.logger import get_logger

__all__ = ["get_logger"]
