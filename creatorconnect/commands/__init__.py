"""
CLI Commands for CreatorConnect.

Usage:
    flask scoring rebuild-cache --brand-id 1   # Repair cached points from the ledger
    flask scoring process-metrics              # Award outstanding post metrics
    flask scoring retry-pending                # Retry queued scoring events
    flask scoring seed-defaults --brand-id 1   # Persist platform default rules/caps
"""
from .scoring import init_app as init_scoring_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_scoring_commands(app)
