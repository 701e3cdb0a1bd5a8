"""
Monitoring Module
Exports for structured logging setup
"""

from ai_governor.services.monitoring.logging import setup_logging, ServiceJsonFormatter

__all__ = [
    "setup_logging",
    "ServiceJsonFormatter",
]
