"""
Governor Errors

Every way a governed call can fail outward. Guarded rejections (breaker,
global budget, tenant quota) and exhausted retries all derive from
GovernorError so callers can catch one type.
"""

from typing import Optional


class GovernorError(Exception):
    """Base class for calls the governor could not serve (and had no cache for)."""

    def __init__(self, message: str, operation_name: Optional[str] = None):
        self.operation_name = operation_name
        super().__init__(message)

    @property
    def reason(self) -> str:
        return str(self)
