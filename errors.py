"""
Error taxonomy for the airport passenger-traffic pipeline.
"""

from __future__ import annotations

from typing import Optional


class TrafficAnalysisError(Exception):
    """Base error carrying the airport and pipeline step that failed."""

    def __init__(
        self,
        message: str,
        *,
        airport: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        self.airport = airport
        self.operation = operation
        self.detail = message
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        context = []
        if self.airport:
            context.append(f"airport={self.airport}")
        if self.operation:
            context.append(f"operation={self.operation}")
        if context:
            return f"[{', '.join(context)}] {message}"
        return message


class InsufficientDataError(TrafficAnalysisError):
    """Too few observations for differencing, decomposition or a grid search."""


class DegenerateSeriesError(TrafficAnalysisError):
    """Zero-variance series; autocorrelation is undefined."""


class FitConvergenceError(TrafficAnalysisError):
    """Maximum-likelihood estimation did not converge for an order."""

    def __init__(self, message: str, *, order=None, warnings_list=None, **kwargs) -> None:
        self.order = order
        self.warnings = list(warnings_list or [])
        super().__init__(message, **kwargs)


class MissingMappingError(TrafficAnalysisError):
    """A key expected in a merge (e.g. airport -> country) has no match."""

    def __init__(self, message: str, *, missing_keys=None, **kwargs) -> None:
        self.missing_keys = list(missing_keys or [])
        super().__init__(message, **kwargs)


__all__ = [
    "TrafficAnalysisError",
    "InsufficientDataError",
    "DegenerateSeriesError",
    "FitConvergenceError",
    "MissingMappingError",
]
