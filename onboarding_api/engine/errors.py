"""Exceptions raised by the dashboard metrics engine."""


class DashboardError(Exception):
    """Base exception for dashboard metric failures."""

    pass


class InvalidParameterError(DashboardError):
    """A request parameter (period, scope, brdScope, filter) is invalid or missing."""

    def __init__(self, parameter: str, message: str):
        self.parameter = parameter
        super().__init__(message)


class MetricsUnavailableError(DashboardError):
    """Underlying records could not be fetched; no partial metrics are returned."""

    pass
