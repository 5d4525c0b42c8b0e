"""
Error taxonomy for the PRODE engine.

All fatal conditions abort the run before a result table is produced:

    ConfigurationError  invalid flag combination or misaligned inputs
    FittingError        rank-deficient design or no residual degrees of freedom
    ConsistencyError    fit table and adjacency matrix diverge after filtering
    BackgroundError     a background simulation work unit failed

EmptyNeighborhoodWarning is informational: genes without neighbors are
excluded from the neighborhood stage and reported as filtered.
"""

from __future__ import annotations

__all__ = [
    'ProdeError',
    'ConfigurationError',
    'FittingError',
    'ConsistencyError',
    'BackgroundError',
    'EmptyNeighborhoodWarning',
]


class ProdeError(Exception):
    """Base class for all PRODE errors."""
    pass


class ConfigurationError(ProdeError, ValueError):
    """Raised for invalid options or malformed gene/sample alignment between inputs."""
    pass


class FittingError(ProdeError):
    """Raised when the shared design matrix cannot support an OLS fit."""
    pass


class ConsistencyError(ProdeError):
    """Raised when the filtered fit table and adjacency matrix disagree."""
    pass


class BackgroundError(ProdeError):
    """Raised when background simulation fails; no partial table is kept."""
    pass


class EmptyNeighborhoodWarning(UserWarning):
    """Emitted when genes have no first-order neighbors after filtering."""
    pass
