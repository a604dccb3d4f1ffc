"""Exception hierarchy shared by the Ashen modules."""

from __future__ import annotations


class AshenError(Exception):
    """Base class for every error raised by Ashen."""


class BackendError(AshenError):
    """Raised when a backend read/write, storage or function call fails."""


class ConfigError(AshenError):
    """Raised for unknown feature flags or values of the wrong type."""


class FeatureDisabledError(AshenError):
    """Raised when an operation is attempted while its flag is off."""


class ChainValidationError(AshenError, ValueError):
    """Raised when a fix chain cannot be built from the given selection."""


class ChainLockedError(AshenError):
    """Raised when another chain holds a lock on one of the target paths."""


class InvalidTransitionError(AshenError):
    """Raised on a state change the chain or patch lifecycle forbids."""


class ConflictError(BackendError):
    """Raised when a write collides with an existing row id."""
