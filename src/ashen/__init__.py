"""Ashen: batch error-fix manager with rollback."""

from ashen._version import __version__
from ashen.core.flags import FeatureFlags, FlagStore
from ashen.core.models import ErrorRecord, FixChain, FixPatch, Severity
from ashen.fix.engine import BatchFixManager
from ashen.fix.executor import CancellationToken, ChainExecutor

__all__ = [
    "__version__",
    "BatchFixManager",
    "CancellationToken",
    "ChainExecutor",
    "ErrorRecord",
    "FeatureFlags",
    "FixChain",
    "FixPatch",
    "FlagStore",
    "Severity",
]
