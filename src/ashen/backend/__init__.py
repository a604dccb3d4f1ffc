"""Local stand-in for the managed backend: tables, realtime, storage, functions."""

from ashen.backend.functions import FunctionRegistry
from ashen.backend.storage import Storage
from ashen.backend.store import Backend

# Table names shared by the fix subsystem.
ERROR_LOGS = "error_logs"
HEALING_HISTORY = "healing_history"
MONITORING_CONFIG = "monitoring_config"
FIX_CHAINS = "fix_chains"
CHAIN_LOCKS = "chain_locks"

__all__ = [
    "Backend",
    "FunctionRegistry",
    "Storage",
    "ERROR_LOGS",
    "HEALING_HISTORY",
    "MONITORING_CONFIG",
    "FIX_CHAINS",
    "CHAIN_LOCKS",
]
