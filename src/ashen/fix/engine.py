"""Batch Fix Manager: scan errors, build fix chains, run them."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from ashen.backend import ERROR_LOGS, FIX_CHAINS, Backend, FunctionRegistry
from ashen.core.config import AshenConfig, load_config
from ashen.core.errors import BackendError, FeatureDisabledError, InvalidTransitionError
from ashen.core.flags import FeatureFlags, FlagStore
from ashen.core.models import (
    ChainStatus,
    ErrorGroup,
    ErrorRecord,
    ErrorStatus,
    FixChain,
    utcnow,
)
from ashen.fix.chain import build_chain
from ashen.fix.executor import (
    CancellationToken,
    ChainExecutor,
    PathLockRegistry,
    ProgressCallback,
    SharedPathLocks,
)
from ashen.fix.grouping import group_errors
from ashen.fix.history import HealingHistory
from ashen.fix.remediation import RemediatorRegistry, SimulatedRemediator
from ashen.fix.watchdog import ModuleReport, reconcile

logger = logging.getLogger(__name__)

CRITICAL_OPEN_THRESHOLD = 5


class BatchFixManager:
    """Core engine that groups errors and executes fix chains."""

    def __init__(
        self,
        project_path: Path | None = None,
        config: AshenConfig | None = None,
        backend: Backend | None = None,
        flags: FeatureFlags | None = None,
        remediators: RemediatorRegistry | None = None,
        locks: PathLockRegistry | SharedPathLocks | None = None,
    ):
        self.project_path = (project_path or Path.cwd()).resolve()
        self.config = config or load_config(self.project_path)
        self.backend = backend or Backend(self.project_path)
        self.flag_store = FlagStore(self.backend)
        self.flags = flags or self.flag_store.snapshot()
        self.flag_store.subscribe(self._on_flags_changed)

        self.history = HealingHistory(self.backend, applied_by=self.config.fix.applied_by)
        self.remediators = remediators or RemediatorRegistry(
            SimulatedRemediator(self.config.fix.success_rate, seed=self.config.fix.seed)
        )
        self.locks = locks or SharedPathLocks(self.backend)
        self.groups: list[ErrorGroup] = []

        self.functions = FunctionRegistry()
        self.functions.register("auto-healer")(self._auto_heal)
        self.functions.register("learning-engine")(self._learn)

    # ------------------------------------------------------------------
    # Error records
    # ------------------------------------------------------------------

    def report_error(self, record: ErrorRecord) -> ErrorRecord:
        self.backend.insert(ERROR_LOGS, record.to_dict())
        return record

    def list_errors(self, status: ErrorStatus | None = None, limit: int = 100) -> list[ErrorRecord]:
        eq = {"status": status.value} if status else None
        rows = self.backend.select(ERROR_LOGS, eq=eq, order_by="created_at", desc=True, limit=limit)
        return [ErrorRecord.from_dict(r) for r in rows]

    def resolve_error(self, error_id: str) -> ErrorRecord:
        return self._set_error_status(error_id, ErrorStatus.RESOLVED)

    def ignore_error(self, error_id: str) -> ErrorRecord:
        return self._set_error_status(error_id, ErrorStatus.IGNORED)

    def _set_error_status(self, error_id: str, status: ErrorStatus) -> ErrorRecord:
        values: dict[str, Any] = {"status": status.value}
        if status is ErrorStatus.RESOLVED:
            values["resolved_at"] = utcnow().isoformat()
        rows = self.backend.update(ERROR_LOGS, values, eq={"id": error_id})
        if not rows:
            raise BackendError(f"No error record {error_id}")
        return ErrorRecord.from_dict(rows[0])

    # ------------------------------------------------------------------
    # Grouping and chains
    # ------------------------------------------------------------------

    def scan(self) -> list[ErrorGroup]:
        """Group the most recent open errors."""
        self._require("batch_fix_enabled")
        records = self.list_errors(ErrorStatus.OPEN, limit=self.config.grouping.scan_limit)
        self.groups = group_errors(
            records,
            safe_categories=self.config.grouping.safe_categories,
            minutes_per_error=self.config.grouping.minutes_per_error,
        )
        logger.info("Found %d error group(s) in %d open error(s)", len(self.groups), len(records))
        return self.groups

    def create_chain(self, group_ids: list[str]) -> FixChain:
        self._require("batch_fix_enabled")
        chain = build_chain(self.scan(), group_ids, max_patches=self.flags.max_chain_size)
        self.save_chain(chain)
        return chain

    def save_chain(self, chain: FixChain) -> None:
        self.backend.upsert(FIX_CHAINS, chain.to_dict())

    def get_chain(self, chain_id: str) -> FixChain | None:
        row = self.backend.get(FIX_CHAINS, chain_id)
        return FixChain.from_dict(row) if row else None

    def list_chains(self, limit: int = 20) -> list[FixChain]:
        rows = self.backend.select(FIX_CHAINS, order_by="created_at", desc=True, limit=limit)
        return [FixChain.from_dict(r) for r in rows]

    async def run_chain(
        self,
        chain_id: str,
        token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> FixChain:
        """Execute a stored pending chain and persist every state change."""
        self._require("batch_fix_enabled")
        chain = self.get_chain(chain_id)
        if chain is None:
            raise BackendError(f"No fix chain {chain_id}")
        if chain.status is not ChainStatus.PENDING:
            raise InvalidTransitionError(
                f"Chain {chain_id} is {chain.status.value}; only pending chains can run"
            )
        claimed = self.backend.update(
            FIX_CHAINS,
            {"status": ChainStatus.RUNNING.value},
            eq={"id": chain_id, "status": ChainStatus.PENDING.value},
        )
        if not claimed:
            raise InvalidTransitionError(f"Chain {chain_id} was started by another runner")

        def progress(c: FixChain, patch) -> None:
            self.save_chain(c)
            if on_progress is not None:
                on_progress(c, patch)

        executor = ChainExecutor(
            self.remediators,
            locks=self.locks,
            delay=self.flags.patch_delay_seconds,
            history=self.history,
            on_progress=progress,
        )
        try:
            await executor.execute(chain, token)
        finally:
            self.save_chain(chain)

        if chain.status is ChainStatus.COMPLETED and self.config.fix.resolve_on_success:
            for error_id in dict.fromkeys(p.error_id for p in chain.patches):
                self.resolve_error(error_id)
        return chain

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def system_status(self) -> str:
        """``critical``, ``warning`` or ``healthy`` from open high-severity errors."""
        open_high = sum(1 for e in self.list_errors(ErrorStatus.OPEN, limit=1000) if e.is_high)
        if open_high > CRITICAL_OPEN_THRESHOLD:
            return "critical"
        if open_high > 0:
            return "warning"
        return "healthy"

    def watchdog(self) -> list[ModuleReport]:
        self._require("plugin_watchdog_enabled")
        return reconcile(self.list_errors(limit=self.config.grouping.scan_limit))

    # ------------------------------------------------------------------
    # Server-side functions
    # ------------------------------------------------------------------

    def _auto_heal(self, body: dict[str, Any]) -> dict[str, Any]:
        """Chain every batch-fixable group that covers new errors, then run it.

        Runs its own event loop, so it must not be invoked from async code.
        """
        if not self.flags.auto_healing_enabled:
            return {"healed": 0, "skipped": "auto_healing_enabled is off"}

        covered: set[str] = set()
        selected: list[str] = []
        for group in self.scan():
            ids = {e.id for e in group.errors}
            if group.can_batch_fix and not ids & covered:
                selected.append(group.id)
                covered |= ids
        if not selected:
            return {"healed": 0, "chains": []}

        chain = self.create_chain(selected)
        chain = asyncio.run(self.run_chain(chain.id))
        healed = chain.successful_fixes if chain.status is ChainStatus.COMPLETED else 0
        return {"healed": healed, "chains": [chain.id], "status": chain.status.value}

    def _learn(self, body: dict[str, Any]) -> dict[str, Any]:
        patterns = self.history.success_by_method()
        learned = sum(1 for counts in patterns.values() if counts.get("applied", 0) > 0)
        return {"learned": learned, "patterns": patterns}

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    def _require(self, flag: str) -> None:
        if not getattr(self.flags, flag):
            raise FeatureDisabledError(f"{flag} is off. Enable it with `ashen flags set {flag} true`.")

    def _on_flags_changed(self, flags: FeatureFlags) -> None:
        self.flags = flags
