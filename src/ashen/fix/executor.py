"""Fix-chain execution: the pending -> running -> completed/rolled_back machine.

Patches run strictly in ``execution_order``.  The first failure halts the
chain, marks it ``failed`` and rolls back: every patch that already
succeeded is reverted in reverse order before the chain becomes
``rolled_back``.  Patches after the failing one are never attempted.

A chain holds a lock on every target path while it runs, so two chains
touching the same file cannot overlap.  :class:`SharedPathLocks` keeps those
locks in the backend so the guarantee holds across processes.  A :class:`CancellationToken` is
checked between patches.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from typing import Callable, Optional

from ashen.backend import CHAIN_LOCKS, Backend
from ashen.core.errors import ChainLockedError, ConflictError, InvalidTransitionError
from ashen.core.models import (
    ChainStatus,
    FixChain,
    FixPatch,
    PatchStatus,
    RemediationResult,
    utcnow,
)
from ashen.fix.history import HealingHistory
from ashen.fix.remediation import RemediatorRegistry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[FixChain, Optional[FixPatch]], None]


class CancellationToken:
    """Cooperative cancellation flag, safe to set from another thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class PathLockRegistry:
    """Exclusive locks on target paths, owned by chain id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holders: dict[str, str] = {}

    def acquire(self, owner: str, paths: list[str]) -> None:
        """Take every path for *owner* or none of them."""
        with self._lock:
            busy = {p: self._holders[p] for p in paths if self._holders.get(p, owner) != owner}
            if busy:
                path, holder = next(iter(sorted(busy.items())))
                raise ChainLockedError(f"{path} is locked by {holder}")
            for path in paths:
                self._holders[path] = owner

    def release(self, owner: str) -> None:
        with self._lock:
            for path in [p for p, o in self._holders.items() if o == owner]:
                del self._holders[path]

    def holder(self, path: str) -> str | None:
        with self._lock:
            return self._holders.get(path)


class SharedPathLocks:
    """Path locks stored as rows of the ``chain_locks`` table, keyed by path.

    Every path of an acquire is inserted in one transaction, and the primary
    key on ``id`` turns a concurrent claim into a conflict, so two processes
    sharing a project never hold the same path.
    """

    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    def acquire(self, owner: str, paths: list[str]) -> None:
        """Take every path for *owner* or none of them."""
        self._raise_if_busy(owner, paths)
        mine = self.backend.select(CHAIN_LOCKS, in_={"id": paths}, eq={"owner": owner})
        held = {row["id"] for row in mine}
        rows = [
            {"id": path, "owner": owner, "acquired_at": utcnow().isoformat()}
            for path in paths
            if path not in held
        ]
        if not rows:
            return
        try:
            self.backend.insert(CHAIN_LOCKS, rows)
        except ConflictError:
            self._raise_if_busy(owner, paths)
            raise ChainLockedError(f"Paths for {owner} were claimed concurrently") from None

    def release(self, owner: str) -> None:
        self.backend.delete(CHAIN_LOCKS, eq={"owner": owner})

    def holder(self, path: str) -> str | None:
        row = self.backend.get(CHAIN_LOCKS, path)
        return row["owner"] if row else None

    def _raise_if_busy(self, owner: str, paths: list[str]) -> None:
        if not paths:
            return
        busy = {
            row["id"]: row["owner"]
            for row in self.backend.select(CHAIN_LOCKS, in_={"id": paths})
            if row["owner"] != owner
        }
        if busy:
            path, holder = next(iter(sorted(busy.items())))
            raise ChainLockedError(f"{path} is locked by {holder}")


class ChainExecutor:
    """Runs fix chains against the registered remediators."""

    def __init__(
        self,
        remediators: RemediatorRegistry,
        locks: PathLockRegistry | SharedPathLocks | None = None,
        delay: float = 0.0,
        history: HealingHistory | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self.remediators = remediators
        self.locks = locks or PathLockRegistry()
        self.delay = delay
        self.history = history
        self.on_progress = on_progress

    async def execute(self, chain: FixChain, token: CancellationToken | None = None) -> FixChain:
        """Run *chain* to completion, first failure, or cancellation."""
        if chain.status is not ChainStatus.PENDING:
            raise InvalidTransitionError(
                f"Chain {chain.id} is {chain.status.value}; only pending chains can run"
            )

        self.locks.acquire(chain.id, chain.target_paths)
        applied: list[tuple[FixPatch, RemediationResult]] = []
        current: FixPatch | None = None
        try:
            chain.transition(ChainStatus.RUNNING)
            chain.started_at = utcnow()
            self._notify(chain, None)
            logger.info("Running %s (%d patches)", chain.id, len(chain.patches))

            for patch in chain.patches_in_order():
                current = patch
                if token is not None and token.cancelled:
                    chain.rollback_reason = f"Cancelled before patch {patch.execution_order}"
                    logger.warning("%s: %s", chain.id, chain.rollback_reason)
                    self._rollback(chain, applied)
                    return chain

                patch.transition(PatchStatus.APPLYING)
                self._notify(chain, patch)
                if self.delay:
                    await asyncio.sleep(self.delay)

                result = await self._apply(patch)
                if result.success:
                    patch.transition(PatchStatus.SUCCESS)
                    patch.applied_at = utcnow()
                    patch.rollback_info = dict(result.rollback_info)
                    chain.successful_fixes += 1
                    applied.append((patch, result))
                    self._record(patch, "applied", result)
                    self._notify(chain, patch)
                    continue

                patch.transition(PatchStatus.FAILED)
                chain.failed_fixes += 1
                chain.transition(ChainStatus.FAILED)
                chain.rollback_reason = f"Failed at patch {patch.execution_order}: {patch.description}"
                logger.warning("%s: %s (%s)", chain.id, chain.rollback_reason, result.message)
                self._record(patch, "failed", result)
                self._notify(chain, patch)
                self._rollback(chain, applied)
                return chain

            chain.transition(ChainStatus.COMPLETED)
            chain.completed_at = utcnow()
            logger.info("%s completed: %d fixes applied", chain.id, chain.successful_fixes)
            self._notify(chain, None)
            return chain
        except BaseException as e:
            if chain.status in (ChainStatus.RUNNING, ChainStatus.FAILED):
                if chain.status is ChainStatus.RUNNING:
                    chain.transition(ChainStatus.FAILED)
                    where = f"patch {current.execution_order}" if current else "start"
                    chain.rollback_reason = f"Aborted at {where}: {e!r}"
                logger.error("%s aborted, rolling back", chain.id)
                self._rollback(chain, applied)
            raise
        finally:
            self.locks.release(chain.id)

    async def _apply(self, patch: FixPatch) -> RemediationResult:
        remediator = self.remediators.for_patch(patch)
        try:
            result = remediator.apply(patch)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.exception("Remediator raised on %s", patch.id)
            return RemediationResult(success=False, message=str(e) or type(e).__name__)
        return result

    def _rollback(self, chain: FixChain, applied: list[tuple[FixPatch, RemediationResult]]) -> None:
        """Revert applied patches newest first, then mark the chain rolled back."""
        for patch, result in reversed(applied):
            try:
                if result.undo is not None:
                    result.undo()
                patch.transition(PatchStatus.ROLLED_BACK)
            except Exception as e:
                logger.exception("Could not revert patch %d of %s", patch.execution_order, chain.id)
                chain.rollback_errors.append(f"patch {patch.execution_order}: {e}")
                continue
            try:
                self._record(patch, "rolled_back", result)
            except Exception as e:
                logger.exception("Could not record rollback of %s", patch.id)
                chain.rollback_errors.append(f"history for patch {patch.execution_order}: {e}")
            self._notify(chain, patch)

        chain.transition(ChainStatus.ROLLED_BACK)
        logger.warning(
            "%s rolled back (%d reverted, %d revert errors)",
            chain.id,
            sum(1 for p, _ in applied if p.status is PatchStatus.ROLLED_BACK),
            len(chain.rollback_errors),
        )
        self._notify(chain, None)

    def _record(self, patch: FixPatch, status: str, result: RemediationResult) -> None:
        if self.history is not None:
            self.history.record(patch, status, result)

    def _notify(self, chain: FixChain, patch: FixPatch | None) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(chain, patch)
        except Exception:
            logger.exception("Progress callback raised")
