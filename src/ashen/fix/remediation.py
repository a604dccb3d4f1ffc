"""Remediation strategies: how a single patch is actually applied.

The executor is outcome-agnostic.  It asks the :class:`RemediatorRegistry`
for the strategy registered for a patch's fix type and trusts the
:class:`RemediationResult` it returns.  A result that carries an ``undo``
callable can be reverted during rollback.
"""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Callable, Protocol

from ashen.core.models import FixPatch, FixType, RemediationResult
from ashen.fix.backups import BackupManager

logger = logging.getLogger(__name__)


class Remediator(Protocol):
    def apply(self, patch: FixPatch) -> RemediationResult: ...


class SimulatedRemediator:
    """Coin-flip stand-in for a real remediation.

    Succeeds with probability *success_rate*; pass a seed or an ``rng``
    for reproducible runs.  Nothing is modified, so undo is a no-op.
    """

    def __init__(
        self,
        success_rate: float = 0.9,
        seed: int | None = None,
        rng: random.Random | None = None,
    ):
        self.success_rate = max(0.0, min(1.0, success_rate))
        self._rng = rng or random.Random(seed)

    def apply(self, patch: FixPatch) -> RemediationResult:
        if self._rng.random() < self.success_rate:
            return RemediationResult(
                success=True,
                message=f"Simulated {patch.fix_type.value} on {patch.component_path}",
                confidence=self.success_rate,
                undo=lambda: None,
                rollback_info={"kind": "simulated"},
            )
        return RemediationResult(
            success=False,
            message=f"Simulated failure applying {patch.fix_type.value}",
            confidence=self.success_rate,
        )


class SnapshotRemediator:
    """Rewrites the target file with *transform* after backing it up.

    ``transform(source, patch)`` returns the new file content.  The undo
    step restores the backup taken just before the write.
    """

    def __init__(
        self,
        project_path: Path,
        transform: Callable[[str, FixPatch], str],
        backups: BackupManager | None = None,
    ):
        self.project_path = project_path
        self.transform = transform
        self.backups = backups or BackupManager(project_path)

    def apply(self, patch: FixPatch) -> RemediationResult:
        file_path = self._resolve_file(Path(patch.component_path))
        if not file_path.exists():
            return RemediationResult(
                success=False,
                message=f"File not found: {patch.component_path}",
            )

        content = file_path.read_text()
        new_content = self.transform(content, patch)
        if new_content == content:
            return RemediationResult(
                success=False,
                message="No changes applied: transform left the file unchanged.",
            )

        entry = self.backups.create(patch.chain_id, patch.id, file_path)
        file_path.write_text(new_content)

        return RemediationResult(
            success=True,
            message=f"{patch.description} in {patch.component_path}",
            files_modified=[patch.component_path],
            undo=lambda: self.backups.restore(entry),
            rollback_info={"kind": "file_backup", "backup": str(entry.backup), "file": str(entry.file)},
        )

    def _resolve_file(self, file: Path) -> Path:
        if file.is_absolute():
            return file
        return self.project_path / file


class RemediatorRegistry:
    """Maps each fix type to its remediator, with a fallback for the rest."""

    def __init__(self, default: Remediator):
        self.default = default
        self._by_type: dict[FixType, Remediator] = {}

    def register(self, fix_type: FixType, remediator: Remediator) -> None:
        self._by_type[fix_type] = remediator

    def for_patch(self, patch: FixPatch) -> Remediator:
        return self._by_type.get(patch.fix_type, self.default)
