"""Healing history: one row per applied, failed or rolled-back patch."""

from __future__ import annotations

from collections import Counter
from typing import Any

from ashen.backend import HEALING_HISTORY, Backend
from ashen.core.models import FixPatch, RemediationResult, utcnow


class HealingHistory:
    """Writes and reads the ``healing_history`` table."""

    def __init__(self, backend: Backend, applied_by: str = "ashen"):
        self.backend = backend
        self.applied_by = applied_by

    def record(
        self,
        patch: FixPatch,
        result_status: str,
        result: RemediationResult | None = None,
        error_message: str = "",
    ) -> dict[str, Any]:
        """Append an entry for *patch*.

        *result_status* is ``"applied"``, ``"failed"`` or ``"rolled_back"``.
        """
        row = {
            "chain_id": patch.chain_id,
            "patch_id": patch.id,
            "error_id": patch.error_id,
            "error_message": error_message,
            "fix_method": patch.fix_type.value,
            "fix_description": patch.description,
            "fix_confidence": result.confidence if result else 0.0,
            "fix_applied": result_status == "applied",
            "applied_by": self.applied_by,
            "files_modified": list(result.files_modified) if result else [],
            "result_status": result_status,
            "result_message": result.message if result else "",
            "rollback_info": dict(patch.rollback_info),
            "created_at": utcnow().isoformat(),
        }
        return self.backend.insert(HEALING_HISTORY, row)[0]

    def recent(self, limit: int = 50, chain_id: str | None = None) -> list[dict[str, Any]]:
        eq = {"chain_id": chain_id} if chain_id else None
        return self.backend.select(
            HEALING_HISTORY, eq=eq, order_by="created_at", desc=True, limit=limit
        )

    def success_by_method(self) -> dict[str, dict[str, int]]:
        """Count applied/failed/rolled_back entries per fix method."""
        counts: dict[str, Counter] = {}
        for row in self.backend.select(HEALING_HISTORY):
            counts.setdefault(row.get("fix_method", ""), Counter())[row.get("result_status", "")] += 1
        return {method: dict(c) for method, c in sorted(counts.items())}
