"""Tests for the BatchFixManager."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from ashen.backend import FIX_CHAINS, HEALING_HISTORY
from ashen.core.errors import (
    BackendError,
    ChainLockedError,
    ChainValidationError,
    FeatureDisabledError,
    InvalidTransitionError,
)
from ashen.core.flags import FeatureFlags
from ashen.core.models import ChainStatus, ErrorRecord, ErrorStatus, Severity
from ashen.fix.engine import BatchFixManager
from ashen.fix.remediation import RemediatorRegistry, SimulatedRemediator


def _make_manager(tmp_path: Path, success_rate: float = 1.0, **flag_values) -> BatchFixManager:
    flag_values.setdefault("patch_delay_seconds", 0.0)
    return BatchFixManager(
        tmp_path,
        flags=FeatureFlags(**flag_values),
        remediators=RemediatorRegistry(SimulatedRemediator(success_rate, seed=3)),
    )


def _report(manager: BatchFixManager, path: str, error_type: str = "TypeError",
            message: str = "x is undefined", severity: Severity = Severity.LOW) -> ErrorRecord:
    return manager.report_error(ErrorRecord(path, error_type, message, severity=severity))


def _report_politicians(manager: BatchFixManager, count: int = 3) -> list[ErrorRecord]:
    return [_report(manager, "src/Politicians/List.tsx") for _ in range(count)]


class TestErrorRecords:
    def test_report_and_list(self, tmp_path):
        manager = _make_manager(tmp_path)
        first = _report(manager, "src/a.ts")
        second = _report(manager, "src/b.ts")
        ids = [r.id for r in manager.list_errors()]
        assert set(ids) == {first.id, second.id}

    def test_resolve_and_ignore(self, tmp_path):
        manager = _make_manager(tmp_path)
        a = _report(manager, "src/a.ts")
        b = _report(manager, "src/b.ts")

        resolved = manager.resolve_error(a.id)
        manager.ignore_error(b.id)

        assert resolved.status is ErrorStatus.RESOLVED
        assert resolved.resolved_at is not None
        assert manager.list_errors(ErrorStatus.OPEN) == []
        assert [r.id for r in manager.list_errors(ErrorStatus.IGNORED)] == [b.id]

    def test_resolve_unknown(self, tmp_path):
        with pytest.raises(BackendError):
            _make_manager(tmp_path).resolve_error("missing")


class TestScanAndChains:
    def test_scan_groups_open_errors(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        ids = {g.id for g in manager.scan()}
        assert ids == {
            "group_module_Politicians",
            "group_source_src/Politicians/List.tsx",
            "group_category_TypeError",
        }

    def test_scan_ignores_resolved(self, tmp_path):
        manager = _make_manager(tmp_path)
        records = _report_politicians(manager)
        manager.resolve_error(records[0].id)
        groups = manager.scan()
        assert {g.id for g in groups} == {"group_module_Politicians"}

    def test_scan_respects_limit(self, tmp_path):
        (tmp_path / "ashen.toml").write_text("[grouping]\nscan_limit = 2\n")
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        assert [g.id for g in manager.scan()] == ["group_module_Politicians"]

    def test_create_and_reload_chain(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        manager.scan()

        chain = manager.create_chain(["group_category_TypeError"])

        stored = manager.get_chain(chain.id)
        assert stored is not None
        assert stored.to_dict() == chain.to_dict()
        assert [c.id for c in manager.list_chains()] == [chain.id]

    def test_create_chain_scans_when_needed(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        chain = manager.create_chain(["group_module_Politicians"])
        assert chain.total_fixes == 3

    def test_create_chain_rescans_after_run(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        chain = manager.create_chain(["group_module_Politicians"])
        asyncio.run(manager.run_chain(chain.id))

        with pytest.raises(ChainValidationError, match="group_module_Politicians"):
            manager.create_chain(["group_module_Politicians"])
        assert [c.id for c in manager.list_chains()] == [chain.id]

    def test_create_chain_empty_selection_persists_nothing(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        with pytest.raises(ChainValidationError):
            manager.create_chain([])
        assert manager.list_chains() == []

    def test_max_chain_size(self, tmp_path):
        manager = _make_manager(tmp_path, max_chain_size=2)
        _report_politicians(manager)
        with pytest.raises(ChainValidationError):
            manager.create_chain(["group_module_Politicians"])

    def test_batch_fix_disabled(self, tmp_path):
        manager = _make_manager(tmp_path, batch_fix_enabled=False)
        with pytest.raises(FeatureDisabledError, match="batch_fix_enabled"):
            manager.scan()

    def test_unknown_chain(self, tmp_path):
        assert _make_manager(tmp_path).get_chain("chain_nope") is None
        with pytest.raises(BackendError):
            asyncio.run(_make_manager(tmp_path).run_chain("chain_nope"))


class TestRunChain:
    def test_completed_chain_resolves_errors(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        chain = manager.create_chain(["group_source_src/Politicians/List.tsx"])

        result = asyncio.run(manager.run_chain(chain.id))

        assert result.status is ChainStatus.COMPLETED
        assert result.successful_fixes == 3
        assert manager.get_chain(chain.id).status is ChainStatus.COMPLETED
        assert manager.list_errors(ErrorStatus.OPEN) == []
        assert manager.backend.count(HEALING_HISTORY) == 3

    def test_resolve_on_success_off(self, tmp_path):
        (tmp_path / "ashen.toml").write_text("[fix]\nresolve_on_success = false\n")
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        chain = manager.create_chain(["group_module_Politicians"])
        asyncio.run(manager.run_chain(chain.id))
        assert len(manager.list_errors(ErrorStatus.OPEN)) == 3

    def test_failed_chain_is_rolled_back_and_persisted(self, tmp_path):
        manager = _make_manager(tmp_path, success_rate=0.0)
        _report_politicians(manager)
        chain = manager.create_chain(["group_module_Politicians"])

        asyncio.run(manager.run_chain(chain.id))

        stored = manager.get_chain(chain.id)
        assert stored.status is ChainStatus.ROLLED_BACK
        assert stored.rollback_reason.startswith("Failed at patch 1:")
        assert len(manager.list_errors(ErrorStatus.OPEN)) == 3

    def test_chain_runs_once(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        chain = manager.create_chain(["group_module_Politicians"])
        asyncio.run(manager.run_chain(chain.id))
        with pytest.raises(InvalidTransitionError):
            asyncio.run(manager.run_chain(chain.id))
        assert manager.get_chain(chain.id).status is ChainStatus.COMPLETED

    def test_progress_callback_and_persistence(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager, 2)
        chain = manager.create_chain(["group_module_Politicians"])
        statuses = []

        def on_progress(c, patch):
            statuses.append(manager.get_chain(c.id).status)

        asyncio.run(manager.run_chain(chain.id, on_progress=on_progress))
        assert statuses[0] is ChainStatus.RUNNING
        assert statuses[-1] is ChainStatus.COMPLETED

    def test_overlapping_chains_conflict(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        first = manager.create_chain(["group_module_Politicians"])
        second = manager.create_chain(["group_category_TypeError"])
        manager.locks.acquire(first.id, first.target_paths)

        with pytest.raises(ChainLockedError):
            asyncio.run(manager.run_chain(second.id))
        assert manager.get_chain(second.id).status is ChainStatus.PENDING


class TestConcurrentManagers:
    def test_overlapping_chains_across_managers(self, tmp_path):
        first_manager = _make_manager(tmp_path, patch_delay_seconds=0.01)
        second_manager = _make_manager(tmp_path, patch_delay_seconds=0.01)
        _report_politicians(first_manager)
        first = first_manager.create_chain(["group_module_Politicians"])
        second = second_manager.create_chain(["group_category_TypeError"])

        async def run_both():
            return await asyncio.gather(
                first_manager.run_chain(first.id),
                second_manager.run_chain(second.id),
                return_exceptions=True,
            )

        done, locked = asyncio.run(run_both())

        assert done.status is ChainStatus.COMPLETED
        assert isinstance(locked, ChainLockedError)
        assert first_manager.get_chain(second.id).status is ChainStatus.PENDING
        assert first_manager.locks.holder("src/Politicians/List.tsx") is None

    def test_same_chain_runs_once_across_managers(self, tmp_path):
        first_manager = _make_manager(tmp_path, patch_delay_seconds=0.01)
        second_manager = _make_manager(tmp_path, patch_delay_seconds=0.01)
        _report_politicians(first_manager)
        chain = first_manager.create_chain(["group_module_Politicians"])

        async def run_both():
            return await asyncio.gather(
                first_manager.run_chain(chain.id),
                second_manager.run_chain(chain.id),
                return_exceptions=True,
            )

        done, rejected = asyncio.run(run_both())

        assert done.status is ChainStatus.COMPLETED
        assert isinstance(rejected, InvalidTransitionError)
        assert second_manager.get_chain(chain.id).status is ChainStatus.COMPLETED
        assert second_manager.backend.count(HEALING_HISTORY) == 3

    def test_stale_pending_read_loses_claim(self, tmp_path, monkeypatch):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        chain = manager.create_chain(["group_module_Politicians"])
        manager.backend.update(FIX_CHAINS, {"status": "running"}, eq={"id": chain.id})
        monkeypatch.setattr(manager, "get_chain", lambda chain_id: chain)

        with pytest.raises(InvalidTransitionError, match="another runner"):
            asyncio.run(manager.run_chain(chain.id))
        assert manager.backend.count(HEALING_HISTORY) == 0


class TestDiagnostics:
    def test_system_status(self, tmp_path):
        manager = _make_manager(tmp_path)
        assert manager.system_status() == "healthy"

        _report(manager, "src/a.ts", severity=Severity.LOW)
        assert manager.system_status() == "healthy"

        _report(manager, "src/a.ts", severity=Severity.HIGH)
        assert manager.system_status() == "warning"

        for _ in range(5):
            _report(manager, "src/a.ts", severity=Severity.CRITICAL)
        assert manager.system_status() == "critical"

    def test_watchdog(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report(manager, "src/pages/Auth.tsx", severity=Severity.HIGH)
        by_name = {r.module.name: r for r in manager.watchdog()}
        assert by_name["Authentication"].status == "broken"

    def test_watchdog_disabled(self, tmp_path):
        manager = _make_manager(tmp_path, plugin_watchdog_enabled=False)
        with pytest.raises(FeatureDisabledError):
            manager.watchdog()


class TestFunctions:
    def test_auto_healer_off_by_default(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        result = manager.functions.invoke("auto-healer")
        assert result["healed"] == 0
        assert "skipped" in result
        assert manager.list_chains() == []

    def test_auto_healer_heals_batchable_groups(self, tmp_path):
        manager = _make_manager(tmp_path, auto_healing_enabled=True)
        _report_politicians(manager)

        result = manager.functions.invoke("auto-healer", {})

        assert result["status"] == "completed"
        assert result["healed"] == 3
        assert len(result["chains"]) == 1
        assert manager.list_errors(ErrorStatus.OPEN) == []

    def test_auto_healer_nothing_to_do(self, tmp_path):
        manager = _make_manager(tmp_path, auto_healing_enabled=True)
        assert manager.functions.invoke("auto-healer") == {"healed": 0, "chains": []}

    def test_learning_engine(self, tmp_path):
        manager = _make_manager(tmp_path)
        _report_politicians(manager)
        chain = manager.create_chain(["group_module_Politicians"])
        asyncio.run(manager.run_chain(chain.id))

        result = manager.functions.invoke("learning-engine")

        assert result["learned"] == 1
        assert result["patterns"] == {"null_check": {"applied": 3}}

    def test_flag_changes_reach_manager(self, tmp_path):
        manager = _make_manager(tmp_path)
        manager.flag_store.set("batch_fix_enabled", False)
        assert manager.flags.batch_fix_enabled is False
        with pytest.raises(FeatureDisabledError):
            manager.scan()
