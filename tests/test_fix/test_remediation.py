"""Tests for remediators and file backups."""

from __future__ import annotations

import json
import random

from ashen.core.models import FixPatch, FixType
from ashen.fix.backups import BackupManager
from ashen.fix.remediation import (
    RemediatorRegistry,
    SimulatedRemediator,
    SnapshotRemediator,
)


def _make_patch(path: str = "src/app.ts", fix_type: FixType = FixType.NULL_CHECK, order: int = 1) -> FixPatch:
    return FixPatch(
        id=f"chain_x_p{order}",
        chain_id="chain_x",
        error_id=f"err{order}",
        component_path=path,
        fix_type=fix_type,
        description="Add null/undefined safety checks",
        execution_order=order,
    )


def _guard_transform(source: str, patch: FixPatch) -> str:
    return source.replace("user.name", "user?.name")


class TestSimulatedRemediator:
    def test_always_succeeds_at_full_rate(self):
        remediator = SimulatedRemediator(1.0, seed=1)
        results = [remediator.apply(_make_patch(order=i)) for i in range(1, 20)]
        assert all(r.success for r in results)
        assert all(r.undo is not None for r in results)

    def test_never_succeeds_at_zero_rate(self):
        remediator = SimulatedRemediator(0.0, seed=1)
        assert not any(remediator.apply(_make_patch(order=i)).success for i in range(1, 20))

    def test_seed_is_reproducible(self):
        a = SimulatedRemediator(0.5, seed=42)
        b = SimulatedRemediator(0.5, seed=42)
        outcomes_a = [a.apply(_make_patch()).success for _ in range(30)]
        outcomes_b = [b.apply(_make_patch()).success for _ in range(30)]
        assert outcomes_a == outcomes_b

    def test_injected_rng(self):
        rng = random.Random(7)
        expected = random.Random(7).random() < 0.5
        assert SimulatedRemediator(0.5, rng=rng).apply(_make_patch()).success is expected

    def test_rate_is_clamped(self):
        assert SimulatedRemediator(3.0).success_rate == 1.0
        assert SimulatedRemediator(-1.0).success_rate == 0.0


class TestSnapshotRemediator:
    def test_applies_and_undoes(self, tmp_path):
        target = tmp_path / "src" / "app.ts"
        target.parent.mkdir()
        target.write_text("const n = user.name;\n")

        remediator = SnapshotRemediator(tmp_path, _guard_transform)
        result = remediator.apply(_make_patch())

        assert result.success
        assert result.files_modified == ["src/app.ts"]
        assert result.rollback_info["kind"] == "file_backup"
        assert target.read_text() == "const n = user?.name;\n"

        result.undo()
        assert target.read_text() == "const n = user.name;\n"

    def test_missing_file_fails(self, tmp_path):
        result = SnapshotRemediator(tmp_path, _guard_transform).apply(_make_patch("src/missing.ts"))
        assert not result.success
        assert "not found" in result.message

    def test_unchanged_transform_fails(self, tmp_path):
        (tmp_path / "app.ts").write_text("const x = 1;\n")
        result = SnapshotRemediator(tmp_path, _guard_transform).apply(_make_patch("app.ts"))
        assert not result.success
        assert (tmp_path / "app.ts").read_text() == "const x = 1;\n"

    def test_absolute_path(self, tmp_path):
        target = tmp_path / "abs.ts"
        target.write_text("user.name")
        result = SnapshotRemediator(tmp_path, _guard_transform).apply(_make_patch(str(target)))
        assert result.success
        assert target.read_text() == "user?.name"


class TestRemediatorRegistry:
    def test_fallback_to_default(self):
        default = SimulatedRemediator(1.0)
        registry = RemediatorRegistry(default)
        assert registry.for_patch(_make_patch(fix_type=FixType.IMPORT_FIX)) is default

    def test_registered_type(self):
        default = SimulatedRemediator(1.0)
        special = SimulatedRemediator(0.0)
        registry = RemediatorRegistry(default)
        registry.register(FixType.IMPORT_FIX, special)
        assert registry.for_patch(_make_patch(fix_type=FixType.IMPORT_FIX)) is special
        assert registry.for_patch(_make_patch(fix_type=FixType.NULL_CHECK)) is default


class TestBackupManager:
    def test_create_writes_manifest(self, tmp_path):
        target = tmp_path / "a.ts"
        target.write_text("original")
        manager = BackupManager(tmp_path)

        entry = manager.create("chain_1", "chain_1_p1", target)

        assert entry.existed is True
        assert entry.backup.read_text() == "original"
        manifest = json.loads((tmp_path / ".ashen" / "backups" / "chain_1" / "manifest.json").read_text())
        assert manifest[0]["patch_id"] == "chain_1_p1"

    def test_restore_existing_file(self, tmp_path):
        target = tmp_path / "a.ts"
        target.write_text("original")
        manager = BackupManager(tmp_path)
        entry = manager.create("chain_1", "chain_1_p1", target)
        target.write_text("changed")

        manager.restore(entry)

        assert target.read_text() == "original"

    def test_restore_removes_new_file(self, tmp_path):
        manager = BackupManager(tmp_path)
        entry = manager.create("chain_1", "chain_1_p1", tmp_path / "new.ts")
        (tmp_path / "new.ts").write_text("created by patch")

        manager.restore(entry)

        assert not (tmp_path / "new.ts").exists()

    def test_list_entries_by_chain(self, tmp_path):
        (tmp_path / "a.ts").write_text("a")
        (tmp_path / "b.ts").write_text("b")
        manager = BackupManager(tmp_path)
        manager.create("chain_1", "chain_1_p1", tmp_path / "a.ts")
        manager.create("chain_1", "chain_1_p2", tmp_path / "b.ts")
        manager.create("chain_2", "chain_2_p1", tmp_path / "a.ts")

        entries = manager.list_entries("chain_1")

        assert [e.patch_id for e in entries] == ["chain_1_p1", "chain_1_p2"]
        assert len(manager.list_entries()) == 3

    def test_list_entries_empty(self, tmp_path):
        assert BackupManager(tmp_path).list_entries() == []
