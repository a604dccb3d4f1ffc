"""Backups of target files taken before a patch modifies them."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ashen.core.config import get_ashen_dir
from ashen.core.errors import BackendError


@dataclass
class BackupEntry:
    """A restorable snapshot of one file."""

    chain_id: str
    patch_id: str
    file: Path
    backup: Path
    existed: bool
    timestamp: str


class BackupManager:
    """Writes per-chain backup sessions with a manifest, and restores them."""

    def __init__(self, project_path: Path):
        self.project_path = project_path
        self.backup_dir = get_ashen_dir(project_path) / "backups"

    def create(self, chain_id: str, patch_id: str, file_path: Path) -> BackupEntry:
        """Snapshot *file_path* (which may not exist yet) for *patch_id*."""
        file_path = self._resolve_file(file_path)
        session = self.backup_dir / chain_id
        session.mkdir(parents=True, exist_ok=True)

        backup_file = session / f"{patch_id}__{file_path.name}.bak"
        existed = file_path.exists()
        backup_file.write_text(file_path.read_text() if existed else "")

        entry = BackupEntry(
            chain_id=chain_id,
            patch_id=patch_id,
            file=file_path,
            backup=backup_file,
            existed=existed,
            timestamp=datetime.now().strftime("%Y-%m-%dT%H-%M-%S"),
        )

        manifest_file = session / "manifest.json"
        manifest = []
        if manifest_file.exists():
            manifest = json.loads(manifest_file.read_text())
        manifest.append({
            "patch_id": patch_id,
            "file": str(file_path),
            "backup": str(backup_file),
            "existed": existed,
            "timestamp": entry.timestamp,
        })
        manifest_file.write_text(json.dumps(manifest, indent=2))
        return entry

    def restore(self, entry: BackupEntry) -> None:
        """Put the file back the way it was when *entry* was taken."""
        if not entry.backup.exists():
            raise BackendError(f"Backup file not found for {entry.patch_id}")
        if entry.existed:
            entry.file.write_text(entry.backup.read_text())
        elif entry.file.exists():
            entry.file.unlink()

    def list_entries(self, chain_id: str | None = None) -> list[BackupEntry]:
        """List restorable entries, newest session first."""
        entries: list[BackupEntry] = []
        if not self.backup_dir.exists():
            return entries

        sessions = sorted(self.backup_dir.iterdir(), key=lambda p: p.stat().st_mtime, reverse=True)
        for session_dir in sessions:
            if chain_id and session_dir.name != chain_id:
                continue
            manifest_file = session_dir / "manifest.json"
            if not manifest_file.exists():
                continue
            for item in json.loads(manifest_file.read_text()):
                entries.append(BackupEntry(
                    chain_id=session_dir.name,
                    patch_id=item["patch_id"],
                    file=Path(item["file"]),
                    backup=Path(item["backup"]),
                    existed=item.get("existed", True),
                    timestamp=item["timestamp"],
                ))
        return entries

    def _resolve_file(self, file: Path) -> Path:
        if file.is_absolute():
            return file
        return self.project_path / file
