"""Tests for bucketed file storage."""

from __future__ import annotations

from pathlib import Path

import pytest

from ashen.backend import Storage
from ashen.core.errors import BackendError


class TestStorage:
    def test_round_trip_encrypted(self, tmp_path: Path):
        storage = Storage(tmp_path, encrypt=True)
        key = storage.upload("snapshots", "chain_1/app.ts", b"const x = 1;")

        assert key == "snapshots/chain_1/app.ts"
        raw = (tmp_path / ".ashen" / "storage" / "snapshots" / "chain_1" / "app.ts").read_bytes()
        assert raw != b"const x = 1;"
        assert storage.download("snapshots", "chain_1/app.ts") == b"const x = 1;"
        assert (tmp_path / ".ashen" / "key").exists()

    def test_round_trip_plain(self, tmp_path: Path):
        storage = Storage(tmp_path, encrypt=False)
        storage.upload("snapshots", "a.txt", b"plain")
        raw = (tmp_path / ".ashen" / "storage" / "snapshots" / "a.txt").read_bytes()
        assert raw == b"plain"

    def test_encrypt_default_from_config(self, tmp_path: Path):
        (tmp_path / "ashen.toml").write_text("[storage]\nencrypt = false\n")
        Storage(tmp_path).upload("b", "a.txt", b"plain")
        assert (tmp_path / ".ashen" / "storage" / "b" / "a.txt").read_bytes() == b"plain"

    def test_no_overwrite_without_upsert(self, tmp_path: Path):
        storage = Storage(tmp_path, encrypt=False)
        storage.upload("b", "a.txt", b"one")
        with pytest.raises(BackendError, match="already exists"):
            storage.upload("b", "a.txt", b"two")
        storage.upload("b", "a.txt", b"two", upsert=True)
        assert storage.download("b", "a.txt") == b"two"

    def test_download_missing(self, tmp_path: Path):
        with pytest.raises(BackendError, match="not found"):
            Storage(tmp_path, encrypt=False).download("b", "nope.txt")

    def test_public_url(self, tmp_path: Path):
        url = Storage(tmp_path, encrypt=False).get_public_url("b", "dir/a.txt")
        assert url.startswith("file://")
        assert url.endswith("/.ashen/storage/b/dir/a.txt")

    def test_remove(self, tmp_path: Path):
        storage = Storage(tmp_path, encrypt=False)
        storage.upload("b", "a.txt", b"1")
        storage.upload("b", "c.txt", b"2")
        assert storage.remove("b", ["a.txt", "c.txt", "missing.txt"]) == 2
        assert storage.remove("b", ["a.txt"]) == 0

    @pytest.mark.parametrize("path", ["../escape.txt", "/etc/passwd", "a/../../b", ""])
    def test_rejects_unsafe_paths(self, tmp_path: Path, path: str):
        with pytest.raises(BackendError, match="Invalid object path"):
            Storage(tmp_path, encrypt=False).upload("b", path, b"x")

    def test_rejects_bad_bucket(self, tmp_path: Path):
        with pytest.raises(BackendError, match="Invalid bucket"):
            Storage(tmp_path, encrypt=False).upload("Bad Bucket", "a.txt", b"x")
