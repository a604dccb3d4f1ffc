"""Fernet encryption for objects kept in bucket storage."""

from __future__ import annotations

from pathlib import Path

from cryptography.fernet import Fernet


def get_or_create_key(ashen_dir: Path) -> bytes:
    """Get the project's Fernet key, generating it on first use."""
    key_file = ashen_dir / "key"
    if key_file.exists():
        return key_file.read_bytes().strip()

    key = Fernet.generate_key()
    ashen_dir.mkdir(parents=True, exist_ok=True)
    key_file.write_bytes(key)
    key_file.chmod(0o600)
    return key


def encrypt_data(data: bytes, ashen_dir: Path) -> bytes:
    return Fernet(get_or_create_key(ashen_dir)).encrypt(data)


def decrypt_data(token: bytes, ashen_dir: Path) -> bytes:
    return Fernet(get_or_create_key(ashen_dir)).decrypt(token)
