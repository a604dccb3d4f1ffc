"""Feature flags stored in the ``monitoring_config`` table.

Every flag key has a declared value type.  Components never read the
table themselves: they receive a frozen :class:`FeatureFlags` snapshot,
and :class:`FlagStore` is the single place that loads it, writes changes
and notifies subscribers with the refreshed snapshot.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, fields, replace
from typing import Any, Callable

from ashen.backend import MONITORING_CONFIG, Backend
from ashen.core.errors import ConfigError
from ashen.core.models import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureFlags:
    """Immutable snapshot of every toggle in the admin subsystem."""

    auto_healing_enabled: bool = False
    background_healing_enabled: bool = False
    batch_fix_enabled: bool = True
    plugin_watchdog_enabled: bool = True
    browser_emulation_enabled: bool = False
    patch_delay_seconds: float = 1.0
    max_chain_size: int = 500


FLAG_SCHEMA: dict[str, type] = {f.name: type(f.default) for f in fields(FeatureFlags)}


def coerce_flag(key: str, value: Any) -> Any:
    """Convert *value* to the declared type of *key* or raise ConfigError."""
    expected = FLAG_SCHEMA.get(key)
    if expected is None:
        raise ConfigError(f"Unknown flag {key!r}. Known flags: {', '.join(sorted(FLAG_SCHEMA))}")

    if expected is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes", "on"):
            return True
        if isinstance(value, str) and value.strip().lower() in ("false", "0", "no", "off"):
            return False
        raise ConfigError(f"Flag {key!r} expects a boolean, got {value!r}")

    if isinstance(value, bool):
        raise ConfigError(f"Flag {key!r} expects {expected.__name__}, got {value!r}")
    try:
        converted = expected(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Flag {key!r} expects {expected.__name__}, got {value!r}") from e
    if converted < 0:
        raise ConfigError(f"Flag {key!r} must not be negative")
    return converted


class FlagStore:
    """Loads, updates and publishes :class:`FeatureFlags` snapshots."""

    def __init__(self, backend: Backend) -> None:
        self._backend = backend
        self._lock = threading.Lock()
        self._snapshot: FeatureFlags | None = None
        self._subscribers: list[Callable[[FeatureFlags], None]] = []

    def snapshot(self) -> FeatureFlags:
        """Return the session snapshot, loading it on first use."""
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._load()
            return self._snapshot

    def refresh(self) -> FeatureFlags:
        """Reload from the backend and publish if anything changed."""
        fresh = self._load()
        with self._lock:
            changed = fresh != self._snapshot
            self._snapshot = fresh
        if changed:
            self._publish(fresh)
        return fresh

    def set(self, key: str, value: Any) -> FeatureFlags:
        """Validate and persist one flag, then publish the new snapshot."""
        typed = coerce_flag(key, value)
        self._backend.upsert(
            MONITORING_CONFIG,
            {
                "id": key,
                "config_key": key,
                "config_value": typed,
                "value_type": FLAG_SCHEMA[key].__name__,
                "is_active": True,
                "updated_at": utcnow().isoformat(),
            },
        )
        current = self.snapshot()
        updated = replace(current, **{key: typed})
        with self._lock:
            self._snapshot = updated
        logger.info("Flag %s set to %r", key, typed)
        self._publish(updated)
        return updated

    def subscribe(self, callback: Callable[[FeatureFlags], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _load(self) -> FeatureFlags:
        values: dict[str, Any] = {}
        for row in self._backend.select(MONITORING_CONFIG, eq={"is_active": True}):
            key = row.get("config_key", "")
            if key not in FLAG_SCHEMA:
                logger.debug("Ignoring unknown config key %r", key)
                continue
            try:
                values[key] = coerce_flag(key, row.get("config_value"))
            except ConfigError:
                logger.warning("Stored value for %s is invalid; using default", key)
        return FeatureFlags(**values)

    def _publish(self, flags: FeatureFlags) -> None:
        with self._lock:
            callbacks = list(self._subscribers)
        for callback in callbacks:
            try:
                callback(flags)
            except Exception:
                logger.exception("Flag subscriber raised")
