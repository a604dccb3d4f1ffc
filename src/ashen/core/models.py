"""Shared data models used across Ashen modules."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from ashen.core.errors import InvalidTransitionError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class Severity(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: str | Severity | None) -> Severity:
        if isinstance(value, Severity):
            return value
        if not isinstance(value, str):
            return cls.LOW
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.LOW


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


class ErrorStatus(enum.Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    IGNORED = "ignored"


class GroupKind(enum.Enum):
    MODULE = "module"
    SOURCE = "source"
    CATEGORY = "category"
    API_FAILURE = "api_failure"


class FixType(enum.Enum):
    ERROR_BOUNDARY = "error_boundary"
    NULL_CHECK = "null_check"
    IMPORT_FIX = "import_fix"
    MOBILE_BUTTON_FIX = "mobile_button_fix"
    DATEPICKER_UPDATE = "datepicker_update"
    GENERIC_FIX = "generic_fix"


class PatchStatus(enum.Enum):
    PENDING = "pending"
    APPLYING = "applying"
    SUCCESS = "success"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class ChainStatus(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        return self in (ChainStatus.COMPLETED, ChainStatus.ROLLED_BACK)


CHAIN_TRANSITIONS: dict[ChainStatus, frozenset[ChainStatus]] = {
    ChainStatus.PENDING: frozenset({ChainStatus.RUNNING}),
    ChainStatus.RUNNING: frozenset(
        {ChainStatus.COMPLETED, ChainStatus.FAILED, ChainStatus.ROLLED_BACK}
    ),
    ChainStatus.FAILED: frozenset({ChainStatus.ROLLED_BACK}),
    ChainStatus.COMPLETED: frozenset(),
    ChainStatus.ROLLED_BACK: frozenset(),
}

PATCH_TRANSITIONS: dict[PatchStatus, frozenset[PatchStatus]] = {
    PatchStatus.PENDING: frozenset({PatchStatus.APPLYING}),
    PatchStatus.APPLYING: frozenset({PatchStatus.SUCCESS, PatchStatus.FAILED}),
    PatchStatus.SUCCESS: frozenset({PatchStatus.ROLLED_BACK}),
    PatchStatus.FAILED: frozenset(),
    PatchStatus.ROLLED_BACK: frozenset(),
}


@dataclass
class ErrorRecord:
    """A single defect observed by the detection layer."""

    component_path: str
    error_type: str
    error_message: str
    severity: Severity = Severity.LOW
    status: ErrorStatus = ErrorStatus.OPEN
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=utcnow)
    line_number: int | None = None
    suggested_fix: str = ""
    confidence_score: float | None = None
    resolved_at: datetime | None = None

    @property
    def is_high(self) -> bool:
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "component_path": self.component_path,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "severity": self.severity.value,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "line_number": self.line_number,
            "suggested_fix": self.suggested_fix,
            "confidence_score": self.confidence_score,
            "resolved_at": _iso(self.resolved_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorRecord:
        return cls(
            id=data.get("id") or uuid.uuid4().hex,
            component_path=_text(data, "component_path"),
            error_type=_text(data, "error_type"),
            error_message=_text(data, "error_message"),
            severity=Severity.parse(data.get("severity", "low")),
            status=ErrorStatus(data.get("status", "open")),
            created_at=_parse_ts(data.get("created_at")) or utcnow(),
            line_number=data.get("line_number"),
            suggested_fix=data.get("suggested_fix") or "",
            confidence_score=data.get("confidence_score"),
            resolved_at=_parse_ts(data.get("resolved_at")),
        )


def _text(data: dict[str, Any], key: str) -> str:
    """Read a string field; null becomes empty, anything else non-string is rejected."""
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {type(value).__name__}")
    return value


@dataclass
class ErrorGroup:
    """An ephemeral cluster of error records sharing a derived key.

    Groups are recomputed on every scan and never persisted.
    """

    id: str
    kind: GroupKind
    name: str
    key: str
    errors: list[ErrorRecord]
    severity: Severity
    can_batch_fix: bool
    estimated_fix_minutes: int

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "key": self.key,
            "error_count": self.error_count,
            "error_ids": [e.id for e in self.errors],
            "severity": self.severity.value,
            "can_batch_fix": self.can_batch_fix,
            "estimated_fix_minutes": self.estimated_fix_minutes,
        }


@dataclass
class FixPatch:
    """One proposed remediation for exactly one error record."""

    id: str
    chain_id: str
    error_id: str
    component_path: str
    fix_type: FixType
    description: str
    execution_order: int
    status: PatchStatus = PatchStatus.PENDING
    applied_at: datetime | None = None
    rollback_info: dict[str, Any] = field(default_factory=dict)

    def transition(self, new_status: PatchStatus) -> None:
        if new_status not in PATCH_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Patch {self.id}: {self.status.value} -> {new_status.value} not allowed"
            )
        self.status = new_status

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "chain_id": self.chain_id,
            "error_id": self.error_id,
            "component_path": self.component_path,
            "fix_type": self.fix_type.value,
            "description": self.description,
            "execution_order": self.execution_order,
            "status": self.status.value,
            "applied_at": _iso(self.applied_at),
            "rollback_info": self.rollback_info,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FixPatch:
        return cls(
            id=data["id"],
            chain_id=data.get("chain_id", ""),
            error_id=data.get("error_id", ""),
            component_path=data.get("component_path", ""),
            fix_type=FixType(data.get("fix_type", "generic_fix")),
            description=data.get("description", ""),
            execution_order=data.get("execution_order", 0),
            status=PatchStatus(data.get("status", "pending")),
            applied_at=_parse_ts(data.get("applied_at")),
            rollback_info=data.get("rollback_info") or {},
        )


@dataclass
class FixChain:
    """An ordered batch of patches executed with halt-on-failure semantics."""

    id: str
    name: str
    group_ids: list[str]
    execution_order: list[str]
    patches: list[FixPatch]
    total_fixes: int
    successful_fixes: int = 0
    failed_fixes: int = 0
    status: ChainStatus = ChainStatus.PENDING
    rollback_reason: str = ""
    rollback_errors: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def transition(self, new_status: ChainStatus) -> None:
        if new_status not in CHAIN_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Chain {self.id}: {self.status.value} -> {new_status.value} not allowed"
            )
        self.status = new_status

    @property
    def target_paths(self) -> list[str]:
        return sorted({p.component_path for p in self.patches})

    def patches_in_order(self) -> list[FixPatch]:
        return sorted(self.patches, key=lambda p: p.execution_order)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "group_ids": list(self.group_ids),
            "execution_order": list(self.execution_order),
            "patches": [p.to_dict() for p in self.patches],
            "total_fixes": self.total_fixes,
            "successful_fixes": self.successful_fixes,
            "failed_fixes": self.failed_fixes,
            "status": self.status.value,
            "rollback_reason": self.rollback_reason,
            "rollback_errors": list(self.rollback_errors),
            "created_at": self.created_at.isoformat(),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FixChain:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            group_ids=list(data.get("group_ids", [])),
            execution_order=list(data.get("execution_order", [])),
            patches=[FixPatch.from_dict(p) for p in data.get("patches", [])],
            total_fixes=data.get("total_fixes", 0),
            successful_fixes=data.get("successful_fixes", 0),
            failed_fixes=data.get("failed_fixes", 0),
            status=ChainStatus(data.get("status", "pending")),
            rollback_reason=data.get("rollback_reason") or "",
            rollback_errors=list(data.get("rollback_errors", [])),
            created_at=_parse_ts(data.get("created_at")) or utcnow(),
            started_at=_parse_ts(data.get("started_at")),
            completed_at=_parse_ts(data.get("completed_at")),
        )


@dataclass
class RemediationResult:
    """Outcome of one remediation attempt.

    ``undo`` reverts the change when called; ``rollback_info`` is the
    serialisable description of the same reverse operation.
    """

    success: bool
    message: str = ""
    files_modified: list[str] = field(default_factory=list)
    confidence: float = 1.0
    undo: Callable[[], None] | None = None
    rollback_info: dict[str, Any] = field(default_factory=dict)
