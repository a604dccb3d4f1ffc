"""Error grouping: cluster open error records into batch-fixable groups.

Four independent passes run over the same records and their groups are
unioned:

- by module (coarse feature name derived from the path), kept if > 1 member
- by source file (exact path), kept if > 2 members
- by error category (``error_type``), kept if > 2 members
- API failures (message mentions api/network/fetch), kept if > 1 member

The result is sorted by member count, largest first.  Group ids are
derived from kind and key, so the same input always yields the same output.
"""

from __future__ import annotations

from typing import Iterable

from ashen.core.models import ErrorGroup, ErrorRecord, GroupKind, Severity

# (substring, module name); first match wins.
MODULE_PATTERNS: list[tuple[str, str]] = [
    ("Politicians", "Politicians"),
    ("Polls", "Polls"),
    ("Promises", "Promises"),
    ("Civic", "CivicImportCore"),
    ("Pulse", "PulseFeed"),
    ("Admin", "Admin"),
    ("Auth", "Auth"),
]
DEFAULT_MODULE = "Core"

API_KEYWORDS = ("api", "network", "fetch")
API_GROUP_KEY = "api_failures"
API_GROUP_NAME = "API Failures"

SAFE_CATEGORIES = frozenset({"TypeError"})

MIN_MEMBERS = {
    GroupKind.MODULE: 2,
    GroupKind.SOURCE: 3,
    GroupKind.CATEGORY: 3,
    GroupKind.API_FAILURE: 2,
}

MINUTES_PER_ERROR = 2


def extract_module(path: str) -> str:
    """Map a component path to a known feature module name."""
    for needle, module in MODULE_PATTERNS:
        if needle in path:
            return module
    return DEFAULT_MODULE


def is_api_failure(record: ErrorRecord) -> bool:
    message = record.error_message.lower()
    return any(word in message for word in API_KEYWORDS)


def group_severity(errors: list[ErrorRecord]) -> Severity:
    """``high`` if most members are high/critical, ``medium`` if any are."""
    high = sum(1 for e in errors if e.is_high)
    if high > len(errors) / 2:
        return Severity.HIGH
    if high > 0:
        return Severity.MEDIUM
    return Severity.LOW


def can_batch_fix(
    kind: GroupKind,
    errors: list[ErrorRecord],
    safe_categories: Iterable[str] = SAFE_CATEGORIES,
) -> bool:
    if kind is GroupKind.API_FAILURE:
        return True
    if kind is GroupKind.CATEGORY and errors and errors[0].error_type in set(safe_categories):
        return True
    if kind is GroupKind.SOURCE and len(errors) > 3:
        return True
    return len(errors) > 1 and all(e.error_type == errors[0].error_type for e in errors)


def group_errors(
    records: list[ErrorRecord],
    safe_categories: Iterable[str] = SAFE_CATEGORIES,
    minutes_per_error: int = MINUTES_PER_ERROR,
) -> list[ErrorGroup]:
    """Run the four grouping passes and return the qualifying groups."""
    safe = frozenset(safe_categories)
    buckets: dict[GroupKind, dict[str, list[ErrorRecord]]] = {kind: {} for kind in GroupKind}

    for record in records:
        buckets[GroupKind.MODULE].setdefault(extract_module(record.component_path), []).append(record)
        buckets[GroupKind.SOURCE].setdefault(record.component_path, []).append(record)
        buckets[GroupKind.CATEGORY].setdefault(record.error_type, []).append(record)
        if is_api_failure(record):
            buckets[GroupKind.API_FAILURE].setdefault(API_GROUP_KEY, []).append(record)

    groups: list[ErrorGroup] = []
    for kind in (GroupKind.MODULE, GroupKind.SOURCE, GroupKind.CATEGORY, GroupKind.API_FAILURE):
        for key, members in buckets[kind].items():
            if len(members) < MIN_MEMBERS[kind]:
                continue
            groups.append(_make_group(kind, key, members, safe, minutes_per_error))

    groups.sort(key=lambda g: g.error_count, reverse=True)
    return groups


def _make_group(
    kind: GroupKind,
    key: str,
    members: list[ErrorRecord],
    safe: frozenset[str],
    minutes_per_error: int,
) -> ErrorGroup:
    if kind is GroupKind.SOURCE:
        name = key.rsplit("/", 1)[-1] or key
    elif kind is GroupKind.API_FAILURE:
        name = API_GROUP_NAME
    else:
        name = key
    return ErrorGroup(
        id=f"group_{kind.value}_{key}",
        kind=kind,
        name=name,
        key=key,
        errors=list(members),
        severity=group_severity(members),
        can_batch_fix=can_batch_fix(kind, members, safe),
        estimated_fix_minutes=len(members) * minutes_per_error,
    )
