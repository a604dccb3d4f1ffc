"""Fix-chain construction from a selection of error groups."""

from __future__ import annotations

import logging
import uuid

from ashen.core.errors import ChainValidationError
from ashen.core.models import (
    ErrorGroup,
    ErrorRecord,
    FixChain,
    FixPatch,
    FixType,
    GroupKind,
)

logger = logging.getLogger(__name__)

FIX_DESCRIPTIONS: dict[FixType, str] = {
    FixType.ERROR_BOUNDARY: "Add error boundary and retry logic",
    FixType.NULL_CHECK: "Add null/undefined safety checks",
    FixType.IMPORT_FIX: "Fix missing imports and dependencies",
    FixType.MOBILE_BUTTON_FIX: "Update button for mobile compatibility",
    FixType.DATEPICKER_UPDATE: "Update datepicker to latest format",
    FixType.GENERIC_FIX: "Apply automated fix based on error pattern",
}


def choose_fix_type(kind: GroupKind, record: ErrorRecord) -> FixType:
    if kind is GroupKind.API_FAILURE:
        return FixType.ERROR_BOUNDARY
    if record.error_type == "TypeError":
        return FixType.NULL_CHECK
    if record.error_type == "ReferenceError":
        return FixType.IMPORT_FIX
    if "button" in record.component_path:
        return FixType.MOBILE_BUTTON_FIX
    if "date" in record.component_path:
        return FixType.DATEPICKER_UPDATE
    return FixType.GENERIC_FIX


def order_groups(groups: list[ErrorGroup]) -> list[ErrorGroup]:
    """API-failure groups first, then by severity, keeping input order on ties."""
    return sorted(
        groups,
        key=lambda g: (g.kind is not GroupKind.API_FAILURE, -g.severity.rank),
    )


def build_chain(
    groups: list[ErrorGroup],
    selected_ids: list[str],
    max_patches: int | None = None,
) -> FixChain:
    """Build a pending chain with one patch per member of each selected group.

    Raises :class:`ChainValidationError` for an empty selection, unknown
    group ids, or a chain larger than *max_patches*.
    """
    if not selected_ids:
        raise ChainValidationError("Select at least one error group")

    by_id = {g.id: g for g in groups}
    unknown = [gid for gid in selected_ids if gid not in by_id]
    if unknown:
        raise ChainValidationError(f"Unknown error group(s): {', '.join(unknown)}")

    selected = [by_id[gid] for gid in dict.fromkeys(selected_ids)]
    total = sum(g.error_count for g in selected)
    if max_patches is not None and total > max_patches:
        raise ChainValidationError(
            f"Chain would contain {total} fixes, more than the limit of {max_patches}"
        )

    for group in selected:
        if not group.can_batch_fix:
            logger.warning("Group %s is not marked batch-fixable", group.id)

    chain_id = f"chain_{uuid.uuid4().hex[:12]}"
    ordered = order_groups(selected)

    patches: list[FixPatch] = []
    order = 1
    for group in ordered:
        for record in group.errors:
            fix_type = choose_fix_type(group.kind, record)
            patches.append(FixPatch(
                id=f"{chain_id}_p{order}",
                chain_id=chain_id,
                error_id=record.id,
                component_path=record.component_path,
                fix_type=fix_type,
                description=FIX_DESCRIPTIONS[fix_type],
                execution_order=order,
            ))
            order += 1

    chain = FixChain(
        id=chain_id,
        name="Batch Fix Chain - " + ", ".join(g.name for g in selected),
        group_ids=[g.id for g in selected],
        execution_order=[g.id for g in ordered],
        patches=patches,
        total_fixes=total,
    )
    logger.info("Created %s with %d fixes across %d group(s)", chain.id, total, len(selected))
    return chain
