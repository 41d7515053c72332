"""
Group size reconciliation.

When suites leave a draw (taken, unlinked, or their size locked), locked and
full groups can end up with a size no available suite has. Those groups can
never be housed by the allocator, so they are disbanded and their members go
back to the ungrouped pool.

Guarantees:
- Idempotent: a second run on a reconciled draw disbands nothing
- Open groups are left alone (they can still change size)
- Deterministic ordering (processes by group id)
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlmodel import Session, select

from suite_draw.models.draw import Draw
from suite_draw.models.group import Group, GroupStatus
from suite_draw.models.suite import Suite
from suite_draw.services.cascades import disband_group
from suite_draw.services.suite_sizes import draw_suite_sizes

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    disbanded_group_ids: List[int] = field(default_factory=list)
    returned_student_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "disbanded_group_ids": list(self.disbanded_group_ids),
            "returned_student_ids": list(self.returned_student_ids),
        }


def incompatible_groups(session: Session, draw: Draw) -> List[Group]:
    """Locked or full groups of the draw, not yet housed, whose size matches no available suite."""
    sizes = set(draw_suite_sizes(session, draw))
    groups = session.exec(
        select(Group)
        .where(
            Group.draw_id == draw.id,
            Group.status.in_([GroupStatus.locked, GroupStatus.full]),
        )
        .order_by(Group.id)
    ).all()
    housed = set(session.exec(select(Suite.group_id).where(Suite.group_id.is_not(None))).all())
    return [g for g in groups if g.size not in sizes and g.id not in housed]


def reconcile(session: Session, draw: Draw, commit: bool = True) -> ReconcileResult:
    """
    Disband every locked/full group in the draw whose size has no available suite.

    Args:
        session: Database session
        draw: Draw to reconcile
        commit: Commit when done. Pass False to fold the writes into the
            caller's transaction (the lottery starter does this).

    Returns:
        ReconcileResult with the disbanded group ids and the students returned to the pool
    """
    result = ReconcileResult()

    for group in incompatible_groups(session, draw):
        group_id = group.id
        result.returned_student_ids.extend(disband_group(session, group))
        result.disbanded_group_ids.append(group_id)

    if result.disbanded_group_ids:
        logger.info(
            "Draw %d: disbanded %d group(s) with unavailable sizes: %s",
            draw.id,
            len(result.disbanded_group_ids),
            result.disbanded_group_ids,
        )

    if commit:
        session.commit()

    return result
