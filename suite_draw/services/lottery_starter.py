"""
Lottery start: pre_lottery → lottery.

Steps, all inside one transaction:
1. Readiness gate. Any violation aborts with the full violation list, nothing written.
2. Size reconciliation. Groups whose size has no available suite are
   disbanded (soft failure: reported, never aborts).
3. Lottery numbers are drawn for the remaining groups.
4. Conditional draw update (status, intent lock, version bump). If another
   writer moved the draw since it was read, zero rows match and the whole
   transaction (disbands and numbering included) is rolled back.
5. Commit and return the refreshed draw.
"""
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlmodel import Session

from suite_draw.models.draw import Draw, DrawStatus
from suite_draw.services.draw_eligibility import (
    MSG_UNAVAILABLE_SIZES,
    check_lottery_readiness,
    unavailable_group_sizes,
)
from suite_draw.services.group_size_reconciler import reconcile
from suite_draw.services.suite_allocator import assign_lottery_numbers

logger = logging.getLogger(__name__)

MSG_UPDATE_FAILED = "Draw update failed"


@dataclass
class ServiceResult:
    """Outcome of a lifecycle operation: status is "success" or "error"."""

    status: str
    messages: List[str] = field(default_factory=list)
    draw: Optional[Draw] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, draw: Draw, messages: Optional[List[str]] = None) -> "ServiceResult":
        return cls(status="success", messages=list(messages or []), draw=draw)

    @classmethod
    def error(cls, messages: List[str]) -> "ServiceResult":
        return cls(status="error", messages=list(messages), draw=None)

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "draw": self.draw, "messages": list(self.messages)}


def advance_draw(session: Session, draw: Draw, from_status: DrawStatus, to_status: DrawStatus, **values) -> bool:
    """
    Conditionally move a draw between phases under its optimistic lock.

    The UPDATE only matches when the draw still has the status and
    lock_version this session read. Does not commit.

    Returns:
        True if the row was updated, False on a concurrent modification
    """
    result = session.execute(
        update(Draw)
        .where(
            Draw.id == draw.id,
            Draw.status == from_status,
            Draw.lock_version == draw.lock_version,
        )
        .values(status=to_status, lock_version=Draw.lock_version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def start_lottery(session: Session, draw: Draw, rng: random.Random) -> ServiceResult:
    """
    Start the lottery for a draw.

    Args:
        session: Database session
        draw: Draw in pre_lottery
        rng: Random source for lottery numbers (seed it for reproducible draws)

    Returns:
        ServiceResult with the updated draw on success, or the failure messages
    """
    report = check_lottery_readiness(session, draw)
    if not report.ready:
        logger.info("Draw %d: lottery start refused: %s", draw.id, report.violations)
        return ServiceResult.error(report.violations)

    messages: List[str] = []
    try:
        bad_sizes = unavailable_group_sizes(session, draw)
        if bad_sizes:
            reconciled = reconcile(session, draw, commit=False)
            messages.append(
                f"{MSG_UNAVAILABLE_SIZES}: disbanded {len(reconciled.disbanded_group_ids)} group(s) "
                f"of size(s) {', '.join(str(s) for s in bad_sizes)}"
            )

        assign_lottery_numbers(session, draw, rng)

        if not advance_draw(session, draw, DrawStatus.pre_lottery, DrawStatus.lottery, intent_locked=True):
            session.rollback()
            logger.warning("Draw %d: lottery start lost a concurrent update", draw.id)
            return ServiceResult.error([MSG_UPDATE_FAILED])

        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Draw %d: lottery start failed, transaction rolled back", draw.id)
        raise

    session.refresh(draw)
    logger.info("Draw %d: lottery started", draw.id)
    return ServiceResult.success(draw, messages)
