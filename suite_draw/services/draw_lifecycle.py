"""
Draw lifecycle state machine.

States: draft → pre_lottery → lottery → suite_selection → closed

Transitions only move forward and are the only way a draw changes phase:
- open:            draft → pre_lottery
- start_lottery:   pre_lottery → lottery (gate, reconcile, numbering; see lottery_starter)
- start_selection: lottery → suite_selection (every group housed or skipped)
- close:           suite_selection → closed (unoccupied suites are released from the draw)

Calling a transition from any other state raises InvalidTransitionError and
writes nothing. Losing an optimistic-lock race returns an error result
("Draw update failed"); callers retry the whole operation.
"""
import logging
import os
import random
from typing import Dict, Iterable, List, Optional, Tuple

from sqlmodel import Session, select

from suite_draw.models.draw import Draw, DrawStatus
from suite_draw.models.draw_suite import DrawSuite
from suite_draw.models.suite import Suite
from suite_draw.services.cascades import destroy_draw
from suite_draw.services.draw_eligibility import ReadinessReport, check_lottery_readiness
from suite_draw.services.group_size_reconciler import ReconcileResult, reconcile
from suite_draw.services.lottery_starter import MSG_UPDATE_FAILED, ServiceResult, advance_draw, start_lottery
from suite_draw.services.suite_allocator import AllocationResult, assign_suites, lottery_complete

logger = logging.getLogger(__name__)

MSG_LOTTERY_INCOMPLETE = "All groups must have a suite or be skipped"

# action -> (required current status, next status or None when the action does not move the draw)
TRANSITIONS: Dict[str, Tuple[DrawStatus, Optional[DrawStatus]]] = {
    "open": (DrawStatus.draft, DrawStatus.pre_lottery),
    "start_lottery": (DrawStatus.pre_lottery, DrawStatus.lottery),
    "reconcile_sizes": (DrawStatus.pre_lottery, None),
    "assign_suites": (DrawStatus.lottery, None),
    "start_selection": (DrawStatus.lottery, DrawStatus.suite_selection),
    "close": (DrawStatus.suite_selection, DrawStatus.closed),
}


class DrawLifecycleError(Exception):
    """Base exception for draw lifecycle errors"""

    pass


class DrawNotFoundError(DrawLifecycleError):
    """No draw with the given id"""

    pass


class InvalidTransitionError(DrawLifecycleError):
    """An action was requested from the wrong draw phase"""

    def __init__(self, draw_id: int, action: str, current: str, required: str):
        self.draw_id = draw_id
        self.action = action
        self.current = current
        self.required = required
        super().__init__(
            f"INVALID_TRANSITION: cannot {action} draw {draw_id} in status '{current}'; requires '{required}'"
        )


def default_rng() -> random.Random:
    """Random source for lottery numbers; LOTTERY_SEED makes draws reproducible."""
    seed = os.getenv("LOTTERY_SEED")
    return random.Random(seed) if seed else random.Random()


def _status_value(status) -> str:
    return status.value if isinstance(status, DrawStatus) else str(status)


class DrawLifecycle:
    """
    Entry point for every draw mutation.

    One instance wraps one session; each method is one transaction.
    """

    def __init__(self, session: Session, rng: Optional[random.Random] = None):
        self.session = session
        self.rng = rng or default_rng()

    # ------------------------------------------------------------------
    # Lookup / guards
    # ------------------------------------------------------------------

    def get_draw(self, draw_id: int) -> Draw:
        draw = self.session.get(Draw, draw_id)
        if draw is None:
            raise DrawNotFoundError(f"Draw {draw_id} not found")
        return draw

    def _require(self, draw: Draw, action: str) -> None:
        required, _ = TRANSITIONS[action]
        if draw.status != required:
            raise InvalidTransitionError(draw.id, action, _status_value(draw.status), required.value)

    def _advance(self, draw: Draw, action: str, **values) -> ServiceResult:
        from_status, to_status = TRANSITIONS[action]
        if not advance_draw(self.session, draw, from_status, to_status, **values):
            self.session.rollback()
            logger.warning("Draw %d: %s lost a concurrent update", draw.id, action)
            return ServiceResult.error([MSG_UPDATE_FAILED])
        self.session.commit()
        self.session.refresh(draw)
        logger.info("Draw %d: %s -> %s", draw.id, from_status.value, to_status.value)
        return ServiceResult.success(draw)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def open(self, draw_id: int) -> ServiceResult:
        draw = self.get_draw(draw_id)
        self._require(draw, "open")
        return self._advance(draw, "open")

    def start_lottery(self, draw_id: int) -> ServiceResult:
        draw = self.get_draw(draw_id)
        self._require(draw, "start_lottery")
        return start_lottery(self.session, draw, self.rng)

    def start_selection(self, draw_id: int) -> ServiceResult:
        draw = self.get_draw(draw_id)
        self._require(draw, "start_selection")
        if not lottery_complete(self.session, draw):
            return ServiceResult.error([MSG_LOTTERY_INCOMPLETE])
        return self._advance(draw, "start_selection")

    def close(self, draw_id: int) -> ServiceResult:
        """Close the draw and release its unoccupied suites so other draws can offer them."""
        draw = self.get_draw(draw_id)
        self._require(draw, "close")
        from_status, to_status = TRANSITIONS["close"]
        if not advance_draw(self.session, draw, from_status, to_status):
            self.session.rollback()
            return ServiceResult.error([MSG_UPDATE_FAILED])

        released = self.session.exec(
            select(DrawSuite)
            .join(Suite, Suite.id == DrawSuite.suite_id)
            .where(DrawSuite.draw_id == draw.id, Suite.group_id.is_(None))
        ).all()
        for link in released:
            self.session.delete(link)
        self.session.commit()
        self.session.refresh(draw)
        logger.info("Draw %d closed; released %d unoccupied suite(s)", draw.id, len(released))
        return ServiceResult.success(draw)

    # ------------------------------------------------------------------
    # Phase-bound operations
    # ------------------------------------------------------------------

    def check_readiness(self, draw_id: int) -> ReadinessReport:
        return check_lottery_readiness(self.session, self.get_draw(draw_id))

    def reconcile_sizes(self, draw_id: int) -> ReconcileResult:
        draw = self.get_draw(draw_id)
        self._require(draw, "reconcile_sizes")
        return reconcile(self.session, draw)

    def assign_suites(self, draw_id: int) -> AllocationResult:
        draw = self.get_draw(draw_id)
        self._require(draw, "assign_suites")
        return assign_suites(self.session, draw)

    # ------------------------------------------------------------------
    # Draw configuration
    # ------------------------------------------------------------------

    def add_suites(self, draw_id: int, suite_ids: Iterable[int]) -> List[int]:
        """
        Offer suites in the draw. Allowed until suite selection starts.

        Returns:
            IDs of suites newly linked (already linked ones are ignored)
        """
        draw = self.get_draw(draw_id)
        if draw.status in (DrawStatus.suite_selection, DrawStatus.closed):
            raise InvalidTransitionError(draw.id, "add_suites", _status_value(draw.status), "before suite_selection")

        added: List[int] = []
        for suite_id in sorted(set(suite_ids)):
            if self.session.get(Suite, suite_id) is None:
                raise DrawLifecycleError(f"Suite {suite_id} not found")
            if self.session.get(DrawSuite, (draw.id, suite_id)) is None:
                self.session.add(DrawSuite(draw_id=draw.id, suite_id=suite_id))
                added.append(suite_id)
        self.session.commit()
        return added

    def remove_suites(self, draw_id: int, suite_ids: Iterable[int]) -> List[int]:
        """Stop offering unoccupied suites in the draw. Only before the lottery."""
        draw = self.get_draw(draw_id)
        if draw.status not in (DrawStatus.draft, DrawStatus.pre_lottery):
            raise InvalidTransitionError(draw.id, "remove_suites", _status_value(draw.status), "before lottery")

        removed: List[int] = []
        for suite_id in sorted(set(suite_ids)):
            link = self.session.get(DrawSuite, (draw.id, suite_id))
            suite = self.session.get(Suite, suite_id)
            if link is None or suite is None or suite.group_id is not None:
                continue
            self.session.delete(link)
            removed.append(suite_id)
        self.session.commit()
        return removed

    def toggle_size_lock(self, draw_id: int, size: int) -> Draw:
        """Lock the suite size if it is open, unlock it if it is locked."""
        draw = self.get_draw(draw_id)
        if draw.status == DrawStatus.closed:
            raise InvalidTransitionError(draw.id, "toggle_size_lock", _status_value(draw.status), "not closed")

        sizes = set(draw.locked_sizes or [])
        if size in sizes:
            sizes.discard(size)
        else:
            sizes.add(size)
        # Reassign rather than mutate in place so the JSON column is flagged dirty
        draw.locked_sizes = sorted(sizes)
        self.session.add(draw)
        self.session.commit()
        self.session.refresh(draw)
        logger.info("Draw %d: locked sizes now %s", draw.id, draw.locked_sizes)
        return draw

    def destroy(self, draw_id: int) -> None:
        draw = self.get_draw(draw_id)
        try:
            destroy_draw(self.session, draw)
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.exception("Draw %d: destroy failed, transaction rolled back", draw_id)
            raise
