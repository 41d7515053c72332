"""
Suite allocation: lottery numbering and group-to-suite matching.

Lottery numbers
---------------
Numbers are drawn once, when the draw enters the lottery phase. The units of
the draw are clips (all of their groups) and unclipped groups. Units are
listed by their smallest group id, shuffled uniformly with the injected
random source, then numbered 1..n. Groups of a clip get consecutive numbers
in group id order. Numbers never repeat within a draw, so no tie-break is
needed between numbers; groups are still sorted by (lottery_number, id).

Allocation
----------
Groups are processed in ascending lottery number. Each takes the first free
suite of exactly its size in (building name, suite number, suite id) order.
A group left without a suite is reported as unassigned; that is a valid end
state, not an error.

Exclusivity
-----------
A suite is bound with a conditional UPDATE (only if still unoccupied) and the
suite table carries a unique constraint on group_id, so neither two groups in
one suite nor one group in two suites can be written, even by concurrent runs.
"""
import logging
import random
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from suite_draw.models.clip import Clip, ClipMembership
from suite_draw.models.draw import Draw, DrawStatus
from suite_draw.models.draw_suite import DrawSuite
from suite_draw.models.group import Group, GroupStatus
from suite_draw.models.suite import Suite
from suite_draw.services.suite_sizes import available_suites

logger = logging.getLogger(__name__)

MSG_NOT_IN_LOTTERY = "Draw must be in the lottery phase"
MSG_MISSING_LOTTERY_NUMBERS = "All groups must have a lottery number"
MSG_BINDING_CONFLICT = "Suite allocation conflicted with a concurrent update"


class SuiteBindingError(Exception):
    """A suite could not be bound to a group"""

    pass


@dataclass
class AllocationResult:
    assignments: List[Dict[str, int]] = field(default_factory=list)
    unassigned_group_ids: List[int] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.errors and not self.unassigned_group_ids

    def suite_for_group(self) -> Dict[int, int]:
        return {a["group_id"]: a["suite_id"] for a in self.assignments}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignments": list(self.assignments),
            "unassigned_group_ids": list(self.unassigned_group_ids),
            "errors": list(self.errors),
        }


# ============================================================================
# Lottery numbering
# ============================================================================


def _lottery_units(session: Session, draw: Draw) -> List[List[Group]]:
    """Clips and unclipped groups of the draw, each unit ordered by group id."""
    groups = session.exec(select(Group).where(Group.draw_id == draw.id).order_by(Group.id)).all()
    clip_rows = session.exec(
        select(ClipMembership.group_id, ClipMembership.clip_id)
        .join(Clip, Clip.id == ClipMembership.clip_id)
        .where(Clip.draw_id == draw.id)
    ).all()
    clip_by_group = {group_id: clip_id for group_id, clip_id in clip_rows}

    units: Dict[Tuple[str, int], List[Group]] = {}
    for group in groups:
        if group.id in clip_by_group:
            key = ("clip", clip_by_group[group.id])
        else:
            key = ("group", group.id)
        units.setdefault(key, []).append(group)
    return list(units.values())


def assign_lottery_numbers(session: Session, draw: Draw, rng: random.Random) -> Dict[int, int]:
    """
    Draw lottery numbers for every group in the draw (uniform shuffle, no replacement).

    Does not commit. Returns {group_id: lottery_number}.
    """
    units = _lottery_units(session, draw)

    # Clear first so renumbering never collides with the unique constraint mid-flush
    for unit in units:
        for group in unit:
            group.lottery_number = None
            session.add(group)
    session.flush()

    rng.shuffle(units)

    numbers: Dict[int, int] = {}
    next_number = 1
    for unit in units:
        for group in unit:
            group.lottery_number = next_number
            numbers[group.id] = next_number
            session.add(group)
            next_number += 1
    session.flush()

    logger.info("Draw %d: assigned lottery numbers to %d group(s)", draw.id, len(numbers))
    return numbers


# ============================================================================
# Binding
# ============================================================================


def suite_of_group(session: Session, group: Group) -> Optional[Suite]:
    return session.exec(select(Suite).where(Suite.group_id == group.id)).first()


def bind_suite(session: Session, group: Group, suite: Suite) -> Suite:
    """
    Bind a suite to a group exclusively. Does not commit.

    Raises:
        SuiteBindingError: the group already occupies a suite, or the suite is taken
    """
    current = suite_of_group(session, group)
    if current is not None:
        raise SuiteBindingError(f"Group {group.id} already occupies suite {current.id}")

    result = session.execute(
        update(Suite)
        .where(Suite.id == suite.id, Suite.group_id.is_(None))
        .values(group_id=group.id)
    )
    if result.rowcount != 1:
        raise SuiteBindingError(f"Suite {suite.id} is already occupied")

    session.refresh(suite)
    logger.debug("Bound suite %d (size %d) to group %d", suite.id, suite.size, group.id)
    return suite


def release_suite(session: Session, suite: Suite) -> None:
    """Free a suite. The suite itself is never deleted. Does not commit."""
    suite.group_id = None
    session.add(suite)


# ============================================================================
# Allocation
# ============================================================================


def lottery_complete(session: Session, draw: Draw) -> bool:
    """True when every group in the draw holds a suite or was explicitly skipped."""
    groups = session.exec(select(Group).where(Group.draw_id == draw.id)).all()
    housed = set(session.exec(select(Suite.group_id).where(Suite.group_id.is_not(None))).all())
    return all(group.skipped or group.id in housed for group in groups)


def assign_suites(session: Session, draw: Draw) -> AllocationResult:
    """
    Match the draw's groups to suites in lottery order.

    Preconditions (reported in result.errors, nothing written):
    - draw.status == lottery
    - every group still waiting for a suite has a lottery number

    Groups already housed or skipped are left untouched, so re-running after
    adding suites only places the groups still waiting.

    Returns:
        AllocationResult: assignments made by this run, unassigned group ids, errors
    """
    result = AllocationResult()

    if draw.status != DrawStatus.lottery:
        result.errors.append(MSG_NOT_IN_LOTTERY)
        return result

    groups = session.exec(
        select(Group).where(Group.draw_id == draw.id, Group.skipped == False)  # noqa: E712
    ).all()
    housed = set(session.exec(select(Suite.group_id).where(Suite.group_id.is_not(None))).all())
    waiting = [g for g in groups if g.id not in housed]

    if any(g.lottery_number is None for g in waiting):
        result.errors.append(MSG_MISSING_LOTTERY_NUMBERS)
        return result

    waiting.sort(key=lambda g: (g.lottery_number, g.id))

    pool: Dict[int, List[Suite]] = defaultdict(list)
    for suite in available_suites(session, draw):
        pool[suite.size].append(suite)

    try:
        for group in waiting:
            bound = None
            candidates = pool[group.size]
            while candidates and bound is None:
                suite = candidates.pop(0)
                try:
                    bound = bind_suite(session, group, suite)
                except SuiteBindingError as exc:
                    logger.warning("Draw %d: skipping suite %d for group %d: %s", draw.id, suite.id, group.id, exc)
            if bound is None:
                result.unassigned_group_ids.append(group.id)
                logger.debug("Draw %d: no size-%d suite left for group %d", draw.id, group.size, group.id)
            else:
                result.assignments.append({"group_id": group.id, "suite_id": bound.id})
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.exception("Draw %d: suite allocation rolled back", draw.id)
        return AllocationResult(errors=[MSG_BINDING_CONFLICT])

    logger.info(
        "Draw %d: allocated %d group(s), %d unassigned",
        draw.id,
        len(result.assignments),
        len(result.unassigned_group_ids),
    )
    return result


def skip_group(session: Session, draw: Draw, group: Group) -> Group:
    """
    Mark a group in the lottery as passed over for allocation.

    Raises:
        SuiteBindingError: draw not in lottery, group not in draw, or group already housed
    """
    if draw.status != DrawStatus.lottery:
        raise SuiteBindingError(MSG_NOT_IN_LOTTERY)
    if group.draw_id != draw.id:
        raise SuiteBindingError(f"Group {group.id} is not in draw {draw.id}")
    if suite_of_group(session, group) is not None:
        raise SuiteBindingError(f"Group {group.id} already has a suite")

    group.skipped = True
    session.add(group)
    session.commit()
    session.refresh(group)
    return group


def select_suite(session: Session, group: Group, suite: Suite) -> Suite:
    """
    Hand-pick a suite for a locked group.

    Draw groups may only pick during suite selection, from suites linked to
    their draw and not of a locked size. Drawless groups may pick any free
    suite of their size at any time.

    Raises:
        SuiteBindingError: if any rule is violated or the suite is taken
    """
    if group.status != GroupStatus.locked:
        raise SuiteBindingError("Only locked groups can select a suite")
    if suite.size != group.size:
        raise SuiteBindingError(f"Suite {suite.id} has {suite.size} beds; group {group.id} needs {group.size}")

    if group.draw_id is not None:
        draw = session.get(Draw, group.draw_id)
        if draw.status != DrawStatus.suite_selection:
            raise SuiteBindingError("Draw must be in the suite selection phase")
        linked = session.get(DrawSuite, (draw.id, suite.id))
        if linked is None:
            raise SuiteBindingError(f"Suite {suite.id} is not part of draw {draw.id}")
        if suite.size in (draw.locked_sizes or []):
            raise SuiteBindingError(f"Suites of size {suite.size} are locked in draw {draw.id}")

    bind_suite(session, group, suite)
    session.commit()
    session.refresh(suite)
    logger.info("Group %d selected suite %d", group.id, suite.id)
    return suite
