"""
Lottery readiness gate.

Every check runs on every call; the gate never stops at the first failure so
that callers can present the complete list of problems at once. Checks are
read-only.

Hard checks (any failure blocks the lottery):
1. Draw is in the pre-lottery phase
2. Draw has at least one group
3. Every group is locked
4. Every student who is not going off campus is in a group
5. Every student declared an intent
6. Available beds cover the on-campus students
7. No available suite is contested by another draw's lottery

Soft check (remediated by disbanding, see group_size_reconciler):
- Every group size matches an available suite size
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlmodel import Session, func, select

from suite_draw.models.draw import Draw, DrawStatus
from suite_draw.models.draw_suite import DrawSuite
from suite_draw.models.group import Group, GroupStatus
from suite_draw.models.membership import Membership
from suite_draw.models.student import Intent, Student
from suite_draw.services.suite_sizes import available_suites, draw_suite_sizes, group_sizes

MSG_NOT_PRE_LOTTERY = "Draw must be in the pre-lottery phase"
MSG_NO_GROUPS = "Draw must have at least one group"
MSG_UNLOCKED_GROUPS = "Draw cannot have any unlocked groups"
MSG_UNGROUPED_STUDENTS = "Draw cannot have any students not in groups"
MSG_UNDECLARED_INTENTS = "Draw cannot have any students who did not declare intent"
MSG_NOT_ENOUGH_BEDS = "Draw must have at least one bed per student"
MSG_CONTESTED_SUITES = "Draw cannot have suites contested by another draw's lottery"
MSG_UNAVAILABLE_SIZES = "All groups must be the size of an available suite"

# Another draw holding a suite in one of these phases contests it
CONTESTING_STATUSES = [DrawStatus.lottery, DrawStatus.suite_selection, DrawStatus.closed]


@dataclass
class ReadinessReport:
    violations: List[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not self.violations

    def to_dict(self) -> Dict[str, Any]:
        return {"ready": self.ready, "violations": list(self.violations)}


def _count(session: Session, statement) -> int:
    return session.exec(statement).one()


def group_count(session: Session, draw: Draw) -> int:
    return _count(session, select(func.count(Group.id)).where(Group.draw_id == draw.id))


def unlocked_group_count(session: Session, draw: Draw) -> int:
    return _count(
        session,
        select(func.count(Group.id)).where(Group.draw_id == draw.id, Group.status != GroupStatus.locked),
    )


def ungrouped_students(session: Session, draw: Draw) -> List[Student]:
    """Students of the draw who still need a group (off-campus students never do)."""
    grouped_ids = select(Membership.student_id)
    return list(
        session.exec(
            select(Student)
            .where(
                Student.draw_id == draw.id,
                Student.intent != Intent.off_campus,
                Student.id.not_in(grouped_ids),
            )
            .order_by(Student.id)
        ).all()
    )


def undeclared_student_count(session: Session, draw: Draw) -> int:
    return _count(
        session,
        select(func.count(Student.id)).where(Student.draw_id == draw.id, Student.intent == Intent.undeclared),
    )


def on_campus_student_count(session: Session, draw: Draw) -> int:
    return _count(
        session,
        select(func.count(Student.id)).where(Student.draw_id == draw.id, Student.intent == Intent.on_campus),
    )


def bed_count(session: Session, draw: Draw) -> int:
    """Total beds across the draw's available suites."""
    return sum(suite.size for suite in available_suites(session, draw))


def contested_suite_ids(session: Session, draw: Draw) -> List[int]:
    """
    Available suites of this draw that another draw in (or past) its lottery also claims.

    A suite is contested when a DrawSuite row links it to a different draw whose
    status is lottery, suite_selection or closed.
    """
    suite_ids = [suite.id for suite in available_suites(session, draw)]
    if not suite_ids:
        return []
    rows = session.exec(
        select(DrawSuite.suite_id)
        .join(Draw, Draw.id == DrawSuite.draw_id)
        .where(
            DrawSuite.suite_id.in_(suite_ids),
            DrawSuite.draw_id != draw.id,
            Draw.status.in_(CONTESTING_STATUSES),
        )
    ).all()
    return sorted(set(rows))


def unavailable_group_sizes(session: Session, draw: Draw) -> List[int]:
    """Group sizes in the draw for which no available suite exists."""
    available = set(draw_suite_sizes(session, draw))
    return [size for size in group_sizes(session, draw) if size not in available]


def check_lottery_readiness(session: Session, draw: Draw) -> ReadinessReport:
    """
    Evaluate every hard lottery precondition and collect all failures.

    Returns:
        ReadinessReport; report.ready is True only when no check failed.
    """
    report = ReadinessReport()

    if draw.status != DrawStatus.pre_lottery:
        report.violations.append(MSG_NOT_PRE_LOTTERY)
    if group_count(session, draw) == 0:
        report.violations.append(MSG_NO_GROUPS)
    if unlocked_group_count(session, draw) > 0:
        report.violations.append(MSG_UNLOCKED_GROUPS)
    if ungrouped_students(session, draw):
        report.violations.append(MSG_UNGROUPED_STUDENTS)
    if undeclared_student_count(session, draw) > 0:
        report.violations.append(MSG_UNDECLARED_INTENTS)
    if bed_count(session, draw) < on_campus_student_count(session, draw):
        report.violations.append(MSG_NOT_ENOUGH_BEDS)
    if contested_suite_ids(session, draw):
        report.violations.append(MSG_CONTESTED_SUITES)

    return report
