"""
Group management: forming, editing and locking groups.

Draw groups can only change while their draw is in pre_lottery. Drawless
groups (no draw) can change any time they are not locked; students joining a
drawless group leave their draw (draw_id moves to old_draw_id) and come back
to it when they leave the group.

Invariants kept here:
- The leader is always a member and can never be removed
- Member count never exceeds size
- status is "full" exactly when member count == size (unless locked)
- A group only locks when full and at a size some available suite has
"""
import logging
from typing import Iterable, List, Optional

from sqlmodel import Session, func, select

from suite_draw.models.draw import Draw, DrawStatus
from suite_draw.models.group import Group, GroupStatus
from suite_draw.models.membership import Membership
from suite_draw.models.student import Intent, Student
from suite_draw.services.cascades import remove_membership
from suite_draw.services.suite_allocator import suite_of_group
from suite_draw.services.suite_sizes import draw_suite_sizes, global_suite_sizes

logger = logging.getLogger(__name__)


class GroupUpdateError(Exception):
    """A group change broke one of the group rules"""

    pass


def members_of(session: Session, group: Group) -> List[Student]:
    return list(
        session.exec(
            select(Student)
            .join(Membership, Membership.student_id == Student.id)
            .where(Membership.group_id == group.id)
            .order_by(Student.id)
        ).all()
    )


def member_count(session: Session, group: Group) -> int:
    return session.exec(select(func.count(Membership.id)).where(Membership.group_id == group.id)).one()


def size_index_for(session: Session, draw_id: Optional[int]) -> List[int]:
    """Sizes a group may take: the draw's available sizes, or every free suite size for drawless groups."""
    if draw_id is None:
        return global_suite_sizes(session)
    draw = session.get(Draw, draw_id)
    return draw_suite_sizes(session, draw)


def _refresh_status(session: Session, group: Group) -> None:
    if group.status == GroupStatus.locked:
        return
    session.flush()
    group.status = GroupStatus.full if member_count(session, group) == group.size else GroupStatus.open
    session.add(group)


def _require_editable(session: Session, group: Group) -> None:
    if group.status == GroupStatus.locked:
        raise GroupUpdateError(f"Group {group.id} is locked")
    if group.draw_id is not None:
        draw = session.get(Draw, group.draw_id)
        if draw.status != DrawStatus.pre_lottery:
            raise GroupUpdateError("Draw groups can only change during the pre-lottery phase")


def _require_ungrouped(session: Session, student: Student) -> None:
    existing = session.exec(select(Membership).where(Membership.student_id == student.id)).first()
    if existing is not None:
        raise GroupUpdateError(f"Student {student.id} is already in group {existing.group_id}")


def _leave_draw_for_drawless_group(student: Student) -> None:
    if student.draw_id is not None:
        student.old_draw_id = student.draw_id
        student.draw_id = None
    if student.intent == Intent.undeclared:
        student.intent = Intent.on_campus


def _add(session: Session, group: Group, student: Student) -> None:
    _require_ungrouped(session, student)
    if member_count(session, group) >= group.size:
        raise GroupUpdateError(f"Group {group.id} is full")
    if group.draw_id is not None and student.draw_id != group.draw_id:
        raise GroupUpdateError(f"Student {student.id} is not in draw {group.draw_id}")
    if group.draw_id is None:
        _leave_draw_for_drawless_group(student)
        session.add(student)
    session.add(Membership(group_id=group.id, student_id=student.id))
    session.flush()


def _remove(session: Session, group: Group, student: Student) -> None:
    if student.id == group.leader_id:
        raise GroupUpdateError("The group leader cannot be removed")
    membership = session.exec(
        select(Membership).where(Membership.group_id == group.id, Membership.student_id == student.id)
    ).first()
    if membership is None:
        raise GroupUpdateError(f"Student {student.id} is not in group {group.id}")
    remove_membership(session, membership)
    session.flush()


def create_group(
    session: Session,
    leader: Student,
    size: int,
    member_ids: Iterable[int] = (),
    drawless: bool = False,
) -> Group:
    """
    Form a group around a leader.

    Draw groups live in the leader's draw, which must be in pre_lottery.
    Drawless groups pull the leader (and members) out of their draw.

    Raises:
        GroupUpdateError: on any rule violation (nothing is written)
    """
    try:
        draw_id = None if drawless else leader.draw_id
        if not drawless:
            if draw_id is None:
                raise GroupUpdateError("Leader is not in a draw; create a drawless group instead")
            draw = session.get(Draw, draw_id)
            if draw.status != DrawStatus.pre_lottery:
                raise GroupUpdateError("Draw groups can only change during the pre-lottery phase")
        if size not in size_index_for(session, draw_id):
            raise GroupUpdateError(f"Size {size} does not match an available suite size")
        _require_ungrouped(session, leader)

        group = Group(draw_id=draw_id, leader_id=leader.id, size=size)
        session.add(group)
        session.flush()

        if drawless:
            _leave_draw_for_drawless_group(leader)
            session.add(leader)
        session.add(Membership(group_id=group.id, student_id=leader.id))
        session.flush()

        for student_id in member_ids:
            if student_id == leader.id:
                continue
            student = session.get(Student, student_id)
            if student is None:
                raise GroupUpdateError(f"Student {student_id} not found")
            _add(session, group, student)

        _refresh_status(session, group)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(group)
    logger.info("Group %d created (size %d, draw %s)", group.id, group.size, group.draw_id)
    return group


def add_member(session: Session, group: Group, student: Student) -> Group:
    try:
        _require_editable(session, group)
        _add(session, group, student)
        _refresh_status(session, group)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(group)
    return group


def remove_member(session: Session, group: Group, student: Student) -> Group:
    try:
        _require_editable(session, group)
        _remove(session, group, student)
        _refresh_status(session, group)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(group)
    return group


def lock_group(session: Session, group: Group) -> Group:
    """
    Finalize a group's membership and size.

    Raises:
        GroupUpdateError: group not full, size no longer available, or draw past pre_lottery
    """
    if group.status == GroupStatus.locked:
        return group
    _require_editable(session, group)
    if member_count(session, group) != group.size:
        raise GroupUpdateError("Only full groups can be locked")
    if group.size not in size_index_for(session, group.draw_id):
        raise GroupUpdateError(f"Size {group.size} does not match an available suite size")

    group.status = GroupStatus.locked
    session.add(group)
    session.commit()
    session.refresh(group)
    logger.info("Group %d locked", group.id)
    return group


def unlock_group(session: Session, group: Group) -> Group:
    if group.status != GroupStatus.locked:
        return group
    if suite_of_group(session, group) is not None:
        raise GroupUpdateError("Groups holding a suite cannot be unlocked")
    if group.draw_id is not None:
        draw = session.get(Draw, group.draw_id)
        if draw.status != DrawStatus.pre_lottery:
            raise GroupUpdateError("Draw groups can only change during the pre-lottery phase")

    group.status = GroupStatus.open
    _refresh_status(session, group)
    session.commit()
    session.refresh(group)
    return group


def update_drawless_group(
    session: Session,
    group: Group,
    size: Optional[int] = None,
    add_ids: Iterable[int] = (),
    remove_ids: Iterable[int] = (),
) -> Group:
    """
    Edit a drawless group: drop members, add members, then resize.

    The leader is silently kept if listed for removal. The new size must be a
    free suite size and hold the resulting membership.

    Raises:
        GroupUpdateError: on any rule violation (the whole update is rolled back)
    """
    if group.draw_id is not None:
        raise GroupUpdateError(f"Group {group.id} belongs to draw {group.draw_id}")

    try:
        _require_editable(session, group)

        for student_id in remove_ids:
            if student_id == group.leader_id:
                continue
            student = session.get(Student, student_id)
            if student is None:
                raise GroupUpdateError(f"Student {student_id} not found")
            _remove(session, group, student)

        if size is not None and size != group.size:
            if size not in global_suite_sizes(session):
                raise GroupUpdateError(f"Size {size} does not match an available suite size")
            group.size = size
            session.add(group)
            session.flush()

        for student_id in add_ids:
            student = session.get(Student, student_id)
            if student is None:
                raise GroupUpdateError(f"Student {student_id} not found")
            _add(session, group, student)

        if member_count(session, group) > group.size:
            raise GroupUpdateError(f"Group {group.id} has more members than its size")

        _refresh_status(session, group)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(group)
    return group
