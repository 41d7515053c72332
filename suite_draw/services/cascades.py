"""
Explicit cleanup cascades.

Join rows and weak references are cleaned up here, by the transaction that
owns the change, rather than by ORM relationship hooks. None of these
functions commit; the caller decides the transaction boundary.

Nothing here ever deletes a Student or a Suite.
"""
import logging
from typing import List

from sqlmodel import Session, select

from suite_draw.models.clip import Clip, ClipMembership
from suite_draw.models.draw import Draw
from suite_draw.models.draw_suite import DrawSuite
from suite_draw.models.group import Group
from suite_draw.models.membership import Membership
from suite_draw.models.student import Student
from suite_draw.services.suite_allocator import release_suite, suite_of_group

logger = logging.getLogger(__name__)

# A clip with fewer groups than this no longer means anything
MIN_CLIP_GROUPS = 2


def return_to_pool(student: Student) -> None:
    """
    Put a student back into the ungrouped pool.

    Students who were pulled out of a draw (old_draw_id set) go back to that
    draw; everyone else simply stays in their current draw without a group.
    """
    if student.old_draw_id is not None:
        student.draw_id = student.old_draw_id
        student.old_draw_id = None


def remove_membership(session: Session, membership: Membership) -> None:
    """Delete a membership join row and return its student to the pool."""
    student = session.get(Student, membership.student_id)
    session.delete(membership)
    if student is not None:
        return_to_pool(student)
        session.add(student)


def cleanup_clip(session: Session, clip: Clip) -> bool:
    """
    Delete the clip (and its remaining join rows) if it is down to fewer than two groups.

    Returns:
        True if the clip was deleted
    """
    remaining = session.exec(select(ClipMembership).where(ClipMembership.clip_id == clip.id)).all()
    if len(remaining) >= MIN_CLIP_GROUPS:
        return False
    for clip_membership in remaining:
        session.delete(clip_membership)
    session.flush()
    session.delete(clip)
    logger.info("Clip %d dissolved (%d group(s) left)", clip.id, len(remaining))
    return True


def remove_clip_membership(session: Session, clip_membership: ClipMembership) -> None:
    """Delete a clip membership, then clean up the clip it belonged to."""
    clip = session.get(Clip, clip_membership.clip_id)
    session.delete(clip_membership)
    session.flush()
    if clip is not None:
        cleanup_clip(session, clip)


def disband_group(session: Session, group: Group) -> List[int]:
    """
    Destroy a group and everything that only exists because of it.

    Order matters for foreign keys:
    1. Release the suite the group occupies (the suite itself survives)
    2. Drop its clip membership, dissolving the clip if needed
    3. Drop its memberships, returning members to the pool
    4. Delete the group

    Returns:
        IDs of the students that were returned to the pool
    """
    suite = suite_of_group(session, group)
    if suite is not None:
        release_suite(session, suite)

    clip_membership = session.exec(select(ClipMembership).where(ClipMembership.group_id == group.id)).first()
    if clip_membership is not None:
        remove_clip_membership(session, clip_membership)

    memberships = session.exec(
        select(Membership).where(Membership.group_id == group.id).order_by(Membership.id)
    ).all()
    student_ids = [m.student_id for m in memberships]
    for membership in memberships:
        remove_membership(session, membership)
    session.flush()

    session.delete(group)
    session.flush()
    logger.info("Group %d disbanded; %d member(s) returned to pool", group.id, len(student_ids))
    return student_ids


def destroy_draw(session: Session, draw: Draw) -> None:
    """
    Delete a draw without deleting anything it merely references.

    - Students in the draw lose their draw_id
    - Students holding the draw as their previous draw lose old_draw_id
    - Groups in the draw become drawless and lose their lottery numbers
    - Clips and suite links of the draw are removed
    """
    for student in session.exec(select(Student).where(Student.draw_id == draw.id)).all():
        student.draw_id = None
        session.add(student)
    for student in session.exec(select(Student).where(Student.old_draw_id == draw.id)).all():
        student.old_draw_id = None
        session.add(student)

    for group in session.exec(select(Group).where(Group.draw_id == draw.id)).all():
        group.draw_id = None
        group.lottery_number = None
        session.add(group)

    clips = session.exec(select(Clip).where(Clip.draw_id == draw.id)).all()
    for clip in clips:
        for clip_membership in session.exec(select(ClipMembership).where(ClipMembership.clip_id == clip.id)).all():
            session.delete(clip_membership)
    session.flush()
    for clip in clips:
        session.delete(clip)

    for link in session.exec(select(DrawSuite).where(DrawSuite.draw_id == draw.id)).all():
        session.delete(link)
    session.flush()

    session.delete(draw)
    session.flush()
    logger.info("Draw %d destroyed", draw.id)
