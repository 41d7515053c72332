"""
Student housing intent.

Intents can change freely until the draw locks them at lottery start.
"""
import logging
from typing import Iterable, List, Optional

from sqlmodel import Session, select

from suite_draw.models.draw import DRAW_STATUS_ORDER, Draw, DrawStatus
from suite_draw.models.student import Intent, Student

logger = logging.getLogger(__name__)


class IntentLockedError(Exception):
    """Intent changes are no longer allowed for this draw"""

    pass


def before_lottery(draw: Draw) -> bool:
    return DRAW_STATUS_ORDER.index(draw.status) < DRAW_STATUS_ORDER.index(DrawStatus.lottery)


def update_intent(session: Session, student: Student, intent: Intent) -> Student:
    """
    Record a student's intent.

    Raises:
        IntentLockedError: the student's draw has locked intents
    """
    if student.draw_id is not None:
        draw = session.get(Draw, student.draw_id)
        if draw.intent_locked:
            raise IntentLockedError(f"Intents are locked in draw {draw.id}")

    student.intent = intent
    session.add(student)
    session.commit()
    session.refresh(student)
    return student


def bulk_on_campus(session: Session, draw: Draw) -> int:
    """
    Declare every undeclared student in the draw as on campus.

    Returns:
        Number of students updated

    Raises:
        IntentLockedError: the draw is in (or past) the lottery or intents are locked
    """
    if draw.intent_locked or not before_lottery(draw):
        raise IntentLockedError(f"Intents are locked in draw {draw.id}")

    undeclared = session.exec(
        select(Student).where(Student.draw_id == draw.id, Student.intent == Intent.undeclared)
    ).all()
    for student in undeclared:
        student.intent = Intent.on_campus
        session.add(student)
    session.commit()

    logger.info("Draw %d: %d undeclared student(s) set on campus", draw.id, len(undeclared))
    return len(undeclared)


def all_intents_declared(session: Session, draw: Draw) -> bool:
    return (
        session.exec(
            select(Student.id).where(Student.draw_id == draw.id, Student.intent == Intent.undeclared)
        ).first()
        is None
    )


def intent_report(session: Session, draw: Draw, intents: Optional[Iterable[str]] = None) -> List[Student]:
    """
    Students of the draw, optionally filtered by intent.

    An empty or missing filter returns every student.
    """
    statement = select(Student).where(Student.draw_id == draw.id)
    wanted = [Intent(i) for i in (intents or []) if i]
    if wanted:
        statement = statement.where(Student.intent.in_(wanted))
    return list(session.exec(statement.order_by(Student.last_name, Student.first_name, Student.id)).all())
