"""
Suite size index.

Suite capacities drive group sizing: a group may only lock at a size that some
available suite has, and the allocator matches groups to suites of exactly
their size. "Available" in a draw means linked to the draw, not occupied by a
group, and not of a size the draw has locked.
"""
from typing import Iterable, List

from sqlmodel import Session, select

from suite_draw.models.building import Building
from suite_draw.models.draw import Draw
from suite_draw.models.draw_suite import DrawSuite
from suite_draw.models.group import Group
from suite_draw.models.suite import Suite


def suite_sizes(suites: Iterable[Suite]) -> List[int]:
    """Sorted distinct bed capacities of the given suites. Empty input yields []."""
    return sorted({suite.size for suite in suites})


def draw_suites(session: Session, draw: Draw) -> List[Suite]:
    """All suites linked to the draw, occupied or not, in allocation order."""
    return list(
        session.exec(
            select(Suite)
            .join(DrawSuite, DrawSuite.suite_id == Suite.id)
            .join(Building, Building.id == Suite.building_id)
            .where(DrawSuite.draw_id == draw.id)
            .order_by(Building.name, Suite.number, Suite.id)
        ).all()
    )


def available_suites(session: Session, draw: Draw) -> List[Suite]:
    """
    Suites of the draw a group could still take.

    Order: building name → suite number → id. The allocator relies on this
    order to pick deterministically among suites of equal size.
    """
    locked = set(draw.locked_sizes or [])
    return [s for s in draw_suites(session, draw) if s.group_id is None and s.size not in locked]


def draw_suite_sizes(session: Session, draw: Draw) -> List[int]:
    """Sizes of the draw's available suites."""
    return suite_sizes(available_suites(session, draw))


def global_suite_sizes(session: Session) -> List[int]:
    """Sizes of every unoccupied suite, regardless of draw. Used for drawless groups."""
    return suite_sizes(session.exec(select(Suite).where(Suite.group_id.is_(None))).all())


def group_sizes(session: Session, draw: Draw) -> List[int]:
    """Sorted distinct sizes of the groups in the draw."""
    sizes = session.exec(select(Group.size).where(Group.draw_id == draw.id)).all()
    return sorted(set(sizes))
