"""
Oversubscription report: demand (groups) versus supply (available suites) per suite size.
"""
from dataclasses import asdict, dataclass
from typing import Dict, List

from sqlmodel import Session, select

from suite_draw.models.draw import Draw
from suite_draw.models.group import Group, GroupStatus
from suite_draw.services.suite_sizes import available_suites


@dataclass
class SizeDemand:
    size: int
    suite_count: int
    group_count: int
    locked_group_count: int
    size_locked: bool

    @property
    def oversubscribed(self) -> bool:
        return self.group_count > self.suite_count

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["oversubscribed"] = self.oversubscribed
        return data


def oversubscription_report(session: Session, draw: Draw) -> List[SizeDemand]:
    """One row per size seen on the draw's groups or available suites, ascending by size."""
    suite_counts: Dict[int, int] = {}
    for suite in available_suites(session, draw):
        suite_counts[suite.size] = suite_counts.get(suite.size, 0) + 1

    group_counts: Dict[int, int] = {}
    locked_counts: Dict[int, int] = {}
    for group in session.exec(select(Group).where(Group.draw_id == draw.id)).all():
        group_counts[group.size] = group_counts.get(group.size, 0) + 1
        if group.status == GroupStatus.locked:
            locked_counts[group.size] = locked_counts.get(group.size, 0) + 1

    locked_sizes = set(draw.locked_sizes or [])
    return [
        SizeDemand(
            size=size,
            suite_count=suite_counts.get(size, 0),
            group_count=group_counts.get(size, 0),
            locked_group_count=locked_counts.get(size, 0),
            size_locked=size in locked_sizes,
        )
        for size in sorted(set(suite_counts) | set(group_counts))
    ]
