from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from suite_draw.models.building import Building


class Suite(SQLModel, table=True):
    __table_args__ = (
        # A group can occupy at most one suite
        SAUniqueConstraint("group_id", name="uq_suite_group"),
        SAUniqueConstraint("building_id", "number", name="uq_building_suite_number"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    building_id: int = Field(foreign_key="building.id", index=True)
    number: str
    size: int  # bed capacity
    # Occupying group; written only through suite_allocator.bind_suite / release_suite
    group_id: Optional[int] = Field(default=None, foreign_key="draw_group.id")

    # Relationships
    building: "Building" = Relationship(back_populates="suites")
