from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from suite_draw.models.suite import Suite


class Building(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("name", name="uq_building_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str

    # Relationships
    suites: List["Suite"] = Relationship(back_populates="building")
