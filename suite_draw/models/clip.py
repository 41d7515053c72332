from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class Clip(SQLModel, table=True):
    """A set of groups in one draw that enter the lottery as a single unit."""

    id: Optional[int] = Field(default=None, primary_key=True)
    draw_id: int = Field(foreign_key="draw.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ClipMembership(SQLModel, table=True):
    __table_args__ = (
        # A group is clipped at most once
        SAUniqueConstraint("group_id", name="uq_clip_membership_group"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    clip_id: int = Field(foreign_key="clip.id", index=True)
    group_id: int = Field(foreign_key="draw_group.id")
    confirmed: bool = Field(default=False)
