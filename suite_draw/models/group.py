from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class GroupStatus(str, Enum):
    open = "open"
    full = "full"
    locked = "locked"


class Group(SQLModel, table=True):
    __tablename__ = "draw_group"
    __table_args__ = (
        # Lottery numbers are drawn without replacement within a draw
        SAUniqueConstraint("draw_id", "lottery_number", name="uq_draw_lottery_number"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    # NULL draw_id means a drawless group (placed by hand, never in a lottery)
    draw_id: Optional[int] = Field(default=None, foreign_key="draw.id", index=True)
    leader_id: int = Field(foreign_key="student.id")
    size: int
    status: GroupStatus = Field(default=GroupStatus.open, sa_column=Column(String, nullable=False))
    lottery_number: Optional[int] = Field(default=None)
    skipped: bool = Field(default=False)  # explicitly passed over during allocation
    created_at: datetime = Field(default_factory=datetime.utcnow)
