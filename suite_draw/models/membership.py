from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class Membership(SQLModel, table=True):
    __table_args__ = (
        # A student belongs to at most one group
        SAUniqueConstraint("student_id", name="uq_membership_student"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="draw_group.id", index=True)
    student_id: int = Field(foreign_key="student.id")
