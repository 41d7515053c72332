from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class Intent(str, Enum):
    undeclared = "undeclared"
    on_campus = "on_campus"
    off_campus = "off_campus"


class StudentRole(str, Enum):
    student = "student"
    rep = "rep"
    admin = "admin"


class Student(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("username", name="uq_student_username"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str  # identity-provider login, used for profile lookup
    first_name: str = Field(default="")
    last_name: str = Field(default="")
    email: Optional[str] = None
    gender: Optional[str] = None
    class_year: Optional[str] = None
    college: Optional[str] = None
    role: StudentRole = Field(default=StudentRole.student, sa_column=Column(String, nullable=False))
    intent: Intent = Field(default=Intent.undeclared, sa_column=Column(String, nullable=False))

    # Current draw (nullable) and the draw to return to when leaving a drawless group
    draw_id: Optional[int] = Field(default=None, foreign_key="draw.id", index=True)
    old_draw_id: Optional[int] = Field(default=None, foreign_key="draw.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
