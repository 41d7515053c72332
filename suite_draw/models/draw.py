from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, String
from sqlmodel import Column, Field, SQLModel


class DrawStatus(str, Enum):
    draft = "draft"
    pre_lottery = "pre_lottery"
    lottery = "lottery"
    suite_selection = "suite_selection"
    closed = "closed"


# Forward order of the lifecycle; index comparisons rely on it
DRAW_STATUS_ORDER = [
    DrawStatus.draft,
    DrawStatus.pre_lottery,
    DrawStatus.lottery,
    DrawStatus.suite_selection,
    DrawStatus.closed,
]


class Draw(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    status: DrawStatus = Field(default=DrawStatus.draft, sa_column=Column(String, nullable=False))
    intent_locked: bool = Field(default=False)
    # Suite sizes excluded from allocation
    locked_sizes: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    # Optimistic concurrency counter, bumped by every lifecycle write
    lock_version: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
