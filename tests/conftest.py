import random
from typing import Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from suite_draw.database import get_session
from suite_draw.main import app
from suite_draw.models import (
    Building,
    Clip,
    ClipMembership,
    Draw,
    DrawStatus,
    DrawSuite,
    Group,
    GroupStatus,
    Intent,
    Membership,
    Student,
    Suite,
)

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables are created before and dropped after every test
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session"""
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def rng():
    return random.Random(1234)


class Builder:
    """Writes fixture rows directly, bypassing service rules."""

    def __init__(self, session: Session):
        self.session = session
        self._student_seq = 0

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def draw(self, name: str = "Spring Draw", status: DrawStatus = DrawStatus.pre_lottery, **values) -> Draw:
        return self._save(Draw(name=name, status=status, **values))

    def building(self, name: str = "Morse") -> Building:
        return self._save(Building(name=name))

    def suite(self, building: Building, number: str, size: int, draws: Iterable[Draw] = ()) -> Suite:
        suite = self._save(Suite(building_id=building.id, number=number, size=size))
        for draw in draws:
            self.session.add(DrawSuite(draw_id=draw.id, suite_id=suite.id))
        self.session.commit()
        self.session.refresh(suite)
        return suite

    def student(
        self,
        draw: Optional[Draw] = None,
        intent: Intent = Intent.on_campus,
        username: Optional[str] = None,
        **values,
    ) -> Student:
        self._student_seq += 1
        return self._save(
            Student(
                username=username or f"student{self._student_seq}",
                first_name=f"First{self._student_seq}",
                last_name=f"Last{self._student_seq}",
                intent=intent,
                draw_id=draw.id if draw else None,
                **values,
            )
        )

    def students(self, draw: Optional[Draw], count: int, intent: Intent = Intent.on_campus) -> List[Student]:
        return [self.student(draw, intent=intent) for _ in range(count)]

    def group(
        self,
        draw: Optional[Draw],
        members: List[Student],
        size: Optional[int] = None,
        status: GroupStatus = GroupStatus.locked,
        **values,
    ) -> Group:
        group = self._save(
            Group(
                draw_id=draw.id if draw else None,
                leader_id=members[0].id,
                size=size or len(members),
                status=status,
                **values,
            )
        )
        for student in members:
            self.session.add(Membership(group_id=group.id, student_id=student.id))
        self.session.commit()
        self.session.refresh(group)
        return group

    def locked_group(self, draw: Draw, size: int, **values) -> Group:
        """A locked group of `size` fresh on-campus students in the draw."""
        return self.group(draw, self.students(draw, size), **values)

    def clip(self, draw: Draw, groups: List[Group]) -> Clip:
        clip = self._save(Clip(draw_id=draw.id))
        for group in groups:
            self.session.add(ClipMembership(clip_id=clip.id, group_id=group.id, confirmed=True))
        self.session.commit()
        self.session.refresh(clip)
        return clip


@pytest.fixture
def build(session: Session) -> Builder:
    return Builder(session)
