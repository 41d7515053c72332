from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from suite_draw.database import get_session
from suite_draw.models.draw import Draw
from suite_draw.models.group import Group
from suite_draw.models.student import Student, StudentRole
from suite_draw.models.suite import Suite
from suite_draw.policies import can, can_drawless
from suite_draw.services.group_service import (
    GroupUpdateError,
    create_group,
    lock_group,
    members_of,
    unlock_group,
    update_drawless_group,
)
from suite_draw.services.suite_allocator import SuiteBindingError, select_suite, skip_group, suite_of_group
from suite_draw.utils.draw_guards import require_group_capability

router = APIRouter()


class GroupCreate(BaseModel):
    leader_id: int
    size: int
    member_ids: List[int] = []
    drawless: bool = False

    @field_validator("size")
    @classmethod
    def validate_size(cls, v):
        if v < 1:
            raise ValueError("size must be at least 1")
        return v


class DrawlessGroupUpdate(BaseModel):
    size: Optional[int] = None
    add_ids: List[int] = []
    remove_ids: List[int] = []

    @field_validator("size")
    @classmethod
    def validate_size(cls, v):
        if v is not None and v < 1:
            raise ValueError("size must be at least 1")
        return v


class SuiteSelectRequest(BaseModel):
    suite_id: int


class GroupResponse(BaseModel):
    id: int
    draw_id: Optional[int] = None
    leader_id: int
    size: int
    status: str
    lottery_number: Optional[int] = None
    skipped: bool
    member_ids: List[int] = []
    suite_id: Optional[int] = None


def _group_response(session: Session, group: Group) -> GroupResponse:
    suite = suite_of_group(session, group)
    return GroupResponse(
        id=group.id,
        draw_id=group.draw_id,
        leader_id=group.leader_id,
        size=group.size,
        status=group.status,
        lottery_number=group.lottery_number,
        skipped=group.skipped,
        member_ids=[s.id for s in members_of(session, group)],
        suite_id=suite.id if suite else None,
    )


@router.post("/groups", response_model=GroupResponse, status_code=201)
def create_group_endpoint(
    group_data: GroupCreate,
    x_user_role: str = Header(default=StudentRole.student.value),
    session: Session = Depends(get_session),
):
    """
    Form a group around a leader.

    Draw groups join the leader's draw; drawless groups are admin-only.
    """
    leader = session.get(Student, group_data.leader_id)
    if not leader:
        raise HTTPException(status_code=404, detail="Student not found")

    if group_data.drawless or leader.draw_id is None:
        allowed = can_drawless("group_actions", x_user_role)
    else:
        allowed = can("group_actions", x_user_role, session.get(Draw, leader.draw_id))
    if not allowed:
        raise HTTPException(status_code=403, detail=f"FORBIDDEN: role '{x_user_role}' cannot create this group")

    try:
        group = create_group(
            session,
            leader,
            group_data.size,
            member_ids=group_data.member_ids,
            drawless=group_data.drawless,
        )
    except GroupUpdateError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _group_response(session, group)


@router.get("/groups/{group_id}", response_model=GroupResponse)
def get_group(group: Group = Depends(require_group_capability("view")), session: Session = Depends(get_session)):
    return _group_response(session, group)


@router.patch("/groups/{group_id}", response_model=GroupResponse)
def update_group(
    update: DrawlessGroupUpdate,
    group: Group = Depends(require_group_capability("group_actions")),
    session: Session = Depends(get_session),
):
    """Edit a drawless group's size and membership"""
    try:
        group = update_drawless_group(
            session, group, size=update.size, add_ids=update.add_ids, remove_ids=update.remove_ids
        )
    except GroupUpdateError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _group_response(session, group)


@router.post("/groups/{group_id}/lock", response_model=GroupResponse)
def lock_group_endpoint(
    group: Group = Depends(require_group_capability("group_actions")),
    session: Session = Depends(get_session),
):
    try:
        group = lock_group(session, group)
    except GroupUpdateError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _group_response(session, group)


@router.post("/groups/{group_id}/unlock", response_model=GroupResponse)
def unlock_group_endpoint(
    group: Group = Depends(require_group_capability("group_actions")),
    session: Session = Depends(get_session),
):
    try:
        group = unlock_group(session, group)
    except GroupUpdateError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _group_response(session, group)


@router.post("/groups/{group_id}/skip", response_model=GroupResponse)
def skip_group_endpoint(
    group: Group = Depends(require_group_capability("lottery")),
    session: Session = Depends(get_session),
):
    """Pass a group over during allocation (lottery phase only; drawless groups are refused by the guard)"""
    draw = session.get(Draw, group.draw_id)
    try:
        group = skip_group(session, draw, group)
    except SuiteBindingError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _group_response(session, group)


@router.post("/groups/{group_id}/select-suite", response_model=GroupResponse)
def select_suite_endpoint(
    request: SuiteSelectRequest,
    group: Group = Depends(require_group_capability("select_suite")),
    session: Session = Depends(get_session),
):
    """Hand-pick a suite for a locked group"""
    suite = session.get(Suite, request.suite_id)
    if not suite:
        raise HTTPException(status_code=404, detail="Suite not found")
    try:
        select_suite(session, group, suite)
    except SuiteBindingError as e:
        session.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    session.refresh(group)
    return _group_response(session, group)
