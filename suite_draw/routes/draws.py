from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from suite_draw.database import get_session
from suite_draw.models.draw import Draw
from suite_draw.services.draw_lifecycle import DrawLifecycle, DrawLifecycleError, InvalidTransitionError
from suite_draw.services.intent_service import IntentLockedError, bulk_on_campus, intent_report
from suite_draw.services.lottery_starter import MSG_UPDATE_FAILED, ServiceResult
from suite_draw.services.oversubscription import oversubscription_report
from suite_draw.utils.draw_guards import require_capability

router = APIRouter()


class DrawCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class DrawResponse(BaseModel):
    id: int
    name: str
    status: str
    intent_locked: bool
    locked_sizes: List[int] = []
    lock_version: int
    created_at: datetime
    updated_at: datetime

    @field_validator("locked_sizes", mode="before")
    @classmethod
    def normalize_locked_sizes(cls, v):
        return list(v or [])

    class Config:
        from_attributes = True


class LifecycleResponse(BaseModel):
    status: str
    draw: Optional[DrawResponse] = None
    messages: List[str] = []


class ReadinessResponse(BaseModel):
    ready: bool
    violations: List[str]


class ReconcileResponse(BaseModel):
    disbanded_group_ids: List[int]
    returned_student_ids: List[int]


class Assignment(BaseModel):
    group_id: int
    suite_id: int


class AllocationResponse(BaseModel):
    assignments: List[Assignment]
    unassigned_group_ids: List[int]
    errors: List[str]


class SuiteLinkRequest(BaseModel):
    suite_ids: List[int]


class SuiteLinkResponse(BaseModel):
    draw_id: int
    suite_ids: List[int]


class IntentReportRow(BaseModel):
    id: int
    username: str
    first_name: str
    last_name: str
    intent: str

    class Config:
        from_attributes = True


class SizeDemandRow(BaseModel):
    size: int
    suite_count: int
    group_count: int
    locked_group_count: int
    size_locked: bool
    oversubscribed: bool


def _lifecycle_response(result: ServiceResult, response: Response) -> LifecycleResponse:
    """Domain failures keep the result body; conflicts map to 409, validation failures to 422."""
    if not result.ok:
        response.status_code = 409 if MSG_UPDATE_FAILED in result.messages else 422
    return LifecycleResponse(
        status=result.status,
        draw=DrawResponse.model_validate(result.draw) if result.draw is not None else None,
        messages=result.messages,
    )


def _transition_error(e: InvalidTransitionError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(e))


@router.get("/draws", response_model=List[DrawResponse])
def list_draws(session: Session = Depends(get_session)):
    """List all draws"""
    return session.exec(select(Draw).order_by(Draw.id)).all()


@router.post("/draws", response_model=DrawResponse, status_code=201)
def create_draw(draw_data: DrawCreate, session: Session = Depends(get_session)):
    """Create a draw in draft"""
    draw = Draw(name=draw_data.name)
    session.add(draw)
    session.commit()
    session.refresh(draw)
    return draw


@router.get("/draws/{draw_id}", response_model=DrawResponse)
def get_draw(draw: Draw = Depends(require_capability("view"))):
    return draw


@router.delete("/draws/{draw_id}", status_code=204)
def delete_draw(draw: Draw = Depends(require_capability("destroy")), session: Session = Depends(get_session)):
    """Delete a draw. Students, groups and suites survive; only references are cleared."""
    DrawLifecycle(session).destroy(draw.id)
    return Response(status_code=204)


@router.post("/draws/{draw_id}/suites", response_model=SuiteLinkResponse)
def add_draw_suites(
    request: SuiteLinkRequest,
    draw: Draw = Depends(require_capability("suites_update")),
    session: Session = Depends(get_session),
):
    """Offer suites in the draw"""
    try:
        added = DrawLifecycle(session).add_suites(draw.id, request.suite_ids)
    except InvalidTransitionError as e:
        raise _transition_error(e)
    except DrawLifecycleError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SuiteLinkResponse(draw_id=draw.id, suite_ids=added)


@router.delete("/draws/{draw_id}/suites", response_model=SuiteLinkResponse)
def remove_draw_suites(
    request: SuiteLinkRequest,
    draw: Draw = Depends(require_capability("suites_update")),
    session: Session = Depends(get_session),
):
    """Stop offering unoccupied suites in the draw"""
    try:
        removed = DrawLifecycle(session).remove_suites(draw.id, request.suite_ids)
    except InvalidTransitionError as e:
        raise _transition_error(e)
    return SuiteLinkResponse(draw_id=draw.id, suite_ids=removed)


# ============================================================================
# Lifecycle transitions
# ============================================================================


@router.post("/draws/{draw_id}/activate", response_model=LifecycleResponse)
def activate_draw(
    response: Response,
    draw: Draw = Depends(require_capability("activate")),
    session: Session = Depends(get_session),
):
    """draft → pre_lottery"""
    try:
        result = DrawLifecycle(session).open(draw.id)
    except InvalidTransitionError as e:
        raise _transition_error(e)
    return _lifecycle_response(result, response)


@router.get("/draws/{draw_id}/lottery-readiness", response_model=ReadinessResponse)
def lottery_readiness(
    draw: Draw = Depends(require_capability("lottery_readiness")),
    session: Session = Depends(get_session),
):
    """Every reason the lottery cannot start yet (empty when ready)"""
    return DrawLifecycle(session).check_readiness(draw.id).to_dict()


@router.post("/draws/{draw_id}/start-lottery", response_model=LifecycleResponse)
def start_lottery(
    response: Response,
    draw: Draw = Depends(require_capability("start_lottery")),
    session: Session = Depends(get_session),
):
    """
    pre_lottery → lottery

    Runs the readiness gate, disbands groups whose size has no available
    suite, draws lottery numbers and locks intents, in one transaction.
    """
    try:
        result = DrawLifecycle(session).start_lottery(draw.id)
    except InvalidTransitionError as e:
        raise _transition_error(e)
    return _lifecycle_response(result, response)


@router.post("/draws/{draw_id}/reconcile-sizes", response_model=ReconcileResponse)
def reconcile_sizes(
    draw: Draw = Depends(require_capability("reconcile_sizes")),
    session: Session = Depends(get_session),
):
    """Disband locked/full groups whose size no available suite has"""
    try:
        result = DrawLifecycle(session).reconcile_sizes(draw.id)
    except InvalidTransitionError as e:
        raise _transition_error(e)
    return result.to_dict()


@router.post("/draws/{draw_id}/assign-suites", response_model=AllocationResponse)
def assign_suites(
    response: Response,
    draw: Draw = Depends(require_capability("lottery")),
    session: Session = Depends(get_session),
):
    """Allocate suites to waiting groups in lottery order"""
    try:
        result = DrawLifecycle(session).assign_suites(draw.id)
    except InvalidTransitionError as e:
        raise _transition_error(e)
    if result.errors:
        response.status_code = 422
    return result.to_dict()


@router.post("/draws/{draw_id}/start-selection", response_model=LifecycleResponse)
def start_selection(
    response: Response,
    draw: Draw = Depends(require_capability("start_selection")),
    session: Session = Depends(get_session),
):
    """lottery → suite_selection (every group housed or skipped)"""
    try:
        result = DrawLifecycle(session).start_selection(draw.id)
    except InvalidTransitionError as e:
        raise _transition_error(e)
    return _lifecycle_response(result, response)


@router.post("/draws/{draw_id}/close", response_model=LifecycleResponse)
def close_draw(
    response: Response,
    draw: Draw = Depends(require_capability("close")),
    session: Session = Depends(get_session),
):
    """suite_selection → closed"""
    try:
        result = DrawLifecycle(session).close(draw.id)
    except InvalidTransitionError as e:
        raise _transition_error(e)
    return _lifecycle_response(result, response)


# ============================================================================
# Configuration and reports
# ============================================================================


@router.post("/draws/{draw_id}/size-locks/{size}", response_model=DrawResponse)
def toggle_size_lock(
    size: int,
    draw: Draw = Depends(require_capability("toggle_size_lock")),
    session: Session = Depends(get_session),
):
    """Lock a suite size out of allocation, or unlock it"""
    try:
        return DrawLifecycle(session).toggle_size_lock(draw.id, size)
    except InvalidTransitionError as e:
        raise _transition_error(e)


@router.post("/draws/{draw_id}/bulk-on-campus")
def bulk_on_campus_endpoint(
    draw: Draw = Depends(require_capability("bulk_on_campus")),
    session: Session = Depends(get_session),
):
    """Declare every undeclared student in the draw as on campus"""
    try:
        updated = bulk_on_campus(session, draw)
    except IntentLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"draw_id": draw.id, "updated_count": updated}


@router.get("/draws/{draw_id}/intent-report", response_model=List[IntentReportRow])
def intent_report_endpoint(
    intent: Optional[List[str]] = Query(default=None),
    draw: Draw = Depends(require_capability("intent_report")),
    session: Session = Depends(get_session),
):
    """Students of the draw with their intents; repeat ?intent= to filter"""
    try:
        return intent_report(session, draw, intent)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/draws/{draw_id}/oversubscription", response_model=List[SizeDemandRow])
def oversubscription_endpoint(
    draw: Draw = Depends(require_capability("oversubscription")),
    session: Session = Depends(get_session),
):
    """Groups versus available suites, per suite size"""
    return [row.to_dict() for row in oversubscription_report(session, draw)]
