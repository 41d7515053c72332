from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from suite_draw.database import get_session
from suite_draw.models.draw import Draw
from suite_draw.models.student import Intent, Student, StudentRole
from suite_draw.services.intent_service import IntentLockedError, update_intent
from suite_draw.services.profile_querier import sync_profile

router = APIRouter()


class StudentCreate(BaseModel):
    username: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    role: StudentRole = StudentRole.student
    intent: Intent = Intent.undeclared
    draw_id: Optional[int] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        if not v or not v.strip():
            raise ValueError("username is required")
        return v.strip()


class IntentUpdate(BaseModel):
    intent: Intent


class StudentResponse(BaseModel):
    id: int
    username: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    gender: Optional[str] = None
    class_year: Optional[str] = None
    college: Optional[str] = None
    role: str
    intent: str
    draw_id: Optional[int] = None
    old_draw_id: Optional[int] = None

    class Config:
        from_attributes = True


def _get_student_or_404(session: Session, student_id: int) -> Student:
    student = session.get(Student, student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@router.post("/students", response_model=StudentResponse, status_code=201)
def create_student(student_data: StudentCreate, session: Session = Depends(get_session)):
    if student_data.draw_id is not None and not session.get(Draw, student_data.draw_id):
        raise HTTPException(status_code=404, detail="Draw not found")

    student = Student(**student_data.model_dump())
    session.add(student)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail=f"Username '{student_data.username}' already exists")
    session.refresh(student)
    return student


@router.get("/students/{student_id}", response_model=StudentResponse)
def get_student(student_id: int, session: Session = Depends(get_session)):
    return _get_student_or_404(session, student_id)


@router.put("/students/{student_id}/intent", response_model=StudentResponse)
def update_student_intent(student_id: int, update: IntentUpdate, session: Session = Depends(get_session)):
    """Declare on/off campus. Refused once the student's draw has locked intents."""
    student = _get_student_or_404(session, student_id)
    try:
        return update_intent(session, student, update.intent)
    except IntentLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/students/{student_id}/profile-sync", response_model=StudentResponse)
def profile_sync(student_id: int, session: Session = Depends(get_session)):
    """Fill in name, email and demographics from the identity provider (no-op when not configured)"""
    student = _get_student_or_404(session, student_id)
    sync_profile(session, student)
    return student
