from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from suite_draw.database import get_session
from suite_draw.models.building import Building
from suite_draw.models.suite import Suite

router = APIRouter()


class BuildingCreate(BaseModel):
    name: str


class BuildingResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class SuiteCreate(BaseModel):
    building_id: int
    number: str
    size: int

    @field_validator("size")
    @classmethod
    def validate_size(cls, v):
        if v < 1:
            raise ValueError("size must be at least 1")
        return v


class SuiteResponse(BaseModel):
    id: int
    building_id: int
    number: str
    size: int
    group_id: Optional[int] = None

    class Config:
        from_attributes = True


@router.post("/buildings", response_model=BuildingResponse, status_code=201)
def create_building(building_data: BuildingCreate, session: Session = Depends(get_session)):
    building = Building(name=building_data.name)
    session.add(building)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail=f"Building '{building_data.name}' already exists")
    session.refresh(building)
    return building


@router.post("/suites", response_model=SuiteResponse, status_code=201)
def create_suite(suite_data: SuiteCreate, session: Session = Depends(get_session)):
    if not session.get(Building, suite_data.building_id):
        raise HTTPException(status_code=404, detail="Building not found")

    suite = Suite(**suite_data.model_dump())
    session.add(suite)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail=f"Suite '{suite_data.number}' already exists in this building")
    session.refresh(suite)
    return suite


@router.get("/suites", response_model=List[SuiteResponse])
def list_suites(session: Session = Depends(get_session)):
    """All suites, occupied or not"""
    return session.exec(select(Suite).order_by(Suite.building_id, Suite.number, Suite.id)).all()
