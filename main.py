import logging
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from config import settings
from domain import (
    DoctorAlreadyExists,
    DoctorNotFound,
    DoctorView,
    InvalidCapacity,
    InvalidSlotIndex,
    SlotView,
    Token,
    TokenEngine,
    TokenType,
)

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_title)
engine = TokenEngine(id_prefix=settings.token_id_prefix)


class CreateDoctorRequest(BaseModel):
    name: str = Field(min_length=1)


class DoctorSummary(BaseModel):
    name: str


class CreateSlotRequest(BaseModel):
    start: str  # e.g. "9:00 AM"
    end: str
    capacity: Optional[int] = Field(default=None, gt=0)


class BookTokenRequest(BaseModel):
    doctor: str
    slot: int = 0
    patient: str = Field(min_length=1)
    type: TokenType = TokenType.ONLINE


class TokenResponse(BaseModel):
    id: str
    patient_name: str
    type: TokenType
    priority: int
    created_at: datetime
    allocated_at: Optional[datetime] = None


class SlotResponse(BaseModel):
    index: int
    time: str
    capacity: int
    current: int
    status: str
    tokens: List[TokenResponse]


class DoctorResponse(BaseModel):
    name: str
    slots: List[SlotResponse]
    waiting_count: int  # size of the waiting list
    waiting_list: List[TokenResponse]  # oldest first


class BookingResponse(BaseModel):
    success: bool = True
    token: TokenResponse
    slot_index: Optional[int] = None
    waitlisted: bool


class SuccessResponse(BaseModel):
    success: bool


def to_token_response(t: Token) -> TokenResponse:
    return TokenResponse(
        id=t.id,
        patient_name=t.patient_name,
        type=t.type,
        priority=t.priority,
        created_at=t.created_at,
        allocated_at=t.allocated_at,
    )


def to_slot_response(s: SlotView) -> SlotResponse:
    return SlotResponse(
        index=s.index,
        time=s.time_range,
        capacity=s.capacity,
        current=s.count,
        status=s.status,
        tokens=[to_token_response(t) for t in s.tokens],
    )


def to_doctor_response(d: DoctorView) -> DoctorResponse:
    return DoctorResponse(
        name=d.name,
        slots=[to_slot_response(s) for s in d.slots],
        waiting_count=d.waiting_count,
        waiting_list=[to_token_response(t) for t in d.waiting_list],
    )


@app.post("/doctors", response_model=DoctorSummary, status_code=201)
def create_doctor(body: CreateDoctorRequest) -> DoctorSummary:
    try:
        doctor = engine.add_doctor(body.name)
    except DoctorAlreadyExists as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return DoctorSummary(name=doctor.name)


@app.get("/doctors", response_model=List[DoctorResponse])
def list_doctors() -> List[DoctorResponse]:
    return [to_doctor_response(d) for d in engine.get_all_doctors()]


@app.get("/doctors/{name}", response_model=DoctorResponse)
def get_doctor(name: str) -> DoctorResponse:
    doctor = engine.get_doctor(name)
    if doctor is None:
        raise HTTPException(status_code=404, detail=f"Doctor {name} not found")
    return to_doctor_response(doctor)


@app.post("/doctors/{name}/slots", response_model=SlotResponse, status_code=201)
def add_slot(name: str, body: CreateSlotRequest) -> SlotResponse:
    capacity = body.capacity if body.capacity is not None else settings.default_slot_capacity
    try:
        slot = engine.add_slot(name, body.start, body.end, capacity)
    except DoctorNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidCapacity as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return to_slot_response(slot)


@app.put("/doctors/{name}/delay/{slot_index}", response_model=DoctorResponse)
def delay_slot(name: str, slot_index: int) -> DoctorResponse:
    try:
        doctor = engine.delay_slot(name, slot_index)
    except DoctorNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidSlotIndex as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return to_doctor_response(doctor)


@app.post("/tokens", response_model=BookingResponse)
def book_token(body: BookTokenRequest) -> BookingResponse:
    try:
        location = engine.place_token(
            doctor_name=body.doctor,
            slot_index=body.slot,
            patient_name=body.patient,
            token_type=body.type,
        )
    except DoctorNotFound as exc:
        logger.warning("Booking rejected: %s", exc)
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidSlotIndex as exc:
        logger.warning("Booking rejected: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return BookingResponse(
        token=to_token_response(location.token),
        slot_index=location.slot_index,
        waitlisted=location.waitlisted,
    )


@app.delete("/tokens/{token_id}", response_model=SuccessResponse)
def cancel_token(token_id: str, doctor: str) -> SuccessResponse:
    try:
        success = engine.cancel_token(doctor, token_id)
    except DoctorNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SuccessResponse(success=success)


@app.put("/tokens/{token_id}/noshow", response_model=SuccessResponse)
def mark_no_show(token_id: str, doctor: str) -> SuccessResponse:
    try:
        success = engine.mark_no_show(doctor, token_id)
    except DoctorNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SuccessResponse(success=success)


@app.post("/admin/reset")
def reset_all() -> dict:
    """Drop every doctor and restart token ids at 1."""
    if not settings.allow_admin_reset:
        raise HTTPException(status_code=403, detail="Reset is disabled")
    engine.reset()
    logger.info("Engine state cleared")
    return {"detail": "State cleared"}

