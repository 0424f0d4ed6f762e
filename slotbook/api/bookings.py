from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query

from slotbook.api.errors import to_http_error
from slotbook.api.schemas import (
    ActionResponseSchema,
    BookingSchema,
    CancelAutoChargeResponseSchema,
    ChargeNowResponseSchema,
    CreateBookingSchema,
    ProvisionSlotSchema,
    RescheduleSchema,
    SlotSchema,
    TokenActionSchema,
)
from slotbook.application.dto.booking_requests import ActionResult, NewBooking
from slotbook.application.exceptions import SlotbookError
from slotbook.application.use_cases.auto_charge import AutoChargeScheduler
from slotbook.application.use_cases.booking_workflow import BookingWorkflow
from slotbook.application.use_cases.slot_registry import SlotRegistry
from slotbook.core.config import settings
from slotbook.wiring.dependencies import get_auto_charge_scheduler, get_booking_workflow, get_slot_registry


router = APIRouter()


def _action_response(result: ActionResult) -> ActionResponseSchema:
    return ActionResponseSchema(
        booking=BookingSchema.from_entity(result.booking),
        changed=result.changed,
        alternatives=[SlotSchema.from_entity(s) for s in result.alternatives],
        emails_sent=result.emails_sent,
    )


@router.post("/bookings", response_model=BookingSchema, status_code=201)
def create_booking(
    req: CreateBookingSchema,
    uc: BookingWorkflow = Depends(get_booking_workflow),
):
    try:
        booking = uc.create(NewBooking(**req.model_dump()))
    except SlotbookError as e:
        raise to_http_error(e)
    return BookingSchema.from_entity(booking)


@router.get("/bookings/{booking_id}", response_model=BookingSchema)
def get_booking(
    booking_id: str,
    uc: BookingWorkflow = Depends(get_booking_workflow),
):
    try:
        booking = uc.get(booking_id)
    except SlotbookError as e:
        raise to_http_error(e)
    return BookingSchema.from_entity(booking)


@router.post("/bookings/confirm", response_model=ActionResponseSchema)
def confirm_booking(
    req: TokenActionSchema,
    uc: BookingWorkflow = Depends(get_booking_workflow),
):
    try:
        result = uc.confirm(req.token)
    except SlotbookError as e:
        raise to_http_error(e)
    return _action_response(result)


@router.post("/bookings/decline", response_model=ActionResponseSchema)
def decline_booking(
    req: TokenActionSchema,
    uc: BookingWorkflow = Depends(get_booking_workflow),
):
    try:
        result = uc.decline(req.token)
    except SlotbookError as e:
        raise to_http_error(e)
    return _action_response(result)


@router.post("/bookings/{booking_id}/cancel", response_model=ActionResponseSchema)
def cancel_booking(
    booking_id: str,
    uc: BookingWorkflow = Depends(get_booking_workflow),
):
    try:
        result = uc.cancel(booking_id)
    except SlotbookError as e:
        raise to_http_error(e)
    return _action_response(result)


@router.post("/bookings/{booking_id}/reschedule", response_model=BookingSchema)
def reschedule_booking(
    booking_id: str,
    req: RescheduleSchema,
    uc: BookingWorkflow = Depends(get_booking_workflow),
):
    try:
        booking = uc.reschedule(booking_id, req.date, req.hour)
    except SlotbookError as e:
        raise to_http_error(e)
    return BookingSchema.from_entity(booking)


@router.post("/bookings/{booking_id}/cancel-auto-charge", response_model=CancelAutoChargeResponseSchema)
def cancel_auto_charge(
    booking_id: str,
    scheduler: AutoChargeScheduler = Depends(get_auto_charge_scheduler),
):
    try:
        result = scheduler.cancel_auto_charge(booking_id)
    except SlotbookError as e:
        raise to_http_error(e)
    return CancelAutoChargeResponseSchema(
        booking=BookingSchema.from_entity(result.booking),
        already_cancelled=result.already_cancelled,
    )


@router.post("/bookings/{booking_id}/charge", response_model=ChargeNowResponseSchema)
def charge_booking(
    booking_id: str,
    scheduler: AutoChargeScheduler = Depends(get_auto_charge_scheduler),
    uc: BookingWorkflow = Depends(get_booking_workflow),
):
    try:
        outcome = scheduler.charge_now(booking_id)
        booking = uc.get(booking_id)
    except SlotbookError as e:
        raise to_http_error(e)
    if not outcome.success:
        raise HTTPException(status_code=402, detail=outcome.error)
    return ChargeNowResponseSchema(booking=BookingSchema.from_entity(booking), charge_id=outcome.charge_id)


@router.get("/slots/{resource_id}", response_model=list[SlotSchema])
def list_open_slots(
    resource_id: str,
    from_date: dt.date | None = Query(None, alias="from"),
    limit: int = Query(20, ge=1, le=200),
    slots: SlotRegistry = Depends(get_slot_registry),
):
    start = from_date or dt.datetime.now(ZoneInfo(settings.BUSINESS_TIMEZONE)).date()
    found = slots.find_alternatives(
        resource_id, from_date=start, limit=limit, duration_minutes=settings.SLOT_DURATION_MINUTES
    )
    return [SlotSchema.from_entity(s) for s in found]


@router.put("/slots", response_model=SlotSchema)
def provision_slot(
    req: ProvisionSlotSchema,
    slots: SlotRegistry = Depends(get_slot_registry),
):
    try:
        slot = slots.provision(req.resource_id, req.date, req.hour, available=req.available)
    except SlotbookError as e:
        raise to_http_error(e)
    return SlotSchema.from_entity(slot)
