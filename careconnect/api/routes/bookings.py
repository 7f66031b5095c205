"""
預約管理相關 API 路由
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Body, Depends, Query

from careconnect.api.dependencies import CurrentActor, get_booking_service
from careconnect.models.schemas import (
    Booking,
    CreateBookingRequest,
    Page,
    RejectBookingRequest,
    UpdateBookingNotesRequest,
)
from careconnect.services.booking_service import BookingService

router = APIRouter(prefix="/api/bookings", tags=["預約管理"])

Service = Annotated[BookingService, Depends(get_booking_service)]


@router.post("", response_model=Booking, status_code=201)
def create_booking(request: CreateBookingRequest, actor: CurrentActor, booking_service: Service):
    """建立預約（家屬）"""
    return booking_service.create_booking(actor, request)


@router.get("", response_model=Page[Booking])
def list_bookings(
    actor: CurrentActor,
    booking_service: Service,
    page: int = Query(1),
    limit: int = Query(10),
    status: Optional[str] = Query(None),
):
    """取得自己的預約列表（家屬或照護員）"""
    return booking_service.list_bookings(actor, page=page, limit=limit, status=status)


@router.get("/{booking_id}", response_model=Booking)
def get_booking(booking_id: str, actor: CurrentActor, booking_service: Service):
    """取得預約（當事人或管理員）"""
    return booking_service.get_booking(actor, booking_id)


@router.patch("/{booking_id}/notes", response_model=Booking)
def update_booking_notes(
    booking_id: str, request: UpdateBookingNotesRequest, actor: CurrentActor, booking_service: Service
):
    """更新預約備註（家屬）"""
    return booking_service.update_notes(actor, booking_id, request.notes)


@router.patch("/{booking_id}/accept", response_model=Booking)
def accept_booking(booking_id: str, actor: CurrentActor, booking_service: Service):
    """接受預約（照護員）"""
    return booking_service.accept_booking(actor, booking_id)


@router.patch("/{booking_id}/reject", response_model=Booking)
def reject_booking(
    booking_id: str,
    actor: CurrentActor,
    booking_service: Service,
    request: Optional[RejectBookingRequest] = Body(None),
):
    """拒絕預約（照護員，可附原因）"""
    reason = request.reason if request else None
    return booking_service.reject_booking(actor, booking_id, reason)


@router.patch("/{booking_id}/start", response_model=Booking)
def start_booking(booking_id: str, actor: CurrentActor, booking_service: Service):
    """開始服務"""
    return booking_service.start_booking(actor, booking_id)


@router.patch("/{booking_id}/complete", response_model=Booking)
def complete_booking(booking_id: str, actor: CurrentActor, booking_service: Service):
    """完成服務"""
    return booking_service.complete_booking(actor, booking_id)


@router.patch("/{booking_id}/cancel", response_model=Booking)
def cancel_booking(booking_id: str, actor: CurrentActor, booking_service: Service):
    """取消預約（家屬）"""
    return booking_service.cancel_booking(actor, booking_id)
