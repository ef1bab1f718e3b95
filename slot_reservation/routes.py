from fastapi import APIRouter, Depends, Request

from .schemas import (
    ConfirmRequest,
    DirectBookingRequest,
    HoldRequest,
    HoldResponse,
    ReapResponse,
    ReservationResponse,
    StatusUpdateRequest,
)
from .security import Requester, get_requester, require_role
from .service import BookingService

router = APIRouter()


def get_service(request: Request) -> BookingService:
    return request.app.state.booking_service


@router.post("/reservations/hold", response_model=HoldResponse, status_code=201)
async def hold_slot(
    data: HoldRequest,
    requester: Requester = Depends(get_requester),
    service: BookingService = Depends(get_service),
):
    require_role(requester, ["customer", "admin"])
    grant = await service.acquire_hold(
        data.resource_id,
        data.subject_id,
        requester.sub,
        data.start_at,
        data.duration_minutes,
        price=data.price,
    )
    return HoldResponse(
        reservation_id=grant.reservation_id,
        hold_token=grant.hold_token,
        hold_expires_at=grant.hold_expires_at,
        expires_in_seconds=grant.expires_in_seconds,
    )


@router.post("/reservations/{reservation_id}/confirm", response_model=ReservationResponse)
async def confirm_reservation(
    reservation_id: str,
    data: ConfirmRequest,
    requester: Requester = Depends(get_requester),
    service: BookingService = Depends(get_service),
):
    require_role(requester, ["customer", "admin"])
    res = await service.confirm(reservation_id, data.hold_token, owner_id=requester.sub)
    return ReservationResponse.model_validate(res)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    reservation_id: str,
    requester: Requester = Depends(get_requester),
    service: BookingService = Depends(get_service),
):
    require_role(requester, ["customer", "provider"])
    res = await service.cancel(reservation_id, requester.sub, requester.role)
    return ReservationResponse.model_validate(res)


@router.put("/reservations/{reservation_id}/status", response_model=ReservationResponse)
async def update_reservation_status(
    reservation_id: str,
    data: StatusUpdateRequest,
    requester: Requester = Depends(get_requester),
    service: BookingService = Depends(get_service),
):
    require_role(requester, ["provider"])
    res = await service.update_status(reservation_id, data.status, requester.sub, "provider")
    return ReservationResponse.model_validate(res)


@router.post("/reservations", response_model=ReservationResponse, status_code=201)
async def create_reservation(
    data: DirectBookingRequest,
    requester: Requester = Depends(get_requester),
    service: BookingService = Depends(get_service),
):
    require_role(requester, ["customer", "admin"])
    res = await service.book_directly(
        data.resource_id,
        data.subject_id,
        requester.sub,
        data.start_at,
        data.duration_minutes,
        price=data.price,
    )
    return ReservationResponse.model_validate(res)


@router.post("/reservations/reap", response_model=ReapResponse)
async def reap_expired_holds(
    requester: Requester = Depends(get_requester),
    service: BookingService = Depends(get_service),
):
    require_role(requester, ["admin"])
    return ReapResponse(expired=await service.reap_expired())
