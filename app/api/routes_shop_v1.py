"""Shop API v1 - Verfügbarkeit und Buchungen für den Online-Shop.

Authentifizierung über den Header ``x-api-key`` (= SHOP_API_KEY).
Antworten im camelCase-Format des Shops.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_shop_api_key
from app.api.exception_handlers import NotFoundException, ValidationException
from app.api.rate_limiter import RateLimitTier, limit
from app.database import get_db
from app.models.calendar import EventType
from app.schemas.calendar import BookingOut, ShopBookingCancel, ShopBookingCreate
from app.schemas.errors import ErrorCode
from app.services.booking_service import EXPORT_DEFAULT_LIMIT, EXPORT_MAX_LIMIT, BookingService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1",
    tags=["Shop API v1"],
    dependencies=[Depends(require_shop_api_key), Depends(limit(RateLimitTier.SHOP_API))],
)


def _booking_json(event) -> dict:
    return BookingOut.from_event(event).model_dump(by_alias=True, mode="json")


# ==================== Verfügbarkeit ====================

@router.get("/availability", summary="Freie Slots eines Tages")
async def availability(
    date: str | None = Query(default=None, description="YYYY-MM-DD"),
    duration: int | None = Query(default=None, description="30, 60, 120 oder 180 Minuten"),
    db: AsyncSession = Depends(get_db),
):
    result = await BookingService(db).availability(date, duration)
    return result.model_dump(by_alias=True, exclude_none=True)


@router.get("/calendar/month", summary="Monatsübersicht")
async def calendar_month(
    year: int = Query(...),
    month: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).month_overview(year, month)


# ==================== Buchungen ====================

@router.get("/bookings/export", summary="Bestätigte Buchungen exportieren")
async def export_bookings(
    from_date: str | None = Query(default=None, alias="from"),
    to_date: str | None = Query(default=None, alias="to"),
    limit_: int = Query(default=EXPORT_DEFAULT_LIMIT, alias="limit", ge=1, le=EXPORT_MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
    include_customer_data: str = Query(default="true", alias="includeCustomerData"),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).export_bookings(
        from_date=from_date,
        to_date=to_date,
        limit=limit_,
        offset=offset,
        include_customer_data=include_customer_data.lower() != "false",
    )


@router.get("/bookings")
async def get_bookings(
    booking_id: UUID | None = Query(default=None, alias="id"),
    date: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    """Einzelne Buchung (``?id``) oder alle Buchungen eines Tages (``?date``)."""
    service = BookingService(db)

    if booking_id is not None:
        event = await service.get_booking(booking_id)
        if event.event_type != EventType.BOOKING:
            raise NotFoundException("Booking not found", ErrorCode.EVENT_NOT_FOUND)
        return {"booking": _booking_json(event)}

    if date:
        events = await service.bookings_on(date)
        return {
            "date": date,
            "count": len(events),
            "bookings": [_booking_json(e) for e in events],
        }

    raise ValidationException("Missing id or date parameter", ErrorCode.MISSING_REQUIRED_FIELD)


@router.post("/bookings", status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: ShopBookingCreate,
    db: AsyncSession = Depends(get_db),
):
    event = await BookingService(db).create_booking(data)
    await db.refresh(event)
    logger.info(f"Shop-Buchung {event.id} über API v1 angelegt (Order: {data.shop_order_number or '-'})")
    return {"success": True, "booking": _booking_json(event)}


@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: UUID,
    data: ShopBookingCancel | None = None,
    db: AsyncSession = Depends(get_db),
):
    event = await BookingService(db).cancel_booking(booking_id, data or ShopBookingCancel())
    await db.refresh(event)
    return {
        "success": True,
        "booking": {
            "id": str(event.id),
            "status": event.status.value,
            "cancelledAt": event.cancelled_at.isoformat() if event.cancelled_at else None,
            "cancellationReason": event.cancellation_reason.value if event.cancellation_reason else None,
            "cancellationNote": event.cancellation_note,
        },
    }


@router.delete("/bookings/{booking_id}")
async def delete_booking(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    await BookingService(db).delete_booking(booking_id)
    logger.info(f"Shop-Buchung {booking_id} endgültig gelöscht")
    return {"success": True, "message": "Booking deleted", "deletedId": str(booking_id)}
