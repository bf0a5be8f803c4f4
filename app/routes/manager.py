from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .. import bookings, directory
from ..db import get_db
from ..deps import get_event_log, get_workflow
from ..errors import InvalidInput
from ..event_log import EventLog
from ..lifecycle import BookingStatus, BookingType
from ..matching import eligible_vendors_for_booking
from ..rbac import manager_user
from ..schemas import (
    AssignBeauticianRequest,
    AssignLineItemsRequest,
    AssignVendorRequest,
    BookingEventOut,
    BookingOut,
    BulkRouteRequest,
    EmployeeOut,
    ReasonRequest,
    envelope,
)
from ..workflow import AssignmentWorkflow

router = APIRouter(prefix="/manager", tags=["manager"])


def _status_filter(status: str | None) -> str | None:
    if not status or status.upper() == "ALL":
        return None
    try:
        return BookingStatus(status.upper()).value
    except ValueError:
        raise InvalidInput(f"Unknown booking status: {status}")


@router.get("/bookings")
async def list_bookings(
    status: str | None = None,
    booking_type: BookingType | None = Query(default=None, alias="bookingType"),
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=bookings.MAX_PAGE_SIZE),
    user: dict = Depends(manager_user),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await bookings.list_bookings(
        db,
        status=_status_filter(status),
        booking_type=booking_type.value if booking_type else None,
        search=search,
        page=page,
        limit=limit,
    )
    return envelope(
        [BookingOut.from_booking(b).dump() for b in rows],
        pagination=bookings.page_meta(page, limit, total),
    )


@router.get("/bookings/stats")
async def booking_stats(user: dict = Depends(manager_user), db: AsyncSession = Depends(get_db)):
    return envelope(await bookings.booking_stats(db))


@router.put("/bookings/bulk/awaiting-manager")
async def route_pending_to_manager(
    data: BulkRouteRequest,
    user: dict = Depends(manager_user),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    moved = await workflow.route_pending_to_manager(data.booking_type, user["sub"])
    return envelope(
        {"updated": len(moved), "bookingIds": [b.id for b in moved]},
        message=f"{len(moved)} bookings moved to the manager queue",
    )


@router.get("/bookings/{booking_id}")
async def get_booking(booking_id: str, user: dict = Depends(manager_user), db: AsyncSession = Depends(get_db)):
    booking = await bookings.get_booking(db, booking_id)
    return envelope(BookingOut.from_booking(booking).dump())


@router.get("/bookings/{booking_id}/events")
async def booking_events(
    booking_id: str,
    user: dict = Depends(manager_user),
    db: AsyncSession = Depends(get_db),
    event_log: EventLog = Depends(get_event_log),
):
    await bookings.get_booking(db, booking_id)
    history = await event_log.history(db, booking_id)
    return envelope([BookingEventOut.model_validate(e).dump() for e in history])


@router.put("/bookings/{booking_id}/assign-vendor")
async def assign_vendor(
    booking_id: str,
    data: AssignVendorRequest,
    user: dict = Depends(manager_user),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.assign_vendor(booking_id, data.vendor_id, user["sub"])
    return envelope(BookingOut.from_booking(booking).dump(), message="Vendor assigned successfully")


@router.put("/bookings/{booking_id}/route-to-manager")
async def route_to_manager(
    booking_id: str,
    user: dict = Depends(manager_user),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.route_to_manager(booking_id, user["sub"])
    return envelope(BookingOut.from_booking(booking).dump(), message="Booking moved to the manager queue")


@router.put("/bookings/{booking_id}/assign-employee")
async def assign_employee(
    booking_id: str,
    data: AssignBeauticianRequest,
    user: dict = Depends(manager_user),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.assign_beautician(
        booking_id,
        user["sub"],
        employee_id=data.employee_id,
        beautician=data.beautician,
    )
    return envelope(BookingOut.from_booking(booking).dump(), message="Beautician assigned successfully")


@router.put("/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    data: ReasonRequest | None = None,
    user: dict = Depends(manager_user),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    reason = data.reason if data else None
    booking = await workflow.cancel_booking(booking_id, user["sub"], reason)
    return envelope(BookingOut.from_booking(booking).dump(), message="Booking cancelled")


@router.get("/employees")
async def list_employees(
    status: str | None = "ACTIVE",
    vendor_id: str | None = Query(default=None, alias="vendorId"),
    user: dict = Depends(manager_user),
    db: AsyncSession = Depends(get_db),
):
    status = None if not status or status.upper() == "ALL" else status.upper()
    employees = await directory.list_employees(db, status=status, vendor_id=vendor_id)
    return envelope([EmployeeOut.model_validate(e).dump() for e in employees])


@router.get("/athome-bookings")
async def list_at_home_bookings(user: dict = Depends(manager_user), db: AsyncSession = Depends(get_db)):
    rows = await bookings.list_at_home_bookings(db)
    return envelope([BookingOut.from_booking(b).dump() for b in rows])


@router.get("/athome-bookings/{booking_id}/eligible-vendors")
async def eligible_vendors(
    booking_id: str,
    user: dict = Depends(manager_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await bookings.get_booking(db, booking_id)
    return envelope(await eligible_vendors_for_booking(db, booking))


@router.post("/athome-bookings/{booking_id}/assign")
async def assign_line_items(
    booking_id: str,
    data: AssignLineItemsRequest,
    user: dict = Depends(manager_user),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.assign_line_items(
        booking_id,
        user["sub"],
        service_vendor_id=data.service_vendor_id,
        product_vendor_id=data.product_vendor_id,
    )
    return envelope(BookingOut.from_booking(booking).dump(), message="Vendors assigned successfully")
