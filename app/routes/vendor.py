from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .. import bookings
from ..db import get_db
from ..deps import current_vendor, get_workflow
from ..lifecycle import ItemStatus
from ..models import Vendor
from ..schemas import (
    AssignBeauticianRequest,
    BookingOut,
    ReasonRequest,
    VendorAssignmentOut,
    VendorStatusOut,
    envelope,
)
from ..workflow import AssignmentWorkflow

router = APIRouter(prefix="/vendor", tags=["vendor"])


@router.get("/status")
async def vendor_status(vendor: Vendor = Depends(current_vendor)):
    return envelope(VendorStatusOut.model_validate(vendor).dump())


@router.get("/bookings")
async def list_bookings(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=bookings.MAX_PAGE_SIZE),
    vendor: Vendor = Depends(current_vendor),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await bookings.list_vendor_bookings(db, vendor.id, page=page, limit=limit)
    return envelope(
        [BookingOut.from_booking(b).dump() for b in rows],
        pagination=bookings.page_meta(page, limit, total),
    )


@router.put("/bookings/{booking_id}/approve")
async def approve_booking(
    booking_id: str,
    vendor: Vendor = Depends(current_vendor),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.vendor_accept(booking_id, vendor.id)
    return envelope(BookingOut.from_booking(booking).dump(), message="Booking approved")


@router.put("/bookings/{booking_id}/reject")
async def reject_booking(
    booking_id: str,
    data: ReasonRequest | None = None,
    vendor: Vendor = Depends(current_vendor),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.vendor_reject(booking_id, vendor.id, data.reason if data else None)
    return envelope(BookingOut.from_booking(booking).dump(), message="Booking rejected")


@router.put("/bookings/{booking_id}/assign-beautician")
async def assign_beautician(
    booking_id: str,
    data: AssignBeauticianRequest,
    vendor: Vendor = Depends(current_vendor),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.assign_beautician(
        booking_id,
        vendor.user_id,
        employee_id=data.employee_id,
        beautician=data.beautician,
        vendor_id=vendor.id,
    )
    return envelope(BookingOut.from_booking(booking).dump(), message="Beautician assigned successfully")


@router.put("/bookings/{booking_id}/start")
async def start_service(
    booking_id: str,
    vendor: Vendor = Depends(current_vendor),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.start_service(booking_id, vendor.id)
    return envelope(BookingOut.from_booking(booking).dump(), message="Service started")


@router.put("/bookings/{booking_id}/complete")
async def complete_booking(
    booking_id: str,
    vendor: Vendor = Depends(current_vendor),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.complete_booking(booking_id, vendor.id)
    return envelope(BookingOut.from_booking(booking).dump(), message="Booking completed")


@router.get("/athome-assignments")
async def list_assignments(vendor: Vendor = Depends(current_vendor), db: AsyncSession = Depends(get_db)):
    rows = await bookings.list_vendor_assignments(db, vendor.id)
    out = []
    for booking in rows:
        items = [i for i in bookings.vendor_items(booking, vendor.id) if i.status != ItemStatus.REJECTED.value]
        out.append(
            VendorAssignmentOut.from_assignment(
                booking, items, bookings.vendor_status_for(booking, vendor.id)
            ).dump()
        )
    return envelope(out)


@router.post("/athome-assignments/{booking_id}/accept")
async def accept_assignment(
    booking_id: str,
    vendor: Vendor = Depends(current_vendor),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.accept_line_items(booking_id, vendor.id)
    return envelope(BookingOut.from_booking(booking).dump(), message="Assignment accepted")


@router.post("/athome-assignments/{booking_id}/reject")
async def reject_assignment(
    booking_id: str,
    data: ReasonRequest | None = None,
    vendor: Vendor = Depends(current_vendor),
    workflow: AssignmentWorkflow = Depends(get_workflow),
):
    booking = await workflow.reject_line_items(booking_id, vendor.id, data.reason if data else None)
    return envelope(BookingOut.from_booking(booking).dump(), message="Assignment rejected")
