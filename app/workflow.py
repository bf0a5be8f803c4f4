"""
Assignment workflow: every manager, vendor and system action that moves a
booking through its lifecycle.

Each operation validates, mutates the booking (and its line items) in the
caller's session, commits once, then appends an audit event and sends
best-effort notifications. Audit or notification failures never undo a
committed transition.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from . import bookings, directory
from .errors import InvalidInput, InvalidState, NotFound
from .event_log import EventLog
from .lifecycle import (
    ASSIGNABLE_STATUSES,
    LINE_ITEM_ASSIGNABLE_STATUSES,
    BookingStatus,
    BookingType,
    EmployeeStatus,
    EventType,
    ItemStatus,
    aggregate_item_status,
    parse_status,
    status_after_rejection,
    transition,
)
from .models import Booking, Employee, utcnow
from .notifications import Notifier
from .schemas import BeauticianSpec, CheckoutCompleted

logger = logging.getLogger(__name__)


class AssignmentWorkflow:
    def __init__(self, db: AsyncSession, event_log: EventLog, notifier: Notifier):
        self.db = db
        self.event_log = event_log
        self.notifier = notifier

    async def _record(self, booking: Booking, event_type: EventType, actor_id: str | None, payload: dict):
        logger.info(f"Booking {booking.id}: {event_type.value} by {actor_id} -> {booking.status}")
        await self.event_log.append(booking.id, event_type.value, actor_id, payload)

    async def _notify_vendor(self, template: str, vendor, booking: Booking):
        if vendor is None or vendor.user is None:
            return
        await self.notifier.notify(
            template,
            vendor.user.email,
            {"bookingId": booking.id, "shopName": vendor.shop_name, "scheduledDate": str(booking.scheduled_date)},
        )

    async def _notify_customer(self, template: str, booking: Booking, **extra):
        if booking.customer is None:
            return
        await self.notifier.notify(
            template,
            booking.customer.email,
            {"bookingId": booking.id, "status": booking.status, **extra},
        )

    # ---- manager: whole-booking routing ----

    async def assign_vendor(self, booking_id: str, vendor_id: str, manager_id: str) -> Booking:
        vendor = await directory.find_approved_vendor(self.db, vendor_id)
        booking = await bookings.get_booking(self.db, booking_id)

        if parse_status(booking.status) not in ASSIGNABLE_STATUSES:
            raise InvalidState(f"Booking in status {booking.status} cannot be assigned to a vendor")

        transition(booking, BookingStatus.AWAITING_VENDOR_RESPONSE)
        now = utcnow()
        booking.vendor = vendor
        booking.manager_id = manager_id
        booking.manager_assigned_at = now
        booking.vendor_responded_at = None
        booking.beautician_assigned_at = None
        booking.updated_at = now
        await bookings.commit(self.db)

        await self._record(
            booking,
            EventType.MANAGER_ASSIGNED_VENDOR,
            manager_id,
            {"managerId": manager_id, "vendorId": vendor.id},
        )
        await self._notify_vendor("vendor_booking_assigned", vendor, booking)
        return booking

    async def route_to_manager(self, booking_id: str, actor_id: str | None) -> Booking:
        booking = await bookings.get_booking(self.db, booking_id)
        transition(booking, BookingStatus.AWAITING_MANAGER)
        booking.updated_at = utcnow()
        await bookings.commit(self.db)

        await self._record(booking, EventType.ROUTED_TO_MANAGER, actor_id, {"bookingType": booking.booking_type})
        return booking

    async def route_pending_to_manager(self, booking_type: BookingType, actor_id: str | None) -> list[Booking]:
        """Move every PENDING booking of one type into the manager queue in a single transaction."""
        res = await self.db.execute(
            select(Booking).where(
                Booking.status == BookingStatus.PENDING.value,
                Booking.booking_type == BookingType(booking_type).value,
            )
        )
        moved = list(res.scalars().all())
        if not moved:
            return []

        now = utcnow()
        for booking in moved:
            transition(booking, BookingStatus.AWAITING_MANAGER)
            booking.updated_at = now
        await bookings.commit(self.db)

        for booking in moved:
            await self._record(
                booking,
                EventType.ROUTED_TO_MANAGER,
                actor_id,
                {"bookingType": booking.booking_type, "bulk": True},
            )
        return moved

    # ---- vendor: whole-booking responses ----

    async def _awaiting_vendor(self, booking_id: str, vendor_id: str) -> Booking:
        booking = await bookings.get_vendor_booking(self.db, booking_id, vendor_id)
        if booking.status != BookingStatus.AWAITING_VENDOR_RESPONSE.value:
            raise InvalidState(f"Booking is {booking.status}, not awaiting your response")
        return booking

    async def vendor_accept(self, booking_id: str, vendor_id: str) -> Booking:
        booking = await self._awaiting_vendor(booking_id, vendor_id)

        transition(booking, BookingStatus.AWAITING_BEAUTICIAN)
        now = utcnow()
        booking.employee = None
        booking.vendor_responded_at = now
        booking.updated_at = now
        await bookings.commit(self.db)

        await self._record(
            booking,
            EventType.VENDOR_ACCEPTED,
            vendor_id,
            {"vendorId": vendor_id, "status": booking.status},
        )
        await self._notify_customer("booking_accepted", booking)
        return booking

    async def vendor_reject(self, booking_id: str, vendor_id: str, reason: str | None = None) -> Booking:
        booking = await self._awaiting_vendor(booking_id, vendor_id)

        transition(booking, BookingStatus.AWAITING_MANAGER)
        now = utcnow()
        booking.vendor = None
        booking.manager_id = None
        booking.manager_assigned_at = None
        booking.beautician_assigned_at = None
        booking.vendor_responded_at = now
        booking.updated_at = now
        await bookings.commit(self.db)

        await self._record(
            booking,
            EventType.VENDOR_REJECTED,
            vendor_id,
            {"vendorId": vendor_id, "reason": reason},
        )
        return booking

    # ---- beautician assignment (manager or vendor) ----

    async def _resolve_employee(
        self,
        booking: Booking,
        employee_id: str | None,
        beautician: BeauticianSpec | None,
        actor_id: str,
        vendor_id: str | None,
    ) -> Employee:
        if employee_id:
            employee = await directory.find_employee(self.db, employee_id)
            if vendor_id and employee.vendor_id not in (None, vendor_id):
                raise NotFound("Employee not found")
            if employee.status != EmployeeStatus.ACTIVE.value:
                raise InvalidState("Employee is not active")
            return employee

        employee = Employee(
            vendor_id=booking.vendor_id,
            manager_id=None if vendor_id else actor_id,
            name=beautician.name.strip(),
            role=beautician.role or "Beautician",
            email=beautician.email,
            phone=beautician.phone,
            experience=beautician.experience,
            specialization=beautician.specialization,
            status=EmployeeStatus.ACTIVE.value,
        )
        self.db.add(employee)
        return employee

    async def assign_beautician(
        self,
        booking_id: str,
        actor_id: str,
        *,
        employee_id: str | None = None,
        beautician: BeauticianSpec | None = None,
        vendor_id: str | None = None,
    ) -> Booking:
        """
        vendor_id set: a vendor acting on its own booking, limited to its own or unowned staff.
        vendor_id None: a manager acting on any booking.
        """
        if not employee_id and beautician is None:
            raise InvalidInput("employeeId or beautician details are required")

        if vendor_id:
            booking = await bookings.get_vendor_booking(self.db, booking_id, vendor_id)
        else:
            booking = await bookings.get_booking(self.db, booking_id)

        if booking.status != BookingStatus.AWAITING_BEAUTICIAN.value:
            raise InvalidState(f"Booking is {booking.status}, a beautician cannot be assigned yet")

        employee = await self._resolve_employee(booking, employee_id, beautician, actor_id, vendor_id)

        transition(booking, BookingStatus.CONFIRMED)
        now = utcnow()
        booking.employee = employee
        booking.beautician_assigned_at = now
        booking.updated_at = now
        await bookings.commit(self.db)

        await self._record(
            booking,
            EventType.BEAUTICIAN_ASSIGNED,
            actor_id,
            {"vendorId": booking.vendor_id, "employeeId": employee.id},
        )
        await self._notify_customer("booking_confirmed", booking, beautician=employee.name)
        if employee.email:
            await self.notifier.notify(
                "beautician_assigned",
                employee.email,
                {"bookingId": booking.id, "scheduledDate": str(booking.scheduled_date)},
            )
        return booking

    # ---- at-home line items ----

    async def assign_line_items(
        self,
        booking_id: str,
        manager_id: str,
        service_vendor_id: str | None = None,
        product_vendor_id: str | None = None,
    ) -> Booking:
        if not service_vendor_id and not product_vendor_id:
            raise InvalidInput("service_vendor_id or product_vendor_id is required")

        service_vendor = (
            await directory.find_approved_vendor(self.db, service_vendor_id) if service_vendor_id else None
        )
        product_vendor = (
            await directory.find_approved_vendor(self.db, product_vendor_id) if product_vendor_id else None
        )
        booking = await bookings.get_booking(self.db, booking_id)

        if booking.booking_type != BookingType.AT_HOME.value:
            raise InvalidState("Only at-home bookings are dispatched per line item")
        if parse_status(booking.status) not in LINE_ITEM_ASSIGNABLE_STATUSES:
            raise InvalidState(f"Booking in status {booking.status} cannot be dispatched")

        assigned = []
        for vendor, items in ((service_vendor, booking.services), (product_vendor, booking.products)):
            if vendor is None:
                continue
            for item in items:
                if item.status == ItemStatus.ACCEPTED.value:
                    continue
                item.vendor_id = vendor.id
                item.status = ItemStatus.ASSIGNED.value
                assigned.append(item.id)

        if not assigned:
            raise InvalidState("No line items left to assign")

        transition(booking, BookingStatus.ASSIGNED)
        now = utcnow()
        booking.manager_id = manager_id
        booking.manager_assigned_at = now
        booking.updated_at = now
        await bookings.commit(self.db)

        await self._record(
            booking,
            EventType.MANAGER_ASSIGNED_VENDOR,
            manager_id,
            {
                "managerId": manager_id,
                "serviceVendorId": service_vendor.id if service_vendor else None,
                "productVendorId": product_vendor.id if product_vendor else None,
                "itemIds": assigned,
            },
        )
        for vendor in dict.fromkeys(v for v in (service_vendor, product_vendor) if v):
            await self._notify_vendor("vendor_athome_assigned", vendor, booking)
        return booking

    async def _awaiting_items(self, booking_id: str, vendor_id: str):
        booking = await bookings.get_booking(self.db, booking_id)
        mine = bookings.vendor_items(booking, vendor_id)
        if not mine:
            raise NotFound("No items of this booking are assigned to you")
        waiting = [i for i in mine if i.status == ItemStatus.ASSIGNED.value]
        if not waiting:
            raise InvalidState("No items of this booking are awaiting your response")
        return booking, waiting

    async def accept_line_items(self, booking_id: str, vendor_id: str) -> Booking:
        booking, waiting = await self._awaiting_items(booking_id, vendor_id)

        for item in waiting:
            item.status = ItemStatus.ACCEPTED.value
        transition(booking, aggregate_item_status(booking.line_items))
        now = utcnow()
        booking.vendor_responded_at = now
        booking.updated_at = now
        await bookings.commit(self.db)

        await self._record(
            booking,
            EventType.VENDOR_ACCEPTED,
            vendor_id,
            {"vendorId": vendor_id, "itemIds": [i.id for i in waiting], "status": booking.status},
        )
        if booking.status == BookingStatus.ACCEPTED.value:
            await self._notify_customer("booking_accepted", booking)
        return booking

    async def reject_line_items(self, booking_id: str, vendor_id: str, reason: str | None = None) -> Booking:
        booking, waiting = await self._awaiting_items(booking_id, vendor_id)

        for item in waiting:
            item.vendor_id = None
            item.status = ItemStatus.PENDING.value
        transition(booking, status_after_rejection(booking.line_items))
        now = utcnow()
        booking.vendor_responded_at = now
        booking.updated_at = now
        await bookings.commit(self.db)

        await self._record(
            booking,
            EventType.VENDOR_REJECTED,
            vendor_id,
            {"vendorId": vendor_id, "itemIds": [i.id for i in waiting], "reason": reason},
        )
        return booking

    # ---- service delivery ----

    async def _vendor_work(self, booking_id: str, vendor_id: str) -> Booking:
        booking = await bookings.get_booking(self.db, booking_id)
        if booking.vendor_id == vendor_id:
            return booking
        accepted = [
            i for i in bookings.vendor_items(booking, vendor_id) if i.status == ItemStatus.ACCEPTED.value
        ]
        if not accepted:
            raise NotFound("Booking not found or not assigned to you")
        return booking

    async def start_service(self, booking_id: str, vendor_id: str) -> Booking:
        booking = await self._vendor_work(booking_id, vendor_id)
        transition(booking, BookingStatus.IN_PROGRESS)
        booking.updated_at = utcnow()
        await bookings.commit(self.db)

        await self._record(booking, EventType.SERVICE_STARTED, vendor_id, {"vendorId": vendor_id})
        return booking

    async def complete_booking(self, booking_id: str, vendor_id: str) -> Booking:
        booking = await self._vendor_work(booking_id, vendor_id)
        transition(booking, BookingStatus.COMPLETED)
        booking.updated_at = utcnow()
        await bookings.commit(self.db)

        await self._record(booking, EventType.BOOKING_COMPLETED, vendor_id, {"vendorId": vendor_id})
        await self._notify_customer("booking_completed", booking)
        return booking

    async def cancel_booking(self, booking_id: str, actor_id: str | None, reason: str | None = None) -> Booking:
        booking = await bookings.get_booking(self.db, booking_id)
        transition(booking, BookingStatus.CANCELLED)
        booking.cancellation_reason = reason
        booking.updated_at = utcnow()
        await bookings.commit(self.db)

        await self._record(booking, EventType.BOOKING_CANCELLED, actor_id, {"reason": reason})
        await self._notify_customer("booking_cancelled", booking, reason=reason)
        return booking

    # ---- system: checkout ----

    async def create_from_checkout(self, checkout: CheckoutCompleted) -> Booking:
        """
        Create a booking from a completed checkout and route it:
          - at-home with line items  -> stays PENDING for per-item dispatch
          - customer picked an APPROVED vendor -> AWAITING_VENDOR_RESPONSE
          - otherwise                -> AWAITING_MANAGER
        A booking id that already exists is returned unchanged.
        """
        if checkout.booking_id:
            res = await self.db.execute(select(Booking).where(Booking.id == checkout.booking_id))
            existing = res.scalar_one_or_none()
            if existing:
                logger.info(f"Checkout for existing booking {existing.id} ignored")
                return existing

        customer = await directory.find_user(self.db, checkout.customer_id)
        for item in checkout.services:
            await directory.find_catalog_item(self.db, item.id, "service")
        for item in checkout.products:
            await directory.find_catalog_item(self.db, item.id, "product")

        chosen_vendor = None
        if checkout.vendor_id:
            try:
                chosen_vendor = await directory.find_approved_vendor(self.db, checkout.vendor_id)
            except NotFound:
                logger.warning(f"Checkout vendor {checkout.vendor_id} not approved, routing to manager")

        booking = bookings.new_booking(
            booking_id=checkout.booking_id,
            customer_id=customer.id,
            booking_type=checkout.booking_type.value,
            scheduled_date=checkout.scheduled_date,
            scheduled_time=checkout.scheduled_time,
            services=[i.model_dump() for i in checkout.services],
            products=[i.model_dump() for i in checkout.products],
            discount=checkout.discount,
            tax=checkout.tax,
            address=checkout.address,
            notes=checkout.notes,
        )
        booking.customer = customer

        routed = None
        at_home_dispatch = booking.booking_type == BookingType.AT_HOME.value and bool(booking.line_items)
        if not at_home_dispatch:
            if chosen_vendor is not None:
                transition(booking, BookingStatus.AWAITING_VENDOR_RESPONSE)
                booking.vendor = chosen_vendor
                routed = EventType.ROUTED_TO_VENDOR
            else:
                transition(booking, BookingStatus.AWAITING_MANAGER)
                routed = EventType.ROUTED_TO_MANAGER

        self.db.add(booking)
        await bookings.commit(self.db)
        booking = await bookings.reload_booking(self.db, booking.id)

        await self._record(
            booking,
            EventType.BOOKING_CREATED,
            customer.id,
            {"bookingType": booking.booking_type, "total": booking.total},
        )
        if routed is EventType.ROUTED_TO_VENDOR:
            await self._record(booking, routed, None, {"vendorId": booking.vendor_id})
            await self._notify_vendor("vendor_booking_assigned", booking.vendor, booking)
        elif routed is EventType.ROUTED_TO_MANAGER:
            await self._record(booking, routed, None, {"bookingType": booking.booking_type})
        return booking
