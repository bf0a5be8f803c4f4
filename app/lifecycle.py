"""
Booking lifecycle: status vocabularies and the allowed transition table.

Booking-level flow (whole booking routed to one vendor):
    PENDING -> AWAITING_MANAGER -> AWAITING_VENDOR_RESPONSE -> AWAITING_BEAUTICIAN -> CONFIRMED
    -> IN_PROGRESS -> COMPLETED

Line-item flow (at-home bookings, one vendor per item kind):
    PENDING -> ASSIGNED -> ACCEPTED -> IN_PROGRESS -> COMPLETED
"""

from enum import Enum

from .errors import InvalidState


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    AWAITING_MANAGER = "AWAITING_MANAGER"
    AWAITING_VENDOR_RESPONSE = "AWAITING_VENDOR_RESPONSE"
    AWAITING_BEAUTICIAN = "AWAITING_BEAUTICIAN"
    ASSIGNED = "ASSIGNED"
    ACCEPTED = "ACCEPTED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ItemStatus(str, Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class BookingType(str, Enum):
    IN_SALON = "IN_SALON"
    AT_HOME = "AT_HOME"


class VendorStatus(str, Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class EmployeeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class EventType(str, Enum):
    BOOKING_CREATED = "BOOKING_CREATED"
    ROUTED_TO_MANAGER = "ROUTED_TO_MANAGER"
    ROUTED_TO_VENDOR = "ROUTED_TO_VENDOR"
    MANAGER_ASSIGNED_VENDOR = "MANAGER_ASSIGNED_VENDOR"
    VENDOR_ACCEPTED = "VENDOR_ACCEPTED"
    VENDOR_REJECTED = "VENDOR_REJECTED"
    BEAUTICIAN_ASSIGNED = "BEAUTICIAN_ASSIGNED"
    SERVICE_STARTED = "SERVICE_STARTED"
    BOOKING_COMPLETED = "BOOKING_COMPLETED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"


S = BookingStatus

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    S.PENDING: frozenset({S.AWAITING_MANAGER, S.AWAITING_VENDOR_RESPONSE, S.ASSIGNED, S.CANCELLED}),
    S.AWAITING_MANAGER: frozenset({S.AWAITING_VENDOR_RESPONSE, S.ASSIGNED, S.REJECTED, S.CANCELLED}),
    # self-loop: manager re-assigns before the vendor answered
    S.AWAITING_VENDOR_RESPONSE: frozenset(
        {S.AWAITING_VENDOR_RESPONSE, S.AWAITING_BEAUTICIAN, S.AWAITING_MANAGER, S.CANCELLED}
    ),
    S.AWAITING_BEAUTICIAN: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.ASSIGNED: frozenset({S.ASSIGNED, S.ACCEPTED, S.PENDING, S.CANCELLED}),
    S.ACCEPTED: frozenset({S.ASSIGNED, S.PENDING, S.IN_PROGRESS, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.IN_PROGRESS, S.CANCELLED}),
    S.IN_PROGRESS: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
    S.REJECTED: frozenset(),
    S.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# States from which a manager may hand the whole booking to a vendor
ASSIGNABLE_STATUSES = frozenset({S.PENDING, S.AWAITING_MANAGER, S.AWAITING_VENDOR_RESPONSE})

# States from which a manager may dispatch at-home line items
LINE_ITEM_ASSIGNABLE_STATUSES = frozenset({S.PENDING, S.AWAITING_MANAGER, S.ASSIGNED, S.ACCEPTED})

# Statuses shown on a vendor's work list
VENDOR_ACTIVE_STATUSES = frozenset(
    {
        S.PENDING,
        S.AWAITING_MANAGER,
        S.AWAITING_VENDOR_RESPONSE,
        S.AWAITING_BEAUTICIAN,
        S.CONFIRMED,
        S.IN_PROGRESS,
    }
)


def parse_status(value) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        raise InvalidState(f"Unknown booking status: {value}")


def can_transition(current, target) -> bool:
    return BookingStatus(target) in TRANSITIONS[parse_status(current)]


def transition(booking, target: BookingStatus) -> BookingStatus:
    """
    Move booking.status to target or raise InvalidState.
    booking is anything with a mutable `status` attribute (ORM row in practice).
    """
    current = parse_status(booking.status)
    target = BookingStatus(target)
    if target not in TRANSITIONS[current]:
        raise InvalidState(f"Booking cannot move from {current.value} to {target.value}")
    booking.status = target.value
    return target


def aggregate_item_status(items) -> BookingStatus:
    """
    Parent status mirrored from line items after an assign/accept step.
      - any item still waiting on a vendor answer => ASSIGNED
      - otherwise, any accepted item               => ACCEPTED
      - nothing dispatched                          => PENDING
    """
    statuses = {i.status for i in items}
    if ItemStatus.ASSIGNED.value in statuses:
        return S.ASSIGNED
    if ItemStatus.ACCEPTED.value in statuses:
        return S.ACCEPTED
    return S.PENDING


def status_after_rejection(items) -> BookingStatus:
    """
    Parent status once a vendor hands its items back. Other vendors' pending
    answers keep the booking ASSIGNED; otherwise it returns to the at-home queue.
    """
    if any(i.status == ItemStatus.ASSIGNED.value for i in items):
        return S.ASSIGNED
    return S.PENDING
