import logging
import math

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from .errors import Conflict, NotFound
from .lifecycle import (
    TERMINAL_STATUSES,
    VENDOR_ACTIVE_STATUSES,
    BookingStatus,
    BookingType,
    ItemStatus,
)
from .models import Booking, BookingProduct, BookingService, User, new_id

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

PENDING_ACCEPTANCE = "PENDING_ACCEPTANCE"


def page_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


async def commit(db: AsyncSession):
    """Commit the unit of work; a concurrent writer bumping the version is a Conflict."""
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        logger.warning("Stale booking version on commit, rejecting write")
        raise Conflict("Booking was modified concurrently, retry the operation")
    except SQLAlchemyError:
        await db.rollback()
        raise


async def get_booking(db: AsyncSession, booking_id: str) -> Booking:
    res = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = res.scalar_one_or_none()
    if not booking:
        raise NotFound("Booking not found")
    return booking


async def get_vendor_booking(db: AsyncSession, booking_id: str, vendor_id: str) -> Booking:
    """A booking the vendor owns; someone else's booking is indistinguishable from a missing one."""
    res = await db.execute(
        select(Booking).where(Booking.id == booking_id, Booking.vendor_id == vendor_id)
    )
    booking = res.scalar_one_or_none()
    if not booking:
        raise NotFound("Booking not found or not assigned to you")
    return booking


async def _paginated(db: AsyncSession, stmt, page: int, limit: int):
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    res = await db.execute(stmt.offset((page - 1) * limit).limit(limit))
    return list(res.scalars().all()), total


async def list_bookings(
    db: AsyncSession,
    *,
    status: str | None = None,
    booking_type: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
):
    stmt = select(Booking).join(User, User.id == Booking.customer_id)
    if status:
        stmt = stmt.where(Booking.status == status)
    if booking_type:
        stmt = stmt.where(Booking.booking_type == booking_type)
    if search and search.strip():
        term = search.strip()
        stmt = stmt.where(
            or_(
                Booking.id.icontains(term, autoescape=True),
                User.email.icontains(term, autoescape=True),
                User.first_name.icontains(term, autoescape=True),
                User.last_name.icontains(term, autoescape=True),
            )
        )
    stmt = stmt.order_by(
        Booking.scheduled_date.desc(),
        Booking.scheduled_time.desc(),
        Booking.created_at.desc(),
    )
    return await _paginated(db, stmt, page, limit)


async def list_vendor_bookings(db: AsyncSession, vendor_id: str, *, page: int = 1, limit: int = 20):
    stmt = (
        select(Booking)
        .where(
            Booking.vendor_id == vendor_id,
            Booking.status.in_([s.value for s in VENDOR_ACTIVE_STATUSES]),
        )
        .order_by(Booking.scheduled_date.asc(), Booking.scheduled_time.asc())
    )
    return await _paginated(db, stmt, page, limit)


async def list_at_home_bookings(db: AsyncSession) -> list[Booking]:
    res = await db.execute(
        select(Booking)
        .where(
            Booking.booking_type == BookingType.AT_HOME.value,
            Booking.status.not_in([s.value for s in TERMINAL_STATUSES]),
        )
        .order_by(Booking.scheduled_date.desc(), Booking.created_at.desc())
    )
    return list(res.scalars().all())


async def list_vendor_assignments(db: AsyncSession, vendor_id: str) -> list[Booking]:
    """At-home bookings with at least one live (non-rejected) line item on this vendor."""
    live = [ItemStatus.ASSIGNED.value, ItemStatus.ACCEPTED.value]
    service_hit = select(BookingService.booking_id).where(
        BookingService.vendor_id == vendor_id, BookingService.status.in_(live)
    )
    product_hit = select(BookingProduct.booking_id).where(
        BookingProduct.vendor_id == vendor_id, BookingProduct.status.in_(live)
    )
    res = await db.execute(
        select(Booking)
        .where(
            Booking.booking_type == BookingType.AT_HOME.value,
            or_(Booking.id.in_(service_hit), Booking.id.in_(product_hit)),
        )
        .order_by(Booking.scheduled_date.asc(), Booking.created_at.asc())
    )
    return list(res.scalars().all())


def vendor_items(booking: Booking, vendor_id: str) -> list:
    return [i for i in booking.line_items if i.vendor_id == vendor_id]


def vendor_status_for(booking: Booking, vendor_id: str) -> str:
    mine = vendor_items(booking, vendor_id)
    if any(i.status == ItemStatus.ASSIGNED.value for i in mine):
        return PENDING_ACCEPTANCE
    return ItemStatus.ACCEPTED.value


async def booking_stats(db: AsyncSession) -> dict:
    res = await db.execute(select(Booking.status, func.count()).group_by(Booking.status))
    counts = {status: n for status, n in res.all()}

    def c(s: BookingStatus) -> int:
        return counts.get(s.value, 0)

    return {
        "total": sum(counts.values()),
        "pending": c(BookingStatus.PENDING)
        + c(BookingStatus.AWAITING_MANAGER)
        + c(BookingStatus.AWAITING_VENDOR_RESPONSE),
        "awaitingManager": c(BookingStatus.AWAITING_MANAGER),
        "awaitingVendor": c(BookingStatus.AWAITING_VENDOR_RESPONSE),
        "awaitingBeautician": c(BookingStatus.AWAITING_BEAUTICIAN),
        "confirmed": c(BookingStatus.CONFIRMED),
        "inProgress": c(BookingStatus.IN_PROGRESS),
        "completed": c(BookingStatus.COMPLETED),
    }


def new_booking(
    *,
    customer_id: str,
    booking_type: str,
    scheduled_date,
    scheduled_time: str | None = None,
    services: list[dict] | None = None,
    products: list[dict] | None = None,
    discount: float = 0,
    tax: float = 0,
    address: str | None = None,
    notes: str | None = None,
    booking_id: str | None = None,
) -> Booking:
    """
    Build a PENDING booking with its line items. Totals are derived from the items.
    services/products items: {"id": catalog id, "price": float, "quantity": int}
    """
    booking = Booking(
        id=booking_id or new_id(),
        customer_id=customer_id,
        booking_type=booking_type,
        status=BookingStatus.PENDING.value,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        address=address,
        notes=notes,
    )
    for s in services or []:
        booking.services.append(
            BookingService(
                admin_service_id=s["id"],
                price=float(s.get("price") or 0),
                quantity=int(s.get("quantity") or 1),
                status=ItemStatus.PENDING.value,
            )
        )
    for p in products or []:
        booking.products.append(
            BookingProduct(
                admin_product_id=p["id"],
                price=float(p.get("price") or 0),
                quantity=int(p.get("quantity") or 1),
                status=ItemStatus.PENDING.value,
            )
        )

    subtotal = round(sum(i.price * i.quantity for i in booking.line_items), 2)
    booking.subtotal = subtotal
    booking.discount = float(discount or 0)
    booking.tax = float(tax or 0)
    booking.total = round(subtotal - booking.discount + booking.tax, 2)
    return booking


async def reload_booking(db: AsyncSession, booking_id: str) -> Booking:
    """Re-read a booking and its eager relationships, replacing whatever the session holds."""
    res = await db.execute(
        select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    )
    booking = res.scalar_one_or_none()
    if not booking:
        raise NotFound("Booking not found")
    return booking
