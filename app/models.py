import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship

from .db import Base
from .errors import InvalidState


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def money(**kw):
    return Column(Numeric(10, 2, asdecimal=False), **kw)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, nullable=False, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    role = Column(String, nullable=False, default="CUSTOMER")  # CUSTOMER/VENDOR/MANAGER/ADMIN
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.email


class AdminService(Base):
    __tablename__ = "admin_services"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True, index=True)
    price = money(nullable=False, default=0)
    duration_minutes = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class AdminProduct(Base):
    __tablename__ = "admin_products"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True, index=True)
    price = money(nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    shop_name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    status = Column(String, nullable=False, default="PENDING_APPROVAL", index=True)
    rejection_reason = Column(String, nullable=True)
    operating_hours = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", lazy="selectin")
    services = relationship("VendorService", lazy="selectin", order_by="VendorService.name")
    products = relationship("VendorProduct", lazy="selectin", order_by="VendorProduct.name")

    @property
    def owner_name(self) -> str:
        return self.user.full_name if self.user else "Unknown"

    @property
    def location(self) -> str:
        return self.city or self.address or "Unknown"


class VendorService(Base):
    """A vendor's offering, optionally tied to an admin catalog service."""

    __tablename__ = "vendor_services"

    id = Column(String(36), primary_key=True, default=new_id)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=False, index=True)
    admin_service_id = Column(String(36), ForeignKey("admin_services.id"), nullable=True, index=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    price = money(nullable=True)


class VendorProduct(Base):
    __tablename__ = "vendor_products"

    id = Column(String(36), primary_key=True, default=new_id)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=False, index=True)
    admin_product_id = Column(String(36), ForeignKey("admin_products.id"), nullable=True, index=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    price = money(nullable=True)


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=new_id)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=True, index=True)
    manager_id = Column(String(36), nullable=True)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="Beautician")
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    experience = Column(Integer, nullable=True)
    specialization = Column(String, nullable=True)
    status = Column(String, nullable=False, default="ACTIVE", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    customer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=True, index=True)
    manager_id = Column(String(36), nullable=True)
    employee_id = Column(String(36), ForeignKey("employees.id"), nullable=True)

    booking_type = Column(String, nullable=False, default="IN_SALON", index=True)  # IN_SALON/AT_HOME
    status = Column(String, nullable=False, default="PENDING", index=True)

    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(String, nullable=True)

    subtotal = money(nullable=False, default=0)
    discount = money(nullable=False, default=0)
    tax = money(nullable=False, default=0)
    total = money(nullable=False, default=0)

    address = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    cancellation_reason = Column(String, nullable=True)

    manager_assigned_at = Column(DateTime(timezone=True), nullable=True)
    vendor_responded_at = Column(DateTime(timezone=True), nullable=True)
    beautician_assigned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    version = Column(Integer, nullable=False)

    customer = relationship("User", lazy="selectin")
    vendor = relationship("Vendor", lazy="selectin")
    employee = relationship("Employee", lazy="selectin")
    services = relationship("BookingService", lazy="selectin", order_by="BookingService.id")
    products = relationship("BookingProduct", lazy="selectin", order_by="BookingProduct.id")

    __mapper_args__ = {"version_id_col": version}

    @property
    def line_items(self) -> list:
        return [*self.services, *self.products]


class BookingService(Base):
    __tablename__ = "booking_services"

    id = Column(String(36), primary_key=True, default=new_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    admin_service_id = Column(String(36), ForeignKey("admin_services.id"), nullable=False)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=True, index=True)
    status = Column(String, nullable=False, default="PENDING")  # PENDING/ASSIGNED/ACCEPTED/REJECTED
    price = money(nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)

    catalog_item = relationship("AdminService", lazy="selectin")

    kind = "service"


class BookingProduct(Base):
    __tablename__ = "booking_products"

    id = Column(String(36), primary_key=True, default=new_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    admin_product_id = Column(String(36), ForeignKey("admin_products.id"), nullable=False)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=True, index=True)
    status = Column(String, nullable=False, default="PENDING")
    price = money(nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)

    catalog_item = relationship("AdminProduct", lazy="selectin")

    kind = "product"


class BookingEvent(Base):
    """Audit trail row. Written once, never changed."""

    __tablename__ = "booking_events"

    id = Column(String(36), primary_key=True, default=new_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    event_type = Column(String, nullable=False, index=True)
    actor_id = Column(String(36), nullable=True)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)


@event.listens_for(BookingEvent, "before_update")
def prevent_event_update(mapper, connection, target):
    raise InvalidState(f"Booking event {target.id} is immutable")


@event.listens_for(BookingEvent, "before_delete")
def prevent_event_delete(mapper, connection, target):
    raise InvalidState(f"Booking event {target.id} cannot be deleted")
