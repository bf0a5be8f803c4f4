from datetime import date, datetime

from dateutil import parser
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .lifecycle import BookingType


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---- requests ----

class Login(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class AssignVendorRequest(ApiModel):
    vendor_id: str = Field(min_length=1)


class AssignLineItemsRequest(BaseModel):
    service_vendor_id: str | None = Field(
        default=None, validation_alias=AliasChoices("service_vendor_id", "serviceVendorId")
    )
    product_vendor_id: str | None = Field(
        default=None, validation_alias=AliasChoices("product_vendor_id", "productVendorId")
    )


class BeauticianSpec(ApiModel):
    name: str = Field(min_length=1)
    role: str = "Beautician"
    email: str | None = None
    phone: str | None = None
    experience: int | None = Field(default=None, ge=0)
    specialization: str | None = None


class AssignBeauticianRequest(ApiModel):
    employee_id: str | None = None
    beautician: BeauticianSpec | None = None


class ReasonRequest(ApiModel):
    reason: str | None = None


class BulkRouteRequest(ApiModel):
    booking_type: BookingType


class CheckoutItem(BaseModel):
    id: str = Field(min_length=1)
    price: float = Field(default=0, ge=0)
    quantity: int = Field(default=1, ge=1)


class CheckoutCompleted(BaseModel):
    """data of a booking.checkout_completed event"""

    booking_id: str | None = None
    customer_id: str = Field(min_length=1)
    booking_type: BookingType = BookingType.IN_SALON
    scheduled_date: date
    scheduled_time: str | None = None
    vendor_id: str | None = None
    services: list[CheckoutItem] = []
    products: list[CheckoutItem] = []
    discount: float = Field(default=0, ge=0)
    tax: float = Field(default=0, ge=0)
    address: str | None = None
    notes: str | None = None

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def parse_scheduled_date(cls, v):
        if isinstance(v, str):
            return parser.isoparse(v).date()
        if isinstance(v, datetime):
            return v.date()
        return v


# ---- responses ----

class LineItemOut(ApiModel):
    id: str
    kind: str
    catalog_id: str
    name: str | None = None
    vendor_id: str | None = None
    status: str
    price: float
    quantity: int

    @classmethod
    def from_item(cls, item) -> "LineItemOut":
        catalog_id = item.admin_service_id if item.kind == "service" else item.admin_product_id
        return cls(
            id=item.id,
            kind=item.kind,
            catalog_id=catalog_id,
            name=item.catalog_item.name if item.catalog_item else None,
            vendor_id=item.vendor_id,
            status=item.status,
            price=item.price or 0,
            quantity=item.quantity,
        )


class BookingOut(ApiModel):
    id: str
    customer_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    vendor_id: str | None = None
    vendor_name: str | None = None
    manager_id: str | None = None
    employee_id: str | None = None
    employee_name: str | None = None
    booking_type: str
    status: str
    scheduled_date: date
    scheduled_time: str | None = None
    subtotal: float
    discount: float
    tax: float
    total: float
    address: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    manager_assigned_at: datetime | None = None
    vendor_responded_at: datetime | None = None
    beautician_assigned_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int | None = None
    services: list[LineItemOut] = []
    products: list[LineItemOut] = []

    @classmethod
    def from_booking(cls, booking, items=None) -> "BookingOut":
        items = booking.line_items if items is None else items
        return cls(
            id=booking.id,
            customer_id=booking.customer_id,
            customer_name=booking.customer.full_name if booking.customer else None,
            customer_email=booking.customer.email if booking.customer else None,
            vendor_id=booking.vendor_id,
            vendor_name=booking.vendor.shop_name if booking.vendor else None,
            manager_id=booking.manager_id,
            employee_id=booking.employee_id,
            employee_name=booking.employee.name if booking.employee else None,
            booking_type=booking.booking_type,
            status=booking.status,
            scheduled_date=booking.scheduled_date,
            scheduled_time=booking.scheduled_time,
            subtotal=booking.subtotal or 0,
            discount=booking.discount or 0,
            tax=booking.tax or 0,
            total=booking.total or 0,
            address=booking.address,
            notes=booking.notes,
            cancellation_reason=booking.cancellation_reason,
            manager_assigned_at=booking.manager_assigned_at,
            vendor_responded_at=booking.vendor_responded_at,
            beautician_assigned_at=booking.beautician_assigned_at,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
            version=booking.version,
            services=[LineItemOut.from_item(i) for i in items if i.kind == "service"],
            products=[LineItemOut.from_item(i) for i in items if i.kind == "product"],
        )


class VendorAssignmentOut(BookingOut):
    """An at-home booking as one vendor sees it: only that vendor's items."""

    vendor_status: str

    @classmethod
    def from_assignment(cls, booking, items, vendor_status: str) -> "VendorAssignmentOut":
        base = BookingOut.from_booking(booking, items=items)
        return cls(**base.model_dump(), vendor_status=vendor_status)


class EmployeeOut(ApiModel):
    id: str
    vendor_id: str | None = None
    manager_id: str | None = None
    name: str
    role: str
    email: str | None = None
    phone: str | None = None
    experience: int | None = None
    specialization: str | None = None
    status: str


class BookingEventOut(ApiModel):
    id: str
    booking_id: str
    event_type: str = Field(serialization_alias="type")
    actor_id: str | None = None
    payload: dict
    created_at: datetime = Field(serialization_alias="timestamp")


class VendorStatusOut(ApiModel):
    id: str
    shop_name: str
    status: str
    rejection_reason: str | None = None


def envelope(data=None, message: str | None = None, **extra) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body
