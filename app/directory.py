"""
Read-only lookups over customers, vendors, employees and the admin catalog.

Single-entity lookups raise NotFound; list lookups return [] for no results.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import InvalidInput, NotFound
from .lifecycle import EmployeeStatus, VendorStatus
from .models import (
    AdminProduct,
    AdminService,
    Employee,
    User,
    Vendor,
    VendorProduct,
    VendorService,
)

CATALOG_KINDS = {
    "service": AdminService,
    "product": AdminProduct,
}

# Offering table and its catalog reference column, per item kind
OFFERINGS = {
    "service": (VendorService, VendorService.admin_service_id),
    "product": (VendorProduct, VendorProduct.admin_product_id),
}


def catalog_model(kind: str):
    model = CATALOG_KINDS.get(kind)
    if model is None:
        raise InvalidInput(f"Unknown catalog kind: {kind}")
    return model


async def find_user(db: AsyncSession, user_id: str) -> User:
    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if not user:
        raise NotFound("User not found")
    return user


async def find_vendor(db: AsyncSession, vendor_id: str) -> Vendor:
    res = await db.execute(select(Vendor).where(Vendor.id == vendor_id))
    vendor = res.scalar_one_or_none()
    if not vendor:
        raise NotFound("Vendor not found")
    return vendor


async def find_approved_vendor(db: AsyncSession, vendor_id: str) -> Vendor:
    """Unapproved vendors are invisible to assignment: same NotFound as a missing id."""
    res = await db.execute(
        select(Vendor).where(Vendor.id == vendor_id, Vendor.status == VendorStatus.APPROVED.value)
    )
    vendor = res.scalar_one_or_none()
    if not vendor:
        raise NotFound("Vendor not found or not approved")
    return vendor


async def find_vendor_by_user(db: AsyncSession, user_id: str) -> Vendor:
    res = await db.execute(select(Vendor).where(Vendor.user_id == user_id))
    vendor = res.scalar_one_or_none()
    if not vendor:
        raise NotFound("Vendor profile not found")
    return vendor


async def list_approved_vendors(db: AsyncSession, vendor_ids=None) -> list[Vendor]:
    """
    All APPROVED vendors, optionally restricted to vendor_ids.
    An explicit empty restriction yields [] without touching the database.
    """
    stmt = select(Vendor).where(Vendor.status == VendorStatus.APPROVED.value)
    if vendor_ids is not None:
        vendor_ids = list(vendor_ids)
        if not vendor_ids:
            return []
        stmt = stmt.where(Vendor.id.in_(vendor_ids))
    res = await db.execute(stmt.order_by(Vendor.shop_name, Vendor.id))
    return list(res.scalars().all())


async def find_catalog_item(db: AsyncSession, item_id: str, kind: str):
    model = catalog_model(kind)
    res = await db.execute(select(model).where(model.id == item_id))
    item = res.scalar_one_or_none()
    if not item:
        raise NotFound(f"Catalog {kind} not found")
    return item


async def catalog_categories(db: AsyncSession, item_ids, kind: str) -> set[str]:
    """Distinct non-empty categories (lowercased) of the given catalog items."""
    item_ids = list(item_ids)
    if not item_ids:
        return set()
    model = catalog_model(kind)
    res = await db.execute(select(model.category).where(model.id.in_(item_ids)))
    return {c.strip().lower() for c in res.scalars().all() if c and c.strip()}


async def find_employee(db: AsyncSession, employee_id: str) -> Employee:
    res = await db.execute(select(Employee).where(Employee.id == employee_id))
    employee = res.scalar_one_or_none()
    if not employee:
        raise NotFound("Employee not found")
    return employee


async def list_employees(
    db: AsyncSession,
    status: str | None = EmployeeStatus.ACTIVE.value,
    vendor_id: str | None = None,
) -> list[Employee]:
    stmt = select(Employee)
    if status:
        stmt = stmt.where(Employee.status == status)
    if vendor_id:
        stmt = stmt.where(Employee.vendor_id == vendor_id)
    res = await db.execute(stmt.order_by(Employee.name))
    return list(res.scalars().all())
