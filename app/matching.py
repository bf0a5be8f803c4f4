"""
Tiered vendor matching for at-home bookings.

Per item kind (services, products):
  level 0: APPROVED vendors whose offerings reference a requested catalog id   -> "match"
  level 1: APPROVED vendors whose offering category contains a requested
           item's category (case-insensitive), only when level 0 is empty       -> "match"
  level 2: every APPROVED vendor, only when both above are empty               -> "fallback"

The first non-empty level wins; levels are never merged.
"""

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .directory import OFFERINGS, catalog_categories, list_approved_vendors
from .models import Booking, Vendor

logger = logging.getLogger(__name__)

MATCH = "match"
FALLBACK = "fallback"

NO_INVENTORY = "No specific items listed"


def norm(s: str) -> str:
    return (s or "").strip().lower()


def _dedupe(ids) -> list[str]:
    return list(dict.fromkeys(i for i in ids if i))


async def _direct_candidates(db: AsyncSession, item_ids: list[str], kind: str) -> list[str]:
    offering, ref_col = OFFERINGS[kind]
    res = await db.execute(select(offering.vendor_id).where(ref_col.in_(item_ids)))
    return _dedupe(res.scalars().all())


async def _category_candidates(db: AsyncSession, item_ids: list[str], kind: str) -> list[str]:
    try:
        categories = await catalog_categories(db, item_ids, kind)
    except SQLAlchemyError as e:
        # matching is read-only; drop the failed transaction and carry on without categories
        logger.warning(f"Category lookup failed for {kind}s, skipping category match: {e}")
        await db.rollback()
        return []

    if not categories:
        return []

    offering, _ = OFFERINGS[kind]
    res = await db.execute(
        select(offering.vendor_id).where(
            or_(*[offering.category.icontains(c, autoescape=True) for c in sorted(categories)])
        )
    )
    return _dedupe(res.scalars().all())


async def match_vendors(db: AsyncSession, item_ids, kind: str) -> tuple[list[Vendor], str]:
    """Vendors for one item kind and the match type that selected them."""
    item_ids = _dedupe(item_ids or [])

    if item_ids:
        direct = await _direct_candidates(db, item_ids, kind)
        vendors = await list_approved_vendors(db, direct)
        if vendors:
            return vendors, MATCH

        by_category = await _category_candidates(db, item_ids, kind)
        vendors = await list_approved_vendors(db, by_category)
        if vendors:
            return vendors, MATCH

    return await list_approved_vendors(db), FALLBACK


def inventory_summary(vendor: Vendor, kind: str) -> str:
    offerings = vendor.services if kind == "service" else vendor.products
    names = list(dict.fromkeys(o.name.strip() for o in offerings if o.name and o.name.strip()))
    return ", ".join(names) if names else NO_INVENTORY


def describe_vendor(vendor: Vendor, match_type: str, kind: str) -> dict:
    return {
        "id": vendor.id,
        "shopName": vendor.shop_name,
        "ownerName": vendor.owner_name,
        "location": vendor.location,
        "matchType": match_type,
        "inventory": inventory_summary(vendor, kind),
    }


async def eligible_vendors(db: AsyncSession, service_ids=None, product_ids=None) -> dict:
    service_vendors, service_match = await match_vendors(db, service_ids, "service")
    product_vendors, product_match = await match_vendors(db, product_ids, "product")

    logger.info(
        f"Matched {len(service_vendors)} service vendors ({service_match}) "
        f"and {len(product_vendors)} product vendors ({product_match})"
    )
    return {
        "serviceVendors": [describe_vendor(v, service_match, "service") for v in service_vendors],
        "productVendors": [describe_vendor(v, product_match, "product") for v in product_vendors],
    }


async def eligible_vendors_for_booking(db: AsyncSession, booking: Booking) -> dict:
    return await eligible_vendors(
        db,
        service_ids=[s.admin_service_id for s in booking.services],
        product_ids=[p.admin_product_id for p in booking.products],
    )
