import pytest
from sqlalchemy.exc import OperationalError

from app import matching
from app.matching import FALLBACK, MATCH, NO_INVENTORY, eligible_vendors, match_vendors


def ids(vendors):
    return {v["id"] for v in vendors}


async def test_direct_offering_wins_and_skips_category_tier(db, seed):
    # v1 lists the haircut; v2 only shares a hair-ish category
    result = await eligible_vendors(db, service_ids=[seed.haircut.id])

    assert ids(result["serviceVendors"]) == {seed.v1.id}
    assert result["serviceVendors"][0]["matchType"] == MATCH


async def test_category_tier_when_nobody_lists_the_item(db, seed):
    # nobody offers box braids by id; category "Hair Styling" matches v2's offering
    vendors, match_type = await match_vendors(db, [seed.braids.id], "service")

    assert [v.id for v in vendors] == [seed.v2.id]
    assert match_type == MATCH


async def test_fallback_returns_every_approved_vendor(db, seed):
    # facial is only offered by unapproved vendors, category "Skin" has no approved hits
    result = await eligible_vendors(db, service_ids=[seed.facial.id])

    assert ids(result["serviceVendors"]) == {seed.v1.id, seed.v2.id, seed.v3.id}
    assert {v["matchType"] for v in result["serviceVendors"]} == {FALLBACK}


async def test_unapproved_vendors_never_returned(db, seed):
    for item_ids in ([seed.facial.id], [seed.haircut.id], []):
        vendors, _ = await match_vendors(db, item_ids, "service")
        assert seed.pending.id not in {v.id for v in vendors}
        assert seed.rejected.id not in {v.id for v in vendors}


async def test_products_matched_independently(db, seed):
    result = await eligible_vendors(db, service_ids=[seed.haircut.id], product_ids=[seed.serum.id])

    assert ids(result["serviceVendors"]) == {seed.v1.id}
    assert ids(result["productVendors"]) == {seed.v3.id}


async def test_no_requested_items_falls_back(db, seed):
    vendors, match_type = await match_vendors(db, [], "product")

    assert {v.id for v in vendors} == {seed.v1.id, seed.v2.id, seed.v3.id}
    assert match_type == FALLBACK


async def test_duplicate_ids_do_not_duplicate_vendors(db, seed):
    vendors, _ = await match_vendors(db, [seed.haircut.id, seed.haircut.id], "service")
    assert [v.id for v in vendors] == [seed.v1.id]


async def test_failing_category_lookup_treated_as_empty(db, seed, monkeypatch):
    async def broken(*args, **kwargs):
        raise OperationalError("SELECT category", {}, Exception("connection reset"))

    monkeypatch.setattr(matching, "catalog_categories", broken)

    vendors, match_type = await match_vendors(db, [seed.braids.id], "service")

    assert match_type == FALLBACK
    assert {v.id for v in vendors} == {seed.v1.id, seed.v2.id, seed.v3.id}


async def test_vendor_description_fields(db, seed):
    result = await eligible_vendors(db, service_ids=[seed.haircut.id], product_ids=[seed.serum.id])

    v1 = result["serviceVendors"][0]
    assert v1 == {
        "id": seed.v1.id,
        "shopName": "Alpha Salon",
        "ownerName": "Owner0 Shop",
        "location": "Kinshasa",
        "matchType": MATCH,
        "inventory": "Haircut",
    }
    v3 = result["productVendors"][0]
    assert v3["location"] == "Unknown"
    assert v3["inventory"] == "Argan Serum"


@pytest.mark.parametrize("kind", ["service", "product"])
async def test_matching_non_empty_whenever_an_approved_vendor_exists(db, seed, kind):
    vendors, _ = await match_vendors(db, ["no-such-id"], kind)
    assert vendors


async def test_inventory_placeholder(db, seed):
    result = await eligible_vendors(db, product_ids=[seed.serum.id])
    fallback_services = {v["id"]: v for v in result["serviceVendors"]}
    assert fallback_services[seed.v3.id]["inventory"] == NO_INVENTORY


async def test_category_wildcards_are_literal(db, seed, monkeypatch):
    async def wildcard(*args, **kwargs):
        return {"%"}

    monkeypatch.setattr(matching, "catalog_categories", wildcard)

    _, match_type = await match_vendors(db, [seed.braids.id], "service")

    # no offering category contains a literal percent sign
    assert match_type == FALLBACK
