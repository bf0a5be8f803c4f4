import os

os.environ["JWT_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
for var in ("REDIS_URL", "RABBIT_URL", "NOTIFICATION_SERVICE_URL", "CREDENTIALS_FILE"):
    os.environ.pop(var, None)

from datetime import date  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from app import bookings  # noqa: E402
from app.credentials import CredentialStore  # noqa: E402
from app.db import Base, get_db  # noqa: E402
from app.event_log import EventLog  # noqa: E402
from app.events import routing_key_for, to_json  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    AdminProduct,
    AdminService,
    Employee,
    User,
    Vendor,
    VendorProduct,
    VendorService,
)
from app.notifications import Notifier  # noqa: E402
from app.security import create_access_token  # noqa: E402
from app.workflow import AssignmentWorkflow  # noqa: E402

MANAGER_ID = "manager-1"


class RecordingPublisher:
    """Collects published domain events instead of talking to RabbitMQ."""

    def __init__(self):
        self.published = []

    async def publish_event(self, event: dict) -> bool:
        self.published.append((routing_key_for(event["event_type"]), to_json(event)))
        return True

    async def close(self):
        pass


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def event_log(session_factory, publisher):
    return EventLog(session_factory, publisher)


@pytest.fixture
def workflow(db, event_log):
    return AssignmentWorkflow(db, event_log, Notifier(base_url=None))


@pytest.fixture
async def seed(db):
    customer = User(email="amina@example.com", first_name="Amina", last_name="K", role="CUSTOMER")
    owners = [
        User(email=f"owner{i}@example.com", first_name=f"Owner{i}", last_name="Shop", role="VENDOR")
        for i in range(5)
    ]
    db.add_all([customer, *owners])
    await db.flush()

    haircut = AdminService(name="Haircut", category="Hair", price=30)
    braids = AdminService(name="Box Braids", category="Hair Styling", price=80)
    facial = AdminService(name="Facial", category="Skin", price=45)
    serum = AdminProduct(name="Argan Serum", category="Hair Care", price=20)
    db.add_all([haircut, braids, facial, serum])
    await db.flush()

    v1 = Vendor(user_id=owners[0].id, shop_name="Alpha Salon", city="Kinshasa", status="APPROVED")
    v2 = Vendor(user_id=owners[1].id, shop_name="Beta Beauty", address="12 Avenue", status="APPROVED")
    v3 = Vendor(user_id=owners[2].id, shop_name="Gamma Hair", status="APPROVED")
    pending = Vendor(user_id=owners[3].id, shop_name="Pending Parlour", status="PENDING_APPROVAL")
    rejected = Vendor(
        user_id=owners[4].id, shop_name="Rejected Rooms", status="REJECTED", rejection_reason="docs"
    )
    db.add_all([v1, v2, v3, pending, rejected])
    await db.flush()

    db.add_all(
        [
            # v1 lists haircut directly
            VendorService(vendor_id=v1.id, admin_service_id=haircut.id, name="Haircut", category="Hair"),
            # v2 shares only the hair category, loosely
            VendorService(vendor_id=v2.id, name="Wash & Style", category="Hair Styling"),
            VendorProduct(vendor_id=v3.id, admin_product_id=serum.id, name="Argan Serum", category="Hair Care"),
            # unapproved vendors list everything but must never surface
            VendorService(vendor_id=pending.id, admin_service_id=facial.id, name="Facial", category="Skin"),
            VendorService(vendor_id=rejected.id, admin_service_id=facial.id, name="Facial", category="Skin"),
        ]
    )

    staff = Employee(vendor_id=v1.id, name="Grace", email="grace@example.com", status="ACTIVE")
    inactive = Employee(vendor_id=v1.id, name="Idle", status="INACTIVE")
    other_staff = Employee(vendor_id=v2.id, name="Nadia", status="ACTIVE")
    db.add_all([staff, inactive, other_staff])
    await db.commit()

    return SimpleNamespace(
        customer=customer,
        owners=owners,
        haircut=haircut,
        braids=braids,
        facial=facial,
        serum=serum,
        v1=v1,
        v2=v2,
        v3=v3,
        pending=pending,
        rejected=rejected,
        staff=staff,
        inactive=inactive,
        other_staff=other_staff,
    )


@pytest.fixture
def make_booking(db, seed):
    async def _make(
        status="AWAITING_MANAGER",
        booking_type="IN_SALON",
        vendor=None,
        services=None,
        products=None,
        scheduled_date=date(2026, 11, 20),
        item_status=None,
    ):
        booking = bookings.new_booking(
            customer_id=seed.customer.id,
            booking_type=booking_type,
            scheduled_date=scheduled_date,
            scheduled_time="10:00",
            services=[{"id": s.id, "price": s.price} for s in (services or [])],
            products=[{"id": p.id, "price": p.price} for p in (products or [])],
        )
        booking.status = status
        if vendor is not None:
            booking.vendor_id = vendor.id
        if item_status:
            for item in booking.line_items:
                item.status = item_status
                item.vendor_id = vendor.id if vendor is not None else None
        db.add(booking)
        await db.commit()
        return await bookings.reload_booking(db, booking.id)

    return _make


@pytest.fixture
def credentials():
    store = CredentialStore()
    store.add("manager@example.com", "s3cret", ["MANAGER"], id=MANAGER_ID, name="Maya Manager")
    return store


@pytest.fixture
async def client(session_factory, event_log, credentials):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.event_log = event_log
    app.state.notifier = Notifier(base_url=None)
    app.state.credentials = credentials

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def bearer(sub: str, roles: list[str], email: str = "someone@example.com") -> dict:
    return {"Authorization": f"Bearer {create_access_token(sub, email, roles)}"}


@pytest.fixture
def manager_headers():
    return bearer(MANAGER_ID, ["MANAGER"], "manager@example.com")


@pytest.fixture
def vendor_headers(seed):
    def _headers(vendor):
        return bearer(vendor.user_id, ["VENDOR"])

    return _headers
