from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column("id", sa.String(36), primary_key=True)


def _money(name, nullable=False):
    return sa.Column(name, sa.Numeric(10, 2), nullable=nullable)


def upgrade():
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "admin_services",
        _id(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        _money("price"),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_admin_services_category", "admin_services", ["category"])

    op.create_table(
        "admin_products",
        _id(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        _money("price"),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_admin_products_category", "admin_products", ["category"])

    op.create_table(
        "vendors",
        _id(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("shop_name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("rejection_reason", sa.String(), nullable=True),
        sa.Column("operating_hours", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_vendors_user_id", "vendors", ["user_id"])
    op.create_index("ix_vendors_status", "vendors", ["status"])

    op.create_table(
        "vendor_services",
        _id(),
        sa.Column("vendor_id", sa.String(36), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("admin_service_id", sa.String(36), sa.ForeignKey("admin_services.id"), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        _money("price", nullable=True),
    )
    op.create_index("ix_vendor_services_vendor_id", "vendor_services", ["vendor_id"])
    op.create_index("ix_vendor_services_admin_service_id", "vendor_services", ["admin_service_id"])

    op.create_table(
        "vendor_products",
        _id(),
        sa.Column("vendor_id", sa.String(36), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("admin_product_id", sa.String(36), sa.ForeignKey("admin_products.id"), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        _money("price", nullable=True),
    )
    op.create_index("ix_vendor_products_vendor_id", "vendor_products", ["vendor_id"])
    op.create_index("ix_vendor_products_admin_product_id", "vendor_products", ["admin_product_id"])

    op.create_table(
        "employees",
        _id(),
        sa.Column("vendor_id", sa.String(36), sa.ForeignKey("vendors.id"), nullable=True),
        sa.Column("manager_id", sa.String(36), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("experience", sa.Integer(), nullable=True),
        sa.Column("specialization", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_employees_vendor_id", "employees", ["vendor_id"])
    op.create_index("ix_employees_status", "employees", ["status"])

    op.create_table(
        "bookings",
        _id(),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("vendor_id", sa.String(36), sa.ForeignKey("vendors.id"), nullable=True),
        sa.Column("manager_id", sa.String(36), nullable=True),
        sa.Column("employee_id", sa.String(36), sa.ForeignKey("employees.id"), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("scheduled_time", sa.String(), nullable=True),
        _money("subtotal"),
        _money("discount"),
        _money("tax"),
        _money("total"),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.String(), nullable=True),
        sa.Column("manager_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vendor_responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("beautician_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"])
    op.create_index("ix_bookings_vendor_id", "bookings", ["vendor_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_scheduled_date", "bookings", ["scheduled_date"])

    for table, catalog_col, catalog_table in (
        ("booking_services", "admin_service_id", "admin_services"),
        ("booking_products", "admin_product_id", "admin_products"),
    ):
        op.create_table(
            table,
            _id(),
            sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=False),
            sa.Column(catalog_col, sa.String(36), sa.ForeignKey(f"{catalog_table}.id"), nullable=False),
            sa.Column("vendor_id", sa.String(36), sa.ForeignKey("vendors.id"), nullable=True),
            sa.Column("status", sa.String(), nullable=False),
            _money("price"),
            sa.Column("quantity", sa.Integer(), nullable=False),
        )
        op.create_index(f"ix_{table}_booking_id", table, ["booking_id"])
        op.create_index(f"ix_{table}_vendor_id", table, ["vendor_id"])

    op.create_table(
        "booking_events",
        _id(),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_booking_events_booking_id", "booking_events", ["booking_id"])
    op.create_index("ix_booking_events_event_type", "booking_events", ["event_type"])
    op.create_index("ix_booking_events_created_at", "booking_events", ["created_at"])


def downgrade():
    op.drop_table("booking_events")
    op.drop_table("booking_products")
    op.drop_table("booking_services")
    op.drop_table("bookings")
    op.drop_table("employees")
    op.drop_table("vendor_products")
    op.drop_table("vendor_services")
    op.drop_table("vendors")
    op.drop_table("admin_products")
    op.drop_table("admin_services")
    op.drop_table("users")
