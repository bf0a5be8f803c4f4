import json

from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

AT_HOME = "AT_HOME"
IN_SALON = "IN_SALON"


def infer_booking_type(notes: str | None) -> str:
    """
    Legacy rows flagged at-home bookings inside notes, either as JSON
    ({"flow": "AT_HOME", ...}) or as a free-text AT_HOME marker.
    """
    if not notes:
        return IN_SALON
    try:
        meta = json.loads(notes)
    except ValueError:
        meta = None
    if isinstance(meta, dict):
        flow = str(meta.get("flow") or meta.get("bookingType") or "").upper()
        if flow == AT_HOME:
            return AT_HOME
    return AT_HOME if AT_HOME in notes.upper() else IN_SALON


def upgrade():
    # Add column (nullable first for existing rows)
    op.add_column("bookings", sa.Column("booking_type", sa.String(), nullable=True))

    # Backfill from legacy notes metadata
    bind = op.get_bind()
    bookings = sa.table(
        "bookings",
        sa.column("id", sa.String),
        sa.column("notes", sa.Text),
        sa.column("booking_type", sa.String),
    )
    rows = bind.execute(sa.select(bookings.c.id, bookings.c.notes)).all()
    at_home_ids = [row.id for row in rows if infer_booking_type(row.notes) == AT_HOME]
    if at_home_ids:
        bind.execute(bookings.update().where(bookings.c.id.in_(at_home_ids)).values(booking_type=AT_HOME))
    op.execute(f"UPDATE bookings SET booking_type = '{IN_SALON}' WHERE booking_type IS NULL")

    # Enforce NOT NULL
    with op.batch_alter_table("bookings") as batch:
        batch.alter_column("booking_type", existing_type=sa.String(), nullable=False)
    op.create_index("ix_bookings_booking_type", "bookings", ["booking_type"])


def downgrade():
    op.drop_index("ix_bookings_booking_type", table_name="bookings")
    with op.batch_alter_table("bookings") as batch:
        batch.drop_column("booking_type")
