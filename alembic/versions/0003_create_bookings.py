from alembic import op
import sqlalchemy as sa

revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_id", sa.String(), nullable=False),
        sa.Column("user_email", sa.String(), sa.ForeignKey("users.email"), nullable=False),
        sa.Column("car_id", sa.Integer(), sa.ForeignKey("cars.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("phone_number", sa.String(), nullable=True),
        sa.Column("drivers_license_number", sa.String(), nullable=True),
        sa.Column("pickup_location", sa.String(), nullable=True),
        sa.Column("dropoff_location", sa.String(), nullable=True),
        sa.Column("emergency_contact_name", sa.String(), nullable=True),
        sa.Column("emergency_contact_phone", sa.String(), nullable=True),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("start_date < end_date", name="ck_bookings_date_order"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
    )
    op.create_index("ix_bookings_booking_id", "bookings", ["booking_id"], unique=True)
    op.create_index("ix_bookings_user_email", "bookings", ["user_email"], unique=False)
    op.create_index("ix_bookings_car_id", "bookings", ["car_id"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)

    if op.get_bind().dialect.name == "postgresql":
        # two active bookings on one car may not share a day (range is inclusive)
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_active_no_overlap "
            "EXCLUDE USING gist (car_id WITH =, daterange(start_date, end_date, '[]') WITH &&) "
            "WHERE (status IN ('pending', 'confirmed'))"
        )

def downgrade():
    if op.get_bind().dialect.name == "postgresql":
        op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_active_no_overlap")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_car_id", table_name="bookings")
    op.drop_index("ix_bookings_user_email", table_name="bookings")
    op.drop_index("ix_bookings_booking_id", table_name="bookings")
    op.drop_table("bookings")
