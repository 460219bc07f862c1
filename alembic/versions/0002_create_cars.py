from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "cars",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("make", sa.String(), nullable=False),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("class", sa.String(), nullable=False),
        sa.Column("fuel_type", sa.String(), nullable=False),
        sa.Column("drive", sa.String(), nullable=False),
        sa.Column("transmission", sa.String(), nullable=False),
        sa.Column("cylinders", sa.Integer(), nullable=False),
        sa.Column("displacement", sa.Float(), nullable=False),
        sa.Column("city_mpg", sa.Integer(), nullable=False),
        sa.Column("highway_mpg", sa.Integer(), nullable=False),
        sa.Column("combination_mpg", sa.Integer(), nullable=False),
        sa.Column("price_per_day", sa.Numeric(10, 2), nullable=False),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("price_per_day > 0", name="ck_cars_price_positive"),
        sa.CheckConstraint(
            "city_mpg > 0 AND highway_mpg > 0 AND combination_mpg > 0",
            name="ck_cars_mpg_positive",
        ),
        sa.CheckConstraint("displacement > 0", name="ck_cars_displacement_positive"),
    )
    op.create_index("ix_cars_make", "cars", ["make"], unique=False)
    op.create_index("ix_cars_model", "cars", ["model"], unique=False)
    op.create_index("ix_cars_price_per_day", "cars", ["price_per_day"], unique=False)

def downgrade():
    op.drop_index("ix_cars_price_per_day", table_name="cars")
    op.drop_index("ix_cars_model", table_name="cars")
    op.drop_index("ix_cars_make", table_name="cars")
    op.drop_table("cars")
