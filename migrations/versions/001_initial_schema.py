"""Initial schema: users and rides.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


VEHICLE_TYPES = (
    "UBER_GO",
    "UBER_X",
    "UBER_COMFORT",
    "UBER_BLACK",
    "UBER_BLACK_SUV",
    "UBER_XL",
    "UBER_SUV",
    "UBER_MOTO",
    "UBER_AUTO",
    "UBER_GREEN",
    "UBER_LUX",
    "UBER_LUX_SUV",
    "UBER_WAV",
    "UBER_POOL",
)


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(20), unique=True, nullable=True),
        sa.Column(
            "role",
            sa.Enum("CUSTOMER", "DRIVER", "ADMIN", name="role"),
            nullable=False,
        ),
        sa.Column(
            "driver_status",
            sa.Enum("AVAILABLE", "BUSY", "OFFLINE", name="driverstatus"),
            nullable=True,
        ),
        sa.Column(
            "vehicle_type",
            sa.Enum(*VEHICLE_TYPES, name="vehicletype"),
            nullable=True,
        ),
        sa.Column("license_plate", sa.String(20), nullable=True),
        sa.Column("active", sa.Boolean, default=True, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_users_role", "users", ["role"])
    op.create_index("idx_users_driver_status", "users", ["driver_status"])

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "customer_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("pickup_address", sa.String(255), nullable=True),
        sa.Column("dropoff_lat", sa.Float, nullable=False),
        sa.Column("dropoff_lng", sa.Float, nullable=False),
        sa.Column("dropoff_address", sa.String(255), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "REQUESTED",
                "ACCEPTED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
                name="ridestatus",
            ),
            default="REQUESTED",
            nullable=False,
        ),
        sa.Column("fare", sa.Float, nullable=True),
        sa.Column("distance", sa.Float, nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column(
            "cancelled_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_customer", "rides", ["customer_id"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])
    op.create_index("idx_rides_requested_at", "rides", ["requested_at"])


def downgrade() -> None:
    op.drop_table("rides")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS ridestatus")
    op.execute("DROP TYPE IF EXISTS vehicletype")
    op.execute("DROP TYPE IF EXISTS driverstatus")
    op.execute("DROP TYPE IF EXISTS role")
