"""create freight payment, pricing and audit tables"""
from alembic import op
import sqlalchemy as sa

revision = "20251211_create_freight_payment_tables"
down_revision = None
branch_labels = None
depends_on = None

PAYMENT_STATUS = sa.Enum("PENDING", "HELD", "RELEASED", "REFUNDED", "FAILED", name="payment_status")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "loads",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=512), nullable=False),
        sa.Column("cargo_type", sa.String(length=60), nullable=False),
        sa.Column("weight_kg", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=60), nullable=False),
        sa.Column("pickup_location", sa.String(length=256), nullable=False),
        sa.Column("dropoff_location", sa.String(length=256), nullable=False),
        sa.Column("pickup_latitude", sa.Numeric(9, 6), nullable=False),
        sa.Column("pickup_longitude", sa.Numeric(9, 6), nullable=False),
        sa.Column("dropoff_latitude", sa.Numeric(9, 6), nullable=False),
        sa.Column("dropoff_longitude", sa.Numeric(9, 6), nullable=False),
        sa.Column("customer_id", sa.String(length=36), nullable=False),
        sa.Column("assigned_driver_id", sa.String(length=36), nullable=True),
        sa.Column("distance_km", sa.Float(), nullable=True),
        sa.Column("calculated_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("driver_earnings", sa.Numeric(10, 2), nullable=True),
        sa.Column("final_price", sa.Numeric(10, 2), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_loads_customer_id", "loads", ["customer_id"])
    op.create_index("ix_loads_assigned_driver_id", "loads", ["assigned_driver_id"])

    op.create_table(
        "rate_tiers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("load_category", sa.String(length=100), nullable=False),
        sa.Column("base_fare", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_per_km", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_per_kg", sa.Numeric(10, 2), nullable=False),
        sa.Column("min_weight_kg", sa.Integer(), nullable=False),
        sa.Column("max_weight_kg", sa.Integer(), nullable=True),
        sa.Column("surge_multiplier", sa.Numeric(3, 2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("min_weight_kg >= 0", name="ck_rate_tier_min_weight_non_negative"),
        sa.CheckConstraint(
            "max_weight_kg IS NULL OR max_weight_kg > min_weight_kg",
            name="ck_rate_tier_weight_band",
        ),
    )
    op.create_index("ix_rate_tiers_category_min_weight", "rate_tiers", ["load_category", "min_weight_kg"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("load_id", sa.String(length=36), sa.ForeignKey("loads.id"), nullable=False),
        sa.Column("customer_id", sa.String(length=36), nullable=False),
        sa.Column("driver_id", sa.String(length=36), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("platform_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("driver_payout", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", PAYMENT_STATUS, nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=False),
        sa.Column("transaction_id", sa.String(length=200), nullable=True),
        sa.Column("last4", sa.String(length=4), nullable=True),
        sa.Column("card_brand", sa.String(length=50), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("driver_payout_transaction_id", sa.String(length=200), nullable=True),
        sa.Column("refund_transaction_id", sa.String(length=200), nullable=True),
        sa.Column("refund_reason", sa.String(length=500), nullable=True),
        sa.Column("failure_reason", sa.String(length=500), nullable=True),
        sa.Column("lock_owner", sa.String(length=64), nullable=True),
        sa.Column("lock_expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_payment_non_negative_amount"),
        sa.CheckConstraint("ABS(platform_fee + driver_payout - amount) < 0.005", name="ck_payment_fee_split"),
    )
    op.create_index("ix_payments_load_id", "payments", ["load_id"])
    op.create_index("ix_payments_status", "payments", ["status"])
    op.create_index("ix_payments_customer_created", "payments", ["customer_id", "created_at"])
    op.create_index("ix_payments_driver_status", "payments", ["driver_id", "status"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor", sa.String(length=100), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("data_json", sa.JSON(), nullable=False),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("ix_payments_driver_status", table_name="payments")
    op.drop_index("ix_payments_customer_created", table_name="payments")
    op.drop_index("ix_payments_status", table_name="payments")
    op.drop_index("ix_payments_load_id", table_name="payments")
    op.drop_table("payments")
    PAYMENT_STATUS.drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_rate_tiers_category_min_weight", table_name="rate_tiers")
    op.drop_table("rate_tiers")
    op.drop_index("ix_loads_assigned_driver_id", table_name="loads")
    op.drop_index("ix_loads_customer_id", table_name="loads")
    op.drop_table("loads")
    op.drop_table("users")
