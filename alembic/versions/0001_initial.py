"""initial repair marketplace schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

UUID = sa.Uuid(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "user_profiles",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="customer"),
        sa.Column("display_name", sa.String(length=255)),
        sa.Column("email", sa.String(length=255)),
        sa.Column("phone", sa.String(length=64)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            # ORM-managed updated_at (no database trigger).
            nullable=False,
        ),
    )
    op.create_index("ix_user_profiles_role", "user_profiles", ["role"])

    op.create_table(
        "devices",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("type", sa.String(length=100), nullable=False),
        sa.Column("brand", sa.String(length=100)),
        sa.Column("model", sa.String(length=100)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_devices_user_id", "devices", ["user_id"])

    op.create_table(
        "repair_requests",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column(
            "device_id",
            UUID,
            sa.ForeignKey("devices.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("urgency", sa.String(length=16), nullable=False, server_default="normal"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("assigned_technician_id", UUID),
        sa.Column("admin_notes", sa.Text()),
        sa.Column("technician_notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            # ORM-managed updated_at (no database trigger).
            nullable=False,
        ),
    )
    op.create_index("ix_repair_requests_assigned_technician_id", "repair_requests", ["assigned_technician_id"])
    op.create_index("ix_repair_requests_user_created", "repair_requests", ["user_id", "created_at"])
    op.create_index("ix_repair_requests_status_created", "repair_requests", ["status", "created_at"])

    op.create_table(
        "quotes",
        sa.Column("id", UUID, primary_key=True),
        sa.Column(
            "repair_request_id",
            UUID,
            sa.ForeignKey("repair_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("technician_id", UUID, nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="sent"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_quotes_amount_positive"),
    )
    op.create_index("ix_quotes_repair_request_id", "quotes", ["repair_request_id"])
    op.create_index("ix_quotes_technician_id", "quotes", ["technician_id"])
    op.create_index("ix_quotes_technician_status", "quotes", ["technician_id", "status"])

    op.create_table(
        "quote_items",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("quote_id", UUID, sa.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_quote_items_amount_positive"),
    )
    op.create_index("ix_quote_items_quote_id", "quote_items", ["quote_id"])

    op.create_table(
        "payments",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column(
            "quote_id",
            UUID,
            sa.ForeignKey("quotes.id", ondelete="RESTRICT"),
            nullable=False,
            unique=True,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False, server_default="simulated"),
        sa.Column("provider_ref", sa.String(length=255)),
        sa.Column("method", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="succeeded"),
        sa.Column("captured_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_payments_user_id", "payments", ["user_id"])

    op.create_table(
        "saved_cards",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("card_last4", sa.String(length=4), nullable=False),
        sa.Column("card_brand", sa.String(length=32), nullable=False),
        sa.Column("card_holder_name", sa.String(length=255), nullable=False),
        sa.Column("expiry_month", sa.String(length=2), nullable=False),
        sa.Column("expiry_year", sa.String(length=2), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_saved_cards_user_id", "saved_cards", ["user_id"])
    op.create_index(
        "uq_saved_cards_one_default_per_user",
        "saved_cards",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("is_default"),
        sqlite_where=sa.text("is_default = 1"),
    )

    op.create_table(
        "success_stories",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("quote_id", UUID, sa.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("story", sa.Text(), nullable=False),
        sa.Column("image_url", sa.String(length=1000)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_success_stories_rating_range"),
    )
    op.create_index("ix_success_stories_user_id", "success_stories", ["user_id"])
    op.create_index("ix_success_stories_rating_created", "success_stories", ["rating", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_success_stories_rating_created", table_name="success_stories")
    op.drop_index("ix_success_stories_user_id", table_name="success_stories")
    op.drop_table("success_stories")
    op.drop_index("uq_saved_cards_one_default_per_user", table_name="saved_cards")
    op.drop_index("ix_saved_cards_user_id", table_name="saved_cards")
    op.drop_table("saved_cards")
    op.drop_index("ix_payments_user_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_quote_items_quote_id", table_name="quote_items")
    op.drop_table("quote_items")
    op.drop_index("ix_quotes_technician_status", table_name="quotes")
    op.drop_index("ix_quotes_technician_id", table_name="quotes")
    op.drop_index("ix_quotes_repair_request_id", table_name="quotes")
    op.drop_table("quotes")
    op.drop_index("ix_repair_requests_status_created", table_name="repair_requests")
    op.drop_index("ix_repair_requests_user_created", table_name="repair_requests")
    op.drop_index("ix_repair_requests_assigned_technician_id", table_name="repair_requests")
    op.drop_table("repair_requests")
    op.drop_index("ix_devices_user_id", table_name="devices")
    op.drop_table("devices")
    op.drop_index("ix_user_profiles_role", table_name="user_profiles")
    op.drop_table("user_profiles")
