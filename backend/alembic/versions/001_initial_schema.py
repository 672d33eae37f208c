"""Initial schema — tenants, catalog, orders, tickets, waitlist, payment ledger.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("legal_name", sa.String(200), nullable=False),
        sa.Column("organization_number", sa.String(20), nullable=True),
        sa.Column("street", sa.Text, nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("country", sa.String(2), nullable=True),
        sa.Column("contact_email", sa.String(254), nullable=True),
        sa.Column("vat_registered", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("vat_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="NOK"),
        sa.Column("order_prefix", sa.String(10), nullable=False, server_default="ORD"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "order_number_counters",
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.id"), primary_key=True),
        sa.Column("last_value", sa.Integer, nullable=False, server_default="0"),
    )

    op.create_table(
        "persons",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("preferred_language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "items",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("series_title", sa.String(200), nullable=True),
        sa.Column("unit_price_cents", sa.Integer, nullable=False),
        sa.Column("capacity", sa.Integer, nullable=False),
        sa.Column("released_seats", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("released_seats >= 0", name="ck_items_released_seats"),
        sa.CheckConstraint("unit_price_cents >= 0", name="ck_items_unit_price"),
    )

    op.create_table(
        "orders",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("purchaser_id", UUID(as_uuid=True), sa.ForeignKey("persons.id"), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("subtotal_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("discount_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("requested_discount_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("tax_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("vat_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="NOK"),
        sa.Column("order_number", sa.String(40), nullable=True),
        sa.Column("payment_session_ref", sa.String(255), nullable=True),
        sa.Column("charge_ref", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "total_cents = subtotal_cents - discount_cents + tax_cents",
            name="ck_orders_total",
        ),
        sa.UniqueConstraint("tenant_id", "order_number", name="uq_orders_tenant_number"),
    )
    op.create_index("ix_orders_charge_ref", "orders", ["charge_ref"])

    op.create_table(
        "registrations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("order_id", UUID(as_uuid=True), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("holder_id", UUID(as_uuid=True), sa.ForeignKey("persons.id"), nullable=False),
        sa.Column("item_id", UUID(as_uuid=True), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("unit_price_cents", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.CheckConstraint("quantity >= 1", name="ck_registrations_quantity"),
    )
    op.create_index("ix_registrations_order_id", "registrations", ["order_id"])
    op.create_index("ix_registrations_item_id", "registrations", ["item_id"])

    for table in ("tickets", "event_tickets"):
        op.create_table(
            table,
            sa.Column("id", UUID(as_uuid=True), primary_key=True),
            sa.Column("order_id", UUID(as_uuid=True), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
            sa.Column("registration_id", UUID(as_uuid=True), sa.ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False),
            sa.Column("holder_id", UUID(as_uuid=True), sa.ForeignKey("persons.id"), nullable=False),
            sa.Column("item_id", UUID(as_uuid=True), sa.ForeignKey("items.id"), nullable=False),
            sa.Column("qr_token", sa.String(64), nullable=False, unique=True),
            sa.Column("status", sa.String(10), nullable=False, server_default="ACTIVE"),
            sa.Column("sequence", sa.Integer, nullable=False),
            sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index(f"ix_{table}_registration_id", table, ["registration_id"])

    op.create_index(
        "uq_tickets_active_holder_item", "tickets", ["holder_id", "item_id"],
        unique=True, postgresql_where=sa.text("status = 'ACTIVE'"),
    )
    op.create_unique_constraint(
        "uq_event_tickets_registration_seq", "event_tickets", ["registration_id", "sequence"],
    )
    op.create_unique_constraint(
        "uq_event_tickets_order_seq", "event_tickets", ["order_id", "sequence"],
    )

    op.create_table(
        "waitlist_entries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("item_id", UUID(as_uuid=True), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("holder_id", UUID(as_uuid=True), sa.ForeignKey("persons.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="QUEUED"),
        sa.Column("enqueued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("offered_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_order_id", UUID(as_uuid=True), sa.ForeignKey("orders.id"), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "uq_waitlist_one_offer_per_item", "waitlist_entries", ["item_id"],
        unique=True, postgresql_where=sa.text("status = 'OFFERED'"),
    )
    op.create_index(
        "uq_waitlist_active_holder_item", "waitlist_entries", ["holder_id", "item_id"],
        unique=True, postgresql_where=sa.text("status IN ('QUEUED', 'OFFERED')"),
    )
    op.create_index(
        "ix_waitlist_item_queue", "waitlist_entries", ["item_id", "status", "enqueued_at"],
    )

    op.create_table(
        "webhook_events",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PROCESSING"),
        sa.Column("payload", sa.JSON, nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
    )


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_index("ix_waitlist_item_queue", table_name="waitlist_entries")
    op.drop_index("uq_waitlist_active_holder_item", table_name="waitlist_entries")
    op.drop_index("uq_waitlist_one_offer_per_item", table_name="waitlist_entries")
    op.drop_table("waitlist_entries")
    op.drop_table("event_tickets")
    op.drop_index("uq_tickets_active_holder_item", table_name="tickets")
    op.drop_table("tickets")
    op.drop_table("registrations")
    op.drop_table("orders")
    op.drop_table("items")
    op.drop_table("persons")
    op.drop_table("order_number_counters")
    op.drop_table("tenants")
