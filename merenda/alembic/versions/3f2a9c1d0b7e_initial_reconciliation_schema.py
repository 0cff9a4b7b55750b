"""initial reconciliation schema

Revision ID: 3f2a9c1d0b7e
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d0b7e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

POOL = sa.Enum("daycare", "school", name="stock_pool")
CONTRACT_STATUS = sa.Enum("active", "inactive", "expired", name="contract_status")
ORDER_STATUS = sa.Enum("pending", "confirmed", "delivered", "cancelled", name="order_status")
RECEIPT_STATUS = sa.Enum(
    "pending", "confirmed", "partial", "rejected", "adjusted", "complementary",
    name="receipt_status",
)
MOVEMENT_KIND = sa.Enum("inbound", "outbound", "adjust", "transfer", "dispose", name="movement_kind")


def upgrade() -> None:
    # ---------- MASTER DATA ----------
    op.create_table(
        "suppliers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("tax_id", sa.String(32), unique=True),
        sa.Column("active", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "contracts",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("number", sa.String(64), nullable=False, unique=True),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("starts_on", sa.Date()),
        sa.Column("ends_on", sa.Date()),
        sa.Column("status", CONTRACT_STATUS, nullable=False),
    )
    op.create_table(
        "units",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(32), nullable=False, unique=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("nursery_students", sa.Integer(), nullable=False),
        sa.Column("maternal_students", sa.Integer(), nullable=False),
        sa.Column("preschool_students", sa.Integer(), nullable=False),
        sa.Column("regular_students", sa.Integer(), nullable=False),
        sa.Column("integral_students", sa.Integer(), nullable=False),
        sa.Column("eja_students", sa.Integer(), nullable=False),
    )
    op.create_table(
        "contract_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("contract_id", sa.BigInteger(), sa.ForeignKey("contracts.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("unit", sa.String(16), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("original_quantity", sa.Integer(), nullable=False),
        sa.Column("daycare_quantity", sa.Integer(), nullable=False),
        sa.Column("school_quantity", sa.Integer(), nullable=False),
        sa.Column("current_balance", sa.Integer(), nullable=False),
        sa.Column("daycare_balance", sa.Integer(), nullable=False),
        sa.Column("school_balance", sa.Integer(), nullable=False),
        sa.CheckConstraint("unit_price >= 0", name="ck_contract_item_unit_price_nonneg"),
        sa.CheckConstraint("daycare_balance >= 0", name="ck_contract_item_daycare_nonneg"),
        sa.CheckConstraint("school_balance >= 0", name="ck_contract_item_school_nonneg"),
        sa.CheckConstraint(
            "current_balance = daycare_balance + school_balance",
            name="ck_contract_item_balance_sum",
        ),
    )
    op.create_index("ix_contract_items_contract_id", "contract_items", ["contract_id"])

    # ---------- ORDERS ----------
    op.create_table(
        "orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("number", sa.String(64), nullable=False, unique=True),
        sa.Column("contract_id", sa.BigInteger(), sa.ForeignKey("contracts.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", ORDER_STATUS, nullable=False),
        sa.Column("ordered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_delivery_at", sa.Date()),
        sa.Column("total_value", sa.Numeric(14, 2), nullable=False),
    )
    op.create_table(
        "order_lines",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "contract_item_id",
            sa.BigInteger(),
            sa.ForeignKey("contract_items.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("unit_id", sa.BigInteger(), sa.ForeignKey("units.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity_ordered", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity_ordered > 0", name="ck_order_line_qty_pos"),
    )
    op.create_index("ix_order_lines_order_id", "order_lines", ["order_id"])

    # ---------- RECEIPTS ----------
    op.create_table(
        "receipts",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("number", sa.String(64), nullable=False, unique=True),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("unit_id", sa.BigInteger(), sa.ForeignKey("units.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("delivery_date", sa.Date(), nullable=False),
        sa.Column("delivered_by", sa.String(200)),
        sa.Column("status", RECEIPT_STATUS, nullable=False),
        sa.Column("confirmation_token", sa.String(64), nullable=False, unique=True),
        sa.Column("confirmation_url", sa.Text()),
        sa.Column("qrcode_url", sa.Text()),
        sa.Column("received_by", sa.String(200)),
        sa.Column("received_by_signature", sa.Text()),
        sa.Column("proof_photo", sa.Text()),
        sa.Column("notes", sa.Text()),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("adjusted_by", sa.String(200)),
        sa.Column("adjusted_at", sa.DateTime(timezone=True)),
        sa.Column(
            "original_receipt_id",
            sa.BigInteger(),
            sa.ForeignKey("receipts.id", ondelete="RESTRICT"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_receipts_order_id", "receipts", ["order_id"])
    op.create_index("ix_receipts_original_receipt_id", "receipts", ["original_receipt_id"])

    op.create_table(
        "receipt_lines",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("receipt_id", sa.BigInteger(), sa.ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "order_line_id",
            sa.BigInteger(),
            sa.ForeignKey("order_lines.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quantity_requested", sa.Integer(), nullable=False),
        sa.Column("quantity_received", sa.Integer(), nullable=False),
        sa.Column("quantity_returned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("conforming", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.CheckConstraint("quantity_requested > 0", name="ck_receipt_line_requested_pos"),
        sa.CheckConstraint("quantity_received >= 0", name="ck_receipt_line_received_nonneg"),
        sa.CheckConstraint("quantity_returned >= 0", name="ck_receipt_line_returned_nonneg"),
    )
    op.create_index("ix_receipt_lines_receipt_id", "receipt_lines", ["receipt_id"])

    op.create_table(
        "receipt_line_photos",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "receipt_line_id",
            sa.BigInteger(),
            sa.ForeignKey("receipt_lines.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_receipt_line_photos_receipt_line_id", "receipt_line_photos", ["receipt_line_id"])

    # ---------- INVENTORY ----------
    op.create_table(
        "stock_entries",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("unit_id", sa.BigInteger(), sa.ForeignKey("units.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "contract_item_id",
            sa.BigInteger(),
            sa.ForeignKey("contract_items.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("pool", POOL, nullable=False),
        sa.Column("current_quantity", sa.Integer(), nullable=False),
        sa.Column("minimum_quantity", sa.Integer(), nullable=False),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("unit_id", "contract_item_id", "pool", name="uq_stock_entry_unit_item_pool"),
        sa.CheckConstraint("current_quantity >= 0", name="ck_stock_entry_qty_nonneg"),
        sa.CheckConstraint("minimum_quantity >= 0", name="ck_stock_entry_min_nonneg"),
    )

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "stock_entry_id",
            sa.BigInteger(),
            sa.ForeignKey("stock_entries.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("kind", MOVEMENT_KIND, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("quantity_before", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("performed_by", sa.String(200), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("receipt_id", sa.BigInteger(), sa.ForeignKey("receipts.id", ondelete="RESTRICT")),
        sa.Column(
            "transfer_destination_unit_id",
            sa.BigInteger(),
            sa.ForeignKey("units.id", ondelete="RESTRICT"),
        ),
        sa.Column("disposal_photo", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_movement_qty_nonneg"),
        sa.CheckConstraint("quantity_after >= 0", name="ck_stock_movement_after_nonneg"),
    )
    op.create_index("ix_stock_movements_stock_entry_id", "stock_movements", ["stock_entry_id"])
    op.create_index("ix_stock_movements_entry_time", "stock_movements", ["stock_entry_id", "occurred_at"])


def downgrade() -> None:
    op.drop_table("stock_movements")
    op.drop_table("stock_entries")
    op.drop_table("receipt_line_photos")
    op.drop_table("receipt_lines")
    op.drop_table("receipts")
    op.drop_table("order_lines")
    op.drop_table("orders")
    op.drop_table("contract_items")
    op.drop_table("units")
    op.drop_table("contracts")
    op.drop_table("suppliers")

    bind = op.get_bind()
    for enum_type in (MOVEMENT_KIND, RECEIPT_STATUS, ORDER_STATUS, CONTRACT_STATUS, POOL):
        enum_type.drop(bind, checkfirst=True)
