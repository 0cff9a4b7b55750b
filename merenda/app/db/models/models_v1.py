from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from merenda.app.db.base import Base, BigIntPK, utcnow
from merenda.app.db.models.core_types import (
    Pool,
    ContractStatus,
    OrderStatus,
    ReceiptStatus,
    MovementKind,
)

# ---------- MASTER DATA ----------
class Supplier(Base):
    __tablename__ = "suppliers"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    tax_id: Mapped[str | None] = mapped_column(String(32), unique=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Contract(Base):
    __tablename__ = "contracts"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False)
    starts_on: Mapped[date | None] = mapped_column(Date)
    ends_on: Mapped[date | None] = mapped_column(Date)
    status: Mapped[ContractStatus] = mapped_column(
        Enum(ContractStatus, name="contract_status"),
        default=ContractStatus.active,
        nullable=False,
    )

    supplier: Mapped[Supplier] = relationship()
    items: Mapped[list["ContractItem"]] = relationship(back_populates="contract")


class Unit(Base):
    """Receiving school unit. Enrollment counts drive pool classification."""

    __tablename__ = "units"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    nursery_students: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    maternal_students: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    preschool_students: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    regular_students: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    integral_students: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    eja_students: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class ContractItem(Base):
    __tablename__ = "contract_items"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(16), default="un", nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    original_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    daycare_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    school_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    current_balance: Mapped[int] = mapped_column(Integer, nullable=False)
    daycare_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    school_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    contract: Mapped[Contract] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="ck_contract_item_unit_price_nonneg"),
        CheckConstraint("daycare_balance >= 0", name="ck_contract_item_daycare_nonneg"),
        CheckConstraint("school_balance >= 0", name="ck_contract_item_school_nonneg"),
        CheckConstraint(
            "current_balance = daycare_balance + school_balance",
            name="ck_contract_item_balance_sum",
        ),
    )


# ---------- ORDERS ----------
class Order(Base):
    __tablename__ = "orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id", ondelete="RESTRICT"), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status"),
        default=OrderStatus.pending,
        nullable=False,
    )
    ordered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expected_delivery_at: Mapped[date | None] = mapped_column(Date)
    total_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)

    contract: Mapped[Contract] = relationship()
    lines: Mapped[list["OrderLine"]] = relationship(back_populates="order", order_by="OrderLine.id")


class OrderLine(Base):
    __tablename__ = "order_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    contract_item_id: Mapped[int] = mapped_column(ForeignKey("contract_items.id", ondelete="RESTRICT"), nullable=False)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id", ondelete="RESTRICT"), nullable=False)
    quantity_ordered: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped[Order] = relationship(back_populates="lines")
    contract_item: Mapped[ContractItem] = relationship()
    unit: Mapped[Unit] = relationship()

    __table_args__ = (CheckConstraint("quantity_ordered > 0", name="ck_order_line_qty_pos"),)


# ---------- RECEIPTS ----------
class Receipt(Base):
    __tablename__ = "receipts"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id", ondelete="RESTRICT"), nullable=False)
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivered_by: Mapped[str | None] = mapped_column(String(200))

    status: Mapped[ReceiptStatus] = mapped_column(
        Enum(ReceiptStatus, name="receipt_status"),
        default=ReceiptStatus.pending,
        nullable=False,
    )
    confirmation_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    confirmation_url: Mapped[str | None] = mapped_column(Text)
    qrcode_url: Mapped[str | None] = mapped_column(Text)

    received_by: Mapped[str | None] = mapped_column(String(200))
    received_by_signature: Mapped[str | None] = mapped_column(Text)
    proof_photo: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    adjusted_by: Mapped[str | None] = mapped_column(String(200))
    adjusted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Correction chain: a complementary receipt points at the one it completes
    original_receipt_id: Mapped[int | None] = mapped_column(
        ForeignKey("receipts.id", ondelete="RESTRICT"),
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    order: Mapped[Order] = relationship()
    unit: Mapped[Unit] = relationship()
    lines: Mapped[list["ReceiptLine"]] = relationship(
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="ReceiptLine.id",
    )
    original_receipt: Mapped[Receipt | None] = relationship(
        remote_side="Receipt.id",
        back_populates="complementary_receipts",
    )
    complementary_receipts: Mapped[list["Receipt"]] = relationship(
        back_populates="original_receipt",
        order_by="Receipt.id",
    )


class ReceiptLine(Base):
    __tablename__ = "receipt_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    receipt_id: Mapped[int] = mapped_column(
        ForeignKey("receipts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order_line_id: Mapped[int] = mapped_column(ForeignKey("order_lines.id", ondelete="RESTRICT"), nullable=False)
    quantity_requested: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # allocation handed back to the contract when this line was confirmed
    quantity_returned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    conforming: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    receipt: Mapped[Receipt] = relationship(back_populates="lines")
    order_line: Mapped[OrderLine] = relationship()
    photos: Mapped[list["ReceiptLinePhoto"]] = relationship(
        back_populates="receipt_line",
        cascade="all, delete-orphan",
        order_by="ReceiptLinePhoto.id",
    )

    __table_args__ = (
        CheckConstraint("quantity_requested > 0", name="ck_receipt_line_requested_pos"),
        CheckConstraint("quantity_received >= 0", name="ck_receipt_line_received_nonneg"),
        CheckConstraint("quantity_returned >= 0", name="ck_receipt_line_returned_nonneg"),
    )


class ReceiptLinePhoto(Base):
    __tablename__ = "receipt_line_photos"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    receipt_line_id: Mapped[int] = mapped_column(
        ForeignKey("receipt_lines.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    receipt_line: Mapped[ReceiptLine] = relationship(back_populates="photos")


# ---------- INVENTORY ----------
class StockEntry(Base):
    __tablename__ = "stock_entries"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id", ondelete="RESTRICT"), nullable=False)
    contract_item_id: Mapped[int] = mapped_column(ForeignKey("contract_items.id", ondelete="RESTRICT"), nullable=False)
    pool: Mapped[Pool] = mapped_column(Enum(Pool, name="stock_pool"), nullable=False)

    current_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    minimum_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    unit: Mapped[Unit] = relationship()
    contract_item: Mapped[ContractItem] = relationship()

    __table_args__ = (
        UniqueConstraint("unit_id", "contract_item_id", "pool", name="uq_stock_entry_unit_item_pool"),
        CheckConstraint("current_quantity >= 0", name="ck_stock_entry_qty_nonneg"),
        CheckConstraint("minimum_quantity >= 0", name="ck_stock_entry_min_nonneg"),
    )


class StockMovement(Base):
    __tablename__ = "stock_movements"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    stock_entry_id: Mapped[int] = mapped_column(
        ForeignKey("stock_entries.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    kind: Mapped[MovementKind] = mapped_column(Enum(MovementKind, name="movement_kind"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    performed_by: Mapped[str] = mapped_column(String(200), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    receipt_id: Mapped[int | None] = mapped_column(ForeignKey("receipts.id", ondelete="RESTRICT"))
    transfer_destination_unit_id: Mapped[int | None] = mapped_column(ForeignKey("units.id", ondelete="RESTRICT"))
    disposal_photo: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    stock_entry: Mapped[StockEntry] = relationship()

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_movement_qty_nonneg"),
        CheckConstraint("quantity_after >= 0", name="ck_stock_movement_after_nonneg"),
        Index("ix_stock_movements_entry_time", "stock_entry_id", "occurred_at"),
    )

    @property
    def delta(self) -> int:
        return self.quantity_after - self.quantity_before
