"""
Receipt generation and receipt-chain reads.

An order is split into one receipt per destination unit. Each receipt
carries a confirmation token and a confirmation URL; the URL is also
wrapped into a code-image service link so the receipt can be printed with
a scannable code. Rendering that image is left to the service.
"""

from __future__ import annotations

import os
import secrets
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, TypeVar
from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.orm import Session

from merenda.app.db.models.models_v1 import Order, OrderLine, Receipt, ReceiptLine
from merenda.app.db.models.core_types import ConsolidationStatus, OrderStatus, ReceiptStatus
from merenda.app.logging_config import get_logger
from merenda.services.errors import AlreadyProcessed, DataIntegrityError, DuplicateLineReport, NotFound
from merenda.services.numbering import next_document_number

log = get_logger("services.receipts")

RECEIPT_NUMBER_KIND = "RB"

T = TypeVar("T")

DEFAULT_CONFIRMATION_BASE_URL = "http://localhost:5173"
DEFAULT_QR_CODE_SERVICE_URL = "https://api.qrserver.com/v1/create-qr-code/?size=200x200&data="

# Orders in these states never get new receipts
CLOSED_ORDER_STATUSES = {
    OrderStatus.delivered,
    OrderStatus.cancelled,
}

FULLY_RESOLVED_STATUSES = {
    ReceiptStatus.confirmed,
    ReceiptStatus.complementary,
}


def build_confirmation_links(receipt_id: int, token: str) -> tuple[str, str]:
    """Return ``(confirmation_url, qrcode_url)`` for a receipt."""
    base = os.getenv("CONFIRMATION_BASE_URL", DEFAULT_CONFIRMATION_BASE_URL).rstrip("/")
    confirmation_url = f"{base}/confirmacao-recebimento/{receipt_id}?token={token}"
    qr_service = os.getenv("QR_CODE_SERVICE_URL", DEFAULT_QR_CODE_SERVICE_URL)
    return confirmation_url, f"{qr_service}{quote(confirmation_url, safe='')}"


def issue_receipt(
    db: Session,
    *,
    order_id: int,
    unit_id: int,
    delivery_date: date,
    lines: list[ReceiptLine],
    delivered_by: str | None = None,
    original_receipt_id: int | None = None,
) -> Receipt:
    """Persist a pending receipt with a fresh number, token and links."""
    receipt = Receipt(
        number=next_document_number(db, Receipt.number, RECEIPT_NUMBER_KIND),
        order_id=order_id,
        unit_id=unit_id,
        delivery_date=delivery_date,
        delivered_by=delivered_by,
        status=ReceiptStatus.pending,
        confirmation_token=secrets.token_urlsafe(24),
        original_receipt_id=original_receipt_id,
        lines=lines,
    )
    db.add(receipt)
    db.flush()  # get receipt.id for the URL

    receipt.confirmation_url, receipt.qrcode_url = build_confirmation_links(
        receipt.id, receipt.confirmation_token
    )
    db.flush()
    return receipt


def generate_receipts(
    db: Session,
    *,
    order_id: int,
    delivery_date: date,
    delivered_by: str | None = None,
) -> list[Receipt]:
    order = db.execute(
        select(Order).where(Order.id == order_id).with_for_update()
    ).scalar_one_or_none()
    if not order:
        raise NotFound("Order", order_id)
    if order.status in CLOSED_ORDER_STATUSES:
        raise AlreadyProcessed("Order", order_id, order.status.value)

    order_lines = (
        db.execute(
            select(OrderLine)
            .where(OrderLine.order_id == order_id)
            .order_by(OrderLine.id)
        )
        .scalars()
        .all()
    )

    by_unit: dict[int, list[OrderLine]] = defaultdict(list)
    for ol in order_lines:
        by_unit[ol.unit_id].append(ol)

    receipts = []
    for unit_id, unit_lines in by_unit.items():
        receipts.append(
            issue_receipt(
                db,
                order_id=order.id,
                unit_id=unit_id,
                delivery_date=delivery_date,
                delivered_by=delivered_by,
                lines=[
                    ReceiptLine(
                        order_line_id=ol.id,
                        quantity_requested=ol.quantity_ordered,
                        quantity_received=0,
                        conforming=False,
                    )
                    for ol in unit_lines
                ],
            )
        )

    order.status = OrderStatus.delivered
    db.flush()

    log.info(
        "receipts generated",
        extra={
            "order_id": order.id,
            "order_number": order.number,
            "receipt_ids": [r.id for r in receipts],
        },
    )
    return receipts


def get_receipt(db: Session, receipt_id: int, *, for_update: bool = False) -> Receipt:
    stmt = select(Receipt).where(Receipt.id == receipt_id)
    if for_update:
        stmt = stmt.with_for_update()
    receipt = db.execute(stmt).scalar_one_or_none()
    if not receipt:
        raise NotFound("Receipt", receipt_id)
    return receipt


def index_line_reports(receipt: Receipt, reports: Iterable[T]) -> dict[int, T]:
    """Key per-line reports by ``receipt_line_id``; each line may be reported once."""
    reports = list(reports)
    counts = Counter(r.receipt_line_id for r in reports)
    duplicates = sorted(line_id for line_id, n in counts.items() if n > 1)
    if duplicates:
        raise DuplicateLineReport(receipt.id, duplicates)
    return {r.receipt_line_id: r for r in reports}


def root_receipt(db: Session, receipt: Receipt) -> Receipt:
    seen = {receipt.id}
    current = receipt
    while current.original_receipt_id is not None:
        parent = db.get(Receipt, current.original_receipt_id)
        if parent is None or parent.id in seen:
            raise DataIntegrityError(
                f"Broken receipt chain at receipt {current.id}",
                receipt_id=current.id,
            )
        seen.add(parent.id)
        current = parent
    return current


def receipt_chain(db: Session, receipt_id: int) -> list[Receipt]:
    """
    The whole negotiation chain a receipt belongs to, oldest first:
    ``original -> complementary_1 -> complementary_2 -> ...``.
    """
    root = root_receipt(db, get_receipt(db, receipt_id))

    chain = [root]
    frontier = [root.id]
    while frontier:
        children = (
            db.execute(
                select(Receipt)
                .where(Receipt.original_receipt_id.in_(frontier))
                .order_by(Receipt.id)
            )
            .scalars()
            .all()
        )
        chain.extend(children)
        frontier = [c.id for c in children]
    return chain


@dataclass
class OrderConsolidation:
    order_id: int
    status: ConsolidationStatus
    total_units: int
    processed_units: int
    confirmation_percentage: float


def consolidate_order(db: Session, order_id: int) -> OrderConsolidation:
    """
    Roll up the receipt state of an order, one vote per destination unit.

    The latest receipt of each unit's chain decides the unit's state.
    """
    if not db.get(Order, order_id):
        raise NotFound("Order", order_id)

    unit_ids = set(
        db.execute(
            select(OrderLine.unit_id).where(OrderLine.order_id == order_id)
        ).scalars()
    )
    receipts = (
        db.execute(
            select(Receipt).where(Receipt.order_id == order_id).order_by(Receipt.id)
        )
        .scalars()
        .all()
    )

    latest: dict[int, Receipt] = {}
    for r in receipts:
        latest[r.unit_id] = r

    processed = [r for r in latest.values() if r.status != ReceiptStatus.pending]
    awaiting_complement = any(
        r.status == ReceiptStatus.pending and r.original_receipt_id is not None
        for r in latest.values()
    )
    total = len(unit_ids)

    if awaiting_complement:
        status = ConsolidationStatus.adjusted
    elif not processed:
        status = ConsolidationStatus.pending
    elif len(processed) == total and all(r.status in FULLY_RESOLVED_STATUSES for r in processed):
        status = ConsolidationStatus.complete
    else:
        status = ConsolidationStatus.partial

    return OrderConsolidation(
        order_id=order_id,
        status=status,
        total_units=total,
        processed_units=len(processed),
        confirmation_percentage=round(len(processed) * 100 / total, 2) if total else 0.0,
    )
