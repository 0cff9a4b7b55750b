"""
Receipt adjustment.

After a confirmation round, the confirmer may correct what was actually
received. The corrected receipt becomes ``adjusted`` and whatever is still
outstanding moves to a new pending receipt that points back at it
(``original_receipt_id``). That complementary receipt goes through the
normal confirmation later on.

Contract balances and stock are not touched here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from merenda.app.db.models.models_v1 import Receipt, ReceiptLine
from merenda.app.db.models.core_types import ReceiptStatus
from merenda.app.logging_config import get_logger
from merenda.app.schemas.receipts import LineAdjustment
from merenda.services.errors import AlreadyAdjusted, NoDiscrepancy, NotConfirmed, NotFound
from merenda.services.receipts import get_receipt, index_line_reports, issue_receipt

log = get_logger("services.adjustment")


def adjust_receipt(
    db: Session,
    *,
    receipt_id: int,
    responsible: str,
    lines: Iterable[LineAdjustment],
    notes: str | None = None,
    performed_at: datetime | None = None,
) -> Receipt:
    """Correct a processed receipt and return the complementary receipt it spawns."""
    performed_at = performed_at or datetime.now(timezone.utc)

    target = get_receipt(db, receipt_id, for_update=True)
    if target.status == ReceiptStatus.adjusted:
        raise AlreadyAdjusted(target.id)
    if target.status == ReceiptStatus.pending:
        raise NotConfirmed(target.id)

    reports = index_line_reports(target, lines)
    corrections = {line_id: ln.quantity_received for line_id, ln in reports.items()}
    target_lines = {ln.id: ln for ln in target.lines}
    unknown = sorted(set(corrections) - set(target_lines))
    if unknown:
        raise NotFound("ReceiptLine", unknown[0])

    staged: list[ReceiptLine] = []
    for line_id, line in target_lines.items():
        corrected = corrections.get(line_id, line.quantity_received)
        diff = line.quantity_requested - corrected
        if diff > 0:
            staged.append(
                ReceiptLine(
                    order_line_id=line.order_line_id,
                    quantity_requested=diff,
                    quantity_received=0,
                    conforming=False,
                )
            )

    if not staged:
        raise NoDiscrepancy(target.id)

    for line_id, line in target_lines.items():
        line.quantity_received = corrections.get(line_id, line.quantity_received)
        line.conforming = (line.quantity_requested - line.quantity_received) <= 0

    target.status = ReceiptStatus.adjusted
    target.adjusted_by = responsible
    target.adjusted_at = performed_at
    if notes:
        target.notes = f"{target.notes}\n{notes}" if target.notes else notes
    db.flush()

    complementary = issue_receipt(
        db,
        order_id=target.order_id,
        unit_id=target.unit_id,
        delivery_date=performed_at.date(),
        delivered_by=target.delivered_by,
        lines=staged,
        original_receipt_id=target.id,
    )

    log.info(
        "receipt adjusted",
        extra={
            "receipt_id": target.id,
            "receipt_number": target.number,
            "complementary_receipt_id": complementary.id,
            "complementary_receipt_number": complementary.number,
            "outstanding_lines": len(staged),
            "adjusted_by": responsible,
        },
    )
    return complementary
