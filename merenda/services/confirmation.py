"""
Receipt confirmation and reconciliation.

The receiving unit reports, per line, whether the delivery conforms and how
much arrived. In one unit of work the engine:

- stores the report on each receipt line (and its non-conforming photos),
- returns every shortfall to the contract pool of the unit, never more
  than the order line allocated across the whole receipt chain,
- posts whatever arrived to the unit's stock ledger,
- derives the receipt outcome.

Outcome rules:
    nothing received on any line   -> rejected
    every line conforming          -> confirmed (complementary for a receipt
                                      that completes an adjusted one)
    otherwise                      -> partial
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from merenda.app.db.models.models_v1 import ContractItem, ReceiptLine, ReceiptLinePhoto, Unit
from merenda.app.db.models.core_types import Pool, ReceiptStatus
from merenda.app.logging_config import get_logger
from merenda.app.schemas.receipts import LineConfirmation
from merenda.services.contract_ledger import increment_pool
from merenda.services.errors import (
    AlreadyProcessed,
    DataIntegrityError,
    IncompleteConfirmation,
    InvalidConfirmationToken,
    NotFound,
)
from merenda.services.inventory import post_inbound
from merenda.services.pools import classify_pool
from merenda.services.receipts import get_receipt, index_line_reports

log = get_logger("services.confirmation")


@dataclass
class ConfirmationResult:
    receipt_id: int
    receipt_number: str
    status: ReceiptStatus
    pool: Pool
    # contract_item_id -> quantity handed back to the contract
    returned_to_contract: dict[int, int] = field(default_factory=dict)
    movement_ids: list[int] = field(default_factory=list)


def derive_outcome(lines: Iterable[ReceiptLine], *, complementary: bool) -> ReceiptStatus:
    lines = list(lines)
    if all(ln.quantity_received == 0 for ln in lines):
        return ReceiptStatus.rejected
    if all(ln.conforming for ln in lines):
        return ReceiptStatus.complementary if complementary else ReceiptStatus.confirmed
    return ReceiptStatus.partial


def delivery_reason(receipt_number: str, *, complementary: bool) -> str:
    round_label = "complementary" if complementary else "original"
    return f"Receipt {receipt_number} ({round_label} delivery)"


def _replace_photos(line: ReceiptLine, urls: list[str]) -> None:
    line.photos.clear()
    for url in urls:
        line.photos.append(ReceiptLinePhoto(url=url))


def _returnable(db: Session, line: ReceiptLine) -> int:
    """Allocation of the order line not yet handed back by an earlier receipt of the chain."""
    already = db.scalar(
        select(func.coalesce(func.sum(ReceiptLine.quantity_returned), 0))
        .where(ReceiptLine.order_line_id == line.order_line_id)
        .where(ReceiptLine.id != line.id)
    )
    return line.order_line.quantity_ordered - int(already)


def confirm_receipt(
    db: Session,
    *,
    receipt_id: int,
    received_by: str,
    lines: Iterable[LineConfirmation],
    notes: str | None = None,
    signature: str | None = None,
    proof_photo: str | None = None,
    token: str | None = None,
    performed_at: datetime | None = None,
) -> ConfirmationResult:
    performed_at = performed_at or datetime.now(timezone.utc)

    receipt = get_receipt(db, receipt_id, for_update=True)
    if receipt.status != ReceiptStatus.pending:
        raise AlreadyProcessed("Receipt", receipt.id, receipt.status.value)
    if token is not None and not hmac.compare_digest(token.encode(), receipt.confirmation_token.encode()):
        raise InvalidConfirmationToken(receipt.id)

    submitted = index_line_reports(receipt, lines)
    receipt_lines = {ln.id: ln for ln in receipt.lines}

    unknown = sorted(set(submitted) - set(receipt_lines))
    if unknown:
        raise NotFound("ReceiptLine", unknown[0])
    missing = sorted(set(receipt_lines) - set(submitted))
    if missing:
        raise IncompleteConfirmation(receipt.id, missing)

    unit = db.get(Unit, receipt.unit_id)
    if not unit:
        raise DataIntegrityError(f"Unit {receipt.unit_id} of receipt {receipt.id} is missing", receipt_id=receipt.id)
    pool = classify_pool(unit)
    complementary = receipt.original_receipt_id is not None

    result = ConfirmationResult(
        receipt_id=receipt.id,
        receipt_number=receipt.number,
        status=ReceiptStatus.pending,
        pool=pool,
    )
    reason = delivery_reason(receipt.number, complementary=complementary)

    for line_id, line in receipt_lines.items():
        report = submitted[line_id]
        order_line = line.order_line
        if order_line is None or not db.get(ContractItem, order_line.contract_item_id):
            raise DataIntegrityError(
                f"Contract item behind receipt line {line_id} is missing",
                receipt_id=receipt.id,
                receipt_line_id=line_id,
            )
        item_id = order_line.contract_item_id

        _replace_photos(line, [] if report.conforming else report.photos)
        line.conforming = report.conforming
        line.quantity_received = report.quantity_received
        line.notes = report.notes

        # stock entry before contract item, the order manual movements lock in
        if line.quantity_received > 0:
            mv = post_inbound(
                db,
                unit_id=receipt.unit_id,
                contract_item_id=item_id,
                pool=pool,
                quantity=line.quantity_received,
                reason=reason,
                performed_by=received_by,
                occurred_at=performed_at,
                receipt_id=receipt.id,
            )
            db.flush()
            result.movement_ids.append(mv.id)

        shortfall = line.quantity_requested - line.quantity_received
        returned = min(shortfall, _returnable(db, line))
        line.quantity_returned = max(returned, 0)
        if returned > 0:
            increment_pool(db, item_id, pool, returned)
            result.returned_to_contract[item_id] = result.returned_to_contract.get(item_id, 0) + returned

    receipt.status = derive_outcome(receipt_lines.values(), complementary=complementary)
    receipt.received_by = received_by
    receipt.received_by_signature = signature
    receipt.proof_photo = proof_photo
    receipt.notes = notes
    receipt.confirmed_at = performed_at
    db.flush()

    result.status = receipt.status
    log.info(
        "receipt confirmed",
        extra={
            "receipt_id": receipt.id,
            "receipt_number": receipt.number,
            "status": receipt.status,
            "pool": pool,
            "returned_to_contract": result.returned_to_contract,
            "movement_ids": result.movement_ids,
        },
    )
    return result
