"""
Stock ledger.

One stock entry per (unit, contract item, pool), created lazily on the
first inbound movement and never deleted. Every quantity change appends a
StockMovement recording the quantity before and after it.

Manual movements dispatch on their kind to one handler each. Handlers
validate first, then move the contract balance at the origin, then the
stock. A transfer also posts a second movement on the destination entry,
without touching any contract balance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from merenda.app.db.models.models_v1 import StockEntry, StockMovement, Unit
from merenda.app.db.models.core_types import MovementKind, Pool
from merenda.app.logging_config import get_logger
from merenda.services.contract_ledger import decrement_pool, increment_pool
from merenda.services.errors import (
    InsufficientStock,
    InvalidQuantity,
    MissingDestination,
    MissingEvidence,
    NotFound,
    PoolMismatch,
    SameUnitTransfer,
)
from merenda.services.pools import classify_pool

log = get_logger("services.inventory")


# ---------- Entries ----------
def lock_stock_entries(db: Session, stock_entry_ids: Iterable[int]) -> list[StockEntry]:
    """
    Lock entries for update, always in ascending id order.

    Sessions holding more than one entry (transfers) then queue on the same
    row first, whatever direction they move stock in. Locked rows are
    reloaded so earlier unlocked reads see the committed quantities.
    """
    ids = sorted(set(stock_entry_ids))
    entries = list(
        db.execute(
            select(StockEntry)
            .where(StockEntry.id.in_(ids))
            .order_by(StockEntry.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )
    found = {e.id for e in entries}
    for stock_entry_id in ids:
        if stock_entry_id not in found:
            raise NotFound("StockEntry", stock_entry_id)
    return entries


def lock_stock_entry(db: Session, stock_entry_id: int) -> StockEntry:
    (entry,) = lock_stock_entries(db, [stock_entry_id])
    return entry


def find_stock_entry(
    db: Session,
    unit_id: int,
    contract_item_id: int,
    pool: Pool,
    *,
    for_update: bool = False,
) -> StockEntry | None:
    stmt = (
        select(StockEntry)
        .where(StockEntry.unit_id == unit_id)
        .where(StockEntry.contract_item_id == contract_item_id)
        .where(StockEntry.pool == pool)
    )
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def get_or_create_stock_entry(db: Session, unit_id: int, contract_item_id: int, pool: Pool) -> StockEntry:
    entry = find_stock_entry(db, unit_id, contract_item_id, pool, for_update=True)
    if entry:
        return entry

    entry = StockEntry(
        unit_id=unit_id,
        contract_item_id=contract_item_id,
        pool=pool,
        current_quantity=0,
        minimum_quantity=0,
    )
    db.add(entry)
    db.flush()
    return entry


def _move(
    db: Session,
    entry: StockEntry,
    *,
    kind: MovementKind,
    quantity: int,
    new_quantity: int,
    reason: str,
    performed_by: str,
    occurred_at: datetime,
    receipt_id: int | None = None,
    transfer_destination_unit_id: int | None = None,
    disposal_photo: str | None = None,
) -> StockMovement:
    mv = StockMovement(
        stock_entry_id=entry.id,
        kind=kind,
        quantity=quantity,
        quantity_before=entry.current_quantity,
        quantity_after=new_quantity,
        reason=reason,
        performed_by=performed_by,
        occurred_at=occurred_at,
        receipt_id=receipt_id,
        transfer_destination_unit_id=transfer_destination_unit_id,
        disposal_photo=disposal_photo,
    )
    entry.current_quantity = new_quantity
    entry.last_updated_at = occurred_at
    db.add(mv)
    return mv


def post_inbound(
    db: Session,
    *,
    unit_id: int,
    contract_item_id: int,
    pool: Pool,
    quantity: int,
    reason: str,
    performed_by: str,
    occurred_at: datetime,
    receipt_id: int | None = None,
) -> StockMovement:
    """Automatic entry from a confirmed delivery. Contract balances are left alone."""
    if quantity <= 0:
        raise InvalidQuantity(quantity)

    entry = get_or_create_stock_entry(db, unit_id, contract_item_id, pool)
    return _move(
        db,
        entry,
        kind=MovementKind.inbound,
        quantity=quantity,
        new_quantity=entry.current_quantity + quantity,
        reason=reason,
        performed_by=performed_by,
        occurred_at=occurred_at,
        receipt_id=receipt_id,
    )


# ---------- Manual movements ----------
@dataclass
class MovementRequest:
    entry: StockEntry
    quantity: int
    reason: str
    performed_by: str
    occurred_at: datetime
    transfer_destination_unit_id: int | None = None
    disposal_photo: str | None = None


def _require_stock(req: MovementRequest) -> None:
    if req.quantity > req.entry.current_quantity:
        raise InsufficientStock(req.entry.id, req.quantity, req.entry.current_quantity)


def _handle_in(db: Session, req: MovementRequest) -> list[StockMovement]:
    increment_pool(db, req.entry.contract_item_id, req.entry.pool, req.quantity)
    return [
        _move(
            db,
            req.entry,
            kind=MovementKind.inbound,
            quantity=req.quantity,
            new_quantity=req.entry.current_quantity + req.quantity,
            reason=req.reason,
            performed_by=req.performed_by,
            occurred_at=req.occurred_at,
        )
    ]


def _handle_out(db: Session, req: MovementRequest) -> list[StockMovement]:
    _require_stock(req)
    decrement_pool(db, req.entry.contract_item_id, req.entry.pool, req.quantity)
    return [
        _move(
            db,
            req.entry,
            kind=MovementKind.outbound,
            quantity=req.quantity,
            new_quantity=req.entry.current_quantity - req.quantity,
            reason=req.reason,
            performed_by=req.performed_by,
            occurred_at=req.occurred_at,
        )
    ]


def _handle_dispose(db: Session, req: MovementRequest) -> list[StockMovement]:
    if not req.disposal_photo:
        raise MissingEvidence(req.entry.id)
    _require_stock(req)
    decrement_pool(db, req.entry.contract_item_id, req.entry.pool, req.quantity)
    return [
        _move(
            db,
            req.entry,
            kind=MovementKind.dispose,
            quantity=req.quantity,
            new_quantity=req.entry.current_quantity - req.quantity,
            reason=req.reason,
            performed_by=req.performed_by,
            occurred_at=req.occurred_at,
            disposal_photo=req.disposal_photo,
        )
    ]


def _handle_adjust(db: Session, req: MovementRequest) -> list[StockMovement]:
    # Stock is set absolutely, the contract side is charged like an "out".
    if req.quantity > 0:
        decrement_pool(db, req.entry.contract_item_id, req.entry.pool, req.quantity)
    return [
        _move(
            db,
            req.entry,
            kind=MovementKind.adjust,
            quantity=req.quantity,
            new_quantity=req.quantity,
            reason=req.reason,
            performed_by=req.performed_by,
            occurred_at=req.occurred_at,
        )
    ]


def _handle_transfer(db: Session, req: MovementRequest) -> list[StockMovement]:
    origin = req.entry
    dest_unit_id = req.transfer_destination_unit_id
    if dest_unit_id is None:
        raise MissingDestination(origin.id)
    if dest_unit_id == origin.unit_id:
        raise SameUnitTransfer(origin.id, dest_unit_id)

    dest_unit = db.get(Unit, dest_unit_id)
    if not dest_unit:
        raise NotFound("Unit", dest_unit_id)

    dest_pool = classify_pool(dest_unit)
    if dest_pool != origin.pool:
        raise PoolMismatch(origin.id, dest_unit_id, origin.pool.value, dest_pool.value)

    # origin arrives unlocked; take both rows in one id-ordered lock
    dest = find_stock_entry(db, dest_unit_id, origin.contract_item_id, origin.pool)
    lock_stock_entries(db, [origin.id] if dest is None else [origin.id, dest.id])

    _require_stock(req)
    decrement_pool(db, origin.contract_item_id, origin.pool, req.quantity)

    out_leg = _move(
        db,
        origin,
        kind=MovementKind.transfer,
        quantity=req.quantity,
        new_quantity=origin.current_quantity - req.quantity,
        reason=req.reason,
        performed_by=req.performed_by,
        occurred_at=req.occurred_at,
        transfer_destination_unit_id=dest_unit_id,
    )

    if dest is None:
        dest = get_or_create_stock_entry(db, dest_unit_id, origin.contract_item_id, origin.pool)
    in_leg = _move(
        db,
        dest,
        kind=MovementKind.transfer,
        quantity=req.quantity,
        new_quantity=dest.current_quantity + req.quantity,
        reason=req.reason,
        performed_by=req.performed_by,
        occurred_at=req.occurred_at,
        transfer_destination_unit_id=dest_unit_id,
    )
    return [out_leg, in_leg]


MOVEMENT_HANDLERS: dict[MovementKind, Callable[[Session, MovementRequest], list[StockMovement]]] = {
    MovementKind.inbound: _handle_in,
    MovementKind.outbound: _handle_out,
    MovementKind.adjust: _handle_adjust,
    MovementKind.transfer: _handle_transfer,
    MovementKind.dispose: _handle_dispose,
}


def manual_movement(
    db: Session,
    *,
    stock_entry_id: int,
    kind: MovementKind,
    quantity: int,
    reason: str,
    performed_by: str,
    transfer_destination_unit_id: int | None = None,
    disposal_photo: str | None = None,
    occurred_at: datetime | None = None,
) -> list[StockMovement]:
    """
    Record a manual stock operation.

    Returns the movements appended: one at the origin entry, plus one on the
    destination entry for transfers.
    """
    if quantity < 0 or (quantity == 0 and kind != MovementKind.adjust):
        raise InvalidQuantity(quantity)

    if kind == MovementKind.transfer:
        # locked together with the destination by the handler
        entry = db.get(StockEntry, stock_entry_id)
        if not entry:
            raise NotFound("StockEntry", stock_entry_id)
    else:
        entry = lock_stock_entry(db, stock_entry_id)
    req = MovementRequest(
        entry=entry,
        quantity=quantity,
        reason=reason,
        performed_by=performed_by,
        occurred_at=occurred_at or datetime.now(timezone.utc),
        transfer_destination_unit_id=transfer_destination_unit_id,
        disposal_photo=disposal_photo,
    )
    movements = MOVEMENT_HANDLERS[kind](db, req)
    db.flush()

    log.info(
        "stock movement recorded",
        extra={
            "stock_entry_id": entry.id,
            "kind": kind,
            "quantity": quantity,
            "movement_ids": [m.id for m in movements],
            "performed_by": performed_by,
        },
    )
    return movements


# ---------- Reads ----------
def list_stock_entries(
    db: Session,
    *,
    unit_id: int | None = None,
    contract_item_id: int | None = None,
    pool: Pool | None = None,
    below_minimum: bool = False,
) -> list[StockEntry]:
    stmt = select(StockEntry).order_by(StockEntry.unit_id, StockEntry.contract_item_id, StockEntry.pool)

    if unit_id is not None:
        stmt = stmt.where(StockEntry.unit_id == unit_id)

    if contract_item_id is not None:
        stmt = stmt.where(StockEntry.contract_item_id == contract_item_id)

    if pool is not None:
        stmt = stmt.where(StockEntry.pool == pool)

    if below_minimum:
        stmt = stmt.where(StockEntry.current_quantity <= StockEntry.minimum_quantity)

    return list(db.execute(stmt).scalars().all())


def movement_history(db: Session, stock_entry_id: int) -> list[StockMovement]:
    if not db.get(StockEntry, stock_entry_id):
        raise NotFound("StockEntry", stock_entry_id)

    return list(
        db.execute(
            select(StockMovement)
            .where(StockMovement.stock_entry_id == stock_entry_id)
            .order_by(StockMovement.occurred_at, StockMovement.id)
        )
        .scalars()
        .all()
    )


def set_minimum_quantity(db: Session, stock_entry_id: int, minimum_quantity: int) -> StockEntry:
    if minimum_quantity < 0:
        raise InvalidQuantity(minimum_quantity, "minimum quantity cannot be negative")

    entry = lock_stock_entry(db, stock_entry_id)
    entry.minimum_quantity = minimum_quantity
    db.flush()
    return entry
