"""
Order placement.

An order draws its quantities from the contract allocation at placement
time: each line decrements the pool of its destination unit. Either every
line is allocated or the caller's transaction is rolled back as a whole.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from merenda.app.db.models.models_v1 import Contract, ContractItem, Order, OrderLine, Unit
from merenda.app.db.models.core_types import OrderStatus
from merenda.app.logging_config import get_logger
from merenda.app.schemas.orders import OrderLineCreate
from merenda.services.contract_ledger import decrement_pool
from merenda.services.errors import InsufficientBalance, NotFound
from merenda.services.numbering import next_document_number
from merenda.services.pools import classify_pool

log = get_logger("services.orders")

ORDER_NUMBER_KIND = "PD"


def place_order(
    db: Session,
    *,
    contract_id: int,
    lines: Iterable[OrderLineCreate],
    expected_delivery_at: date | None,
    ordered_at: datetime | None = None,
) -> Order:
    lines = list(lines)
    ordered_at = ordered_at or datetime.now(timezone.utc)

    if not db.get(Contract, contract_id):
        raise NotFound("Contract", contract_id)

    order = Order(
        number=next_document_number(db, Order.number, ORDER_NUMBER_KIND, at=ordered_at),
        contract_id=contract_id,
        status=OrderStatus.pending,
        ordered_at=ordered_at,
        expected_delivery_at=expected_delivery_at,
        total_value=Decimal("0"),
    )
    db.add(order)
    db.flush()  # get order.id

    total = Decimal("0")
    for ln in lines:
        unit = db.get(Unit, ln.unit_id)
        if not unit:
            raise NotFound("Unit", ln.unit_id)

        item = db.get(ContractItem, ln.contract_item_id)
        if not item or item.contract_id != contract_id:
            raise NotFound("ContractItem", ln.contract_item_id)

        pool = classify_pool(unit)
        try:
            decrement_pool(db, item.id, pool, ln.quantity)
        except InsufficientBalance as exc:
            log.warning(
                "order placement rejected",
                extra={"contract_id": contract_id, "error_code": exc.code, **exc.context()},
            )
            raise

        db.add(
            OrderLine(
                order_id=order.id,
                contract_item_id=item.id,
                unit_id=unit.id,
                quantity_ordered=ln.quantity,
            )
        )
        total += Decimal(item.unit_price) * ln.quantity

    order.total_value = total
    db.flush()

    log.info(
        "order placed",
        extra={
            "order_id": order.id,
            "order_number": order.number,
            "contract_id": contract_id,
            "line_count": len(lines),
            "total_value": total,
        },
    )
    return order


def get_order(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFound("Order", order_id)
    return order


def list_orders(db: Session, *, status: OrderStatus | None = None) -> list[Order]:
    stmt = select(Order).order_by(Order.ordered_at.desc(), Order.id.desc())
    if status is not None:
        stmt = stmt.where(Order.status == status)
    return list(db.execute(stmt).scalars().all())
