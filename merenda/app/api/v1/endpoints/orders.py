from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from merenda.app.api.deps import get_db
from merenda.app.db.models.core_types import OrderStatus
from merenda.app.schemas.orders import OrderConsolidationRead, OrderCreate, OrderRead
from merenda.app.schemas.receipts import ReceiptGenerate, ReceiptRead
from merenda.services.errors import MerendaError
from merenda.services.procurement import (
    consolidate_order,
    generate_receipts,
    get_order,
    list_orders,
    place_order,
)

router = APIRouter(prefix="/orders")


@router.get("", response_model=list[OrderRead])
def list_all(status: OrderStatus | None = None, db: Session = Depends(get_db)):
    return list_orders(db, status=status)


@router.get("/{order_id}", response_model=OrderRead)
def get_one(order_id: int, db: Session = Depends(get_db)):
    return get_order(db, order_id)


@router.post("", response_model=OrderRead, status_code=201)
def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    try:
        order = place_order(
            db,
            contract_id=payload.contract_id,
            lines=payload.lines,
            expected_delivery_at=payload.expected_delivery_at,
        )
        db.commit()
    except MerendaError:
        db.rollback()
        raise

    db.refresh(order)
    return order


@router.get("/{order_id}/consolidation", response_model=OrderConsolidationRead)
def get_consolidation(order_id: int, db: Session = Depends(get_db)):
    return consolidate_order(db, order_id)


@router.post("/{order_id}/receipts", response_model=list[ReceiptRead], status_code=201)
def create_receipts(order_id: int, payload: ReceiptGenerate, db: Session = Depends(get_db)):
    try:
        receipts = generate_receipts(
            db,
            order_id=order_id,
            delivery_date=payload.delivery_date,
            delivered_by=payload.delivered_by,
        )
        db.commit()
    except MerendaError:
        db.rollback()
        raise

    for r in receipts:
        db.refresh(r)
    return receipts
