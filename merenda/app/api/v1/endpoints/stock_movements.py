from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from merenda.app.api.deps import get_db
from merenda.app.schemas.stock import ManualMovementCreate, StockMovementRead
from merenda.services.errors import MerendaError
from merenda.services.inventory import manual_movement, movement_history

router = APIRouter(prefix="/stock-movements")


@router.get("", response_model=list[StockMovementRead])
def list_movements(stock_entry_id: int, db: Session = Depends(get_db)):
    return movement_history(db, stock_entry_id)


@router.post("", response_model=list[StockMovementRead], status_code=201)
def create_movement(payload: ManualMovementCreate, db: Session = Depends(get_db)):
    try:
        movements = manual_movement(
            db,
            stock_entry_id=payload.stock_entry_id,
            kind=payload.kind,
            quantity=payload.quantity,
            reason=payload.reason,
            performed_by=payload.performed_by,
            transfer_destination_unit_id=payload.transfer_destination_unit_id,
            disposal_photo=payload.disposal_photo,
            occurred_at=payload.occurred_at,
        )
        db.commit()
    except MerendaError:
        db.rollback()
        raise

    for mv in movements:
        db.refresh(mv)
    return movements
