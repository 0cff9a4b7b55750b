from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from merenda.app.api.deps import get_db
from merenda.app.db.models.core_types import Pool
from merenda.app.schemas.stock import StockEntryRead, StockMinimumUpdate
from merenda.services.errors import MerendaError
from merenda.services.inventory import list_stock_entries, set_minimum_quantity

router = APIRouter(prefix="/stock")


@router.get(
    "",
    response_model=list[StockEntryRead],
)
def get_stock(
    unit_id: int | None = None,
    contract_item_id: int | None = None,
    pool: Pool | None = None,
    below_minimum: bool = False,
    db: Session = Depends(get_db),
):
    """
    Stock (READ ONLY)
    - current_quantity only changes through confirmations and stock movements
    - below_minimum=true lists entries at or under their minimum level
    """
    return list_stock_entries(
        db,
        unit_id=unit_id,
        contract_item_id=contract_item_id,
        pool=pool,
        below_minimum=below_minimum,
    )


@router.patch("/{stock_entry_id}/minimum", response_model=StockEntryRead)
def update_minimum(stock_entry_id: int, payload: StockMinimumUpdate, db: Session = Depends(get_db)):
    try:
        entry = set_minimum_quantity(db, stock_entry_id, payload.minimum_quantity)
        db.commit()
    except MerendaError:
        db.rollback()
        raise

    db.refresh(entry)
    return entry
