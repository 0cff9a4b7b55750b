from datetime import datetime

from pydantic import BaseModel, Field

from merenda.app.db.models.core_types import MovementKind, Pool


class StockEntryRead(BaseModel):
    id: int
    unit_id: int
    contract_item_id: int
    pool: Pool

    current_quantity: int
    minimum_quantity: int
    last_updated_at: datetime

    class Config:
        from_attributes = True


class StockMinimumUpdate(BaseModel):
    minimum_quantity: int = Field(ge=0)


class ManualMovementCreate(BaseModel):
    stock_entry_id: int
    kind: MovementKind
    quantity: int = Field(ge=0)
    reason: str = Field(min_length=1, max_length=255)
    performed_by: str = Field(min_length=1, max_length=200)
    transfer_destination_unit_id: int | None = None
    disposal_photo: str | None = None
    occurred_at: datetime | None = None


class StockMovementRead(BaseModel):
    id: int
    stock_entry_id: int
    kind: MovementKind
    quantity: int
    quantity_before: int
    quantity_after: int
    reason: str
    performed_by: str
    occurred_at: datetime
    receipt_id: int | None = None
    transfer_destination_unit_id: int | None = None
    disposal_photo: str | None = None

    class Config:
        from_attributes = True
