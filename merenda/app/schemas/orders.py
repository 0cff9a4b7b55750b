from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from merenda.app.db.models.core_types import ConsolidationStatus, OrderStatus


class OrderLineCreate(BaseModel):
    unit_id: int
    contract_item_id: int
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    contract_id: int
    expected_delivery_at: date
    lines: list[OrderLineCreate] = Field(min_length=1)


class OrderLineRead(BaseModel):
    id: int
    contract_item_id: int
    unit_id: int
    quantity_ordered: int

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: int
    number: str
    contract_id: int
    status: OrderStatus
    ordered_at: datetime
    expected_delivery_at: date | None
    total_value: Decimal
    lines: list[OrderLineRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class OrderConsolidationRead(BaseModel):
    order_id: int
    status: ConsolidationStatus
    total_units: int
    processed_units: int
    confirmation_percentage: float
