from datetime import date, datetime

from pydantic import BaseModel, Field

from merenda.app.db.models.core_types import ReceiptStatus


class ReceiptGenerate(BaseModel):
    delivery_date: date
    delivered_by: str | None = Field(default=None, max_length=200)


class LineConfirmation(BaseModel):
    receipt_line_id: int
    conforming: bool
    quantity_received: int = Field(ge=0)
    notes: str | None = None
    photos: list[str] = Field(default_factory=list)


class ReceiptConfirm(BaseModel):
    received_by: str = Field(min_length=1, max_length=200)
    notes: str | None = None
    lines: list[LineConfirmation]
    signature: str | None = None
    proof_photo: str | None = None
    token: str | None = None


class LineAdjustment(BaseModel):
    receipt_line_id: int
    quantity_received: int = Field(ge=0)


class ReceiptAdjust(BaseModel):
    responsible: str = Field(min_length=1, max_length=200)
    notes: str | None = None
    lines: list[LineAdjustment]


class ReceiptLineRead(BaseModel):
    id: int
    order_line_id: int
    quantity_requested: int
    quantity_received: int
    quantity_returned: int = 0
    conforming: bool
    notes: str | None = None

    class Config:
        from_attributes = True


class ReceiptRead(BaseModel):
    id: int
    number: str
    order_id: int
    unit_id: int
    delivery_date: date
    status: ReceiptStatus
    confirmation_url: str | None
    qrcode_url: str | None
    received_by: str | None = None
    confirmed_at: datetime | None = None
    original_receipt_id: int | None = None
    lines: list[ReceiptLineRead] = Field(default_factory=list)

    class Config:
        from_attributes = True
