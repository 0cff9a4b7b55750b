from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from merenda.app.api.deps import get_db
from merenda.app.schemas.receipts import ReceiptAdjust, ReceiptConfirm, ReceiptRead
from merenda.services.errors import MerendaError
from merenda.services.procurement import (
    adjust_receipt,
    confirm_receipt,
    get_receipt,
    receipt_chain,
)

router = APIRouter(prefix="/receipts")


@router.get("/{receipt_id}", response_model=ReceiptRead)
def get_one(receipt_id: int, db: Session = Depends(get_db)):
    return get_receipt(db, receipt_id)


@router.get("/{receipt_id}/chain", response_model=list[ReceiptRead])
def get_chain(receipt_id: int, db: Session = Depends(get_db)):
    return receipt_chain(db, receipt_id)


@router.post("/{receipt_id}/confirm")
def confirm(receipt_id: int, payload: ReceiptConfirm, db: Session = Depends(get_db)):
    try:
        result = confirm_receipt(
            db,
            receipt_id=receipt_id,
            received_by=payload.received_by,
            notes=payload.notes,
            lines=payload.lines,
            signature=payload.signature,
            proof_photo=payload.proof_photo,
            token=payload.token,
        )
        db.commit()
    except MerendaError:
        db.rollback()
        raise

    return {
        "receipt_id": result.receipt_id,
        "receipt_number": result.receipt_number,
        "status": result.status,
        "pool": result.pool,
        "returned_to_contract": result.returned_to_contract,
        "movement_ids": result.movement_ids,
    }


@router.post("/{receipt_id}/adjust", response_model=ReceiptRead, status_code=201)
def adjust(receipt_id: int, payload: ReceiptAdjust, db: Session = Depends(get_db)):
    try:
        complementary = adjust_receipt(
            db,
            receipt_id=receipt_id,
            responsible=payload.responsible,
            lines=payload.lines,
            notes=payload.notes,
        )
        db.commit()
    except MerendaError:
        db.rollback()
        raise

    db.refresh(complementary)
    return complementary
