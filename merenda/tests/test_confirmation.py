from datetime import date

import pytest
from sqlalchemy import delete, func, select

from merenda.app.db.models.models_v1 import ContractItem, ReceiptLinePhoto, StockEntry, StockMovement
from merenda.app.db.models.core_types import MovementKind, Pool, ReceiptStatus
from merenda.app.schemas.receipts import LineAdjustment, LineConfirmation
from merenda.services.adjustment import adjust_receipt
from merenda.services.confirmation import confirm_receipt
from merenda.services.errors import (
    AlreadyProcessed,
    DataIntegrityError,
    DuplicateLineReport,
    IncompleteConfirmation,
    InvalidConfirmationToken,
    NotFound,
)
from merenda.services.receipts import generate_receipts


def _receipts(db, order):
    receipts = generate_receipts(db, order_id=order.id, delivery_date=date(2026, 3, 10))
    db.commit()
    return receipts


def _movements(db):
    return list(db.execute(select(StockMovement).order_by(StockMovement.id)).scalars())


def _assert_balances_consistent(db):
    for item in db.execute(select(ContractItem)).scalars():
        assert item.current_balance == item.daycare_balance + item.school_balance


def test_full_delivery_is_confirmed(db_session, order_factory, rice, school_unit):
    """
    GIVEN
    - 10 units of rice ordered for a school unit (school pool 400 -> 390)

    THEN
    - confirmed, school balance untouched, one IN movement of 10
    """
    order = order_factory((school_unit, rice, 10))
    (receipt,) = _receipts(db_session, order)

    result = confirm_receipt(
        db_session,
        receipt_id=receipt.id,
        received_by="Diretora",
        lines=[LineConfirmation(receipt_line_id=receipt.lines[0].id, conforming=True, quantity_received=10)],
        signature="data:image/png;base64,AAAA",
    )
    db_session.commit()

    assert result.status == ReceiptStatus.confirmed
    assert result.pool == Pool.school
    assert result.returned_to_contract == {}

    db_session.refresh(rice)
    assert rice.school_balance == 390
    assert rice.current_balance == 490

    (mv,) = _movements(db_session)
    assert mv.kind == MovementKind.inbound
    assert mv.quantity == 10
    assert (mv.quantity_before, mv.quantity_after) == (0, 10)
    assert mv.receipt_id == receipt.id
    assert receipt.number in mv.reason
    assert "original" in mv.reason
    assert result.movement_ids == [mv.id]

    entry = db_session.get(StockEntry, mv.stock_entry_id)
    assert (entry.unit_id, entry.contract_item_id, entry.pool) == (school_unit.id, rice.id, Pool.school)
    assert entry.current_quantity == 10

    db_session.refresh(receipt)
    assert receipt.received_by == "Diretora"
    assert receipt.received_by_signature == "data:image/png;base64,AAAA"
    assert receipt.confirmed_at is not None


def test_short_delivery_returns_the_shortfall(db_session, order_factory, rice, school_unit):
    order = order_factory((school_unit, rice, 10))
    (receipt,) = _receipts(db_session, order)
    line_id = receipt.lines[0].id

    result = confirm_receipt(
        db_session,
        receipt_id=receipt.id,
        received_by="Diretora",
        lines=[
            LineConfirmation(
                receipt_line_id=line_id,
                conforming=False,
                quantity_received=7,
                notes="3 pacotes rasgados",
                photos=["https://files.example/a.jpg", "https://files.example/b.jpg"],
            )
        ],
    )
    db_session.commit()

    assert result.status == ReceiptStatus.partial
    assert result.returned_to_contract == {rice.id: 3}

    db_session.refresh(rice)
    assert rice.school_balance == 393
    assert rice.current_balance == 493

    (mv,) = _movements(db_session)
    assert mv.quantity == 7

    db_session.refresh(receipt)
    line = receipt.lines[0]
    assert line.quantity_received == 7
    assert line.quantity_returned == 3
    assert line.notes == "3 pacotes rasgados"
    assert [p.url for p in line.photos] == ["https://files.example/a.jpg", "https://files.example/b.jpg"]


def test_nothing_received_is_rejected(db_session, order_factory, rice, beans, daycare_unit):
    order = order_factory((daycare_unit, rice, 20), (daycare_unit, beans, 5))
    (receipt,) = _receipts(db_session, order)

    result = confirm_receipt(
        db_session,
        receipt_id=receipt.id,
        received_by="Coordenadora",
        lines=[
            LineConfirmation(receipt_line_id=ln.id, conforming=False, quantity_received=0)
            for ln in receipt.lines
        ],
    )
    db_session.commit()

    assert result.status == ReceiptStatus.rejected
    assert result.pool == Pool.daycare
    assert result.returned_to_contract == {rice.id: 20, beans.id: 5}
    assert _movements(db_session) == []

    db_session.refresh(rice)
    db_session.refresh(beans)
    assert rice.daycare_balance == 100
    assert beans.daycare_balance == 50
    _assert_balances_consistent(db_session)


def test_photos_are_kept_only_for_non_conforming_lines(db_session, order_factory, rice, beans, school_unit):
    order = order_factory((school_unit, rice, 10), (school_unit, beans, 10))
    (receipt,) = _receipts(db_session, order)
    rice_line, beans_line = receipt.lines

    confirm_receipt(
        db_session,
        receipt_id=receipt.id,
        received_by="Diretora",
        lines=[
            LineConfirmation(
                receipt_line_id=rice_line.id,
                conforming=True,
                quantity_received=10,
                photos=["https://files.example/ignored.jpg"],
            ),
            LineConfirmation(
                receipt_line_id=beans_line.id,
                conforming=False,
                quantity_received=10,
                photos=["https://files.example/mofo.jpg"],
            ),
        ],
    )
    db_session.commit()

    photos = list(db_session.execute(select(ReceiptLinePhoto)).scalars())
    assert [(p.receipt_line_id, p.url) for p in photos] == [(beans_line.id, "https://files.example/mofo.jpg")]
    # everything arrived but one line is non-conforming
    db_session.refresh(receipt)
    assert receipt.status == ReceiptStatus.partial


def test_processed_receipts_cannot_be_confirmed_again(db_session, order_factory, rice, school_unit):
    order = order_factory((school_unit, rice, 10))
    (receipt,) = _receipts(db_session, order)
    lines = [LineConfirmation(receipt_line_id=receipt.lines[0].id, conforming=True, quantity_received=10)]

    confirm_receipt(db_session, receipt_id=receipt.id, received_by="Diretora", lines=lines)
    db_session.commit()

    with pytest.raises(AlreadyProcessed):
        confirm_receipt(db_session, receipt_id=receipt.id, received_by="Diretora", lines=lines)
    db_session.rollback()

    assert len(_movements(db_session)) == 1
    db_session.refresh(rice)
    assert rice.school_balance == 390


def test_confirmation_token_is_checked(db_session, order_factory, rice, school_unit):
    order = order_factory((school_unit, rice, 10))
    (receipt,) = _receipts(db_session, order)
    lines = [LineConfirmation(receipt_line_id=receipt.lines[0].id, conforming=True, quantity_received=10)]

    with pytest.raises(InvalidConfirmationToken):
        confirm_receipt(db_session, receipt_id=receipt.id, received_by="Diretora", lines=lines, token="forged")
    db_session.rollback()

    result = confirm_receipt(
        db_session,
        receipt_id=receipt.id,
        received_by="Diretora",
        lines=lines,
        token=receipt.confirmation_token,
    )
    db_session.commit()
    assert result.status == ReceiptStatus.confirmed


def test_non_ascii_token_is_rejected(db_session, order_factory, rice, school_unit):
    order = order_factory((school_unit, rice, 10))
    (receipt,) = _receipts(db_session, order)

    with pytest.raises(InvalidConfirmationToken):
        confirm_receipt(
            db_session,
            receipt_id=receipt.id,
            received_by="Diretora",
            lines=[LineConfirmation(receipt_line_id=receipt.lines[0].id, conforming=True, quantity_received=10)],
            token="recepção",
        )
    db_session.rollback()

    db_session.refresh(receipt)
    assert receipt.status == ReceiptStatus.pending
    assert _movements(db_session) == []


def test_every_line_must_be_reported(db_session, order_factory, rice, beans, school_unit):
    order = order_factory((school_unit, rice, 10), (school_unit, beans, 10))
    (receipt,) = _receipts(db_session, order)
    rice_line, beans_line = receipt.lines

    with pytest.raises(IncompleteConfirmation) as exc_info:
        confirm_receipt(
            db_session,
            receipt_id=receipt.id,
            received_by="Diretora",
            lines=[LineConfirmation(receipt_line_id=rice_line.id, conforming=True, quantity_received=10)],
        )
    db_session.rollback()
    assert exc_info.value.missing_line_ids == [beans_line.id]

    with pytest.raises(NotFound):
        confirm_receipt(
            db_session,
            receipt_id=receipt.id,
            received_by="Diretora",
            lines=[
                LineConfirmation(receipt_line_id=rice_line.id, conforming=True, quantity_received=10),
                LineConfirmation(receipt_line_id=beans_line.id, conforming=True, quantity_received=10),
                LineConfirmation(receipt_line_id=999_999, conforming=True, quantity_received=1),
            ],
        )
    db_session.rollback()

    db_session.refresh(receipt)
    assert receipt.status == ReceiptStatus.pending
    assert _movements(db_session) == []


def test_a_line_reported_twice_is_rejected(db_session, order_factory, rice, school_unit):
    """
    GIVEN
    - one receipt line reported as 10 conforming and again as 2 non-conforming

    THEN
    - DuplicateLineReport before anything is written
    - receipt still pending, no stock, school pool still 390
    """
    order = order_factory((school_unit, rice, 10))
    (receipt,) = _receipts(db_session, order)
    line_id = receipt.lines[0].id

    with pytest.raises(DuplicateLineReport) as exc_info:
        confirm_receipt(
            db_session,
            receipt_id=receipt.id,
            received_by="Diretora",
            lines=[
                LineConfirmation(receipt_line_id=line_id, conforming=True, quantity_received=10),
                LineConfirmation(receipt_line_id=line_id, conforming=False, quantity_received=2),
            ],
        )
    db_session.rollback()
    assert exc_info.value.line_ids == [line_id]
    assert exc_info.value.code == "DUPLICATE_LINE_REPORT"

    db_session.refresh(receipt)
    db_session.refresh(rice)
    assert receipt.status == ReceiptStatus.pending
    assert receipt.lines[0].quantity_returned == 0
    assert rice.school_balance == 390
    assert _movements(db_session) == []


def test_missing_contract_item_aborts_the_whole_confirmation(db_session, order_factory, rice, beans, school_unit):
    """
    GIVEN
    - rice and beans ordered for one school unit (rice school pool 400 -> 390)
    - the beans contract item disappears before confirmation

    THEN
    - DataIntegrityError, and after rollback the rice line left no trace:
      no movements, no stock entry, rice pool still 390, receipt pending
    """
    if db_session.bind.dialect.name != "sqlite":
        pytest.skip("needs a database that does not enforce foreign keys")

    order = order_factory((school_unit, rice, 10), (school_unit, beans, 10))
    (receipt,) = _receipts(db_session, order)
    reports = [
        LineConfirmation(
            receipt_line_id=line.id,
            conforming=line.order_line.contract_item_id == beans.id,
            quantity_received=10 if line.order_line.contract_item_id == beans.id else 7,
        )
        for line in receipt.lines
    ]
    beans_id = beans.id

    db_session.execute(delete(ContractItem).where(ContractItem.id == beans_id))
    db_session.commit()
    db_session.expire_all()

    with pytest.raises(DataIntegrityError) as exc_info:
        confirm_receipt(db_session, receipt_id=receipt.id, received_by="Diretora", lines=reports)
    db_session.rollback()
    assert exc_info.value.receipt_id == receipt.id

    assert _movements(db_session) == []
    assert db_session.scalar(select(func.count()).select_from(StockEntry)) == 0
    db_session.refresh(rice)
    assert rice.school_balance == 390
    assert rice.current_balance == 490
    db_session.refresh(receipt)
    assert receipt.status == ReceiptStatus.pending
    assert all(line.quantity_returned == 0 for line in receipt.lines)


def test_unknown_receipt(db_session):
    with pytest.raises(NotFound):
        confirm_receipt(db_session, receipt_id=123, received_by="Diretora", lines=[])


def test_shortfall_is_returned_once_per_chain(db_session, order_factory, rice, school_unit):
    """
    GIVEN
    - a rejected delivery of 10 (10 handed back)
    - its complementary receipt of 10, rejected again

    THEN
    - the second rejection hands nothing back: at most 10 over the chain
    """
    order = order_factory((school_unit, rice, 10))
    (receipt,) = _receipts(db_session, order)

    confirm_receipt(
        db_session,
        receipt_id=receipt.id,
        received_by="Diretora",
        lines=[LineConfirmation(receipt_line_id=receipt.lines[0].id, conforming=False, quantity_received=0)],
    )
    db_session.commit()

    complementary = adjust_receipt(
        db_session,
        receipt_id=receipt.id,
        responsible="Nutricionista",
        lines=[LineAdjustment(receipt_line_id=receipt.lines[0].id, quantity_received=0)],
    )
    db_session.commit()

    result = confirm_receipt(
        db_session,
        receipt_id=complementary.id,
        received_by="Diretora",
        lines=[LineConfirmation(receipt_line_id=complementary.lines[0].id, conforming=False, quantity_received=0)],
    )
    db_session.commit()

    assert result.status == ReceiptStatus.rejected
    assert result.returned_to_contract == {}

    db_session.refresh(rice)
    assert rice.school_balance == 400
    assert rice.current_balance == rice.original_quantity

    db_session.refresh(complementary)
    assert complementary.lines[0].quantity_returned == 0
    _assert_balances_consistent(db_session)
