import os
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from merenda.app.db.base import Base
from merenda.app.db.session import make_engine, make_sessionmaker
from merenda.app.db.models.models_v1 import Contract, ContractItem, Supplier, Unit
from merenda.app.db.models.core_types import ContractStatus
from merenda.app.schemas.orders import OrderLineCreate
from merenda.services.orders import place_order

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")


engine = make_engine(TEST_DATABASE_URL)
TestingSessionLocal = make_sessionmaker(engine)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Fresh schema per test.

    Services never commit; tests commit their fixtures, call the service and
    either commit or roll back, exactly like the API endpoints do.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


# ---------- master data ----------
@pytest.fixture
def contract(db_session):
    supplier = Supplier(name="Fornecedor Teste", tax_id="12345678000199", active=True)
    db_session.add(supplier)
    db_session.flush()

    contract = Contract(
        number="CT-TEST-001",
        supplier_id=supplier.id,
        starts_on=date(2026, 1, 1),
        ends_on=date(2026, 12, 31),
        status=ContractStatus.active,
    )
    db_session.add(contract)
    db_session.commit()
    return contract


def _item(contract_id: int, name: str, price: str, daycare: int, school: int) -> ContractItem:
    return ContractItem(
        contract_id=contract_id,
        name=name,
        unit="kg",
        unit_price=Decimal(price),
        original_quantity=daycare + school,
        daycare_quantity=daycare,
        school_quantity=school,
        current_balance=daycare + school,
        daycare_balance=daycare,
        school_balance=school,
    )


@pytest.fixture
def rice(db_session, contract):
    item = _item(contract.id, "Arroz parboilizado", "5.00", daycare=100, school=400)
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture
def beans(db_session, contract):
    item = _item(contract.id, "Feijao carioca", "8.00", daycare=50, school=50)
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture
def daycare_unit(db_session):
    unit = Unit(name="CMEI Teste", code="CMEI-T1", nursery_students=20, maternal_students=15)
    db_session.add(unit)
    db_session.commit()
    return unit


@pytest.fixture
def school_unit(db_session):
    unit = Unit(name="Escola Teste", code="EM-T1", regular_students=300)
    db_session.add(unit)
    db_session.commit()
    return unit


@pytest.fixture
def other_school_unit(db_session):
    unit = Unit(name="Escola Teste 2", code="EM-T2", regular_students=120, eja_students=30)
    db_session.add(unit)
    db_session.commit()
    return unit


# ---------- flows ----------
@pytest.fixture
def order_factory(db_session, contract):
    """Place and commit an order: ``order_factory((unit, item, qty), ...)``."""

    def _place(*lines):
        order = place_order(
            db_session,
            contract_id=contract.id,
            lines=[
                OrderLineCreate(unit_id=unit.id, contract_item_id=item.id, quantity=qty)
                for unit, item, qty in lines
            ],
            expected_delivery_at=date(2026, 3, 10),
        )
        db_session.commit()
        return order

    return _place


@pytest.fixture
def client(db_session):
    from fastapi.testclient import TestClient

    from merenda.app.api.deps import get_db
    from merenda.app.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
