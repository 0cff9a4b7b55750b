from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select

from merenda.app.db.session import SessionLocal
from merenda.app.db.models.models_v1 import Contract, ContractItem, Supplier, Unit
from merenda.app.db.models.core_types import ContractStatus


def run_seed():
    db = SessionLocal()
    try:
        # 1) Supplier + contract
        supplier = db.scalar(select(Supplier).where(Supplier.name == "Fornecedor Demo"))
        if not supplier:
            supplier = Supplier(name="Fornecedor Demo", tax_id="00000000000100", active=True)
            db.add(supplier)
            db.flush()

        contract = db.scalar(select(Contract).where(Contract.number == "CT-DEMO-001"))
        if not contract:
            contract = Contract(
                number="CT-DEMO-001",
                supplier_id=supplier.id,
                starts_on=date(date.today().year, 1, 1),
                ends_on=date(date.today().year, 12, 31),
                status=ContractStatus.active,
            )
            db.add(contract)
            db.flush()

            # 2) Items, split between the daycare and school pools
            for name, unit, price, daycare, school in (
                ("Arroz parboilizado", "kg", "5.40", 400, 1600),
                ("Feijao carioca", "kg", "7.90", 200, 800),
                ("Leite integral", "L", "4.20", 1200, 800),
            ):
                db.add(
                    ContractItem(
                        contract_id=contract.id,
                        name=name,
                        unit=unit,
                        unit_price=Decimal(price),
                        original_quantity=daycare + school,
                        daycare_quantity=daycare,
                        school_quantity=school,
                        current_balance=daycare + school,
                        daycare_balance=daycare,
                        school_balance=school,
                    )
                )

        # 3) One unit per pool
        if not db.scalar(select(Unit).where(Unit.code == "CMEI-01")):
            db.add(Unit(name="CMEI Demo", code="CMEI-01", nursery_students=30, maternal_students=40))
        if not db.scalar(select(Unit).where(Unit.code == "EM-01")):
            db.add(Unit(name="Escola Municipal Demo", code="EM-01", regular_students=350, eja_students=40))

        db.commit()
        print("SEED OK: contract=CT-DEMO-001, units=CMEI-01,EM-01")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
