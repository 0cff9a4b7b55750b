"""
Contract balance ledger.

Each contract item carries an overall balance and two pool balances; the
overall one always equals the sum of the pools. Every write goes through
``decrement_pool`` / ``increment_pool``, which move the pool and the overall
balance by the same delta on a row locked for the current transaction.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from merenda.app.db.models.models_v1 import ContractItem
from merenda.app.db.models.core_types import Pool
from merenda.services.errors import DataIntegrityError, InsufficientBalance, InvalidQuantity

_POOL_BALANCE_FIELD = {
    Pool.daycare: "daycare_balance",
    Pool.school: "school_balance",
}


def lock_contract_item(db: Session, item_id: int) -> ContractItem:
    item = (
        db.execute(
            select(ContractItem)
            .where(ContractItem.id == item_id)
            .with_for_update()
        )
        .scalar_one_or_none()
    )
    if item is None:
        raise DataIntegrityError(f"Contract item {item_id} is missing", item_id=item_id)
    return item


def pool_balance(item: ContractItem, pool: Pool) -> int:
    return getattr(item, _POOL_BALANCE_FIELD[pool])


def _apply(item: ContractItem, pool: Pool, delta: int) -> None:
    field = _POOL_BALANCE_FIELD[pool]
    setattr(item, field, getattr(item, field) + delta)
    item.current_balance += delta


def decrement_pool(db: Session, item_id: int, pool: Pool, qty: int) -> ContractItem:
    if qty <= 0:
        raise InvalidQuantity(qty)

    item = lock_contract_item(db, item_id)
    available = min(pool_balance(item, pool), item.current_balance)
    if qty > available:
        raise InsufficientBalance(
            item_id=item.id,
            item_name=item.name,
            pool=pool.value,
            requested=qty,
            available=available,
        )

    _apply(item, pool, -qty)
    return item


def increment_pool(db: Session, item_id: int, pool: Pool, qty: int) -> ContractItem:
    if qty <= 0:
        raise InvalidQuantity(qty)

    item = lock_contract_item(db, item_id)
    _apply(item, pool, qty)
    return item
