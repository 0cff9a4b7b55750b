"""
Typed errors for the reconciliation engine.

Every error carries a machine-readable ``code`` class attribute and the
structured context needed to render a message (entity id, quantities).
None of them is transient: each one means the caller must send new input.

    MerendaError
    +-- NotFound
    +-- StateError
    |   +-- AlreadyProcessed
    |   +-- AlreadyAdjusted
    |   +-- NotConfirmed
    +-- ReconciliationError
    |   +-- NoDiscrepancy
    |   +-- IncompleteConfirmation
    |   +-- InvalidConfirmationToken
    |   +-- DuplicateLineReport
    +-- BalanceError
    |   +-- InsufficientBalance
    +-- StockError
    |   +-- InsufficientStock
    |   +-- MissingDestination
    |   +-- MissingEvidence
    |   +-- PoolMismatch
    |   +-- SameUnitTransfer
    +-- InvalidQuantity
    +-- DataIntegrityError

The HTTP layer maps them to status codes; services only raise.
"""

from __future__ import annotations

from typing import Any


class MerendaError(Exception):
    code: str = "MERENDA_ERROR"

    def context(self) -> dict[str, Any]:
        """Public attributes, for API payloads and log records."""
        return {k: v for k, v in vars(self).items() if not k.startswith("_")}


class NotFound(MerendaError):
    code: str = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


# ---------- state machine ----------
class StateError(MerendaError):
    code: str = "STATE_ERROR"


class AlreadyProcessed(StateError):
    """Receipt (or order) already left its pending state."""

    code: str = "ALREADY_PROCESSED"

    def __init__(self, entity: str, entity_id: Any, status: str):
        self.entity = entity
        self.entity_id = entity_id
        self.status = status
        super().__init__(f"{entity} {entity_id} already processed (status={status})")


class AlreadyAdjusted(StateError):
    code: str = "ALREADY_ADJUSTED"

    def __init__(self, receipt_id: int):
        self.receipt_id = receipt_id
        super().__init__(f"Receipt {receipt_id} was already adjusted")


class NotConfirmed(StateError):
    code: str = "NOT_CONFIRMED"

    def __init__(self, receipt_id: int):
        self.receipt_id = receipt_id
        super().__init__(f"Receipt {receipt_id} has not been confirmed yet")


# ---------- reconciliation ----------
class ReconciliationError(MerendaError):
    code: str = "RECONCILIATION_ERROR"


class NoDiscrepancy(ReconciliationError):
    code: str = "NO_DISCREPANCY"

    def __init__(self, receipt_id: int):
        self.receipt_id = receipt_id
        super().__init__(f"Adjustment of receipt {receipt_id} leaves no outstanding quantity")


class IncompleteConfirmation(ReconciliationError):
    code: str = "INCOMPLETE_CONFIRMATION"

    def __init__(self, receipt_id: int, missing_line_ids: list[int]):
        self.receipt_id = receipt_id
        self.missing_line_ids = missing_line_ids
        super().__init__(f"Receipt {receipt_id}: no data submitted for lines {missing_line_ids}")


class InvalidConfirmationToken(ReconciliationError):
    code: str = "INVALID_CONFIRMATION_TOKEN"

    def __init__(self, receipt_id: int):
        self.receipt_id = receipt_id
        super().__init__(f"Invalid confirmation token for receipt {receipt_id}")


class DuplicateLineReport(ReconciliationError):
    code: str = "DUPLICATE_LINE_REPORT"

    def __init__(self, receipt_id: int, line_ids: list[int]):
        self.receipt_id = receipt_id
        self.line_ids = line_ids
        super().__init__(f"Receipt {receipt_id}: lines {line_ids} reported more than once")


# ---------- contract balance ----------
class BalanceError(MerendaError):
    code: str = "BALANCE_ERROR"


class InsufficientBalance(BalanceError):
    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, item_id: int, item_name: str, pool: str, requested: int, available: int):
        self.item_id = item_id
        self.item_name = item_name
        self.pool = pool
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient {pool} balance for item '{item_name}' ({item_id}): "
            f"requested {requested}, available {available}"
        )


# ---------- stock ----------
class StockError(MerendaError):
    code: str = "STOCK_ERROR"


class InsufficientStock(StockError):
    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, stock_entry_id: int, requested: int, available: int):
        self.stock_entry_id = stock_entry_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock in entry {stock_entry_id}: requested {requested}, available {available}"
        )


class MissingDestination(StockError):
    code: str = "MISSING_DESTINATION"

    def __init__(self, stock_entry_id: int):
        self.stock_entry_id = stock_entry_id
        super().__init__(f"Transfer from entry {stock_entry_id} needs a destination unit")


class MissingEvidence(StockError):
    code: str = "MISSING_EVIDENCE"

    def __init__(self, stock_entry_id: int):
        self.stock_entry_id = stock_entry_id
        super().__init__(f"Disposal from entry {stock_entry_id} needs a photo")


class PoolMismatch(StockError):
    code: str = "POOL_MISMATCH"

    def __init__(self, stock_entry_id: int, destination_unit_id: int, expected: str, actual: str):
        self.stock_entry_id = stock_entry_id
        self.destination_unit_id = destination_unit_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Unit {destination_unit_id} belongs to pool {actual}, "
            f"entry {stock_entry_id} is {expected}"
        )


class SameUnitTransfer(StockError):
    code: str = "SAME_UNIT_TRANSFER"

    def __init__(self, stock_entry_id: int, unit_id: int):
        self.stock_entry_id = stock_entry_id
        self.unit_id = unit_id
        super().__init__(f"Transfer from entry {stock_entry_id} targets its own unit {unit_id}")


class InvalidQuantity(MerendaError):
    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: int, detail: str = "quantity must be positive"):
        self.quantity = quantity
        super().__init__(f"Invalid quantity {quantity}: {detail}")


class DataIntegrityError(MerendaError):
    """A row the transaction relies on vanished or is inconsistent."""

    code: str = "DATA_INTEGRITY_ERROR"

    def __init__(self, detail: str, **context: Any):
        self.detail = detail
        for key, value in context.items():
            setattr(self, key, value)
        super().__init__(detail)
