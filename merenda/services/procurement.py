"""
Procurement service.

This module orchestrates the purchasing flow (order, receipts, confirmation,
adjustment) but holds NO stock or balance arithmetic of its own.

Stock logic lives in:
    merenda.services.inventory
Contract balances live in:
    merenda.services.contract_ledger
"""

from merenda.services.adjustment import adjust_receipt
from merenda.services.confirmation import ConfirmationResult, confirm_receipt
from merenda.services.orders import get_order, list_orders, place_order
from merenda.services.receipts import (
    OrderConsolidation,
    consolidate_order,
    generate_receipts,
    get_receipt,
    receipt_chain,
)

__all__ = [
    "ConfirmationResult",
    "OrderConsolidation",
    "adjust_receipt",
    "confirm_receipt",
    "consolidate_order",
    "generate_receipts",
    "get_order",
    "get_receipt",
    "list_orders",
    "place_order",
    "receipt_chain",
]
