"""Order receipt reconciliation.

Key Components:
    - OrderReconciler: confirm / get_order / get_orders_by_account /
      receipt_status / archive
    - derive_order_status: Pure status derivation from receipt counts
"""
from vendor_ingestion.services.reconciliation.reconciler import (
    OrderReconciler,
    derive_order_status,
)

__all__ = [
    "OrderReconciler",
    "derive_order_status",
]
