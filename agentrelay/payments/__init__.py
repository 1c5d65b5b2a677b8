"""
Payment verification for paid registry operations.
"""

from .explorer import HiroExplorer
from .gate import (
    PaymentDecision,
    PaymentGate,
    evaluate_transaction,
    normalize_reference,
)
from .x402 import orchestrate_discovery, payment_required, register_discovery

__all__ = [
    "HiroExplorer",
    "PaymentDecision",
    "PaymentGate",
    "evaluate_transaction",
    "normalize_reference",
    "payment_required",
    "register_discovery",
    "orchestrate_discovery",
]
