"""
Storefront Payments — Application Services
============================================
"""

from engines.payments.services.methods import PaymentMethodDirectory
from engines.payments.services.orchestrator import PaymentOrchestrator, StartedPayment
from engines.payments.services.reconciliation import (
    ReconcileOutcome,
    ReconcileResult,
    ReconciliationHandler,
)
from engines.payments.services.summary import (
    PaymentState,
    PaymentSummary,
    current_transaction,
    paid_amount_for_order,
    payment_summary,
)

__all__ = [
    "PaymentMethodDirectory",
    "PaymentOrchestrator",
    "StartedPayment",
    "ReconcileOutcome",
    "ReconcileResult",
    "ReconciliationHandler",
    "PaymentState",
    "PaymentSummary",
    "current_transaction",
    "paid_amount_for_order",
    "payment_summary",
]
