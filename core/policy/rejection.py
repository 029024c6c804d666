"""
Storefront Policy Layer — Rejection Model
===========================================
Structured rejection reasons returned by policy functions.

Every rejection must be:
- Deterministic (same input → same rejection)
- Machine-readable (code)
- Human-readable (message)
- Traceable to the policy that produced it (policy_name)
"""

from __future__ import annotations

from dataclasses import dataclass


# ══════════════════════════════════════════════════════════════
# REJECTION REASON (frozen explanation structure)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for a refused operation.

    Fields:
        code:        Machine-readable code (e.g. 'COUPON_EXPIRED').
        message:     Human-readable explanation.
        policy_name: Name of the policy that refused.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


# ══════════════════════════════════════════════════════════════
# STANDARD REJECTION CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """
    Known rejection codes. Extensible by engines.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Coupon validation ─────────────────────────────────────
    COUPON_NOT_FOUND = "COUPON_NOT_FOUND"
    COUPON_INACTIVE = "COUPON_INACTIVE"
    COUPON_NOT_STARTED = "COUPON_NOT_STARTED"
    COUPON_EXPIRED = "COUPON_EXPIRED"
    COUPON_MIN_ORDER_NOT_MET = "COUPON_MIN_ORDER_NOT_MET"
    COUPON_USAGE_EXHAUSTED = "COUPON_USAGE_EXHAUSTED"

    # ── Order lifecycle ───────────────────────────────────────
    ORDER_TERMINAL = "ORDER_TERMINAL"
    TRANSITION_NOT_ALLOWED = "TRANSITION_NOT_ALLOWED"
    NOT_ORDER_OWNER = "NOT_ORDER_OWNER"

    # ── Payments ──────────────────────────────────────────────
    PAYMENT_METHOD_UNKNOWN = "PAYMENT_METHOD_UNKNOWN"
    PAYMENT_METHOD_DISABLED = "PAYMENT_METHOD_DISABLED"
    ORDER_NOT_PAYABLE = "ORDER_NOT_PAYABLE"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
