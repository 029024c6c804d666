"""
Storefront Policy Layer — Public API
======================================
Policies inspect state and return Optional[RejectionReason].
They never raise and never write.
"""

from core.policy.rejection import ReasonCode, RejectionReason

__all__ = [
    "ReasonCode",
    "RejectionReason",
]
