"""
Storefront HTTP API — Dependencies
====================================
The services handlers are wired against.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.time.clock import Clock


@dataclass(frozen=True)
class HttpApiDependencies:
    cart_service: object
    pricing_engine: object
    checkout_service: object
    lifecycle: object
    orchestrator: object
    reconciliation: object
    payment_methods: object
    clock: Clock
