"""
Storefront Orders — order assembly, stock reservation and the
order/payment state machine.
"""
