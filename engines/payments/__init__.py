"""
Storefront Payments — gateway adapters, payment orchestration and
asynchronous reconciliation of provider callbacks.
"""
