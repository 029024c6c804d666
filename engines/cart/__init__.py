"""
Storefront Cart — one mutable shopping cart per user.
"""
