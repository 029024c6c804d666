"""
Storefront Pricing — tax rules, shipping methods, coupons and the
checkout pricing engine that composes them into a priced quote.
"""
