"""
Storefront Catalog — items, currencies and embedded stock records.
Catalog editing is owned elsewhere; checkout only reads prices and
reserves stock.
"""
