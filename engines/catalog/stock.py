"""
Storefront Catalog — Stock Reservation
========================================
The only code that changes CatalogItem.stock_quantity.

Rules:
- Row locks are taken one item at a time in ascending item id order
  (sort_item_ids_ascending), so two checkouts sharing items can never
  wait on each other in a cycle.
- Decrements are conditional ("... WHERE stock_quantity >= N"); a
  read-modify-write without isolation never happens.
- Callers must already be inside transaction.atomic().
"""

from __future__ import annotations

import logging
from typing import Iterable

from django.db import transaction
from django.db.models import F

from core.errors import InsufficientStockError, ValidationError
from engines.catalog.models import CatalogItem

logger = logging.getLogger("storefront.orders")


def sort_item_ids_ascending(item_ids: Iterable[int]) -> list[int]:
    """Deterministic lock order: unique item ids, smallest first."""
    return sorted({int(item_id) for item_id in item_ids})


def lock_items(item_ids: Iterable[int]) -> dict[int, CatalogItem]:
    """
    SELECT ... FOR UPDATE each item row in ascending id order.
    Raises ValidationError naming the first id that does not exist.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("lock_items must run inside transaction.atomic().")

    locked: dict[int, CatalogItem] = {}
    for item_id in sort_item_ids_ascending(item_ids):
        item = (
            CatalogItem.objects.select_for_update()
            .select_related("currency")
            .filter(pk=item_id)
            .first()
        )
        if item is None:
            raise ValidationError(
                f"Item {item_id} does not exist.",
                details={"item_id": item_id},
            )
        locked[item_id] = item
    return locked


def decrement_stock_if_enough(item_id: int, quantity: int) -> bool:
    """Returns False when fewer than `quantity` units remain."""
    if quantity <= 0:
        raise ValidationError("quantity must be positive.")
    updated = CatalogItem.objects.filter(
        pk=item_id,
        stock_quantity__isnull=False,
        stock_quantity__gte=quantity,
    ).update(stock_quantity=F("stock_quantity") - quantity)
    return updated == 1


def reserve_stock(items: dict[int, CatalogItem], quantities: dict[int, int]) -> None:
    """
    Decrement every tracked item, ascending by id.
    Any shortfall raises InsufficientStockError; the caller's transaction
    rolls back the decrements already made.
    """
    for item_id in sort_item_ids_ascending(quantities):
        item = items[item_id]
        requested = quantities[item_id]
        if item.stock_quantity is None:
            continue
        if not decrement_stock_if_enough(item_id, requested):
            available = (
                CatalogItem.objects.filter(pk=item_id)
                .values_list("stock_quantity", flat=True)
                .first()
            )
            logger.info(
                f"Stock reservation failed: item {item_id} "
                f"requested {requested}, available {available}"
            )
            raise InsufficientStockError(item_id, requested, available)


def restore_stock(quantities: dict[int, int]) -> None:
    """Give reserved units back (cancellation, rejection, abandonment)."""
    for item_id in sort_item_ids_ascending(quantities):
        quantity = quantities[item_id]
        if quantity <= 0:
            continue
        CatalogItem.objects.filter(
            pk=item_id,
            stock_quantity__isnull=False,
        ).update(stock_quantity=F("stock_quantity") + quantity)
