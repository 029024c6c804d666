"""
Storefront Catalog — Item Variants
====================================
Each catalog item kind knows how to present itself.

Carts and orders call display_name() / image_url() on the entry
returned by describe_item(); they never inspect item attributes by kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from engines.catalog.models import CatalogItem, ItemKind


class CatalogEntry(Protocol):
    item_id: int

    def display_name(self) -> str:
        ...

    def image_url(self) -> Optional[str]:
        ...


@dataclass(frozen=True)
class ProductEntry:
    item_id: int
    name: str
    image: str = ""

    def display_name(self) -> str:
        return self.name

    def image_url(self) -> Optional[str]:
        return self.image or None


@dataclass(frozen=True)
class ActivityEntry:
    item_id: int
    name: str
    image: str = ""
    location: str = ""
    starts_at: Optional[datetime] = None

    def display_name(self) -> str:
        parts = [self.name]
        if self.starts_at is not None:
            parts.append(self.starts_at.strftime("%Y-%m-%d %H:%M"))
        if self.location:
            parts.append(self.location)
        return " · ".join(parts)

    def image_url(self) -> Optional[str]:
        return self.image or None


def describe_item(item: CatalogItem) -> CatalogEntry:
    if item.kind == ItemKind.ACTIVITY:
        return ActivityEntry(
            item_id=item.pk,
            name=item.name,
            image=item.image_url,
            location=item.location,
            starts_at=item.starts_at,
        )
    return ProductEntry(item_id=item.pk, name=item.name, image=item.image_url)
