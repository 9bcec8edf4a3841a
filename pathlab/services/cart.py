"""
Cart of diagnostic tests and health packages.

Items are copied from the catalog when added and never change afterwards:
a later catalog price or discount change does not touch an item already in
the cart. Every mutation writes the full snapshot to the store.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pathlab.constants import CART_STORAGE_KEY, ITEM_PACKAGE, ITEM_TEST, ITEM_TYPES
from pathlab.db.kv import KeyValueStore
from pathlab.services.catalog import HealthPackage, Test, to_decimal
from pathlab.services.pricing import CartTotal, cart_totals, final_price
from pathlab.utils.validators import require_non_negative, require_percentage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartItem:
    id: str
    type: str  # test / package
    name: str
    original_price: Decimal
    discount_percentage: int
    final_price: Decimal
    test_ids: Optional[Tuple[str, ...]] = None
    category: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "originalPrice": str(self.original_price),
            "discountPercentage": self.discount_percentage,
            "finalPrice": str(self.final_price),
            "category": self.category,
            "imageUrl": self.image_url,
        }
        if self.test_ids is not None:
            d["testIds"] = list(self.test_ids)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CartItem":
        if not isinstance(d, dict):
            raise TypeError("cart item must be an object")
        item_id, item_type, name = d["id"], d["type"], d["name"]
        if not isinstance(item_id, str) or not isinstance(name, str):
            raise TypeError("id and name must be strings")
        if item_type not in ITEM_TYPES:
            raise ValueError(f"unknown item type: {item_type!r}")

        discount = d.get("discountPercentage") or 0
        require_percentage(discount, "discountPercentage")
        if item_type == ITEM_TEST and discount != 0:
            raise ValueError("tests carry no discount")

        category, image_url = d.get("category"), d.get("imageUrl")
        if not all(v is None or isinstance(v, str) for v in (category, image_url)):
            raise TypeError("category and imageUrl must be strings or null")

        test_ids = d.get("testIds")
        if test_ids is not None:
            if not isinstance(test_ids, list) or not all(isinstance(t, str) for t in test_ids):
                raise TypeError("testIds must be a list of strings")
            test_ids = tuple(test_ids)

        original = to_decimal(d["originalPrice"])
        final = to_decimal(d["finalPrice"])
        require_non_negative(original, "originalPrice")
        require_non_negative(final, "finalPrice")
        if final > original:
            raise ValueError("inconsistent prices")

        return cls(
            id=item_id,
            type=item_type,
            name=name,
            original_price=original,
            discount_percentage=discount,
            final_price=final,
            test_ids=test_ids,
            category=category,
            image_url=image_url,
        )


def item_from_test(test: Test) -> CartItem:
    return CartItem(
        id=test.id,
        type=ITEM_TEST,
        name=test.name,
        original_price=test.price,
        discount_percentage=0,
        final_price=test.price,
        category=test.category,
        image_url=test.image_url,
    )


def item_from_package(pkg: HealthPackage) -> CartItem:
    discount = pkg.discount_percentage or 0
    return CartItem(
        id=pkg.id,
        type=ITEM_PACKAGE,
        name=pkg.name,
        original_price=pkg.original_price,
        discount_percentage=discount,
        final_price=final_price(pkg.original_price, discount),
        test_ids=tuple(pkg.test_ids),
        category=pkg.category,
        image_url=pkg.image_url,
    )


def dump_items(items: List[CartItem]) -> str:
    return json.dumps([it.to_dict() for it in items], ensure_ascii=False)


def load_items(raw: str) -> List[CartItem]:
    """Parse a persisted snapshot. Raises on anything that is not a valid cart."""
    data = json.loads(raw)
    if not isinstance(data, list):
        raise TypeError("cart snapshot must be a list")
    items = [CartItem.from_dict(d) for d in data]
    ids = [it.id for it in items]
    if len(set(ids)) != len(ids):
        raise ValueError("duplicate item ids in cart snapshot")
    return items


class Cart:
    def __init__(self, store: KeyValueStore, key: str = CART_STORAGE_KEY) -> None:
        self.store = store
        self.key = key
        self._items: List[CartItem] = self._load()

    def _load(self) -> List[CartItem]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        try:
            return load_items(raw)
        except (ValueError, TypeError, KeyError, ArithmeticError) as e:
            logger.warning("Discarding malformed cart under %r: %s", self.key, e)
            self.store.delete(self.key)
            return []

    def _save(self) -> None:
        self.store.set(self.key, dump_items(self._items))

    @property
    def items(self) -> Tuple[CartItem, ...]:
        return tuple(self._items)

    def add_test(self, test: Test) -> None:
        if self.is_in_cart(test.id):
            return
        self._items.append(item_from_test(test))
        self._save()

    def add_package(self, pkg: HealthPackage) -> None:
        if self.is_in_cart(pkg.id):
            return
        self._items.append(item_from_package(pkg))
        self._save()

    def remove_item(self, item_id: str) -> None:
        self._items = [it for it in self._items if it.id != item_id]
        self._save()

    def clear_cart(self) -> None:
        self._items = []
        self.store.delete(self.key)

    def get_cart_total(self) -> CartTotal:
        return cart_totals(self._items)

    def get_item_count(self) -> int:
        return len(self._items)

    def is_in_cart(self, item_id: str) -> bool:
        return any(it.id == item_id for it in self._items)

    def get_all_test_ids(self) -> List[str]:
        test_ids: List[str] = []
        for it in self._items:
            if it.type == ITEM_TEST:
                test_ids.append(it.id)
            elif it.type == ITEM_PACKAGE and it.test_ids:
                test_ids.extend(it.test_ids)
        # порядок первого появления, без дублей
        return list(dict.fromkeys(test_ids))
