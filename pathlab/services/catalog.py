"""
Read shapes of the lab catalog: single diagnostic tests and health packages.

Records are validated once, when they are built, so the cart can copy
their fields without re-checking them.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Optional, Tuple

from pathlab.utils.validators import require_non_negative, require_percentage, require_text


def to_decimal(v: Any) -> Decimal:
    if isinstance(v, bool):
        raise TypeError("price must be a number")
    return Decimal(str(v))


@dataclass(frozen=True)
class Test:
    __test__ = False  # not a pytest class

    id: str
    name: str
    code: str
    category: str
    price: Decimal
    duration: str
    description: Optional[str] = None
    image_url: Optional[str] = None

    def __post_init__(self) -> None:
        require_text(self.id, "id")
        require_text(self.name, "name")
        require_non_negative(self.price, "price")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Test":
        return cls(
            id=str(row["id"]),
            name=row["name"],
            code=row["code"],
            category=row["category"],
            price=to_decimal(row["price"]),
            duration=row["duration"],
            description=row["description"],
            image_url=row["image_url"],
        )


@dataclass(frozen=True)
class HealthPackage:
    id: str
    name: str
    category: str
    original_price: Decimal
    test_ids: Tuple[str, ...] = field(default_factory=tuple)
    discount_percentage: int = 0
    report_time: str = ""
    is_active: bool = True
    description: Optional[str] = None
    image_url: Optional[str] = None
    sort_order: int = 0

    def __post_init__(self) -> None:
        require_text(self.id, "id")
        require_text(self.name, "name")
        require_non_negative(self.original_price, "original_price")
        require_percentage(self.discount_percentage or 0)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "HealthPackage":
        return cls(
            id=str(row["id"]),
            name=row["name"],
            category=row["category"],
            original_price=to_decimal(row["original_price"]),
            test_ids=tuple(json.loads(row["test_ids"] or "[]")),
            discount_percentage=int(row["discount_percentage"] or 0),
            report_time=row["report_time"] or "",
            is_active=bool(row["is_active"]),
            description=row["description"],
            image_url=row["image_url"],
            sort_order=int(row["sort_order"] or 0),
        )
