"""
Shared fixtures: an isolated sqlite database per test and a small catalog.
"""
import dataclasses
from decimal import Decimal

import pytest

from pathlab import config
from pathlab.bot import handlers, states
from pathlab.db import kv
from pathlab.db import sqlite as db
from pathlab.db.kv import MemoryStore
from pathlab.services.cart import Cart
from pathlab.services.catalog import HealthPackage, Test
from pathlab.utils import formatters


@pytest.fixture
def test_settings(tmp_path, monkeypatch):
    s = dataclasses.replace(
        config.settings,
        db_path=str(tmp_path / "pathlab.db"),
        storage_backend="sqlite",
        storage_dir=str(tmp_path / "carts"),
        currency="Rs.",
        decimals=0,
    )
    monkeypatch.setattr(db, "settings", s)
    monkeypatch.setattr(kv, "settings", s)
    monkeypatch.setattr(formatters, "settings", s)
    monkeypatch.setattr(handlers, "settings", s)
    states.CARTS.clear()
    db.init_db()
    yield s
    states.CARTS.clear()


@pytest.fixture
def cbc() -> Test:
    return Test(
        id="T1",
        name="Complete Blood Count",
        code="CBC",
        category="Hematology",
        price=Decimal("300"),
        duration="24 hours",
    )


@pytest.fixture
def lft() -> Test:
    return Test(
        id="T2",
        name="Liver Function Test",
        code="LFT",
        category="Biochemistry",
        price=Decimal("700"),
        duration="24 hours",
    )


@pytest.fixture
def full_body() -> HealthPackage:
    return HealthPackage(
        id="P1",
        name="Full Body Checkup",
        category="Wellness",
        original_price=Decimal("1000"),
        test_ids=("T1", "T2"),
        discount_percentage=20,
        report_time="48 hours",
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def cart(store) -> Cart:
    return Cart(store)


@pytest.fixture
def seeded_catalog(test_settings, cbc, lft, full_body):
    """The same catalog as the fixtures above, stored in sqlite."""
    db.add_test(cbc.code, cbc.name, cbc.category, cbc.price, cbc.duration, test_id=cbc.id)
    db.add_test(lft.code, lft.name, lft.category, lft.price, lft.duration, test_id=lft.id)
    db.add_package(
        full_body.name,
        full_body.category,
        full_body.original_price,
        full_body.test_ids,
        discount_percentage=full_body.discount_percentage,
        report_time=full_body.report_time,
        package_id=full_body.id,
    )
    db.add_package(
        "Retired Panel",
        "Wellness",
        Decimal("500"),
        ["T1"],
        is_active=False,
        package_id="P-OLD",
    )
    return test_settings
