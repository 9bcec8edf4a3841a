from __future__ import annotations

import json
import logging
import os
import sqlite3
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from pathlab.config import settings
from pathlab.services.catalog import HealthPackage, Test, to_decimal

logger = logging.getLogger(__name__)


def _connect() -> sqlite3.Connection:
    os.makedirs(os.path.dirname(settings.db_path) or ".", exist_ok=True)
    conn = sqlite3.connect(settings.db_path)
    conn.row_factory = sqlite3.Row
    return conn


def _new_id() -> str:
    return uuid.uuid4().hex


def init_db() -> None:
    conn = _connect()
    try:
        with open(os.path.join(os.path.dirname(__file__), "schema.sql"), "r", encoding="utf-8") as f:
            conn.executescript(f.read())
        conn.commit()
    finally:
        conn.close()


# ---------------- tests ----------------

def add_test(
    code: str,
    name: str,
    category: str,
    price: Decimal,
    duration: str,
    description: Optional[str] = None,
    image_url: Optional[str] = None,
    test_id: Optional[str] = None,
) -> Test:
    test = Test(
        id=test_id or _new_id(),
        name=name,
        code=code,
        category=category,
        price=to_decimal(price),
        duration=duration,
        description=description,
        image_url=image_url,
    )
    conn = _connect()
    try:
        conn.execute(
            "INSERT OR REPLACE INTO tests(id, name, code, category, price, duration, description, image_url) "
            "VALUES(?,?,?,?,?,?,?,?)",
            (test.id, test.name, test.code, test.category, str(test.price), test.duration,
             test.description, test.image_url),
        )
        conn.commit()
    finally:
        conn.close()
    return test


def list_tests() -> List[Test]:
    conn = _connect()
    try:
        rows = conn.execute("SELECT * FROM tests ORDER BY category, name").fetchall()
        return [Test.from_row(r) for r in rows]
    finally:
        conn.close()


def find_test(test_id: str) -> Optional[Test]:
    conn = _connect()
    try:
        row = conn.execute("SELECT * FROM tests WHERE id = ?", (test_id,)).fetchone()
        return Test.from_row(row) if row else None
    finally:
        conn.close()


def find_test_by_code(code: str) -> Optional[Test]:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT * FROM tests WHERE UPPER(code) = UPPER(?)", (code.strip(),)
        ).fetchone()
        return Test.from_row(row) if row else None
    finally:
        conn.close()


def find_tests(test_ids: Iterable[str]) -> List[Test]:
    ids = list(test_ids)
    if not ids:
        return []
    conn = _connect()
    try:
        marks = ",".join("?" for _ in ids)
        rows = conn.execute(f"SELECT * FROM tests WHERE id IN ({marks})", ids).fetchall()
        by_id = {r["id"]: Test.from_row(r) for r in rows}
        return [by_id[i] for i in ids if i in by_id]
    finally:
        conn.close()


# ---------------- health packages ----------------

def add_package(
    name: str,
    category: str,
    original_price: Decimal,
    test_ids: Iterable[str],
    discount_percentage: int = 0,
    report_time: str = "",
    description: Optional[str] = None,
    image_url: Optional[str] = None,
    is_active: bool = True,
    sort_order: int = 0,
    package_id: Optional[str] = None,
) -> HealthPackage:
    pkg = HealthPackage(
        id=package_id or _new_id(),
        name=name,
        category=category,
        original_price=to_decimal(original_price),
        test_ids=tuple(test_ids),
        discount_percentage=discount_percentage,
        report_time=report_time,
        is_active=is_active,
        description=description,
        image_url=image_url,
        sort_order=sort_order,
    )
    conn = _connect()
    try:
        conn.execute(
            """
            INSERT OR REPLACE INTO health_packages(
                id, name, category, description, test_ids, report_time,
                original_price, discount_percentage, is_active, image_url, sort_order
            ) VALUES(?,?,?,?,?,?,?,?,?,?,?)
            """,
            (
                pkg.id, pkg.name, pkg.category, pkg.description, json.dumps(list(pkg.test_ids)),
                pkg.report_time, str(pkg.original_price), pkg.discount_percentage,
                1 if pkg.is_active else 0, pkg.image_url, pkg.sort_order,
            ),
        )
        conn.commit()
    finally:
        conn.close()
    return pkg


def list_packages(active_only: bool = True) -> List[HealthPackage]:
    conn = _connect()
    try:
        sql = "SELECT * FROM health_packages"
        if active_only:
            sql += " WHERE is_active = 1"
        rows = conn.execute(sql + " ORDER BY sort_order, name").fetchall()
        return [HealthPackage.from_row(r) for r in rows]
    finally:
        conn.close()


def find_package(package_id: str) -> Optional[HealthPackage]:
    conn = _connect()
    try:
        row = conn.execute("SELECT * FROM health_packages WHERE id = ?", (package_id,)).fetchone()
        return HealthPackage.from_row(row) if row else None
    finally:
        conn.close()


# ---------------- patients ----------------

def add_patient(
    name: str,
    phone: str,
    email: Optional[str] = None,
    address: Optional[str] = None,
    tg_id: Optional[int] = None,
) -> Dict[str, Any]:
    patient_id = _new_id()
    conn = _connect()
    try:
        conn.execute(
            "INSERT INTO patients(id, name, phone, email, address, tg_id) VALUES(?,?,?,?,?,?)",
            (patient_id, name, phone, email, address, tg_id),
        )
        conn.commit()
    finally:
        conn.close()
    return {"id": patient_id, "name": name, "phone": phone, "email": email, "address": address, "tg_id": tg_id}


def find_patient(patient_id: str) -> Optional[Dict[str, Any]]:
    conn = _connect()
    try:
        row = conn.execute("SELECT * FROM patients WHERE id = ?", (patient_id,)).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def find_patient_by_tg(tg_id: int) -> Optional[Dict[str, Any]]:
    conn = _connect()
    try:
        row = conn.execute("SELECT * FROM patients WHERE tg_id = ?", (tg_id,)).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


# ---------------- bookings ----------------

def create_booking(req) -> str:
    """
    Записывает заявку из корзины:
    - test_ids уже без дублей
    - суммы строками с двумя знаками
    """
    booking_id = _new_id()
    created_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    conn = _connect()
    try:
        conn.execute(
            """
            INSERT INTO bookings(
                id, patient_id, phone, email, test_ids, health_package_id, type, slot,
                payment_method, transaction_id, amount_paid, discount_amount,
                collection_address, created_at
            ) VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?,?)
            """,
            (
                booking_id, req.patient_id, req.phone, req.email, json.dumps(list(req.test_ids)),
                req.health_package_id, req.type, req.slot.isoformat(), req.payment_method,
                req.transaction_id, req.amount_paid, req.discount_amount,
                req.collection_address, created_at,
            ),
        )
        conn.commit()
    finally:
        conn.close()
    logger.info("Booking %s created: %d tests, amount %s", booking_id, len(req.test_ids), req.amount_paid)
    return booking_id


def list_bookings(patient_id: Optional[str] = None) -> List[Dict[str, Any]]:
    conn = _connect()
    try:
        if patient_id:
            rows = conn.execute(
                "SELECT * FROM bookings WHERE patient_id = ? ORDER BY created_at DESC", (patient_id,)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM bookings ORDER BY created_at DESC").fetchall()
        out = []
        for r in rows:
            d = dict(r)
            d["test_ids"] = json.loads(d["test_ids"])
            out.append(d)
        return out
    finally:
        conn.close()
