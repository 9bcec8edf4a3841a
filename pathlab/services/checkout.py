"""
Hand-off from the cart to a booking.

The cart itself never fails; everything that can go wrong at checkout
(no patient, missing contact data, empty cart) is decided here and raised
as CheckoutError for the surfaces to show.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, List, Mapping, Optional

from pathlab.constants import (
    CHECKOUT_PATH,
    COLLECTION_TYPES,
    ITEM_PACKAGE,
    PAYMENT_METHODS,
    REDIRECT_AFTER_LOGIN_KEY,
)
from pathlab.db.kv import KeyValueStore
from pathlab.db.sqlite import create_booking
from pathlab.services.cart import Cart
from pathlab.utils.formatters import amount

logger = logging.getLogger(__name__)


class CheckoutError(ValueError):
    pass


@dataclass(frozen=True)
class Patient:
    id: str
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Patient":
        return cls(
            id=row["id"],
            name=row["name"],
            phone=row["phone"],
            email=row.get("email"),
            address=row.get("address"),
        )


@dataclass(frozen=True)
class BookingRequest:
    patient_id: str
    phone: str
    test_ids: List[str]
    type: str  # walkin / pickup
    slot: datetime
    payment_method: str
    amount_paid: str
    email: Optional[str] = None
    health_package_id: Optional[str] = None
    transaction_id: Optional[str] = None
    discount_amount: Optional[str] = None
    collection_address: Optional[str] = None


def require_patient(patient: Optional[Patient], store: KeyValueStore) -> bool:
    if patient is None:
        store.set(REDIRECT_AFTER_LOGIN_KEY, CHECKOUT_PATH)
        return False
    return True


def pop_redirect_after_login(store: KeyValueStore) -> Optional[str]:
    target = store.get(REDIRECT_AFTER_LOGIN_KEY)
    if target is not None:
        store.delete(REDIRECT_AFTER_LOGIN_KEY)
    return target


def parse_slot(day: date, time_text: str) -> datetime:
    """'07:00 AM' / '12:00 PM' on the given day."""
    try:
        clock, period = time_text.strip().upper().split()
        hours, minutes = (int(x) for x in clock.split(":"))
    except ValueError:
        raise CheckoutError(f"Invalid time slot: {time_text!r}") from None
    if period not in ("AM", "PM") or not 1 <= hours <= 12 or not 0 <= minutes < 60:
        raise CheckoutError(f"Invalid time slot: {time_text!r}")
    if period == "PM" and hours != 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0
    return datetime.combine(day, time(hours, minutes))


def build_booking_request(
    cart: Cart,
    patient: Patient,
    *,
    collection_type: str,
    slot: datetime,
    payment_method: str,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    transaction_id: Optional[str] = None,
) -> BookingRequest:
    if cart.get_item_count() == 0:
        raise CheckoutError("Cart is empty")

    phone = (phone or patient.phone or "").strip()
    if not phone:
        raise CheckoutError("Phone number is required")

    if collection_type not in COLLECTION_TYPES:
        raise CheckoutError(f"Unknown collection type: {collection_type}")

    address = (address or "").strip()
    if collection_type == "pickup" and not address:
        raise CheckoutError("Pickup address is required for home collection")

    if payment_method not in PAYMENT_METHODS:
        raise CheckoutError("Select a payment method")

    totals = cart.get_cart_total()
    package = next((it for it in cart.items if it.type == ITEM_PACKAGE), None)

    return BookingRequest(
        patient_id=patient.id,
        phone=phone,
        email=(email or patient.email) or None,
        test_ids=cart.get_all_test_ids(),
        health_package_id=package.id if package else None,
        type=collection_type,
        slot=slot,
        payment_method=payment_method,
        transaction_id=transaction_id or None,
        amount_paid=amount(totals.final_total),
        discount_amount=amount(totals.discount_amount) if totals.discount_amount > 0 else None,
        collection_address=address if collection_type == "pickup" else None,
    )


def place_booking(cart: Cart, req: BookingRequest) -> str:
    booking_id = create_booking(req)
    cart.clear_cart()
    logger.info("Cart cleared after booking %s", booking_id)
    return booking_id
