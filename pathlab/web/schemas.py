"""
Request and response bodies of the cart API.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class AddTestIn(BaseModel):
    test_id: str


class AddPackageIn(BaseModel):
    package_id: str


class TestOut(BaseModel):
    id: str
    name: str
    code: str
    category: str
    price: Decimal
    duration: str
    description: Optional[str] = None
    image_url: Optional[str] = None


class PackageOut(BaseModel):
    id: str
    name: str
    category: str
    original_price: Decimal
    discount_percentage: int
    final_price: Decimal
    test_ids: List[str]
    report_time: str
    description: Optional[str] = None
    image_url: Optional[str] = None


class CartItemOut(BaseModel):
    id: str
    type: str = Field(..., description="test | package")
    name: str
    original_price: Decimal
    discount_percentage: int
    final_price: Decimal
    test_ids: Optional[List[str]] = None
    category: Optional[str] = None
    image_url: Optional[str] = None


class CartTotalOut(BaseModel):
    original_total: Decimal
    discount_amount: Decimal
    final_total: Decimal


class CartOut(BaseModel):
    items: List[CartItemOut]
    item_count: int
    totals: CartTotalOut
    test_ids: List[str]


class CheckoutIn(BaseModel):
    collection_type: str = Field("walkin", description="walkin | pickup")
    slot_date: date
    slot_time: str = Field(..., description="e.g. 07:00 AM")
    payment_method: str
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    transaction_id: Optional[str] = None


class CheckoutOut(BaseModel):
    booking_id: str
    amount_paid: str
    discount_amount: Optional[str] = None
    test_ids: List[str]
    cart: CartOut
