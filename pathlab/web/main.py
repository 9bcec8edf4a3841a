from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, FastAPI, Form, Header, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from pathlab.constants import COLLECTION_TYPES, LOGIN_PATH, PAYMENT_METHODS, TIME_SLOTS
from pathlab.db.kv import make_store
from pathlab.db.sqlite import find_package, find_patient, find_test, init_db, list_packages, list_tests
from pathlab.services.cart import Cart
from pathlab.services.checkout import (
    CheckoutError,
    Patient,
    build_booking_request,
    parse_slot,
    place_booking,
    require_patient,
)
from pathlab.services.pricing import final_price
from pathlab.utils.formatters import money
from pathlab.web.schemas import (
    AddPackageIn,
    AddTestIn,
    CartItemOut,
    CartOut,
    CartTotalOut,
    CheckoutIn,
    CheckoutOut,
    PackageOut,
    TestOut,
)

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

WEB_PROFILE = "web"

app = FastAPI(title="Pathology Lab Cart")

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["money"] = money

if STATIC_DIR.exists():
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


@app.on_event("startup")
def _startup() -> None:
    init_db()
    app.state.cart = Cart(make_store(WEB_PROFILE))


def get_cart(request: Request) -> Cart:
    return request.app.state.cart


def current_patient(x_patient_id: Optional[str] = Header(None)) -> Optional[Patient]:
    if not x_patient_id:
        return None
    row = find_patient(x_patient_id)
    return Patient.from_row(row) if row else None


def _cart_out(cart: Cart) -> CartOut:
    totals = cart.get_cart_total()
    return CartOut(
        items=[
            CartItemOut(
                id=it.id,
                type=it.type,
                name=it.name,
                original_price=it.original_price,
                discount_percentage=it.discount_percentage,
                final_price=it.final_price,
                test_ids=list(it.test_ids) if it.test_ids is not None else None,
                category=it.category,
                image_url=it.image_url,
            )
            for it in cart.items
        ],
        item_count=cart.get_item_count(),
        totals=CartTotalOut(
            original_total=totals.original_total,
            discount_amount=totals.discount_amount,
            final_total=totals.final_total,
        ),
        test_ids=cart.get_all_test_ids(),
    )


def _render(request: Request, name: str, ctx: dict[str, Any]) -> HTMLResponse:
    base = {
        "request": request,
        "collection_types": COLLECTION_TYPES,
        "payment_methods": PAYMENT_METHODS,
        "time_slots": TIME_SLOTS,
    }
    base.update(ctx)
    return templates.TemplateResponse(request, name, base)


@app.get("/")
def index():
    return RedirectResponse(url="/cart", status_code=303)


# ---------------- catalog ----------------

@app.get("/api/tests", response_model=list[TestOut])
def api_tests():
    return [
        TestOut(
            id=t.id,
            name=t.name,
            code=t.code,
            category=t.category,
            price=t.price,
            duration=t.duration,
            description=t.description,
            image_url=t.image_url,
        )
        for t in list_tests()
    ]


@app.get("/api/packages", response_model=list[PackageOut])
def api_packages():
    return [
        PackageOut(
            id=p.id,
            name=p.name,
            category=p.category,
            original_price=p.original_price,
            discount_percentage=p.discount_percentage,
            final_price=final_price(p.original_price, p.discount_percentage),
            test_ids=list(p.test_ids),
            report_time=p.report_time,
            description=p.description,
            image_url=p.image_url,
        )
        for p in list_packages()
    ]


# ---------------- cart (html) ----------------

@app.get("/cart", response_class=HTMLResponse)
def cart_page(request: Request, msg: str = "", cart: Cart = Depends(get_cart)):
    return _render(
        request,
        "cart.html",
        {
            "items": cart.items,
            "totals": cart.get_cart_total(),
            "tests": list_tests(),
            "packages": list_packages(),
            "is_in_cart": cart.is_in_cart,
            "message": msg,
        },
    )


@app.post("/cart/add")
def cart_add_form(
    item_id: str = Form(...),
    kind: str = Form("test"),
    cart: Cart = Depends(get_cart),
):
    if kind == "package":
        pkg = find_package(item_id)
        if not pkg or not pkg.is_active:
            return RedirectResponse(url="/cart?msg=Package not found", status_code=303)
        cart.add_package(pkg)
    else:
        test = find_test(item_id)
        if not test:
            return RedirectResponse(url="/cart?msg=Test not found", status_code=303)
        cart.add_test(test)
    return RedirectResponse(url="/cart", status_code=303)


@app.post("/cart/remove")
def cart_remove_form(item_id: str = Form(...), cart: Cart = Depends(get_cart)):
    cart.remove_item(item_id)
    return RedirectResponse(url="/cart", status_code=303)


@app.post("/cart/clear")
def cart_clear_form(cart: Cart = Depends(get_cart)):
    cart.clear_cart()
    return RedirectResponse(url="/cart", status_code=303)


# ---------------- cart (api) ----------------

@app.get("/api/cart", response_model=CartOut)
def api_cart(cart: Cart = Depends(get_cart)):
    return _cart_out(cart)


@app.post("/api/cart/tests", response_model=CartOut)
def api_cart_add_test(body: AddTestIn, cart: Cart = Depends(get_cart)):
    test = find_test(body.test_id)
    if not test:
        raise HTTPException(status_code=404, detail="Test not found")
    cart.add_test(test)
    return _cart_out(cart)


@app.post("/api/cart/packages", response_model=CartOut)
def api_cart_add_package(body: AddPackageIn, cart: Cart = Depends(get_cart)):
    pkg = find_package(body.package_id)
    if not pkg or not pkg.is_active:
        raise HTTPException(status_code=404, detail="Package not found")
    cart.add_package(pkg)
    return _cart_out(cart)


@app.delete("/api/cart/items/{item_id}", response_model=CartOut)
def api_cart_remove(item_id: str, cart: Cart = Depends(get_cart)):
    cart.remove_item(item_id)
    return _cart_out(cart)


@app.delete("/api/cart", response_model=CartOut)
def api_cart_clear(cart: Cart = Depends(get_cart)):
    cart.clear_cart()
    return _cart_out(cart)


# ---------------- checkout ----------------

@app.post("/api/checkout", response_model=CheckoutOut)
def api_checkout(
    body: CheckoutIn,
    cart: Cart = Depends(get_cart),
    patient: Optional[Patient] = Depends(current_patient),
):
    if not require_patient(patient, cart.store):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Login required", "redirect": LOGIN_PATH},
        )

    try:
        req = build_booking_request(
            cart,
            patient,
            collection_type=body.collection_type,
            slot=parse_slot(body.slot_date, body.slot_time),
            payment_method=body.payment_method,
            phone=body.phone,
            email=body.email,
            address=body.address,
            transaction_id=body.transaction_id,
        )
    except CheckoutError as e:
        raise HTTPException(status_code=400, detail=str(e))

    booking_id = place_booking(cart, req)
    return CheckoutOut(
        booking_id=booking_id,
        amount_paid=req.amount_paid,
        discount_amount=req.discount_amount,
        test_ids=req.test_ids,
        cart=_cart_out(cart),
    )
