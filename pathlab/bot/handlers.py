import shlex
from datetime import date, datetime

from aiogram import Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, ReplyKeyboardRemove

from pathlab.bot.keyboards import collection_kb, confirm_kb, main_kb, payment_kb
from pathlab.bot.states import CheckoutForm, get_cart
from pathlab.config import settings
from pathlab.constants import CHECKOUT_PATH, COLLECTION_TYPES, PAYMENT_METHODS, TIME_SLOTS
from pathlab.db.sqlite import (
    add_package,
    add_patient,
    add_test,
    find_package,
    find_patient_by_tg,
    find_test,
    find_test_by_code,
    find_tests,
    init_db,
    list_packages,
    list_tests,
)
from pathlab.services.checkout import (
    CheckoutError,
    Patient,
    build_booking_request,
    parse_slot,
    place_booking,
    pop_redirect_after_login,
    require_patient,
)
from pathlab.services.pricing import final_price
from pathlab.utils.formatters import cart_text, money

router = Router()

SLOTS_HINT = ", ".join(TIME_SLOTS)


def _is_admin(message: Message) -> bool:
    try:
        return int(message.from_user.id) == int(settings.admin_id)
    except Exception:
        return False


def _patient_for(message: Message):
    row = find_patient_by_tg(int(message.from_user.id))
    return Patient.from_row(row) if row else None


def _parse_price(text: str) -> str:
    return text.strip().replace(",", ".")


def _parse_slot_text(text: str) -> datetime:
    """'2026-10-20 07:00 AM'"""
    parts = text.strip().split(maxsplit=1)
    if len(parts) != 2:
        raise CheckoutError("Format: YYYY-MM-DD HH:MM AM")
    try:
        day = datetime.strptime(parts[0], "%Y-%m-%d").date()
    except ValueError:
        raise CheckoutError("Date must look like 2026-10-20") from None
    if day < date.today():
        raise CheckoutError("Pick today or a later date")
    return parse_slot(day, parts[1])


def _resolve_item_id(cart, token: str) -> str:
    if cart.is_in_cart(token):
        return token
    test = find_test_by_code(token)
    return test.id if test else token


@router.message(Command("start"))
async def cmd_start(message: Message):
    init_db()
    await message.answer(
        "🧪 Welcome! Browse /tests and /packages, then check your /cart.",
        reply_markup=main_kb(),
    )


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext):
    await state.clear()
    await message.answer("❎ Cancelled.", reply_markup=ReplyKeyboardRemove())


@router.message(Command("help"))
async def cmd_help(message: Message):
    text = (
        "<b>Commands</b>\n\n"
        "<b>Catalog</b>\n"
        "/tests — all tests\n"
        "/packages — health packages\n\n"
        "<b>Cart</b>\n"
        "/add_test CODE [CODE ...] — add tests by code\n"
        "/add_package ID — add a package\n"
        "/cart — show cart\n"
        "/remove ID|CODE — remove one item\n"
        "/clear — empty the cart\n\n"
        "<b>Booking</b>\n"
        "/register NAME PHONE [EMAIL] — create your patient profile\n"
        "/checkout — book sample collection\n"
        "/cancel — stop the current step\n"
    )
    if _is_admin(message):
        text += (
            "\n<b>Admin</b>\n"
            '/test_add CODE "NAME" CATEGORY PRICE DURATION\n'
            '/package_add "NAME" CATEGORY PRICE DISCOUNT CODE1,CODE2,...\n'
        )
    await message.answer(text)


# ---------------- catalog ----------------

@router.message(Command("tests"))
async def cmd_tests(message: Message):
    init_db()
    rows = list_tests()
    if not rows:
        await message.answer("No tests in the catalog yet.")
        return
    lines = ["<b>Tests:</b>"]
    for t in rows:
        lines.append(f"• <code>{t.code}</code> {t.name} — {money(t.price)} ({t.duration})")
    await message.answer("\n".join(lines))


@router.message(Command("packages"))
async def cmd_packages(message: Message):
    init_db()
    rows = list_packages()
    if not rows:
        await message.answer("No health packages yet.")
        return
    lines = ["<b>Health packages:</b>"]
    for p in rows:
        price = money(final_price(p.original_price, p.discount_percentage))
        if p.discount_percentage:
            price += f" (<s>{money(p.original_price)}</s>, {p.discount_percentage}% OFF)"
        lines.append(f"• {p.name} — {price}, {len(p.test_ids)} tests")
        included = ", ".join(t.name for t in find_tests(p.test_ids))
        if included:
            lines.append(f"  <i>{included}</i>")
        lines.append(f"  /add_package {p.id}")
    await message.answer("\n".join(lines))


@router.message(Command("test_add"))
async def cmd_test_add(message: Message):
    if not _is_admin(message):
        return

    init_db()
    try:
        args = shlex.split(message.text)
    except ValueError:
        args = []
    if len(args) != 6:
        await message.answer('Format: /test_add CODE "NAME" CATEGORY PRICE DURATION')
        return

    _, code, name, category, price, duration = args
    try:
        test = add_test(code.upper(), name, category, _parse_price(price), duration)
    except (ValueError, ArithmeticError) as e:
        await message.answer(f"❌ Test not added: {e}")
        return
    await message.answer(f"✅ Test added: {test.code} {test.name} — {money(test.price)}")


@router.message(Command("package_add"))
async def cmd_package_add(message: Message):
    if not _is_admin(message):
        return

    init_db()
    try:
        args = shlex.split(message.text)
    except ValueError:
        args = []
    if len(args) != 6:
        await message.answer('Format: /package_add "NAME" CATEGORY PRICE DISCOUNT CODE1,CODE2,...')
        return

    _, name, category, price, discount, codes = args
    test_ids = []
    for code in filter(None, (c.strip() for c in codes.split(","))):
        test = find_test_by_code(code)
        if not test:
            await message.answer(f"❌ Unknown test code: {code}")
            return
        test_ids.append(test.id)

    try:
        pkg = add_package(name, category, _parse_price(price), test_ids, discount_percentage=int(discount))
    except (ValueError, ArithmeticError) as e:
        await message.answer(f"❌ Package not added: {e}")
        return
    await message.answer(f"✅ Package added: {pkg.name} ({len(pkg.test_ids)} tests), id <code>{pkg.id}</code>")


# ---------------- cart ----------------

@router.message(Command("add_test"))
async def cmd_add_test(message: Message):
    init_db()
    parts = message.text.split()
    if len(parts) < 2:
        await message.answer("Format: /add_test CODE [CODE ...]")
        return

    cart = get_cart(message.from_user.id)
    added, already, missing = [], [], []
    for code in parts[1:]:
        test = find_test_by_code(code) or find_test(code)
        if not test:
            missing.append(code)
        elif cart.is_in_cart(test.id):
            already.append(test.name)
        else:
            cart.add_test(test)
            added.append(test.name)

    lines = []
    if added:
        lines.append("✅ Added: " + ", ".join(added))
    if already:
        lines.append("Already in cart: " + ", ".join(already))
    if missing:
        lines.append("❌ Not found: " + ", ".join(missing))
    lines.append(f"Items in cart: {cart.get_item_count()}")
    await message.answer("\n".join(lines))


@router.message(Command("add_package"))
async def cmd_add_package(message: Message):
    init_db()
    parts = message.text.split()
    if len(parts) != 2:
        await message.answer("Format: /add_package ID")
        return

    pkg = find_package(parts[1])
    if not pkg or not pkg.is_active:
        await message.answer("❌ Package not found. See /packages")
        return

    cart = get_cart(message.from_user.id)
    if cart.is_in_cart(pkg.id):
        await message.answer(f"Already in cart: {pkg.name}")
        return
    cart.add_package(pkg)
    await message.answer(f"✅ Added: {pkg.name}\nItems in cart: {cart.get_item_count()}")


@router.message(Command("cart"))
async def cmd_cart(message: Message):
    await message.answer(cart_text(get_cart(message.from_user.id)))


@router.message(Command("remove"))
async def cmd_remove(message: Message):
    parts = message.text.split()
    if len(parts) != 2:
        await message.answer("Format: /remove ID|CODE")
        return

    cart = get_cart(message.from_user.id)
    item_id = _resolve_item_id(cart, parts[1])
    if not cart.is_in_cart(item_id):
        await message.answer("Nothing to remove: item is not in your cart.")
        return
    cart.remove_item(item_id)
    await message.answer(f"✅ Removed. Items in cart: {cart.get_item_count()}")


@router.message(Command("clear"))
async def cmd_clear(message: Message):
    get_cart(message.from_user.id).clear_cart()
    await message.answer("🧺 Cart cleared.")


# ---------------- session ----------------

@router.message(Command("register"))
async def cmd_register(message: Message):
    init_db()
    if _patient_for(message):
        await message.answer("You are already registered.")
        return

    try:
        args = shlex.split(message.text)
    except ValueError:
        args = []
    if len(args) not in (3, 4):
        await message.answer('Format: /register "NAME" PHONE [EMAIL]')
        return

    name, phone = args[1].strip(), args[2].strip()
    email = args[3].strip() if len(args) == 4 else None
    add_patient(name, phone, email=email, tg_id=int(message.from_user.id))

    text = f"✅ Registered: {name}"
    store = get_cart(message.from_user.id).store
    if pop_redirect_after_login(store) == CHECKOUT_PATH:
        text += "\nContinue your booking: /checkout"
    await message.answer(text)


# ---------------- checkout ----------------

@router.message(Command("checkout"))
async def cmd_checkout(message: Message, state: FSMContext):
    init_db()
    cart = get_cart(message.from_user.id)
    if not require_patient(_patient_for(message), cart.store):
        await message.answer('Please register first: /register "NAME" PHONE [EMAIL]')
        return
    if cart.get_item_count() == 0:
        await message.answer(cart_text(cart))
        return

    await state.clear()
    await state.set_state(CheckoutForm.waiting_collection)
    await message.answer(
        "1/4) Collection type:\n"
        + "\n".join(f"• {k} — {v}" for k, v in COLLECTION_TYPES.items())
        + "\nCancel: /cancel",
        reply_markup=collection_kb(),
    )


@router.message(CheckoutForm.waiting_collection)
async def checkout_collection(message: Message, state: FSMContext):
    kind = (message.text or "").strip().lower()
    if kind not in COLLECTION_TYPES:
        await message.answer("Choose walkin or pickup. Cancel: /cancel", reply_markup=collection_kb())
        return

    await state.update_data(collection_type=kind)
    if kind == "pickup":
        await state.set_state(CheckoutForm.waiting_address)
        await message.answer("Send the pickup address in one message.", reply_markup=ReplyKeyboardRemove())
        return

    await state.set_state(CheckoutForm.waiting_slot)
    await message.answer(
        f"2/4) Date and time, e.g. 2026-10-20 07:00 AM\nSlots: {SLOTS_HINT}",
        reply_markup=ReplyKeyboardRemove(),
    )


@router.message(CheckoutForm.waiting_address)
async def checkout_address(message: Message, state: FSMContext):
    address = (message.text or "").strip()
    if not address or address.startswith("/"):
        await message.answer("Send the address as text. Cancel: /cancel")
        return

    await state.update_data(address=address)
    await state.set_state(CheckoutForm.waiting_slot)
    await message.answer(f"2/4) Date and time, e.g. 2026-10-20 07:00 AM\nSlots: {SLOTS_HINT}")


@router.message(CheckoutForm.waiting_slot)
async def checkout_slot(message: Message, state: FSMContext):
    try:
        slot = _parse_slot_text(message.text or "")
    except CheckoutError as e:
        await message.answer(f"❌ {e}\nCancel: /cancel")
        return

    await state.update_data(slot=slot.isoformat())
    await state.set_state(CheckoutForm.waiting_payment)
    await message.answer(
        "3/4) Payment method:\n" + "\n".join(f"• {k} — {v}" for k, v in PAYMENT_METHODS.items()),
        reply_markup=payment_kb(),
    )


@router.message(CheckoutForm.waiting_payment)
async def checkout_payment(message: Message, state: FSMContext):
    method = (message.text or "").strip().lower()
    if method not in PAYMENT_METHODS:
        await message.answer("Choose a payment method from the list. Cancel: /cancel", reply_markup=payment_kb())
        return

    await state.update_data(payment_method=method)
    await state.set_state(CheckoutForm.waiting_confirm)
    cart = get_cart(message.from_user.id)
    await message.answer(
        cart_text(cart) + "\n\n4/4) Confirm booking? Send <b>yes</b>.",
        reply_markup=confirm_kb(),
    )


@router.message(CheckoutForm.waiting_confirm)
async def checkout_confirm(message: Message, state: FSMContext):
    if (message.text or "").strip().lower() != "yes":
        await message.answer("Send yes to confirm or /cancel.")
        return

    data = await state.get_data()
    cart = get_cart(message.from_user.id)
    patient = _patient_for(message)
    if not require_patient(patient, cart.store):
        await state.clear()
        await message.answer('Please register first: /register "NAME" PHONE [EMAIL]')
        return

    try:
        req = build_booking_request(
            cart,
            patient,
            collection_type=data.get("collection_type", "walkin"),
            slot=datetime.fromisoformat(data["slot"]),
            payment_method=data.get("payment_method", ""),
            address=data.get("address"),
        )
    except CheckoutError as e:
        await message.answer(f"❌ {e}", reply_markup=ReplyKeyboardRemove())
        return
    finally:
        await state.clear()

    booking_id = place_booking(cart, req)
    await message.answer(
        f"✅ Booking confirmed. ID: <b>{booking_id[-8:].upper()}</b>\n"
        f"Tests: {len(req.test_ids)}\n"
        f"Amount: {settings.currency} {req.amount_paid}",
        reply_markup=main_kb(),
    )
