"""
Bot handler tests: handlers are called directly with a stub message and a
real FSM context over aiogram's in-memory storage.
"""
import asyncio
import dataclasses
from datetime import date, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage

from pathlab.bot import handlers
from pathlab.bot.states import CARTS, get_cart
from pathlab.db import sqlite as db

USER_ID = 501
ADMIN_ID = 900


def make_message(text: str, user_id: int = USER_ID):
    return SimpleNamespace(text=text, from_user=SimpleNamespace(id=user_id), answer=AsyncMock())


def last_answer(message) -> str:
    return message.answer.await_args.args[0]


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def fsm() -> FSMContext:
    return FSMContext(storage=MemoryStorage(), key=StorageKey(bot_id=1, chat_id=USER_ID, user_id=USER_ID))


@pytest.fixture
def admin(seeded_catalog, monkeypatch):
    monkeypatch.setattr(handlers, "settings", dataclasses.replace(handlers.settings, admin_id=ADMIN_ID))


class TestCartCommands:
    def test_add_tests_by_code(self, seeded_catalog):
        msg = make_message("/add_test cbc LFT XYZ")
        run(handlers.cmd_add_test(msg))

        text = last_answer(msg)
        assert "Added: Complete Blood Count, Liver Function Test" in text
        assert "Not found: XYZ" in text
        assert get_cart(USER_ID).get_all_test_ids() == ["T1", "T2"]

    def test_add_existing_reports_already_in_cart(self, seeded_catalog):
        run(handlers.cmd_add_test(make_message("/add_test CBC")))
        msg = make_message("/add_test CBC")
        run(handlers.cmd_add_test(msg))
        assert "Already in cart: Complete Blood Count" in last_answer(msg)
        assert get_cart(USER_ID).get_item_count() == 1

    def test_inactive_package_is_not_added(self, seeded_catalog):
        msg = make_message("/add_package P-OLD")
        run(handlers.cmd_add_package(msg))
        assert "not found" in last_answer(msg)
        assert get_cart(USER_ID).get_item_count() == 0

    def test_cart_text_shows_savings(self, seeded_catalog):
        run(handlers.cmd_add_test(make_message("/add_test CBC")))
        run(handlers.cmd_add_package(make_message("/add_package P1")))

        msg = make_message("/cart")
        run(handlers.cmd_cart(msg))
        text = last_answer(msg)
        assert "Subtotal (2 items): Rs. 1300" in text
        assert "Total: Rs. 1100" in text
        assert "You save Rs. 200" in text

    def test_remove_by_code_and_clear(self, seeded_catalog):
        run(handlers.cmd_add_test(make_message("/add_test CBC LFT")))

        run(handlers.cmd_remove(make_message("/remove cbc")))
        assert [it.id for it in get_cart(USER_ID).items] == ["T2"]

        msg = make_message("/remove nothing")
        run(handlers.cmd_remove(msg))
        assert "not in your cart" in last_answer(msg)

        run(handlers.cmd_clear(make_message("/clear")))
        assert get_cart(USER_ID).get_item_count() == 0

    def test_cart_is_kept_across_registry_reset(self, seeded_catalog):
        run(handlers.cmd_add_package(make_message("/add_package P1")))
        CARTS.clear()
        assert [it.id for it in get_cart(USER_ID).items] == ["P1"]

    def test_users_have_separate_carts(self, seeded_catalog):
        run(handlers.cmd_add_test(make_message("/add_test CBC", user_id=1)))
        assert get_cart(2).get_item_count() == 0

    def test_packages_list_included_tests(self, seeded_catalog):
        msg = make_message("/packages")
        run(handlers.cmd_packages(msg))
        text = last_answer(msg)
        assert "Full Body Checkup" in text
        assert "Complete Blood Count, Liver Function Test" in text
        assert "/add_package P1" in text
        assert "Retired Panel" not in text


class TestAdminCommands:
    def test_non_admin_is_ignored(self, seeded_catalog):
        msg = make_message('/test_add TSH "Thyroid" Hormones 450 "1 day"')
        run(handlers.cmd_test_add(msg))
        msg.answer.assert_not_awaited()
        assert db.find_test_by_code("TSH") is None

    def test_admin_adds_test_and_package(self, admin):
        msg = make_message('/test_add tsh "Thyroid Profile" Hormones 450 "1 day"', user_id=ADMIN_ID)
        run(handlers.cmd_test_add(msg))
        assert "Test added: TSH" in last_answer(msg)

        msg = make_message('/package_add "Thyroid Plus" Wellness 1200 25 TSH,CBC', user_id=ADMIN_ID)
        run(handlers.cmd_package_add(msg))
        assert "Package added: Thyroid Plus (2 tests)" in last_answer(msg)

        pkg = [p for p in db.list_packages() if p.name == "Thyroid Plus"][0]
        assert pkg.discount_percentage == 25
        assert pkg.test_ids == (db.find_test_by_code("TSH").id, "T1")

    def test_admin_bad_discount(self, admin):
        msg = make_message('/package_add "Broken" Wellness 1200 150 CBC', user_id=ADMIN_ID)
        run(handlers.cmd_package_add(msg))
        assert "Package not added" in last_answer(msg)


class TestCheckoutFlow:
    def test_checkout_requires_registration(self, seeded_catalog, fsm):
        run(handlers.cmd_add_test(make_message("/add_test CBC")))

        msg = make_message("/checkout")
        run(handlers.cmd_checkout(msg, fsm))
        assert "register" in last_answer(msg)
        assert run(fsm.get_state()) is None

        msg = make_message('/register "Asha Rao" 9876543210')
        run(handlers.cmd_register(msg))
        assert "Continue your booking: /checkout" in last_answer(msg)

    def test_walkin_booking(self, seeded_catalog, fsm):
        run(handlers.cmd_register(make_message('/register "Asha Rao" 9876543210 asha@example.com')))
        run(handlers.cmd_add_test(make_message("/add_test CBC")))
        run(handlers.cmd_add_package(make_message("/add_package P1")))
        tomorrow = (date.today() + timedelta(days=1)).isoformat()

        async def scenario():
            await handlers.cmd_checkout(make_message("/checkout"), fsm)
            await handlers.checkout_collection(make_message("walkin"), fsm)

            bad = make_message("2001-01-01 07:00 AM")
            await handlers.checkout_slot(bad, fsm)
            assert "later date" in last_answer(bad)

            await handlers.checkout_slot(make_message(f"{tomorrow} 07:00 AM"), fsm)
            await handlers.checkout_payment(make_message("pay_at_lab"), fsm)
            done = make_message("yes")
            await handlers.checkout_confirm(done, fsm)
            return last_answer(done)

        text = run(scenario())

        assert "Booking confirmed" in text
        assert "Amount: Rs. 1100.00" in text
        assert get_cart(USER_ID).get_item_count() == 0
        assert run(fsm.get_state()) is None

        patient = db.find_patient_by_tg(USER_ID)
        (booking,) = db.list_bookings(patient["id"])
        assert sorted(booking["test_ids"]) == ["T1", "T2"]
        assert booking["type"] == "walkin"
        assert booking["slot"] == f"{tomorrow}T07:00:00"

    def test_pickup_asks_for_address(self, seeded_catalog, fsm):
        run(handlers.cmd_register(make_message('/register "Asha Rao" 9876543210')))
        run(handlers.cmd_add_test(make_message("/add_test CBC")))

        async def scenario():
            await handlers.cmd_checkout(make_message("/checkout"), fsm)
            await handlers.checkout_collection(make_message("pickup"), fsm)
            state_after_type = await fsm.get_state()
            await handlers.checkout_address(make_message("12 MG Road, Pune"), fsm)
            return state_after_type, await fsm.get_data()

        state, data = run(scenario())
        assert state == handlers.CheckoutForm.waiting_address.state
        assert data["address"] == "12 MG Road, Pune"
        assert data["collection_type"] == "pickup"
