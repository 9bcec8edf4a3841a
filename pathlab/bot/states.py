from typing import Dict

from aiogram.fsm.state import State, StatesGroup

from pathlab.db.kv import make_store
from pathlab.services.cart import Cart


class CheckoutForm(StatesGroup):
    waiting_collection = State()
    waiting_address = State()
    waiting_slot = State()
    waiting_payment = State()
    waiting_confirm = State()


CARTS: Dict[int, Cart] = {}  # user_id -> cart


def get_cart(user_id: int) -> Cart:
    cart = CARTS.get(user_id)
    if cart is None:
        cart = Cart(make_store(f"tg:{user_id}"))
        CARTS[user_id] = cart
    return cart
