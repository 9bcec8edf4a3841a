from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

from pathlab.constants import COLLECTION_TYPES, PAYMENT_METHODS


def main_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text="/tests"), KeyboardButton(text="/packages")],
            [KeyboardButton(text="/cart"), KeyboardButton(text="/checkout")],
            [KeyboardButton(text="/help")],
        ],
        resize_keyboard=True,
    )


def collection_kb() -> ReplyKeyboardMarkup:
    rows = [[KeyboardButton(text=key)] for key in COLLECTION_TYPES]
    rows.append([KeyboardButton(text="/cancel")])
    return ReplyKeyboardMarkup(keyboard=rows, resize_keyboard=True, one_time_keyboard=True)


def payment_kb() -> ReplyKeyboardMarkup:
    keys = list(PAYMENT_METHODS)
    rows = [[KeyboardButton(text=k) for k in keys[i:i + 2]] for i in range(0, len(keys), 2)]
    rows.append([KeyboardButton(text="/cancel")])
    return ReplyKeyboardMarkup(keyboard=rows, resize_keyboard=True, one_time_keyboard=True)


def confirm_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text="yes"), KeyboardButton(text="/cancel")]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
