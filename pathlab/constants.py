ITEM_TEST = "test"
ITEM_PACKAGE = "package"
ITEM_TYPES = (ITEM_TEST, ITEM_PACKAGE)

# один слот на профиль, без версии в имени
CART_STORAGE_KEY = "pathology_cart"
REDIRECT_AFTER_LOGIN_KEY = "redirectAfterLogin"
CHECKOUT_PATH = "/checkout"
LOGIN_PATH = "/login"

COLLECTION_TYPES = {
    "walkin": "Visit lab",
    "pickup": "Home collection",
}

PAYMENT_METHODS = {
    "upi": "UPI",
    "debit_card": "Debit Card",
    "credit_card": "Credit Card",
    "net_banking": "Net Banking",
    "wallet": "Wallet",
    "bank_transfer": "Bank Transfer",
    "cash_on_delivery": "Cash on Delivery",
    "pay_at_lab": "Pay at Lab",
}

TIME_SLOTS = (
    "07:00 AM", "08:00 AM", "09:00 AM", "10:00 AM", "11:00 AM",
    "12:00 PM", "02:00 PM", "03:00 PM", "04:00 PM", "05:00 PM",
)

STORAGE_SQLITE = "sqlite"
STORAGE_FILE = "file"
STORAGE_MEMORY = "memory"
