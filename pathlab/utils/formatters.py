from decimal import ROUND_HALF_UP, Decimal

from pathlab.config import settings


def money(v: Decimal) -> str:
    return f"{settings.currency} {v:.{settings.decimals}f}"


def amount(v: Decimal) -> str:
    """Two-decimal string used in booking payloads."""
    return str(Decimal(v).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def cart_text(cart) -> str:
    if not cart.items:
        return "🧺 Your cart is empty. See /tests and /packages"

    lines = ["<b>Your cart:</b>"]
    for it in cart.items:
        line = f"• {it.name} — {money(it.final_price)}"
        if it.discount_percentage > 0:
            line += f" (<s>{money(it.original_price)}</s>, {it.discount_percentage}% OFF)"
        lines.append(line)
        lines.append(f"  id: <code>{it.id}</code>")

    totals = cart.get_cart_total()
    lines.append("")
    lines.append(f"Subtotal ({cart.get_item_count()} items): {money(totals.original_total)}")
    if totals.discount_amount > 0:
        lines.append(f"Discount: - {money(totals.discount_amount)}")
    lines.append(f"<b>Total: {money(totals.final_total)}</b>")
    if totals.discount_amount > 0:
        lines.append(f"You save {money(totals.discount_amount)}")
    return "\n".join(lines)
