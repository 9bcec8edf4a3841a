from decimal import Decimal


def require_non_negative(v: Decimal, name: str = "value") -> None:
    if not Decimal(v).is_finite():
        raise ValueError(f"{name} must be a finite number")
    if v < 0:
        raise ValueError(f"{name} must be >= 0")


def require_percentage(v: int, name: str = "discount_percentage") -> None:
    if isinstance(v, bool) or not isinstance(v, int):
        raise ValueError(f"{name} must be an integer")
    if v < 0 or v > 100:
        raise ValueError(f"{name} must be between 0 and 100")


def require_text(v: str, name: str = "value") -> None:
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"{name} must not be empty")
