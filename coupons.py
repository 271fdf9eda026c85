from typing import Dict, Tuple

from errors import ValidationError

# percent off the cart subtotal
VALID_COUPONS: Dict[str, int] = {
    "SAVE20": 20,
    "WELCOME10": 10,
    "FREESHIP": 15,
    "NEWCUSTOMER": 25,
    "LOYALTY": 30,
}


def coupon_discount(code: str, subtotal: float) -> Tuple[str, float]:
    """Normalize ``code`` and turn its percentage into an absolute discount."""
    normalized = (code or "").strip().upper()
    percent = VALID_COUPONS.get(normalized)
    if not percent:
        raise ValidationError(
            "Invalid coupon code. Try: " + ", ".join(VALID_COUPONS)
        )
    return normalized, subtotal * percent / 100
