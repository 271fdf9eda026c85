import pytest

from coupons import VALID_COUPONS, coupon_discount
from errors import ValidationError


def test_code_is_normalized():
    assert coupon_discount("  save20 ", 100) == ("SAVE20", 20)


@pytest.mark.parametrize("code,percent", sorted(VALID_COUPONS.items()))
def test_percentage_of_subtotal(code, percent):
    _, amount = coupon_discount(code, 200)
    assert amount == pytest.approx(200 * percent / 100)


def test_unknown_code_is_rejected():
    with pytest.raises(ValidationError) as exc:
        coupon_discount("NOPE", 100)
    assert exc.value.status_code == 400
    assert "SAVE20" in exc.value.message
