import threading

import pytest

from cart import (
    INITIAL_STATE,
    TAX_RATE,
    AddItem,
    ApplyCoupon,
    CartContextError,
    CartProvider,
    CartRegistry,
    CartStore,
    ClearCart,
    LoadCart,
    RemoveCoupon,
    RemoveItem,
    SetCartOpen,
    UpdateQuantity,
    cart_reducer,
    compute_totals,
    use_cart,
)
from schemas import CartLine


def line(id="p1", price=100.0, quantity=1, **kw):
    return CartLine(id=id, name=f"Product {id}", price=price, quantity=quantity, **kw)


def run(*actions, state=INITIAL_STATE):
    for action in actions:
        state = cart_reducer(state, action)
    return state


# compute_totals

def test_totals_of_empty_cart_are_zero():
    totals = compute_totals([], 0)
    assert (totals.total_items, totals.subtotal, totals.tax, totals.total) == (0, 0, 0, 0)


def test_totals_use_named_tax_rate():
    totals = compute_totals([line(price=50, quantity=2)], 0)
    assert TAX_RATE == 0.08
    assert totals.subtotal == 100
    assert totals.tax == pytest.approx(8)
    assert totals.total == pytest.approx(108)


def test_totals_accept_other_tax_rate():
    totals = compute_totals([line(price=100)], 0, tax_rate=0.2)
    assert totals.tax == pytest.approx(20)
    assert totals.total == pytest.approx(120)


def test_total_never_negative():
    assert compute_totals([line(price=10)], 1000).total == 0


def test_totals_are_not_rounded():
    totals = compute_totals([line(price=0.1, quantity=3)], 0)
    assert totals.subtotal == 0.1 * 3


# reducer

def test_distinct_adds_sum_quantities():
    state = run(AddItem(line("a", 10, 1)), AddItem(line("b", 5, 4)), AddItem(line("c", 2, 7)))
    assert state.total_items == 12
    assert [item.id for item in state.items] == ["a", "b", "c"]
    assert state.subtotal == pytest.approx(10 + 20 + 14)


def test_adding_same_id_merges_quantity():
    state = run(AddItem(line("p1", quantity=2)), AddItem(line("p1", quantity=3)))
    assert len(state.items) == 1
    assert state.items[0].quantity == 5
    assert state.total_items == 5


@pytest.mark.parametrize("qty", [0, -1, -10])
def test_update_quantity_to_non_positive_removes_line(qty):
    store = CartStore()
    store.add_item(line("p1"))
    store.update_quantity("p1", qty)
    assert not store.is_item_in_cart("p1")
    assert store.get_item_quantity("p1") == 0
    assert store.state.total_items == 0


def test_update_quantity_sets_value():
    state = run(AddItem(line("p1", price=3)), UpdateQuantity("p1", 4))
    assert state.items[0].quantity == 4
    assert state.subtotal == 12


def test_update_quantity_of_missing_item_is_noop():
    before = run(AddItem(line("p1")))
    after = cart_reducer(before, UpdateQuantity("nope", 3))
    assert after.items == before.items
    assert after.total == before.total


def test_remove_missing_item_is_noop():
    before = run(AddItem(line("p1")))
    after = cart_reducer(before, RemoveItem("nope"))
    assert after.items == before.items


def test_coupon_larger_than_total_clamps_to_zero():
    state = run(AddItem(line(price=10)), ApplyCoupon("BIG", 500))
    assert state.total == 0
    assert state.coupon_discount == 500


def test_apply_coupon_leaves_subtotal_and_tax():
    before = run(AddItem(line(price=100)))
    after = cart_reducer(before, ApplyCoupon("SAVE20", 20))
    assert after.subtotal == before.subtotal
    assert after.tax == before.tax
    assert after.total == pytest.approx(88)
    assert after.applied_coupon == "SAVE20"


def test_remove_coupon_restores_total():
    state = run(AddItem(line(price=100)), ApplyCoupon("SAVE20", 20), RemoveCoupon())
    assert state.total == state.subtotal + state.tax
    assert state.coupon_discount == 0
    assert state.applied_coupon is None


def test_coupon_discount_survives_item_changes():
    state = run(AddItem(line(price=100)), ApplyCoupon("SAVE20", 20), AddItem(line("p2", price=50)))
    assert state.total == pytest.approx(150 * 1.08 - 20)


def test_clear_cart_resets_everything():
    state = run(
        AddItem(line("a", 10, 2)),
        AddItem(line("b", 3, 1)),
        ApplyCoupon("LOYALTY", 7),
        SetCartOpen(True),
        ClearCart(),
    )
    assert state.items == ()
    assert (state.total_items, state.subtotal, state.tax, state.total) == (0, 0, 0, 0)
    assert state.applied_coupon is None
    assert state.coupon_discount == 0
    assert state.is_open is True


def test_set_cart_open_only_touches_flag():
    before = run(AddItem(line()))
    after = cart_reducer(before, SetCartOpen(True))
    assert after.is_open
    assert after.items == before.items
    assert after.total == before.total


def test_load_cart_replaces_items_and_recomputes():
    state = run(AddItem(line("old", 1, 1)), LoadCart((line("a", 2, 2), line("b", 1, 1))))
    assert [item.id for item in state.items] == ["a", "b"]
    assert state.subtotal == 5
    assert state.total_items == 3


def test_unknown_action_returns_same_state():
    state = run(AddItem(line()))
    assert cart_reducer(state, object()) is state


def test_single_item_scenario():
    store = CartStore()
    store.add_item(line("p1", price=100, quantity=1))
    s = store.state
    assert (s.total_items, s.subtotal) == (1, 100)
    assert s.tax == pytest.approx(8)
    assert s.total == pytest.approx(108)

    store.apply_coupon("SAVE20", 20)
    assert store.state.total == pytest.approx(88)

    store.remove_item("p1")
    s = store.state
    assert s.items == ()
    assert (s.total_items, s.subtotal, s.tax, s.total) == (0, 0, 0, 0)
    # only clear_cart drops the coupon
    assert s.applied_coupon == "SAVE20"
    assert s.coupon_discount == 20


# store

def test_toggle_open_close():
    store = CartStore()
    store.toggle_cart()
    assert store.state.is_open
    store.toggle_cart()
    assert not store.state.is_open
    store.open_cart()
    assert store.state.is_open
    store.close_cart()
    assert not store.state.is_open


def test_store_uses_its_tax_rate():
    store = CartStore(tax_rate=0.1)
    store.add_item(line(price=100))
    assert store.state.tax == pytest.approx(10)


def test_load_cart_through_store():
    store = CartStore()
    store.load_cart([line("a", 4, 2)])
    assert store.get_item_quantity("a") == 2
    assert store.state.subtotal == 8


def test_use_cart_outside_provider_fails():
    with pytest.raises(CartContextError):
        use_cart()


def test_provider_scopes_store():
    outer = CartStore()
    with CartProvider(outer):
        use_cart().add_item(line("a"))
        with CartProvider() as inner:
            assert use_cart() is inner
            assert not inner.is_item_in_cart("a")
        assert use_cart() is outer
    assert outer.is_item_in_cart("a")
    with pytest.raises(CartContextError):
        use_cart()


def test_registry_keeps_one_cart_per_session():
    registry = CartRegistry(tax_rate=0.05)
    first = registry.get("s1")
    assert registry.get("s1") is first
    assert registry.get("s2") is not first
    assert first.tax_rate == 0.05
    assert len(registry) == 2


def test_negative_coupon_discount_is_clamped():
    state = run(AddItem(line(price=100)), ApplyCoupon("ODD", -30))
    assert state.coupon_discount == 0
    assert state.total == pytest.approx(108)


def test_concurrent_adds_are_not_lost():
    store = CartStore()
    workers, per_worker = 8, 500

    def add_many():
        for _ in range(per_worker):
            store.add_item(line("p1", price=1))

    threads = [threading.Thread(target=add_many) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.get_item_quantity("p1") == workers * per_worker
    assert store.state.total_items == workers * per_worker


def test_concurrent_toggles_pair_up():
    store = CartStore()

    def toggle_many():
        for _ in range(1000):
            store.toggle_cart()

    threads = [threading.Thread(target=toggle_many) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # an even number of toggles lands back on closed
    assert store.state.is_open is False


def test_registry_peek_and_discard():
    registry = CartRegistry()
    assert registry.peek("s1") is None
    assert len(registry) == 0

    store = registry.get("s1")
    assert registry.peek("s1") is store
    registry.discard("s1")
    registry.discard("s1")
    assert registry.peek("s1") is None
    assert len(registry) == 0


def test_registry_evicts_least_recently_used():
    registry = CartRegistry(max_sessions=2)
    a = registry.get("a")
    registry.get("b")
    registry.get("a")
    registry.get("c")
    assert len(registry) == 2
    assert registry.peek("b") is None
    assert registry.peek("a") is a
