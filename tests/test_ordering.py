from ordering import by_order, changed_orders, next_order, reindex, reorder


def docs(*pairs):
    return [{"id": i, "order": o} for i, o in pairs]


def orders(items):
    return [(d["id"], d["order"]) for d in items]


def test_reindex_assigns_positions():
    assert orders(reindex(docs(("a", 4), ("b", 9), ("c", 2)))) == [("a", 1), ("b", 2), ("c", 3)]


def test_reindex_with_key_is_stable_on_ties():
    result = reindex(docs(("a", 2), ("b", 1), ("c", 2), ("d", 1)), key=by_order)
    assert orders(result) == [("b", 1), ("d", 2), ("a", 3), ("c", 4)]


def test_reindex_is_idempotent():
    once = reindex(docs(("a", 1), ("b", 2), ("c", 3)), key=by_order)
    assert reindex(once, key=by_order) == once


def test_reindex_after_gap_closes_it():
    remaining = docs(("a", 1), ("c", 3), ("d", 4))
    assert orders(reindex(remaining, key=by_order)) == [("a", 1), ("c", 2), ("d", 3)]


def test_reindex_does_not_mutate_input():
    original = docs(("a", 5))
    reindex(original)
    assert original == [{"id": "a", "order": 5}]


def test_next_order():
    assert next_order([]) == 1
    assert next_order(docs(("a", 1), ("b", 2))) == 3


def test_reorder_ignores_prior_orders():
    result = reorder(docs(("a", 1), ("b", 2), ("c", 3)), ["c", "b", "a"])
    assert orders(result) == [("c", 1), ("b", 2), ("a", 3)]


def test_reorder_appends_unlisted_after_listed():
    result = reorder(docs(("a", 1), ("b", 2), ("c", 3), ("d", 4)), ["d", "a"])
    assert orders(result) == [("d", 1), ("a", 2), ("b", 3), ("c", 4)]


def test_reorder_skips_unknown_and_duplicate_ids():
    result = reorder(docs(("a", 1), ("b", 2)), ["zz", "b", "b", "a"])
    assert orders(result) == [("b", 1), ("a", 2)]


def test_changed_orders_reports_only_moves():
    before = docs(("a", 1), ("b", 2), ("c", 3))
    after = reorder(before, ["a", "c", "b"])
    assert orders(changed_orders(before, after)) == [("c", 2), ("b", 3)]
