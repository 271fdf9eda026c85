"""
Shopping cart engine.

The cart is an immutable ``CartState`` advanced by ``cart_reducer`` one
action at a time. ``CartStore`` owns the current state and exposes the
imperative operations the storefront uses; it is passed around explicitly,
or provisioned for a scope with ``CartProvider`` and fetched with
``use_cart``. Nothing here is persisted.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, Optional, Tuple

from schemas import CartLine

logger = logging.getLogger(__name__)

TAX_RATE = 0.08


# Pricing

@dataclass(frozen=True)
class Totals:
    total_items: int
    subtotal: float
    tax: float
    total: float


def compute_totals(items: Iterable[CartLine], coupon_discount: float = 0, tax_rate: float = TAX_RATE) -> Totals:
    """Derive item count, subtotal, tax and total. No rounding is applied."""
    total_items = 0
    subtotal = 0.0
    for line in items:
        total_items += line.quantity
        subtotal += line.price * line.quantity
    tax = subtotal * tax_rate
    total = max(0.0, subtotal + tax - coupon_discount)
    return Totals(total_items=total_items, subtotal=subtotal, tax=tax, total=total)


# State and actions

@dataclass(frozen=True)
class CartState:
    items: Tuple[CartLine, ...] = ()
    is_open: bool = False
    total_items: int = 0
    subtotal: float = 0.0
    tax: float = 0.0
    total: float = 0.0
    applied_coupon: Optional[str] = None
    coupon_discount: float = 0.0

    def to_dict(self) -> dict:
        return {
            "items": [line.model_dump() for line in self.items],
            "isOpen": self.is_open,
            "totalItems": self.total_items,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "total": self.total,
            "appliedCoupon": self.applied_coupon,
            "couponDiscount": self.coupon_discount,
        }


INITIAL_STATE = CartState()


@dataclass(frozen=True)
class AddItem:
    line: CartLine


@dataclass(frozen=True)
class RemoveItem:
    id: str


@dataclass(frozen=True)
class UpdateQuantity:
    id: str
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class SetCartOpen:
    is_open: bool


@dataclass(frozen=True)
class ApplyCoupon:
    code: str
    discount: float


@dataclass(frozen=True)
class RemoveCoupon:
    pass


@dataclass(frozen=True)
class LoadCart:
    items: Tuple[CartLine, ...] = field(default_factory=tuple)


def _with_items(state: CartState, items: Iterable[CartLine], tax_rate: float) -> CartState:
    items = tuple(items)
    totals = compute_totals(items, state.coupon_discount, tax_rate)
    return replace(
        state,
        items=items,
        total_items=totals.total_items,
        subtotal=totals.subtotal,
        tax=totals.tax,
        total=totals.total,
    )


def cart_reducer(state: CartState, action: object, tax_rate: float = TAX_RATE) -> CartState:
    """Apply one action. Never raises; unknown actions leave the state as is."""
    if isinstance(action, AddItem):
        line = action.line
        if any(item.id == line.id for item in state.items):
            items = [
                item.model_copy(update={"quantity": item.quantity + line.quantity}) if item.id == line.id else item
                for item in state.items
            ]
        else:
            items = list(state.items) + [line]
        return _with_items(state, items, tax_rate)

    if isinstance(action, RemoveItem):
        return _with_items(state, [item for item in state.items if item.id != action.id], tax_rate)

    if isinstance(action, UpdateQuantity):
        # zero or negative quantity means "remove", not an error
        if action.quantity <= 0:
            return _with_items(state, [item for item in state.items if item.id != action.id], tax_rate)
        items = [
            item.model_copy(update={"quantity": action.quantity}) if item.id == action.id else item
            for item in state.items
        ]
        return _with_items(state, items, tax_rate)

    if isinstance(action, ClearCart):
        return replace(
            state,
            items=(),
            applied_coupon=None,
            coupon_discount=0.0,
            total_items=0,
            subtotal=0.0,
            tax=0.0,
            total=0.0,
        )

    if isinstance(action, SetCartOpen):
        return replace(state, is_open=action.is_open)

    if isinstance(action, ApplyCoupon):
        discount = max(0.0, action.discount)
        return replace(
            state,
            applied_coupon=action.code,
            coupon_discount=discount,
            total=max(0.0, state.subtotal + state.tax - discount),
        )

    if isinstance(action, RemoveCoupon):
        return replace(
            state,
            applied_coupon=None,
            coupon_discount=0.0,
            total=state.subtotal + state.tax,
        )

    if isinstance(action, LoadCart):
        return _with_items(state, action.items, tax_rate)

    return state


# Store

class CartStore:
    def __init__(self, state: CartState = INITIAL_STATE, tax_rate: float = TAX_RATE):
        self._state = state
        self.tax_rate = tax_rate
        self._lock = threading.RLock()

    @property
    def state(self) -> CartState:
        return self._state

    def dispatch(self, action: object) -> CartState:
        with self._lock:
            self._state = cart_reducer(self._state, action, self.tax_rate)
            return self._state

    def add_item(self, line: CartLine) -> None:
        self.dispatch(AddItem(line))

    def remove_item(self, item_id: str) -> None:
        self.dispatch(RemoveItem(item_id))

    def update_quantity(self, item_id: str, quantity: int) -> None:
        self.dispatch(UpdateQuantity(item_id, quantity))

    def clear_cart(self) -> None:
        self.dispatch(ClearCart())

    def open_cart(self) -> None:
        self.dispatch(SetCartOpen(True))

    def close_cart(self) -> None:
        self.dispatch(SetCartOpen(False))

    def toggle_cart(self) -> None:
        with self._lock:
            self.dispatch(SetCartOpen(not self._state.is_open))

    def apply_coupon(self, code: str, discount: float) -> None:
        # the store records whatever it is told; code legitimacy is checked by the caller
        self.dispatch(ApplyCoupon(code, discount))

    def remove_coupon(self) -> None:
        self.dispatch(RemoveCoupon())

    def load_cart(self, items: Iterable[CartLine]) -> None:
        self.dispatch(LoadCart(tuple(items)))

    def get_item_quantity(self, item_id: str) -> int:
        for item in self._state.items:
            if item.id == item_id:
                return item.quantity
        return 0

    def is_item_in_cart(self, item_id: str) -> bool:
        return any(item.id == item_id for item in self._state.items)


class CartContextError(RuntimeError):
    pass


_current_store: ContextVar[Optional[CartStore]] = ContextVar("current_cart_store", default=None)


@contextmanager
def CartProvider(store: Optional[CartStore] = None) -> Iterator[CartStore]:
    """Provision ``store`` (or a fresh one) for the duration of the block."""
    store = store if store is not None else CartStore()
    token = _current_store.set(store)
    try:
        yield store
    finally:
        _current_store.reset(token)


def use_cart() -> CartStore:
    store = _current_store.get()
    if store is None:
        raise CartContextError("use_cart must be used within a CartProvider")
    return store


class CartRegistry:
    """In-memory carts keyed by browser session id.

    At most ``max_sessions`` carts are kept; the least recently used one is
    dropped when a new session would exceed the cap.
    """

    def __init__(self, tax_rate: float = TAX_RATE, max_sessions: int = 10000):
        self.tax_rate = tax_rate
        self.max_sessions = max_sessions
        self._carts: OrderedDict[str, CartStore] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> CartStore:
        """Return the session's cart, creating it on first use."""
        with self._lock:
            store = self._carts.get(session_id)
            if store is None:
                logger.debug("New cart for session %s", session_id)
                store = CartStore(tax_rate=self.tax_rate)
                self._carts[session_id] = store
                while len(self._carts) > self.max_sessions:
                    evicted, _ = self._carts.popitem(last=False)
                    logger.info("Evicted cart for session %s", evicted)
            else:
                self._carts.move_to_end(session_id)
            return store

    def peek(self, session_id: str) -> Optional[CartStore]:
        with self._lock:
            store = self._carts.get(session_id)
            if store is not None:
                self._carts.move_to_end(session_id)
            return store

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._carts.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._carts)
