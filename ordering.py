"""
Sibling ordering for sections and products.

All helpers work on plain documents (dicts with an ``order`` field) and
return new documents; the inputs are never mutated. Positions are 1-based.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

Document = Dict[str, Any]


def by_order(doc: Document) -> int:
    return doc.get("order") or 0


def next_order(siblings: Sequence[Any]) -> int:
    return len(siblings) + 1


def reindex(entities: Iterable[Document], key: Optional[Callable[[Document], Any]] = None) -> List[Document]:
    """Renumber ``order`` to 1..N.

    With ``key`` the entities are stable-sorted first, so ties keep their
    incoming sequence. Reindexing an already contiguous list yields the same
    order values.
    """
    docs = list(entities)
    if key is not None:
        docs = sorted(docs, key=key)
    return [{**doc, "order": position} for position, doc in enumerate(docs, start=1)]


def reorder(entities: Iterable[Document], ids: Sequence[str], id_field: str = "id") -> List[Document]:
    """Assign ``order`` by position in ``ids``, ignoring prior order values.

    Ids that match no entity are skipped. Entities missing from ``ids`` follow
    the listed ones in their previous relative order, so the full sibling set
    stays gapless.
    """
    current = sorted(entities, key=by_order)
    index = {doc[id_field]: doc for doc in current}

    listed: List[Document] = []
    seen = set()
    for entity_id in ids:
        if entity_id in index and entity_id not in seen:
            listed.append(index[entity_id])
            seen.add(entity_id)

    rest = [doc for doc in current if doc[id_field] not in seen]
    return reindex(listed + rest)


def changed_orders(before: Iterable[Document], after: Iterable[Document], id_field: str = "id") -> List[Document]:
    """Documents from ``after`` whose order differs from ``before``."""
    previous = {doc[id_field]: doc.get("order") for doc in before}
    return [doc for doc in after if previous.get(doc[id_field]) != doc["order"]]
