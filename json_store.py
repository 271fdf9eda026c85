import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from errors import BackendError, ProductNotFound, SectionNotFound
from database import now_iso
from ordering import by_order, next_order, reindex, reorder
from repository import (
    DEFAULT_PRODUCT,
    DEFAULT_SECTION,
    SectionRepository,
    new_product_doc,
    new_section_doc,
    patch_fields,
    with_products,
)
from schemas import (
    Product,
    ProductCreate,
    ProductUpdate,
    Section,
    SectionCreate,
    SectionUpdate,
    SectionWithProducts,
)

logger = logging.getLogger(__name__)

Data = Dict[str, List[Dict[str, Any]]]


class JsonFileSectionRepository(SectionRepository):
    """Sections and products kept in one JSON document on disk.

    Layout: ``{"sections": [...], "products": [...]}``. Each step of an
    operation reads the file and rewrites it whole, so a multi-step operation
    is several independent writes.
    """

    backend_name = "json"

    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> Data:
        if not self.path.exists():
            return {"sections": [], "products": []}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.exception("Could not read %s", self.path)
            raise BackendError("Failed to read store") from e
        data.setdefault("sections", [])
        data.setdefault("products", [])
        return data

    def _save(self, data: Data) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            logger.exception("Could not write %s", self.path)
            raise BackendError("Failed to write store") from e

    @staticmethod
    def _find(docs: List[Dict[str, Any]], **match) -> Optional[Dict[str, Any]]:
        for doc in docs:
            if all(doc.get(k) == v for k, v in match.items()):
                return doc
        return None

    # reads

    def list_sections(self) -> List[SectionWithProducts]:
        data = self._load()
        return [with_products(section, data["products"]) for section in sorted(data["sections"], key=by_order)]

    def list_products(self) -> List[Product]:
        return [Product.model_validate(doc) for doc in sorted(self._load()["products"], key=by_order)]

    def get_product(self, product_id: str) -> Optional[Product]:
        doc = self._find(self._load()["products"], id=product_id)
        return Product.model_validate(doc) if doc else None

    # creates

    def create_section(self, data: SectionCreate) -> Section:
        store = self._load()
        doc = new_section_doc(data, next_order(store["sections"]))
        store["sections"].append(doc)
        self._save(store)
        logger.info("Created section %s at order %s", doc["id"], doc["order"])
        return Section.model_validate(doc)

    def create_product(self, section_id: str, data: ProductCreate) -> Product:
        store = self._load()
        section = self._find(store["sections"], id=section_id)
        if section is None:
            raise SectionNotFound()

        siblings = [p for p in store["products"] if p.get("sectionId") == section_id]
        doc = new_product_doc(section_id, data, next_order(siblings))
        store["products"].append(doc)
        section.setdefault("products", []).append(doc["id"])
        section["updatedAt"] = now_iso()
        self._save(store)
        logger.info("Created product %s in section %s at order %s", doc["id"], section_id, doc["order"])
        return Product.model_validate(doc)

    # updates

    def update_section(self, section_id: str, patch: SectionUpdate) -> Section:
        store = self._load()
        section = self._find(store["sections"], id=section_id)
        if section is None:
            raise SectionNotFound()
        section.update(patch_fields(patch))
        section["updatedAt"] = now_iso()
        self._save(store)
        return Section.model_validate(section)

    def update_product(self, section_id: str, product_id: str, patch: ProductUpdate) -> Product:
        store = self._load()
        section = self._find(store["sections"], id=section_id)
        if section is None:
            raise SectionNotFound()
        product = self._find(store["products"], id=product_id, sectionId=section_id)
        if product is None:
            raise ProductNotFound()
        ts = now_iso()
        product.update(patch_fields(patch))
        product["updatedAt"] = ts
        section["updatedAt"] = ts
        self._save(store)
        return Product.model_validate(product)

    def reorder_products(self, product_ids: List[str], section_id: Optional[str] = None) -> List[Product]:
        store = self._load()
        if section_id is None:
            section_id = next(
                (p["sectionId"] for pid in product_ids for p in store["products"] if p["id"] == pid),
                None,
            )
            if section_id is None:
                return []
        section = self._find(store["sections"], id=section_id)
        if section is None:
            raise SectionNotFound()

        siblings = [p for p in store["products"] if p.get("sectionId") == section_id]
        reordered = reorder(siblings, product_ids)
        orders = {doc["id"]: doc["order"] for doc in reordered}
        for product in siblings:
            product["order"] = orders[product["id"]]
        section["products"] = [doc["id"] for doc in reordered]
        self._save(store)

        listed = set(product_ids)
        return [Product.model_validate(doc) for doc in reordered if doc["id"] in listed]

    def reorder_sections(self, section_ids: List[str]) -> List[Section]:
        store = self._load()
        reordered = reorder(store["sections"], section_ids)
        store["sections"] = reordered
        self._save(store)

        listed = set(section_ids)
        return [Section.model_validate(doc) for doc in reordered if doc["id"] in listed]

    # deletes

    def delete_section(self, section_id: str) -> None:
        store = self._load()
        remaining = [p for p in store["products"] if p.get("sectionId") != section_id]
        removed = len(store["products"]) - len(remaining)
        store["products"] = remaining
        self._save(store)

        store = self._load()
        if self._find(store["sections"], id=section_id) is None:
            raise SectionNotFound()
        store["sections"] = [s for s in store["sections"] if s["id"] != section_id]
        self._save(store)
        logger.info("Deleted section %s and %s product(s)", section_id, removed)

        try:
            store = self._load()
            store["sections"] = reindex(store["sections"], key=by_order)
            self._save(store)
        except Exception as e:
            logger.exception("Section %s deleted but reindexing the rest failed", section_id)
            raise BackendError("Section deleted but reordering failed") from e

    def delete_product(self, section_id: str, product_id: str) -> None:
        store = self._load()
        if self._find(store["products"], id=product_id, sectionId=section_id) is None:
            raise ProductNotFound()
        store["products"] = [p for p in store["products"] if p["id"] != product_id]
        self._save(store)
        logger.info("Deleted product %s from section %s", product_id, section_id)

        try:
            store = self._load()
            siblings = [p for p in store["products"] if p.get("sectionId") == section_id]
            orders = {doc["id"]: doc["order"] for doc in reindex(siblings, key=by_order)}
            for product in siblings:
                product["order"] = orders[product["id"]]
            section = self._find(store["sections"], id=section_id)
            if section is not None:
                section["products"] = [pid for pid in section.get("products", []) if pid != product_id]
                section["updatedAt"] = now_iso()
            self._save(store)
        except Exception as e:
            logger.exception("Product %s deleted but reindexing section %s failed", product_id, section_id)
            raise BackendError("Product deleted but reordering failed") from e

    # housekeeping

    def seed_defaults(self) -> bool:
        store = self._load()
        if store["sections"]:
            return False

        section = new_section_doc(SectionCreate.model_validate(DEFAULT_SECTION), 1, section_id=DEFAULT_SECTION["id"])
        product = new_product_doc(
            section["id"], ProductCreate.model_validate(DEFAULT_PRODUCT), 1, product_id=DEFAULT_PRODUCT["id"]
        )
        section["products"].append(product["id"])
        store["sections"].append(section)
        store["products"].append(product)
        self._save(store)
        logger.info("Seeded default section %s", section["id"])
        return True

    def backend_status(self) -> Dict[str, Any]:
        status = {"backend": self.backend_name, "path": str(self.path), "exists": self.path.exists()}
        if self.path.exists():
            store = self._load()
            status["sections"] = len(store["sections"])
            status["products"] = len(store["products"])
        return status
