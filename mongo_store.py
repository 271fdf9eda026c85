import logging
import re
from typing import Any, Dict, List, Optional

from bson.objectid import ObjectId
from pymongo.database import Database

from config import PRODUCTS_COLLECTION, SECTIONS_COLLECTION
from database import create_document, get_documents, now_iso, ping, serialize
from errors import BackendError, ProductNotFound, SectionNotFound
from ordering import by_order, changed_orders, reindex, reorder
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

OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


class MongoSectionRepository(SectionRepository):
    """Sections and products in two collections joined in application code."""

    backend_name = "mongo"

    def __init__(self, database: Database):
        self.db = database
        self.sections = database[SECTIONS_COLLECTION]
        self.products = database[PRODUCTS_COLLECTION]

    # reads

    def list_sections(self) -> List[SectionWithProducts]:
        sections = get_documents(self.db, SECTIONS_COLLECTION)
        products = get_documents(self.db, PRODUCTS_COLLECTION)
        return [with_products(section, products) for section in sections]

    def list_products(self) -> List[Product]:
        return [Product.model_validate(doc) for doc in get_documents(self.db, PRODUCTS_COLLECTION)]

    def get_product(self, product_id: str) -> Optional[Product]:
        doc = self.products.find_one({"id": product_id})
        if doc is None and OBJECT_ID_RE.match(product_id):
            logger.debug("Product %s not found by id, trying ObjectId", product_id)
            doc = self.products.find_one({"_id": ObjectId(product_id)})
        if doc is None:
            return None
        return Product.model_validate(serialize(doc))

    # creates

    def create_section(self, data: SectionCreate) -> Section:
        doc = new_section_doc(data, self.sections.count_documents({}) + 1)
        doc["_id"] = create_document(self.db, SECTIONS_COLLECTION, doc)
        logger.info("Created section %s at order %s", doc["id"], doc["order"])
        return Section.model_validate(doc)

    def create_product(self, section_id: str, data: ProductCreate) -> Product:
        if not self.sections.find_one({"id": section_id}):
            raise SectionNotFound()

        doc = new_product_doc(section_id, data, self.products.count_documents({"sectionId": section_id}) + 1)
        doc["_id"] = create_document(self.db, PRODUCTS_COLLECTION, doc)
        self.sections.update_one(
            {"id": section_id},
            {"$push": {"products": doc["id"]}, "$set": {"updatedAt": now_iso()}},
        )
        logger.info("Created product %s in section %s at order %s", doc["id"], section_id, doc["order"])
        return Product.model_validate(doc)

    # updates

    def update_section(self, section_id: str, patch: SectionUpdate) -> Section:
        fields = patch_fields(patch)
        fields["updatedAt"] = now_iso()
        result = self.sections.update_one({"id": section_id}, {"$set": fields})
        if result.matched_count == 0:
            raise SectionNotFound()
        return Section.model_validate(serialize(self.sections.find_one({"id": section_id})))

    def update_product(self, section_id: str, product_id: str, patch: ProductUpdate) -> Product:
        if not self.sections.find_one({"id": section_id}):
            raise SectionNotFound()

        fields = patch_fields(patch)
        fields["updatedAt"] = now_iso()
        result = self.products.update_one({"id": product_id, "sectionId": section_id}, {"$set": fields})
        if result.matched_count == 0:
            raise ProductNotFound()

        self.sections.update_one({"id": section_id}, {"$set": {"updatedAt": now_iso()}})
        return Product.model_validate(serialize(self.products.find_one({"id": product_id})))

    def reorder_products(self, product_ids: List[str], section_id: Optional[str] = None) -> List[Product]:
        if section_id is None:
            section_id = self._section_of(product_ids)
            if section_id is None:
                return []
        elif not self.sections.find_one({"id": section_id}):
            raise SectionNotFound()

        siblings = get_documents(self.db, PRODUCTS_COLLECTION, {"sectionId": section_id})
        reordered = reorder(siblings, product_ids)
        self._save_orders(self.products, changed_orders(siblings, reordered))
        self.sections.update_one({"id": section_id}, {"$set": {"products": [doc["id"] for doc in reordered]}})

        listed = set(product_ids)
        return [Product.model_validate(doc) for doc in reordered if doc["id"] in listed]

    def reorder_sections(self, section_ids: List[str]) -> List[Section]:
        sections = get_documents(self.db, SECTIONS_COLLECTION)
        reordered = reorder(sections, section_ids)
        self._save_orders(self.sections, changed_orders(sections, reordered))

        listed = set(section_ids)
        return [Section.model_validate(doc) for doc in reordered if doc["id"] in listed]

    # deletes

    def delete_section(self, section_id: str) -> None:
        removed = self.products.delete_many({"sectionId": section_id}).deleted_count
        result = self.sections.delete_one({"id": section_id})
        if result.deleted_count == 0:
            raise SectionNotFound()
        logger.info("Deleted section %s and %s product(s)", section_id, removed)

        try:
            self._reindex(self.sections, {})
        except Exception as e:
            logger.exception("Section %s deleted but reindexing the rest failed", section_id)
            raise BackendError("Section deleted but reordering failed") from e

    def delete_product(self, section_id: str, product_id: str) -> None:
        result = self.products.delete_one({"id": product_id, "sectionId": section_id})
        if result.deleted_count == 0:
            raise ProductNotFound()
        logger.info("Deleted product %s from section %s", product_id, section_id)

        try:
            self._reindex(self.products, {"sectionId": section_id})
            self.sections.update_one(
                {"id": section_id},
                {"$pull": {"products": product_id}, "$set": {"updatedAt": now_iso()}},
            )
        except Exception as e:
            logger.exception("Product %s deleted but reindexing section %s failed", product_id, section_id)
            raise BackendError("Product deleted but reordering failed") from e

    # housekeeping

    def seed_defaults(self) -> bool:
        if self.sections.count_documents({}) > 0:
            return False

        section = new_section_doc(SectionCreate.model_validate(DEFAULT_SECTION), 1, section_id=DEFAULT_SECTION["id"])
        create_document(self.db, SECTIONS_COLLECTION, section)
        product = new_product_doc(
            section["id"],
            ProductCreate.model_validate(DEFAULT_PRODUCT),
            self.products.count_documents({"sectionId": section["id"]}) + 1,
            product_id=DEFAULT_PRODUCT["id"],
        )
        create_document(self.db, PRODUCTS_COLLECTION, product)
        self.sections.update_one({"id": section["id"]}, {"$push": {"products": product["id"]}})
        logger.info("Seeded default section %s", section["id"])
        return True

    def backend_status(self) -> Dict[str, Any]:
        return {"backend": self.backend_name, **ping(self.db)}

    def _section_of(self, product_ids: List[str]) -> Optional[str]:
        for product_id in product_ids:
            doc = self.products.find_one({"id": product_id}, {"sectionId": 1})
            if doc:
                return doc["sectionId"]
        return None

    def _reindex(self, collection, filter_dict: Dict[str, Any]) -> None:
        docs = [serialize(doc) for doc in collection.find(filter_dict)]
        self._save_orders(collection, changed_orders(docs, reindex(docs, key=by_order)))

    @staticmethod
    def _save_orders(collection, docs: List[Dict[str, Any]]) -> None:
        for doc in docs:
            collection.update_one({"id": doc["id"]}, {"$set": {"order": doc["order"]}})
