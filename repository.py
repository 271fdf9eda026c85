"""
Section/Product repository contract.

Two back-ends implement it: ``MongoSectionRepository`` (mongo_store.py) and
``JsonFileSectionRepository`` (json_store.py). Both store ``Section.products``
as product id references and resolve them on read.

Multi-step operations (cascading deletes, reindexing) are issued as separate
store calls. There is no transaction and no lock: a failure between steps
leaves the earlier steps applied, and concurrent writers can interleave.
"""

import random
import string
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from database import now_iso
from schemas import (
    Product,
    ProductCreate,
    ProductUpdate,
    Section,
    SectionCreate,
    SectionUpdate,
    SectionWithProducts,
)

_ID_ALPHABET = string.digits + string.ascii_lowercase

DEFAULT_SECTION: Dict[str, Any] = {
    "id": "trendingDeals",
    "title": "Top Viral Bundle",
    "description": "Featured trending products and bundles",
    "viewAllLink": "/products/trending",
    "status": "active",
}

DEFAULT_PRODUCT: Dict[str, Any] = {
    "id": "trending-1",
    "title": "Premium Reels Bundle 2024",
    "description": (
        "Get access to 500+ high-quality reels templates for Instagram, TikTok, "
        "and YouTube Shorts. Perfect for influencers and content creators."
    ),
    "price": 2999,
    "originalPrice": 5999,
    "discount": 50,
    "rating": 4.8,
    "reviewCount": 1247,
    "category": "Reels Bundle",
    "tags": ["Instagram", "TikTok", "YouTube Shorts", "Templates"],
    "image": "https://sasitag.in/wp-content/uploads/2024/09/1000-Viral-Hooks-Reels-e1725331139794.jpg",
    "isNew": True,
    "isFeatured": True,
    "isBestSeller": True,
    "downloadCount": 15420,
    "fileSize": "2.5 GB",
    "format": "MP4, MOV",
    "compatibility": ["iOS", "Android", "Desktop"],
    "features": ["500+ Templates", "HD Quality", "Easy Customization", "Commercial License"],
    "status": "active",
}


def generate_id() -> str:
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"item-{int(time.time() * 1000)}-{suffix}"


def new_section_doc(data: SectionCreate, order: int, section_id: Optional[str] = None) -> Dict[str, Any]:
    ts = now_iso()
    return {
        "id": section_id or generate_id(),
        "title": data.title,
        "description": data.description or "",
        "products": [],
        "viewAllLink": data.viewAllLink,
        "status": data.status,
        "order": order,
        "createdAt": ts,
        "updatedAt": ts,
    }


def new_product_doc(section_id: str, data: ProductCreate, order: int, product_id: Optional[str] = None) -> Dict[str, Any]:
    ts = now_iso()
    return {
        **data.model_dump(),
        "id": product_id or generate_id(),
        "createdAt": ts,
        "updatedAt": ts,
        "order": order,
        "sectionId": section_id,
    }


def patch_fields(patch) -> Dict[str, Any]:
    """Explicitly set fields of an update model. `order` is never patchable."""
    return patch.model_dump(exclude_unset=True, exclude_none=True)


def with_products(section: Dict[str, Any], products: List[Dict[str, Any]]) -> SectionWithProducts:
    siblings = sorted(
        (p for p in products if p.get("sectionId") == section["id"]),
        key=lambda p: p.get("order") or 0,
    )
    return SectionWithProducts.model_validate({**section, "products": siblings})


class SectionRepository(ABC):
    backend_name = "abstract"

    @abstractmethod
    def list_sections(self) -> List[SectionWithProducts]:
        ...

    @abstractmethod
    def create_section(self, data: SectionCreate) -> Section:
        ...

    @abstractmethod
    def create_product(self, section_id: str, data: ProductCreate) -> Product:
        ...

    @abstractmethod
    def update_section(self, section_id: str, patch: SectionUpdate) -> Section:
        ...

    @abstractmethod
    def update_product(self, section_id: str, product_id: str, patch: ProductUpdate) -> Product:
        ...

    @abstractmethod
    def reorder_products(self, product_ids: List[str], section_id: Optional[str] = None) -> List[Product]:
        ...

    @abstractmethod
    def reorder_sections(self, section_ids: List[str]) -> List[Section]:
        ...

    @abstractmethod
    def delete_section(self, section_id: str) -> None:
        ...

    @abstractmethod
    def delete_product(self, section_id: str, product_id: str) -> None:
        ...

    @abstractmethod
    def get_product(self, product_id: str) -> Optional[Product]:
        ...

    @abstractmethod
    def list_products(self) -> List[Product]:
        ...

    @abstractmethod
    def seed_defaults(self) -> bool:
        """Insert the default section and product when no section exists."""

    @abstractmethod
    def backend_status(self) -> Dict[str, Any]:
        ...
