"""
Database Schemas for the Top Viral Products storefront

Each stored Pydantic model corresponds to a MongoDB collection (or to a list
in the JSON file store):

- Section -> "top_viral_sections"
- Product -> "top_viral_products"

Field names follow the storefront's JSON contract (camelCase), so documents
round-trip between the store and HTTP clients unchanged.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

SectionStatus = Literal["active", "inactive"]
ProductStatus = Literal["active", "inactive", "draft"]


class Patch(BaseModel):
    """Partial update. Omitted fields are left alone; null is not a value."""

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data):
        if isinstance(data, dict):
            nulls = sorted(k for k, v in data.items() if v is None and k in cls.model_fields)
            if nulls:
                raise ValueError(f"{', '.join(nulls)} cannot be null")
        return data


# Products

class ProductCreate(BaseModel):
    title: str = Field(..., min_length=1, description="Product title")
    description: str = Field("", description="Product description")
    price: float = Field(0, ge=0, description="Sale price")
    originalPrice: float = Field(0, ge=0, description="Price before discount")
    discount: float = Field(0, ge=0, le=100, description="Discount in percent")
    rating: float = Field(0, ge=0, le=5)
    reviewCount: int = Field(0, ge=0)
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    image: str = Field("", description="Primary image URL")
    isNew: bool = False
    isFeatured: bool = False
    isBestSeller: bool = False
    downloadCount: int = Field(0, ge=0)
    fileSize: str = ""
    format: str = ""
    compatibility: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    status: ProductStatus = "active"


class Product(ProductCreate):
    """Products collection schema"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    sectionId: str
    order: int = Field(..., ge=1)
    createdAt: str
    updatedAt: str
    mongo_id: Optional[str] = Field(None, alias="_id", description="Native MongoDB id")


class ProductUpdate(Patch):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    originalPrice: Optional[float] = Field(None, ge=0)
    discount: Optional[float] = Field(None, ge=0, le=100)
    rating: Optional[float] = Field(None, ge=0, le=5)
    reviewCount: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    image: Optional[str] = None
    isNew: Optional[bool] = None
    isFeatured: Optional[bool] = None
    isBestSeller: Optional[bool] = None
    downloadCount: Optional[int] = Field(None, ge=0)
    fileSize: Optional[str] = None
    format: Optional[str] = None
    compatibility: Optional[List[str]] = None
    features: Optional[List[str]] = None
    status: Optional[ProductStatus] = None


# Sections

class SectionCreate(BaseModel):
    title: str = Field(..., min_length=1, description="Section heading")
    description: str = ""
    viewAllLink: str = Field("", description="Target of the 'view all' link")
    status: SectionStatus = "active"


class Section(SectionCreate):
    """Sections collection schema. `products` holds product id references."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    products: List[str] = Field(default_factory=list)
    order: int = Field(..., ge=1)
    createdAt: str
    updatedAt: str
    mongo_id: Optional[str] = Field(None, alias="_id", description="Native MongoDB id")


class SectionWithProducts(Section):
    products: List[Product] = Field(default_factory=list)


class SectionUpdate(Patch):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    viewAllLink: Optional[str] = None
    status: Optional[SectionStatus] = None


# Tagged request bodies

class CreateSectionRequest(BaseModel):
    action: Literal["createSection"]
    section: SectionCreate


class CreateProductRequest(BaseModel):
    action: Literal["createProduct"]
    sectionId: str
    product: ProductCreate


class UpdateSectionRequest(BaseModel):
    action: Literal["updateSection"]
    sectionId: str
    updates: SectionUpdate


class UpdateProductRequest(BaseModel):
    action: Literal["updateProduct"]
    sectionId: str
    productId: str
    updates: ProductUpdate


class ProductOrder(BaseModel):
    productIds: List[str]


class SectionOrder(BaseModel):
    sectionIds: List[str]


class ReorderProductsRequest(BaseModel):
    action: Literal["reorderProducts"]
    updates: ProductOrder
    sectionId: Optional[str] = None


class ReorderSectionsRequest(BaseModel):
    action: Literal["reorderSections"]
    updates: SectionOrder


CreateRequest = Annotated[
    Union[CreateSectionRequest, CreateProductRequest],
    Field(discriminator="action"),
]

UpdateRequest = Annotated[
    Union[UpdateSectionRequest, UpdateProductRequest, ReorderProductsRequest, ReorderSectionsRequest],
    Field(discriminator="action"),
]


# Cart

class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    price: float = Field(..., ge=0, description="Unit price")
    quantity: int = Field(1, ge=1)
    image: str = ""
    category: str = ""
    serviceType: str = ""


class QuantityUpdate(BaseModel):
    quantity: int


class CouponRequest(BaseModel):
    code: str


class CartOpenRequest(BaseModel):
    isOpen: bool
