import logging
import os
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

from cart import INITIAL_STATE, CartRegistry, CartStore
from config import settings
from coupons import coupon_discount
from database import db
from errors import BackendError, NotFoundError, ProductNotFound, StoreError, ValidationError
from json_store import JsonFileSectionRepository
from mongo_store import MongoSectionRepository
from repository import SectionRepository
from schemas import (
    CartLine,
    CartOpenRequest,
    CouponRequest,
    CreateProductRequest,
    CreateRequest,
    CreateSectionRequest,
    QuantityUpdate,
    ReorderProductsRequest,
    ReorderSectionsRequest,
    UpdateProductRequest,
    UpdateRequest,
    UpdateSectionRequest,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Top Viral Products API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_create_request = TypeAdapter(CreateRequest)
_update_request = TypeAdapter(UpdateRequest)

carts = CartRegistry(tax_rate=settings.tax_rate, max_sessions=settings.cart_max_sessions)


# Dependencies

@lru_cache
def get_repository() -> SectionRepository:
    if settings.store_backend == "mongo":
        if db is None:
            raise BackendError("Database not configured")
        return MongoSectionRepository(db)
    return JsonFileSectionRepository(settings.json_store_path)


def get_carts() -> CartRegistry:
    return carts


# Envelope

def ok(data: Any = None, message: Optional[str] = None, **extra) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    body.update(extra)
    return body


def fail(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def dump(model) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, exclude_none=True)


def parse_action(adapter: TypeAdapter, body: Dict[str, Any]):
    try:
        return adapter.validate_python(body)
    except SchemaError as e:
        first = e.errors()[0]
        if first["type"] in ("union_tag_invalid", "union_tag_not_found"):
            raise ValidationError("Invalid action") from e
        where = ".".join(str(part) for part in first["loc"][1:]) or "body"
        raise ValidationError(f"Invalid request: {where}: {first['msg']}") from e


@app.exception_handler(StoreError)
def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return fail(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {"loc": (), "msg": "invalid body"}
    where = ".".join(str(part) for part in first["loc"][1:]) or "body"
    return fail(400, f"Invalid request: {where}: {first['msg']}")


# Routes

@app.get("/")
def root():
    return {"message": "Top Viral Products API running"}


@app.get("/test")
def test_database(repo: SectionRepository = Depends(get_repository)):
    resp = {
        "backend": "✅ Running",
        "store": repo.backend_name,
        "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
        "database_name": "✅ Set" if settings.database_name else "❌ Not Set",
    }
    try:
        resp["status"] = repo.backend_status()
    except Exception as e:
        resp["status"] = f"❌ Error: {str(e)[:80]}"
    return resp


# Sections

@app.get("/sections")
def list_sections(repo: SectionRepository = Depends(get_repository)):
    try:
        repo.seed_defaults()
        return ok([dump(section) for section in repo.list_sections()])
    except StoreError:
        raise
    except Exception:
        logger.exception("GET /sections failed")
        raise BackendError("Failed to fetch data")


@app.post("/sections")
def create_entity(body: Dict[str, Any] = Body(...), repo: SectionRepository = Depends(get_repository)):
    req = parse_action(_create_request, body)
    try:
        if isinstance(req, CreateSectionRequest):
            return ok(dump(repo.create_section(req.section)))
        if isinstance(req, CreateProductRequest):
            return ok(dump(repo.create_product(req.sectionId, req.product)))
    except StoreError:
        raise
    except Exception:
        logger.exception("POST /sections failed")
        raise BackendError("Failed to create")
    raise ValidationError("Invalid action")


@app.put("/sections")
def update_entity(body: Dict[str, Any] = Body(...), repo: SectionRepository = Depends(get_repository)):
    req = parse_action(_update_request, body)
    try:
        if isinstance(req, UpdateSectionRequest):
            return ok(dump(repo.update_section(req.sectionId, req.updates)))
        if isinstance(req, UpdateProductRequest):
            return ok(dump(repo.update_product(req.sectionId, req.productId, req.updates)))
        if isinstance(req, ReorderProductsRequest):
            products = repo.reorder_products(req.updates.productIds, req.sectionId)
            return ok([dump(p) for p in products])
        if isinstance(req, ReorderSectionsRequest):
            return ok([dump(s) for s in repo.reorder_sections(req.updates.sectionIds)])
    except StoreError:
        raise
    except Exception:
        logger.exception("PUT /sections failed")
        raise BackendError("Failed to update")
    raise ValidationError("Invalid action")


@app.delete("/sections")
def delete_entity(
    action: Optional[str] = None,
    sectionId: Optional[str] = None,
    productId: Optional[str] = None,
    repo: SectionRepository = Depends(get_repository),
):
    if action not in ("deleteSection", "deleteProduct"):
        raise ValidationError("Invalid action")
    if not sectionId:
        raise ValidationError("sectionId is required")
    if action == "deleteProduct" and not productId:
        raise ValidationError("productId is required")

    try:
        if action == "deleteSection":
            repo.delete_section(sectionId)
            return ok(message="Section deleted")
        repo.delete_product(sectionId, productId)
        return ok(message="Product deleted")
    except StoreError:
        raise
    except Exception:
        logger.exception("DELETE /sections failed")
        raise BackendError("Failed to delete")


# Products

@app.get("/products")
def list_products(repo: SectionRepository = Depends(get_repository)):
    try:
        products = [dump(p) for p in repo.list_products()]
    except StoreError:
        raise
    except Exception:
        logger.exception("GET /products failed")
        raise BackendError("Failed to fetch products")
    logger.debug("Found %s products", len(products))
    return ok(products, count=len(products))


@app.get("/products/{product_id}")
def get_product(product_id: str, repo: SectionRepository = Depends(get_repository)):
    try:
        product = repo.get_product(product_id)
    except StoreError:
        raise
    except Exception:
        logger.exception("GET /products/%s failed", product_id)
        raise BackendError("Failed to fetch product")

    if product is None:
        raise ProductNotFound()
    if product.status != "active":
        logger.info("Product %s requested but status is %s", product_id, product.status)
        raise NotFoundError("Product is not available")
    return ok(dump(product))


# Cart

def _cart(store: Optional[CartStore]) -> Dict[str, Any]:
    state = store.state if store is not None else INITIAL_STATE
    return ok(state.to_dict())


@app.get("/cart/{session_id}")
def get_cart(session_id: str, registry: CartRegistry = Depends(get_carts)):
    return _cart(registry.peek(session_id))


@app.post("/cart/{session_id}/items")
def add_to_cart(session_id: str, line: CartLine, registry: CartRegistry = Depends(get_carts)):
    store = registry.get(session_id)
    store.add_item(line)
    return _cart(store)


@app.put("/cart/{session_id}/items/{item_id}")
def update_cart_item(session_id: str, item_id: str, payload: QuantityUpdate, registry: CartRegistry = Depends(get_carts)):
    store = registry.peek(session_id)
    if store is not None:
        store.update_quantity(item_id, payload.quantity)
    return _cart(store)


@app.delete("/cart/{session_id}/items/{item_id}")
def remove_cart_item(session_id: str, item_id: str, registry: CartRegistry = Depends(get_carts)):
    store = registry.peek(session_id)
    if store is not None:
        store.remove_item(item_id)
    return _cart(store)


@app.delete("/cart/{session_id}")
def clear_cart(session_id: str, registry: CartRegistry = Depends(get_carts)):
    registry.discard(session_id)
    return _cart(None)


@app.post("/cart/{session_id}/coupon")
def apply_coupon(session_id: str, payload: CouponRequest, registry: CartRegistry = Depends(get_carts)):
    store = registry.get(session_id)
    code, discount = coupon_discount(payload.code, store.state.subtotal)
    store.apply_coupon(code, discount)
    return _cart(store)


@app.delete("/cart/{session_id}/coupon")
def remove_coupon(session_id: str, registry: CartRegistry = Depends(get_carts)):
    store = registry.peek(session_id)
    if store is not None:
        store.remove_coupon()
    return _cart(store)


@app.put("/cart/{session_id}/open")
def set_cart_open(session_id: str, payload: CartOpenRequest, registry: CartRegistry = Depends(get_carts)):
    store = registry.get(session_id)
    if payload.isOpen:
        store.open_cart()
    else:
        store.close_cart()
    return _cart(store)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
