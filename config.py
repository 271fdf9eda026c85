from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent
load_dotenv(dotenv_path=ROOT_DIR / ".env")

SECTIONS_COLLECTION = "top_viral_sections"
PRODUCTS_COLLECTION = "top_viral_products"


def _get_env(*keys: str, default: Optional[str] = None) -> Optional[str]:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_float(*keys: str, default: float) -> float:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return float(v)


def _get_int(*keys: str, default: int) -> int:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return int(v)


def _get_list(*keys: str, default: str) -> List[str]:
    v = _get_env(*keys, default=default) or default
    return [part.strip() for part in v.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str]
    database_name: Optional[str]
    store_backend: str
    json_store_path: str
    tax_rate: float
    cart_max_sessions: int
    cors_origins: List[str]
    log_level: str


def load_settings() -> Settings:
    database_url = _get_env("DATABASE_URL", "MONGODB_URI")
    backend = (_get_env("STORE_BACKEND") or ("mongo" if database_url else "json")).lower()
    if backend not in ("mongo", "json"):
        raise RuntimeError(f"STORE_BACKEND must be 'mongo' or 'json', got {backend!r}")

    return Settings(
        database_url=database_url,
        database_name=_get_env("DATABASE_NAME", "MONGODB_DB"),
        store_backend=backend,
        json_store_path=_get_env(
            "JSON_STORE_PATH", default=str(ROOT_DIR / "data" / "top_viral_products.json")
        ) or "",
        tax_rate=_get_float("TAX_RATE", default=0.08),
        cart_max_sessions=_get_int("CART_MAX_SESSIONS", default=10000),
        cors_origins=_get_list("CORS_ORIGINS", default="*"),
        log_level=(_get_env("LOG_LEVEL", default="INFO") or "INFO").upper(),
    )


settings = load_settings()
