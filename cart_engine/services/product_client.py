# cart_engine/services/product_client.py
from decimal import Decimal
from typing import Protocol

import requests
from pydantic import BaseModel, Field
from requests import RequestException

from cart_engine.domain.errors import CatalogUnavailable
from cart_engine.utils.logging import get_logger
from cart_engine.utils.retry import http_retry
from cart_engine.utils.settings import CATALOG_TIMEOUT_SECONDS, PRODUCT_SERVICE_URL

logger = get_logger(__name__)


class SizeStock(BaseModel):
    size: str
    in_stock: bool = True
    quantity: int = 0


class CatalogProduct(BaseModel):
    id: str
    name: str
    price: Decimal
    is_active: bool = True
    images: list[str] = Field(default_factory=list)
    sizes: list[SizeStock] = Field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(s.quantity for s in self.sizes)

    @property
    def in_stock(self) -> bool:
        return any(s.in_stock and s.quantity > 0 for s in self.sizes)

    def size_option(self, size: str) -> SizeStock | None:
        return next((s for s in self.sizes if s.size == size), None)


class Catalog(Protocol):
    def find_by_id(self, product_id: str) -> CatalogProduct | None: ...


class ProductClient:
    """Read-only HTTP client for the product catalog service."""

    def __init__(self, base_url: str | None = None, timeout: float = CATALOG_TIMEOUT_SECONDS):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def fetch_product(self, product_id: str) -> dict | None:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        resp = requests.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def find_by_id(self, product_id: str) -> CatalogProduct | None:
        try:
            pdata = self.fetch_product(product_id)
        except RequestException as e:
            logger.error(f"Catalog lookup for product {product_id} failed: {e}")
            raise CatalogUnavailable() from e

        if pdata is None:
            return None
        return CatalogProduct.model_validate(pdata)
