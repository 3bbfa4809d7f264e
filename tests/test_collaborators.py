"""Tests for the catalog client, mock catalog, discount resolver and owner lock."""

import threading
import time
from decimal import Decimal

import pytest
import requests
from fastapi.testclient import TestClient

from cart_engine.domain.errors import CatalogUnavailable
from cart_engine.product_service.main import app as product_app
from cart_engine.services import product_client as product_client_module
from cart_engine.services.discounts import StaticDiscountResolver
from cart_engine.services.lock_service import LockService
from cart_engine.services.product_client import CatalogProduct, ProductClient


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


PRODUCT = {
    "id": "1",
    "name": "Classic Tee",
    "price": "300.00",
    "is_active": True,
    "images": ["/a.jpg"],
    "sizes": [{"size": "M", "in_stock": True, "quantity": 4}, {"size": "L", "in_stock": False, "quantity": 0}],
}


class TestProductClient:
    def test_find_by_id(self, monkeypatch):
        calls = []

        def fake_get(url, timeout):
            calls.append((url, timeout))
            return FakeResponse(200, PRODUCT)

        monkeypatch.setattr(product_client_module.requests, "get", fake_get)
        product = ProductClient(base_url="http://catalog/", timeout=1.5).find_by_id("1")

        assert calls == [("http://catalog/products/1", 1.5)]
        assert product.price == Decimal("300.00")
        assert product.size_option("M").quantity == 4
        assert product.size_option("XL") is None
        assert product.total_quantity == 4
        assert product.in_stock is True

    def test_missing_product(self, monkeypatch):
        monkeypatch.setattr(product_client_module.requests, "get", lambda url, timeout: FakeResponse(404))
        assert ProductClient(base_url="http://catalog").find_by_id("404") is None

    def test_connection_failure_after_retries(self, monkeypatch):
        attempts = []

        def failing_get(url, timeout):
            attempts.append(url)
            raise requests.ConnectionError("down")

        monkeypatch.setattr(product_client_module.requests, "get", failing_get)
        with pytest.raises(CatalogUnavailable):
            ProductClient(base_url="http://catalog").find_by_id("1")
        assert len(attempts) == 3

    def test_server_error_is_unavailable(self, monkeypatch):
        monkeypatch.setattr(product_client_module.requests, "get", lambda url, timeout: FakeResponse(500))
        with pytest.raises(CatalogUnavailable):
            ProductClient(base_url="http://catalog").find_by_id("1")


class TestMockCatalogService:
    def test_serves_catalog_shape(self):
        client = TestClient(product_app)
        response = client.get("/products/1")
        assert response.status_code == 200
        product = CatalogProduct.model_validate(response.json())
        assert product.is_active is True
        assert product.size_option("M").in_stock is True

    def test_unknown_product(self):
        client = TestClient(product_app)
        assert client.get("/products/999").status_code == 404


class TestStaticDiscountResolver:
    def test_known_codes_case_insensitive(self):
        resolver = StaticDiscountResolver()
        terms = resolver.resolve(" welcome10 ")
        assert terms.code == "WELCOME10"
        assert terms.percentage == Decimal("10")
        assert terms.amount == Decimal("0")
        assert resolver.resolve("FIRSTORDER").percentage == Decimal("15")

    def test_unknown_code(self):
        assert StaticDiscountResolver().resolve("FREESTUFF") is None

    def test_custom_table(self):
        resolver = StaticDiscountResolver({"flat50": {"amount": Decimal("50")}})
        assert resolver.resolve("FLAT50").amount == Decimal("50")
        assert resolver.resolve("SAVE20") is None


class TestLockService:
    def test_acquire_is_exclusive(self, fake_redis):
        locks = LockService(client=fake_redis, wait_seconds=0)
        assert locks.acquire_cart_lock("u1", "t1", ttl=10) is True
        assert locks.acquire_cart_lock("u1", "t2", ttl=10) is False
        assert locks.acquire_cart_lock("u2", "t3", ttl=10) is True
        assert fake_redis.expiry["cart:u1:lock"] == 10

    def test_only_holder_releases(self, fake_redis):
        locks = LockService(client=fake_redis, wait_seconds=0)
        locks.acquire_cart_lock("u1", "t1", ttl=10)
        assert locks.release_cart_lock("u1", "intruder") is False
        assert locks.release_cart_lock("u1", "t1") is True
        assert locks.acquire_cart_lock("u1", "t2", ttl=10) is True

    def test_acquire_waits_for_release(self, fake_redis):
        holder = LockService(client=fake_redis, wait_seconds=0)
        waiter = LockService(client=fake_redis, wait_seconds=2)
        holder.acquire_cart_lock("u1", "first", ttl=10)

        releaser = threading.Timer(0.2, holder.release_cart_lock, args=("u1", "first"))
        releaser.start()
        started = time.monotonic()
        try:
            assert waiter.acquire_cart_lock("u1", "second", ttl=10) is True
        finally:
            releaser.join()

        assert time.monotonic() - started >= 0.15
        assert fake_redis.store["cart:u1:lock"] == "second"

    def test_acquire_gives_up_after_wait(self, fake_redis):
        fake_redis.set("cart:u1:lock", "someone-else")
        locks = LockService(client=fake_redis, wait_seconds=0.2)
        started = time.monotonic()
        assert locks.acquire_cart_lock("u1", "mine", ttl=10) is False
        assert time.monotonic() - started >= 0.2
        assert fake_redis.store["cart:u1:lock"] == "someone-else"
