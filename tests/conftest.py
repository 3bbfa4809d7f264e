import os
import threading

# keep imports of cart_engine off the production database and redis
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CART_LOCKS_ENABLED", "false")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from cart_engine.api import create_app
from cart_engine.api.routers.carts import get_catalog, get_lock_service
from cart_engine.data.database import Base, get_db, make_engine
from cart_engine.data.models import CartModel  # noqa: F401
from cart_engine.domain.errors import CatalogUnavailable
from cart_engine.services.cart_service import CartService
from cart_engine.services.product_client import CatalogProduct, SizeStock


def make_product(product_id, price, sizes=None, is_active=True, name=None):
    sizes = sizes if sizes is not None else {"M": 10}
    return CatalogProduct(
        id=product_id,
        name=name or f"Product {product_id}",
        price=Decimal(str(price)),
        is_active=is_active,
        images=[f"/img/{product_id}.jpg"],
        sizes=[SizeStock(size=s, in_stock=q > 0, quantity=q) for s, q in sizes.items()],
    )


class FakeCatalog:
    """In-memory stand-in for the product catalog."""

    def __init__(self, products=None):
        self.products = {p.id: p for p in (products or [])}
        self.available = True
        self.lookups = []

    def add(self, product):
        self.products[product.id] = product

    def find_by_id(self, product_id):
        self.lookups.append(product_id)
        if not self.available:
            raise CatalogUnavailable()
        product = self.products.get(str(product_id))
        return product.model_copy(deep=True) if product else None


class FakeRedis:
    """Thread-safe stand-in for the two redis calls the owner lock makes."""

    def __init__(self):
        self.store = {}
        self.expiry = {}
        self._mutex = threading.Lock()

    def set(self, name, value, nx=False, ex=None):
        with self._mutex:
            if nx and name in self.store:
                return None
            self.store[name] = value
            self.expiry[name] = ex
            return True

    def eval(self, script, numkeys, key, token):
        with self._mutex:
            if self.store.get(key) == token:
                del self.store[key]
                return 1
            return 0


class FakeLockService:
    def __init__(self):
        self.held = {}
        self.acquired = []

    def acquire_cart_lock(self, owner_id, token, ttl):
        if owner_id in self.held:
            return False
        self.held[owner_id] = token
        self.acquired.append(owner_id)
        return True

    def release_cart_lock(self, owner_id, token):
        if self.held.get(owner_id) == token:
            del self.held[owner_id]
            return True
        return False


@pytest.fixture()
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'carts.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def catalog():
    return FakeCatalog(
        [
            make_product("tee", 300, {"S": 1, "M": 10, "L": 0}, name="Classic Tee"),
            make_product("cap", 150, {"OS": 5}, name="Cap"),
            make_product("retired", 80, {"M": 3}, is_active=False),
        ]
    )


@pytest.fixture()
def service(db, catalog):
    return CartService(db=db, catalog=catalog)


@pytest.fixture()
def client(session_factory, catalog):
    app = create_app()

    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_lock_service] = lambda: None
    return TestClient(app)


@pytest.fixture()
def product_factory():
    return make_product


@pytest.fixture()
def fake_lock():
    return FakeLockService()


@pytest.fixture()
def fake_redis():
    return FakeRedis()
