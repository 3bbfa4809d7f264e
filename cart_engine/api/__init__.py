# cart_engine/api/__init__.py
from fastapi import FastAPI

from cart_engine.api.errors import register_error_handlers
from cart_engine.api.routers import carts
from cart_engine.api.routers.health import router as health_router


def create_app(**kwargs) -> FastAPI:
    app = FastAPI(title="Cart Engine", version="1.0.0", **kwargs)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(carts.router)
    return app
