# cart_engine/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from cart_engine.api import create_app
from cart_engine.data.database import Base, engine
from cart_engine.data.models import CartModel  # noqa: F401  registers the table
from cart_engine.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception:
        logger.exception("Failed to create tables")
        raise
    logger.info("Cart engine started")
    yield
    logger.info("Cart engine shutting down")


app = create_app(lifespan=lifespan)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
