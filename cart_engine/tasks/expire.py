# cart_engine/tasks/expire.py
from datetime import datetime, timezone

from cart_engine.celery_worker import celery_app
from cart_engine.data.database import SessionLocal
from cart_engine.repos.cart_repo import CartRepo
from cart_engine.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="cart_engine.tasks.expire.expire_carts_task")
def expire_carts_task():
    """Flag active carts past their expiry as inactive."""
    logger.info("Expire carts task started")

    db = SessionLocal()
    try:
        repo = CartRepo(db)
        count = repo.deactivate_expired(datetime.now(timezone.utc))
        repo.commit()
        logger.info(f"Deactivated {count} expired carts")
        return count
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@celery_app.task(name="cart_engine.tasks.expire.purge_expired_carts_task")
def purge_expired_carts_task():
    """Delete inactive carts whose expiry has passed."""
    logger.info("Purge expired carts task started")

    db = SessionLocal()
    try:
        repo = CartRepo(db)
        count = repo.purge_expired(datetime.now(timezone.utc))
        repo.commit()
        logger.info(f"Purged {count} expired carts")
        return count
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
