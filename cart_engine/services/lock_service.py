# cart_engine/services/lock_service.py
import redis

from cart_engine.utils.logging import get_logger
from cart_engine.utils.retry import lock_wait, redis_retry
from cart_engine.utils.settings import CART_LOCK_WAIT_SECONDS, REDIS_URL

logger = get_logger(__name__)

# compare-and-delete: only the holder's token may release the lock.
# redis runs the script atomically, nothing can slip between GET and DEL
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    Per-owner mutation lock.

    Serializes the read-modify-write of one owner's cart across workers. The
    lock expires on its own (EX) so a crashed worker never blocks the cart. A
    busy lock is polled for up to `wait_seconds` before acquisition gives up.
    """

    def __init__(
        self,
        url: str | None = None,
        client: redis.Redis | None = None,
        wait_seconds: float = CART_LOCK_WAIT_SECONDS,
    ):
        self.wait_seconds = wait_seconds
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def key_for(owner_id: str) -> str:
        return f"cart:{owner_id}:lock"

    def acquire_cart_lock(self, owner_id: str, token: str, ttl: int) -> bool:
        acquired = lock_wait(self.wait_seconds)(self.try_acquire_cart_lock, owner_id, token, ttl)
        if not acquired:
            logger.warning(f"Lock {self.key_for(owner_id)} still busy after {self.wait_seconds}s")
        return acquired

    @redis_retry()
    def try_acquire_cart_lock(self, owner_id: str, token: str, ttl: int) -> bool:
        key = self.key_for(owner_id)
        logger.debug(f"Acquire lock {key}")
        #SET cart:<owner>:lock <token> NX EX <ttl>
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release_cart_lock(self, owner_id: str, token: str) -> bool:
        key = self.key_for(owner_id)
        logger.debug(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
