# cart_engine/utils/retry.py
import logging

import redis
import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    wait_fixed,
)

from cart_engine.domain.errors import ConcurrencyConflict
from cart_engine.utils.logging import get_logger

logger = get_logger(__name__)


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.RequestException),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def conflict_retry():
    # the whole read-mutate-write sequence runs at most twice
    return retry(
        reraise=True,
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        retry=retry_if_exception_type(ConcurrencyConflict),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )


def lock_wait(timeout: float, interval: float = 0.05) -> Retrying:
    # polls an acquire call until it returns True; gives back False once the timeout passes
    return Retrying(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda acquired: not acquired),
        retry_error_callback=lambda state: state.outcome.result(),
    )
