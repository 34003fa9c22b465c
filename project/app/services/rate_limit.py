# app/services/rate_limit.py

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from app.utils.errors import RateLimited


@dataclass
class Bucket:
    tokens: int
    last_refill: float


class TokenBucketRateLimiter:
    """
    Token bucket в памяти процесса, по одному bucket на ключ.

    Bucket стартует полным и получает `refill_rate` токенов в секунду до
    `capacity`. Состояние живёт только в этом объекте: между процессами
    не разделяется и теряется при перезапуске.
    """

    def __init__(
        self,
        capacity: int = 10,
        refill_rate: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.clock = clock
        self.buckets: Dict[str, Bucket] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> bool:
        """Забирает один токен для `key`; False, если bucket пуст."""
        with self._lock:
            now = self.clock()
            bucket = self.buckets.get(key)
            if bucket is None:
                bucket = Bucket(tokens=self.capacity, last_refill=now)
                self.buckets[key] = bucket

            tokens_to_add = math.floor((now - bucket.last_refill) * self.refill_rate)
            if tokens_to_add > 0:
                bucket.tokens = min(bucket.tokens + tokens_to_add, self.capacity)
                bucket.last_refill = now

            if bucket.tokens > 0:
                bucket.tokens -= 1
                return True
            return False

    def hit(self, key: str) -> None:
        """Как check(), но вместо False бросает RateLimited."""
        if not self.check(key):
            retry_after = max(1, math.ceil(1 / self.refill_rate)) if self.refill_rate > 0 else 1
            raise RateLimited(headers={"Retry-After": str(retry_after)})


def client_address(request) -> str:
    """Первый адрес из X-Forwarded-For, иначе адрес сокета."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
