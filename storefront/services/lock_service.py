import uuid

import redis

from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, PAYMENT_LOCK_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje skrypt lua atomowo - nikt nie wcisnie sie miedzy GET a DEL,
#wiec nie zwolnimy locka, ktory po wygasnieciu przejal ktos inny


class LockService:
    """
    -blokada potwierdzania platnosci dla zamowienia (lock)
    -zwalnianie locka
    -atomowosc przy pomocy lua

    Lock tylko odsiewa rownolegle proby; o poprawnosci decyduje warunkowy
    UPDATE zamowienia (is_paid = false) w bazie.
    """

    def __init__(self, url: str | None = None):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _key(order_id: int) -> str:
        return f"order:{order_id}:payment-lock"

    @staticmethod
    def new_token() -> str:
        return uuid.uuid4().hex

    @redis_retry()
    def acquire_payment_lock(self, order_id: int, token: str, ttl: int = PAYMENT_LOCK_TTL_SECONDS) -> bool:
        key = self._key(order_id)
        logger.info(f"Acquire lock {key}")
        #SET order:1:payment-lock "<token>" NX EX 30
        return bool(
            self.redis.set(
                name=key,
                value=token,
                nx=True, #tylko jesli klucz nie istnieje
                ex=ttl, #wygasa sam, nawet gdy proces padnie przed release
            )
        )

    @redis_retry()
    def release_payment_lock(self, order_id: int, token: str) -> bool:
        key = self._key(order_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
