# automart/services/locker_service.py
import json
from typing import Any, List

import redis
from redis.exceptions import RedisError

from automart.services.checkout_service import now_ms
from automart.utils.logging import get_logger
from automart.utils.retry import redis_retry
from automart.utils.settings import LOCKER_TOPIC_TEMPLATE, REDIS_URL

logger = get_logger(__name__)


class LockerCommandService:
    """
    Locker command sink. Publishes commands on the per-locker channel
    locker/<lockerId>/commands, the locker firmware bridge subscribes there.
    Delivery and acknowledgement are the bridge's business, not ours.
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def topic(locker_id: str) -> str:
        return LOCKER_TOPIC_TEMPLATE.format(locker_id=locker_id)

    @redis_retry()
    def _publish(self, topic: str, message: str) -> int:
        return self.redis.publish(topic, message)

    def publish_open(self, locker_id: str, order_id: str, products: List[Any]) -> bool:
        """Returns False when the sink is unreachable, the order itself stays valid."""
        topic = self.topic(locker_id)
        message = json.dumps(
            {
                "cmd": "open",
                "orderId": order_id,
                "products": products,
                "ts": now_ms(),
            }
        )

        try:
            receivers = self._publish(topic, message)
        except RedisError as e:
            logger.error(f"Locker sink unreachable, command for {order_id} not sent: {e}")
            return False

        logger.info(f"Sent open command to {topic} ({receivers} receivers): {message}")
        return True
