import json
import logging
from typing import Optional

from redis.exceptions import RedisError

from tourbook.core import get_settings
from .redis_client import get_redis

logger = logging.getLogger(__name__)


async def publish_capacity_invalidated(
    activity_id: int,
    date: str,
    time: Optional[str],
    capacity_id: Optional[int] = None,
) -> bool:
    """Announce that the remaining seats of a slot changed.

    Subscribers (calendar caches, dashboards) re-resolve the slot. Delivery is
    best effort: the committed reservation is authoritative, so a failed
    publish is logged and reported as ``False``.
    """
    payload = json.dumps({
        "activityId": activity_id,
        "date": date,
        "time": time or None,
        "capacityId": capacity_id,
    })
    channel = get_settings().CAPACITY_EVENTS_CHANNEL
    try:
        await get_redis().publish(channel, payload)
    except (RedisError, OSError) as exc:
        logger.warning("capacity invalidation for activity %s on %s not published: %s", activity_id, date, exc)
        return False
    return True
