"""
Publisher for workshop events on the "workshop:updates" pub/sub channel.

Dashboards and the notification workers subscribe to the channel; the engine
only publishes. Payloads are flat JSON objects: the common envelope
(event_type, job_id, company_id, status, actor_id, timestamp) merged with
the event-specific fields.
"""
import json
import logging
from typing import Optional, Dict, Any

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from workshop_core.utils.date_formatter import now_utc

logger = logging.getLogger(__name__)


class RedisEventService:

    CHANNEL = "workshop:updates"

    def __init__(self, redis_client: aioredis.Redis):
        self.redis_client = redis_client
        self.channel = self.CHANNEL

    async def publish_workshop_update(
        self,
        event_type: str,
        job_id: str,
        company_id: str,
        status: Optional[str],
        actor_id: Optional[str] = None,
        additional_data: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Returns False instead of raising when Redis rejects the publish;
        callers have already committed the write the event describes.
        Non-JSON values (datetimes) are sent as their str() form.
        """
        payload = {
            "event_type": event_type,
            "job_id": job_id,
            "company_id": company_id,
            "status": status,
            "actor_id": actor_id,
            "timestamp": now_utc().isoformat()
        }
        if additional_data:
            payload.update(additional_data)

        try:
            subscribers = await self.redis_client.publish(
                self.channel, json.dumps(payload, default=str)
            )
        except RedisError as e:
            logger.error(f"{event_type} event for job {job_id} not published: {e}")
            return False

        logger.info(f"{event_type} event for job {job_id} reached {subscribers} subscribers")
        return True
