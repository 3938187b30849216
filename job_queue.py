import logging
from typing import Optional
from pydantic import ValidationError
from redis.exceptions import RedisError
from schemas.deploy import DeployRequest
from utils.exceptions import QueueError, InvalidPayloadError

logger = logging.getLogger(__name__)


class JobQueue:
    """Redis 리스트 기반 FIFO 큐. tail에 push, head에서 pop (ack/재전달 없음)"""

    def __init__(self, redis, key: str):
        self.redis = redis
        self.key = key

    async def enqueue(self, request: DeployRequest) -> None:
        try:
            await self.redis.rpush(self.key, request.to_json())
        except RedisError as e:
            raise QueueError(f"Unable to push deploy request {request.deploy_id}: {e}") from e

    async def dequeue(self) -> Optional[DeployRequest]:
        try:
            payload = await self.redis.lpop(self.key)
        except RedisError as e:
            raise QueueError(f"Unable to pop from queue '{self.key}': {e}") from e
        if payload is None or payload == "":
            return None
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        try:
            return DeployRequest.from_json(payload)
        except ValidationError as e:
            raise InvalidPayloadError(payload, str(e)) from e

    async def length(self) -> int:
        try:
            return await self.redis.llen(self.key)
        except RedisError as e:
            raise QueueError(str(e)) from e
