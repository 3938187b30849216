from typing import Optional
from redis.exceptions import RedisError
from utils.exceptions import TrackerError


class LastDeployTracker:
    """환경별 Redis 해시에 이미지 이름 -> 마지막 성공 태그 저장"""

    def __init__(self, redis, key_prefix: str):
        self.redis = redis
        self.key_prefix = key_prefix

    def hash_key(self, environment: str) -> str:
        return f"{self.key_prefix}:{environment}"

    async def get(self, environment: str, image_name: str) -> Optional[str]:
        try:
            tag = await self.redis.hget(self.hash_key(environment), image_name)
        except RedisError as e:
            raise TrackerError(str(e)) from e
        if isinstance(tag, bytes):
            tag = tag.decode("utf-8")
        return tag or None

    async def set(self, environment: str, image_name: str, tag: str) -> None:
        try:
            await self.redis.hset(self.hash_key(environment), image_name, tag)
        except RedisError as e:
            raise TrackerError(str(e)) from e
