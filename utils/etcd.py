import logging
from typing import Dict, Optional
import httpx
from utils.exceptions import EtcdError

logger = logging.getLogger(__name__)

# etcd2 keys API 요청당 타임아웃 (초)
REQUEST_TIMEOUT = 1.0


def normalize_endpoint(endpoint: str) -> str:
    endpoint = endpoint.strip().rstrip("/")
    if "://" not in endpoint:
        endpoint = "http://" + endpoint
    return endpoint


class Etcd2Client:
    """etcd v2 HTTP keys API 클라이언트"""

    def __init__(self, endpoint: str, timeout: float = REQUEST_TIMEOUT, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.endpoint = normalize_endpoint(endpoint)
        self.timeout = timeout
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> "Etcd2Client":
        self.client = httpx.AsyncClient(base_url=self.endpoint, timeout=self.timeout, transport=self.transport)
        try:
            resp = await self.client.get("/version")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            await self.close()
            raise EtcdError(f"Unable to reach etcd2 at {self.endpoint}: {e}") from e
        return self

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def __aenter__(self):
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def key_path(self, key: str) -> str:
        return "/v2/keys/" + key.lstrip("/")

    async def set(self, data: Dict[str, str]) -> None:
        for key, value in data.items():
            try:
                resp = await self.client.put(self.key_path(key), data={"value": value})
                resp.raise_for_status()
            except httpx.HTTPError as e:
                raise EtcdError(f"Unable to set key {key}: {e}") from e
            logger.debug("etcd2 set %s", key)

