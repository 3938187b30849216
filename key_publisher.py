import logging
from typing import Callable, Dict
from metadata import MetadataReader
from utils.etcd import Etcd2Client
from utils.exceptions import EtcdError, StepFailedError

logger = logging.getLogger(__name__)

CONNECT_FAILED = "Unable to connect to etcd2 server."
UPDATE_FAILED = "Unable to perform updates to etcd2 server."


class MetadataKeyPublisher:
    """common + 이미지 전용 etcd2 키를 병합해 조정 엔드포인트에 설정"""

    def __init__(self, client_factory: Callable[[str], Etcd2Client] = Etcd2Client):
        self.client_factory = client_factory

    def resolve_keys(self, reader: MetadataReader, image_name: str, environment: str) -> Dict[str, str]:
        return reader.merged_etcd_keys(image_name, environment)

    async def publish(self, endpoint: str, reader: MetadataReader, image_name: str, environment: str) -> int:
        keys = self.resolve_keys(reader, image_name, environment)
        if not keys:
            logger.info("No etcd2 keys to publish for %s in %s", image_name, environment)
            return 0
        try:
            async with self.client_factory(endpoint) as client:
                try:
                    await client.set(keys)
                except EtcdError as e:
                    raise StepFailedError(UPDATE_FAILED, str(e)) from e
        except EtcdError as e:
            # set 실패는 위에서 StepFailedError로 바뀌므로 여기는 연결 실패
            raise StepFailedError(CONNECT_FAILED, str(e)) from e
        logger.info("Published %d etcd2 keys to %s", len(keys), endpoint)
        return len(keys)
