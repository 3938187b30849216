import asyncio
import logging
from typing import Optional
from deploy_pipeline import DeployPipeline
from job_queue import JobQueue
from utils.exceptions import QueueError, InvalidPayloadError

logger = logging.getLogger(__name__)


class DeployWorker:
    """큐를 하나씩 소비하는 단일 워커. 종료 신호는 폴링 사이에서만 확인"""

    def __init__(self, queue: JobQueue, pipeline: DeployPipeline, poll_interval: float,
                 shutdown: Optional[asyncio.Event] = None):
        self.queue = queue
        self.pipeline = pipeline
        self.poll_interval = poll_interval
        self.shutdown = shutdown or asyncio.Event()
        self.processed = 0

    async def run_once(self) -> bool:
        """큐에서 하나를 꺼내 실행. 처리한 요청이 있으면 True"""
        try:
            request = await self.queue.dequeue()
        except InvalidPayloadError as e:
            logger.error("%s: %r", e, e.payload)
            return False
        except QueueError as e:
            logger.error(str(e))
            return False
        if request is None:
            return False
        try:
            await self.pipeline.deploy(request)
        except Exception:
            # 한 건의 실패로 워커 루프가 끝나지 않도록 기록만 함
            logger.exception("Deploy %s aborted outside the pipeline", request.deploy_id)
        self.processed += 1
        return True

    async def run(self) -> None:
        logger.info("Deploy worker started (poll interval %ss)", self.poll_interval)
        while not self.shutdown.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self.shutdown.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Deploy worker stopped after %d deploys", self.processed)

    def stop(self) -> None:
        self.shutdown.set()
