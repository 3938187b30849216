import asyncio
from dataclasses import dataclass, field
from core.config import Settings
from core.stats import RequestStats
from deploy_store import DeployStore
from job_queue import JobQueue
from last_deploy import LastDeployTracker


@dataclass
class AppContext:
    """프로세스 전역 상태(설정, DB/큐 핸들, 통계, 종료 신호)"""
    settings: Settings
    store: DeployStore
    queue: JobQueue
    tracker: LastDeployTracker
    redis: object = None
    stats: RequestStats = field(default_factory=RequestStats)
    shutdown: asyncio.Event = field(default_factory=asyncio.Event)
