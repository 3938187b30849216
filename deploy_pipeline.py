import os
import logging
from contextlib import ExitStack
from typing import Optional, Sequence
from sqlalchemy.exc import SQLAlchemyError
from core.config import Settings, DEFAULT_NUM_CONTAINERS
from deploy_store import DeployStore
from executors.base import StepRunner, StepResult
from key_publisher import MetadataKeyPublisher
from last_deploy import LastDeployTracker
from metadata import MetadataReader
from models.deploy import DeployStatusCode
from schemas.deploy import DeployRequest
from utils.exceptions import StepFailedError, TrackerError
from workspace import workspace

logger = logging.getLogger(__name__)

# 외부 프로비저닝 스크립트
DOWNLOAD_IMAGE = "download-image.sh"
DOWNLOAD_METADATA = "download-metadata.sh"
DEPLOY_METADATA = "deploy-metadata.sh"
DEPLOY_CONTAINERS = "deploy-containers.sh"

COMPOSE_FILE = "docker-compose.yml"

# 상태 메시지
MSG_STARTED = "Started Deploy."
MSG_LAST_DEPLOY_FAILED = "Unable to access redis server for last deploy validation."
MSG_WORKSPACE = "Creating working temp directory for this deploy."
MSG_WORKSPACE_FAILED = "Unable to create temporary work directory on server."
MSG_DOWNLOAD_IMAGE = "Extracting meta-data from Docker image in registry."
MSG_NO_COMPOSE = "docker-compose.yml file doesn't exist for this launch."
MSG_DOWNLOAD_METADATA = "Downloading meta-data from git."
MSG_CONTAINER_COUNT = "Extracting number of containers to launch."
MSG_DEPLOY_METADATA = "Deploying meta-data."
MSG_ETCD = "Deploying etcd2 keys."
MSG_CONTAINERS = "Starting up containers."
MSG_SET_LAST_DEPLOY_FAILED = "Unable to access redis server to set last deploy image tag."
MSG_SUCCESS = "Containers deployed successfully."
MSG_UNEXPECTED = "Unexpected error during deploy."


def service_name(image_name: str) -> str:
    return image_name.replace("-", "_")


class DeployRun:
    """실행 1회의 누적 로그와 상태 기록. 로그는 항상 전체를 다시 기록"""

    def __init__(self, store: DeployStore, deploy_id: str, log: str = ""):
        self.store = store
        self.deploy_id = deploy_id
        self.log = log
        self.status: Optional[DeployStatusCode] = None

    def append(self, text: str) -> None:
        if not text:
            return
        self.log += text if text.endswith("\n") else text + "\n"

    async def _write(self, status: DeployStatusCode, message: str) -> None:
        self.status = status
        if not await self.store.update_deploy(self.deploy_id, status, message, self.log):
            logger.error("Could not record status %s for deploy %s", status.name, self.deploy_id)

    async def step(self, message: str) -> None:
        self.append(message)
        await self._write(DeployStatusCode.STARTED, message)

    async def fail(self, message: str, detail: str = "") -> None:
        self.log += f"ERR: {message}\n{detail.rstrip()}\n"
        await self._write(DeployStatusCode.FAILED, message)

    async def succeed(self, message: str) -> None:
        self.log += f"SUCCESS: {message}\n"
        await self._write(DeployStatusCode.SUCCESS, message)


class DeployPipeline:
    def __init__(self, settings: Settings, store: DeployStore, tracker: LastDeployTracker,
                 runner: StepRunner, publisher: Optional[MetadataKeyPublisher] = None):
        self.settings = settings
        self.store = store
        self.tracker = tracker
        self.runner = runner
        self.publisher = publisher or MetadataKeyPublisher()

    async def deploy(self, request: DeployRequest) -> Optional[DeployStatusCode]:
        """요청 하나를 끝까지 실행하고 최종 상태를 반환. 상태 행이 없으면 None"""
        try:
            row = await self.store.query_deploy(request.deploy_id)
        except SQLAlchemyError as e:
            logger.error("Could not get deploy from database for ID: %s\n%s", request.deploy_id, e)
            return None
        if row is None:
            logger.error("Could not get deploy from database for ID: %s", request.deploy_id)
            return None

        run = DeployRun(self.store, request.deploy_id, row.log or "")
        logger.info("Deploy %s started: %s:%s -> %s", request.deploy_id, request.image_name,
                    request.image_tag, request.environment)
        try:
            await self._run(run, request)
        except StepFailedError as e:
            await run.fail(e.message, e.detail)
            logger.warning("Deploy %s failed: %s %s", request.deploy_id, e.message, e.detail.strip())
        except Exception as e:
            logger.exception("Deploy %s aborted by unexpected error", request.deploy_id)
            await run.fail(MSG_UNEXPECTED, str(e))
        else:
            logger.info("Deploy %s finished successfully", request.deploy_id)
        return run.status

    async def _run(self, run: DeployRun, request: DeployRequest) -> None:
        await run.step(MSG_STARTED)

        try:
            last_tag = await self.tracker.get(request.environment, request.image_name)
        except TrackerError as e:
            raise StepFailedError(MSG_LAST_DEPLOY_FAILED, str(e)) from e
        # 이전 배포가 없으면 현재 태그를 이전 태그로 사용
        previous_tag = last_tag or request.image_tag

        await run.step(MSG_WORKSPACE)
        with ExitStack() as stack:
            try:
                ws = stack.enter_context(workspace(self.settings.temp_path, request.environment, request.image_name))
            except OSError as e:
                raise StepFailedError(MSG_WORKSPACE_FAILED, str(e)) from e
            await self._provision(run, request, ws, previous_tag)

        try:
            await self.tracker.set(request.environment, request.image_name, request.image_tag)
        except TrackerError as e:
            raise StepFailedError(MSG_SET_LAST_DEPLOY_FAILED, str(e)) from e

        await run.succeed(MSG_SUCCESS)

    async def _provision(self, run: DeployRun, request: DeployRequest, ws: str, previous_tag: str) -> None:
        git = self.settings.git

        await self._execute(run, MSG_DOWNLOAD_IMAGE, DOWNLOAD_IMAGE,
                            [request.image_tag, request.registry, request.image_name, ws])
        compose_path = os.path.join(ws, COMPOSE_FILE)
        if not os.path.isfile(compose_path):
            raise StepFailedError(MSG_NO_COMPOSE, f"{compose_path} not found")

        await self._execute(run, MSG_DOWNLOAD_METADATA, DOWNLOAD_METADATA, [git.repo, git.root, ws])

        await run.step(MSG_CONTAINER_COUNT)
        reader = MetadataReader(ws, git.repo)
        num_cont = reader.container_count(request.image_name, request.environment,
                                          request.num_cont or DEFAULT_NUM_CONTAINERS)

        await self._execute(run, MSG_DEPLOY_METADATA, DEPLOY_METADATA,
                            [request.env_tag, git.repo, request.meta_mount, ws])

        if request.etcd_endpoint:
            await run.step(MSG_ETCD)
            await self.publisher.publish(request.etcd_endpoint, reader, request.image_name, request.environment)

        await self._execute(run, MSG_CONTAINERS, DEPLOY_CONTAINERS, [
            request.image_name,
            request.image_tag,
            previous_tag,
            request.registry,
            service_name(request.image_name),
            request.machine,
            str(num_cont),
            self.settings.project,
            "true" if request.swarm else "false",
            ws,
        ])

    async def _execute(self, run: DeployRun, message: str, name: str, args: Sequence[str]) -> StepResult:
        await run.step(message)
        result = await self.runner.run_step(name, args)
        if result.ok or result.already_achieved:
            run.append(result.stdout)
            return result
        raise StepFailedError(message, result.error_text or "")
