import json
import uuid
import logging
from email.utils import format_datetime
from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from api.auth import get_context, get_token, authorize_environment
from core.config import VERSION, DEFAULT_NUM_CONTAINERS
from core.context import AppContext
from core.stats import memory_stats
from models.deploy import DeployStatusCode
from schemas.deploy import DeployAccepted, DeployCreate, DeployRequest, DeployStatusRead
from utils.exceptions import (
    CustomException,
    QueueError,
    INVALID_DEPLOY_CANNOT_QUEUE,
    INVALID_DEPLOY_ENV,
    INVALID_DEPLOY_IMAGE,
    INVALID_BODY,
    INVALID_JSON_TEXT,
)

logger = logging.getLogger(__name__)

V1_PREFIX = "/v1.0"
UNMATCHED_ROUTE = "<unmatched>"

router = APIRouter()


@router.get("/health")
async def health():
    return {}


@router.get("/info")
async def info(context: AppContext = Depends(get_context), token: str = Depends(get_token)):
    return {"options": context.settings.model_dump(mode="json")}


@router.get("/metrics")
async def metrics(context: AppContext = Depends(get_context), token: str = Depends(get_token)):
    try:
        queue_length = await context.queue.length()
    except QueueError as e:
        logger.warning("Queue length unavailable: %s", e)
        queue_length = None
    return {
        "options": context.settings.model_dump(mode="json"),
        "stats": context.stats.snapshot(),
        "memStats": memory_stats(),
        "queueLength": queue_length,
        "database": await context.store.ping(),
    }


@router.post("/deploy")
async def deploy(request: Request, context: AppContext = Depends(get_context), token: str = Depends(get_token)):
    body = await request.body()
    if not body.strip():
        raise CustomException(code="invalid_body", message=INVALID_BODY, status_code=400)
    try:
        payload = DeployCreate.model_validate_json(body)
    except ValidationError:
        raise CustomException(code="invalid_json", message=INVALID_JSON_TEXT, status_code=400)

    # 이 서버에서 배포 가능한 환경인지 확인
    environment = payload.environment or ""
    env_config = context.settings.environment(environment)
    if env_config is None:
        raise CustomException(code="invalid_environment", message=INVALID_DEPLOY_ENV, status_code=400)
    await authorize_environment(context, token, environment)
    if not payload.image_name:
        raise CustomException(code="invalid_image", message=INVALID_DEPLOY_IMAGE, status_code=400)

    deploy_id = request.state.request_id
    deploy_request = DeployRequest(
        deploy_id=deploy_id,
        image_name=payload.image_name,
        image_tag=payload.image_tag,
        environment=environment,
        env_tag=env_config.env_tag,
        etcd_endpoint=env_config.etcd_endpoint,
        machine=env_config.machine,
        meta_mount=env_config.metadata_mount,
        num_cont=env_config.num_containers or DEFAULT_NUM_CONTAINERS,
        registry=env_config.docker_registry,
        swarm=env_config.swarm,
    )

    # 상태 행을 먼저 만들어야 워커가 조회할 수 있음
    if not await context.store.queue_deploy(deploy_id, environment, deploy_request.image_name, deploy_request.image_tag):
        raise CustomException(code="queue_unavailable", message=INVALID_DEPLOY_CANNOT_QUEUE, status_code=503)
    try:
        await context.queue.enqueue(deploy_request)
    except QueueError as e:
        logger.error("Deploy %s could not be queued: %s", deploy_id, e)
        await context.store.update_deploy(deploy_id, DeployStatusCode.FAILED, INVALID_DEPLOY_CANNOT_QUEUE,
                                          f"Queued deploy.\nERR: {INVALID_DEPLOY_CANNOT_QUEUE}\n{e}\n")
        raise CustomException(code="queue_unavailable", message=INVALID_DEPLOY_CANNOT_QUEUE,
                              dev_message=str(e), status_code=503)
    logger.info("Queued deploy %s: %s:%s -> %s", deploy_id, deploy_request.image_name,
                deploy_request.image_tag, environment)
    return DeployAccepted(deploy_id=deploy_id).model_dump(by_alias=True)


@router.get("/status/{deploy_id}")
async def status(deploy_id: str, context: AppContext = Depends(get_context), token: str = Depends(get_token)):
    try:
        deploy = await context.store.query_deploy(deploy_id)
    except SQLAlchemyError as e:
        logger.error("Status lookup for %s failed: %s", deploy_id, e)
        return JSONResponse(status_code=500, content={"id": deploy_id, "error": str(e)})
    if deploy is None:
        return JSONResponse(status_code=404, content={"id": deploy_id, "error": "deploy not found"})
    return DeployStatusRead.from_orm_safe(deploy).model_dump(mode="json", by_alias=True)


def route_key(request: Request) -> str:
    # /status/{deploy_id}처럼 경로 템플릿 단위로 집계
    route = request.scope.get("route")
    if route is not None:
        return route.path
    return UNMATCHED_ROUTE


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    app = FastAPI(title="Deploy Runner", description="Docker image deploy pipeline", version=VERSION)
    app.state.context = context

    app.include_router(router)
    app.include_router(router, prefix=V1_PREFIX)

    @app.middleware("http")
    async def request_middleware(request: Request, call_next):
        request_id = str(uuid.uuid4()).upper()
        request.state.request_id = request_id
        content_length = int(request.headers.get("content-length") or 0)
        ctx = request.app.state.context
        logger.info(json.dumps({"request": {
            "id": request_id,
            "method": request.method,
            "url": str(request.url),
            "contentLength": content_length,
            "remoteAddr": request.client.host if request.client else None,
        }}))
        response = await call_next(request)
        if ctx is not None:
            ctx.stats.increment(route_key(request), content_length)
        response.headers["X-Request-ID"] = request_id
        response.headers["Date"] = format_datetime(datetime.now(timezone.utc))
        if ctx is not None and ctx.settings.server_name:
            response.headers["Server"] = ctx.settings.server_name
        return response

    @app.exception_handler(CustomException)
    async def custom_exception_handler(request: Request, exc: CustomException):
        logger.error(f"[{exc.code}] {exc.message} {exc.dev_message} | {request.url}")
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict()
        )

    return app
