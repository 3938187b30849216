import json
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from api.rest import create_app, V1_PREFIX
from core.context import AppContext
from models.deploy import DeployStatusCode
from utils.exceptions import (
    INVALID_AUTHORIZATION,
    INVALID_BODY,
    INVALID_DEPLOY_CANNOT_QUEUE,
    INVALID_DEPLOY_ENV,
    INVALID_DEPLOY_IMAGE,
    INVALID_ENV_AUTHORIZATION,
    INVALID_JSON_TEXT,
    INVALID_MEDIA_TYPE,
)

JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


def auth_headers(token="good-token"):
    return {**JSON_HEADERS, "Authorization": f"Bearer {token}"}


@pytest.fixture
def context(settings, store, queue, tracker, fake_redis):
    settings.database_url = "sqlite+aiosqlite:///./secret.db"
    settings.redis.password = "redis-secret"
    return AppContext(settings=settings, store=store, queue=queue, tracker=tracker, redis=fake_redis)


@pytest_asyncio.fixture
async def client(context, tokens):
    app = create_app(context)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {}
    assert resp.headers["X-Request-ID"]
    assert resp.headers["Server"] == "docker-deploy-server"


@pytest.mark.asyncio
async def test_deploy_requires_json_headers(client, queue):
    resp = await client.post("/deploy", content=b'{"imageName":"foo","environment":"qa"}',
                             headers={"Authorization": "Bearer good-token", "Content-Type": "text/plain"})
    assert resp.status_code == 415
    assert resp.json()["message"] == INVALID_MEDIA_TYPE
    assert await queue.length() == 0


@pytest.mark.asyncio
async def test_deploy_requires_valid_token(client, queue):
    resp = await client.post("/deploy", json={"imageName": "foo", "environment": "qa"},
                             headers=auth_headers("nope"))
    assert resp.status_code == 401
    assert resp.json()["message"] == INVALID_AUTHORIZATION

    resp = await client.post("/deploy", json={"imageName": "foo", "environment": "qa"}, headers=JSON_HEADERS)
    assert resp.status_code == 401
    assert await queue.length() == 0


@pytest.mark.asyncio
async def test_deploy_invalid_json(client):
    resp = await client.post("/deploy", content=b"{not json", headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json()["message"] == INVALID_JSON_TEXT

    resp = await client.post("/deploy", content=b"", headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json()["message"] == INVALID_BODY


@pytest.mark.asyncio
async def test_deploy_unknown_environment(client, queue, store):
    resp = await client.post("/deploy", json={"imageName": "foo", "environment": "prod"}, headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json()["message"] == INVALID_DEPLOY_ENV
    assert await queue.length() == 0
    assert await store.query_deploy(resp.headers["X-Request-ID"]) is None


@pytest.mark.asyncio
async def test_deploy_environment_not_granted(client, queue):
    # dev는 서버 설정에는 있지만 토큰에 권한이 없음
    resp = await client.post("/deploy", json={"imageName": "foo", "environment": "dev"}, headers=auth_headers())
    assert resp.status_code == 401
    assert resp.json()["message"] == INVALID_ENV_AUTHORIZATION

    resp = await client.post("/deploy", json={"imageName": "foo", "environment": "qa"},
                             headers=auth_headers("plain-token"))
    assert resp.status_code == 401
    assert await queue.length() == 0


@pytest.mark.asyncio
async def test_deploy_missing_image(client, queue):
    resp = await client.post("/deploy", json={"environment": "qa", "imageTag": "v1"}, headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json()["message"] == INVALID_DEPLOY_IMAGE
    assert await queue.length() == 0


@pytest.mark.asyncio
async def test_deploy_accepted(client, queue, store):
    resp = await client.post("/deploy", json={"deployID": "client-chosen", "imageName": "foo-api",
                                              "imageTag": "v2", "environment": "qa"},
                             headers=auth_headers())
    assert resp.status_code == 200
    deploy_id = resp.json()["deployID"]
    assert deploy_id == resp.headers["X-Request-ID"]
    assert deploy_id != "client-chosen"
    assert deploy_id == deploy_id.upper()

    row = await store.query_deploy(deploy_id)
    assert row.status == DeployStatusCode.QUEUED
    assert row.log == "Queued deploy.\n"

    assert await queue.length() == 1
    request = await queue.dequeue()
    assert request.deploy_id == deploy_id
    assert request.image_tag == "v2"
    assert request.num_cont == 3
    assert request.registry == "registry.local:5000"
    assert request.machine == "qa-master"
    assert request.meta_mount == "/opt/meta"
    assert request.swarm is True


@pytest.mark.asyncio
async def test_deploy_default_tag(client, queue):
    resp = await client.post("/deploy", json={"imageName": "foo", "environment": "qa"}, headers=auth_headers())
    assert resp.status_code == 200
    request = await queue.dequeue()
    assert request.image_tag == "latest"


@pytest.mark.asyncio
async def test_deploy_queue_unavailable(client, fake_redis, store):
    fake_redis.fail = True
    resp = await client.post("/deploy", json={"imageName": "foo", "environment": "qa"}, headers=auth_headers())
    assert resp.status_code == 503
    assert resp.json()["message"] == INVALID_DEPLOY_CANNOT_QUEUE

    row = await store.query_deploy(resp.headers["X-Request-ID"])
    assert row.status == DeployStatusCode.FAILED


@pytest.mark.asyncio
async def test_status(client, store):
    resp = await client.post("/deploy", json={"imageName": "foo", "environment": "qa"}, headers=auth_headers())
    deploy_id = resp.json()["deployID"]

    resp = await client.get(f"/status/{deploy_id}", headers=auth_headers())
    assert resp.status_code == 200
    body = resp.json()
    assert body["deployID"] == deploy_id
    assert body["imageName"] == "foo"
    assert body["imageTag"] == "latest"
    assert body["environment"] == "qa"
    assert body["status"] == 1
    assert body["message"] == "Queued deploy."

    await store.update_deploy(deploy_id, DeployStatusCode.SUCCESS, "done", "Queued deploy.\nSUCCESS: done\n")
    resp = await client.get(f"{V1_PREFIX}/status/{deploy_id}", headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json()["status"] == 3


@pytest.mark.asyncio
async def test_status_not_found(client):
    resp = await client.get("/status/NOPE", headers=auth_headers())
    assert resp.status_code == 404
    assert resp.json() == {"id": "NOPE", "error": "deploy not found"}


@pytest.mark.asyncio
async def test_versioned_prefix(client, queue):
    resp = await client.post(f"{V1_PREFIX}/deploy", json={"imageName": "foo", "environment": "qa"},
                             headers=auth_headers())
    assert resp.status_code == 200
    assert await queue.length() == 1
    resp = await client.get(f"{V1_PREFIX}/health")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_info_hides_secrets(client):
    resp = await client.get("/info", headers=auth_headers())
    assert resp.status_code == 200
    text = resp.text
    assert "secret.db" not in text
    assert "redis-secret" not in text
    options = resp.json()["options"]
    assert options["environments"]["qa"]["machine"] == "qa-master"


@pytest.mark.asyncio
async def test_metrics_counts_requests(client, queue):
    await client.get("/health")
    await client.get("/health")
    await client.get("/status/ONE", headers=auth_headers())
    await client.get("/status/TWO", headers=auth_headers())
    await client.get(f"{V1_PREFIX}/status/THREE", headers=auth_headers())
    await client.post("/deploy", json={"imageName": "foo", "environment": "qa"}, headers=auth_headers())
    resp = await client.get("/metrics", headers=auth_headers())
    assert resp.status_code == 200
    body = resp.json()
    routes = body["stats"]["routeStats"]
    assert body["stats"]["requestCount"] == 6
    assert routes["/health"]["requestCount"] == 2
    # 배포 ID별로 항목이 늘어나지 않음
    assert routes["/status/{deploy_id}"]["requestCount"] == 2
    assert routes[f"{V1_PREFIX}/status/{{deploy_id}}"]["requestCount"] == 1
    assert not any("ONE" in path for path in routes)
    assert body["queueLength"] == 1
    assert body["database"] is True
    assert "maxRSS" in body["memStats"]
    json.dumps(body)


@pytest.mark.asyncio
async def test_metrics_with_queue_down(client, fake_redis):
    fake_redis.fail = True
    resp = await client.get("/metrics", headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json()["queueLength"] is None
