import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from core.config import Settings, GitConfig, EnvironmentConfig
from deploy_store import DeployStore
from executors.base import StepRunner, StepResult
from job_queue import JobQueue
from last_deploy import LastDeployTracker
from models import Base, AuthToken, Environment


class FakeRedis:
    """테스트용 인메모리 Redis (list/hash 명령만)"""

    def __init__(self):
        self.lists = {}
        self.hashes = {}
        self.fail = False
        self.closed = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("fake redis unavailable")

    async def rpush(self, key, *values):
        self._check()
        self.lists.setdefault(key, []).extend(values)
        return len(self.lists[key])

    async def lpop(self, key):
        self._check()
        items = self.lists.get(key)
        if not items:
            return None
        return items.pop(0)

    async def llen(self, key):
        self._check()
        return len(self.lists.get(key, []))

    async def hget(self, name, key):
        self._check()
        return self.hashes.get(name, {}).get(key)

    async def hset(self, name, key, value):
        self._check()
        self.hashes.setdefault(name, {})[key] = value
        return 1

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        self.closed = True


def write_compose(args):
    # download-image.sh <tag> <registry> <image> <workspace>
    with open(os.path.join(args[3], "docker-compose.yml"), "w") as f:
        f.write("version: '2'\n")


class ScriptedRunner(StepRunner):
    """단계 이름별로 미리 정한 결과를 돌려주는 StepRunner"""

    def __init__(self):
        self.calls = []
        self.results = {}
        self.hooks = {"download-image.sh": write_compose}

    async def run_step(self, name, args):
        args = list(args)
        self.calls.append((name, args))
        hook = self.hooks.get(name)
        if hook:
            hook(args)
        return self.results.get(name, StepResult(stdout=f"{name} done\n"))

    async def validate(self, name):
        return True

    def called(self, name):
        return [args for n, args in self.calls if n == name]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def queue(fake_redis):
    return JobQueue(fake_redis, "test:queue")


@pytest.fixture
def tracker(fake_redis):
    return LastDeployTracker(fake_redis, "test:lastdeploy")


@pytest.fixture
def runner():
    return ScriptedRunner()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        temp_path=str(tmp_path / "work"),
        scripts_path=str(tmp_path / "scripts"),
        git=GitConfig(root="git@github.com:example", repo="provisioning"),
        environments={
            "qa": EnvironmentConfig(
                env_tag="qa",
                machine="qa-master",
                metadata_mount="/opt/meta",
                num_containers=3,
                docker_registry="registry.local:5000",
                swarm=True,
            ),
            "dev": EnvironmentConfig(env_tag="dev", machine="dev-1", docker_registry="registry.local:5000"),
        },
    )


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def store(session_factory):
    return DeployStore(session_factory)


@pytest_asyncio.fixture
async def tokens(session_factory):
    # good-token: qa 배포 가능, plain-token: 인증만 가능
    async with session_factory() as session:
        qa = Environment(name="qa")
        dev = Environment(name="dev")
        session.add_all([
            AuthToken(token="good-token", description="ci", environments=[qa]),
            AuthToken(token="plain-token", description="read only"),
            dev,
        ])
        await session.commit()
    return {"good": "good-token", "plain": "plain-token"}
