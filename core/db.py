import os
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy import create_engine
from dotenv import load_dotenv
from core.config import DEFAULT_DATABASE_URL

# .env 파일에서 환경변수 로드
load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

# 싱글턴 엔진/세션
engine = None
SessionLocal = None


def init_engine(db_url: str = DATABASE_URL) -> AsyncEngine:
    global engine, SessionLocal
    if engine is None:
        connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
        engine = create_async_engine(db_url, future=True, connect_args=connect_args)
        SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine


def get_sessionmaker() -> async_sessionmaker:
    return SessionLocal


async def dispose_engine() -> None:
    global engine, SessionLocal
    if engine is not None:
        await engine.dispose()
    engine = None
    SessionLocal = None


async def create_tables() -> None:
    from models.base import Base
    import models  # noqa: F401  테이블 등록
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def sync_url(db_url: str = DATABASE_URL) -> str:
    # Alembic/스크립트용 동기 드라이버 URL
    return db_url.replace("+aiosqlite", "").replace("+asyncmy", "+pymysql")


def get_sync_engine(db_url: str = DATABASE_URL):
    return create_engine(sync_url(db_url), future=True)
