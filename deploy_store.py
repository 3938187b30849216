import logging
from typing import Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from models.deploy import Deploy, DeployStatusCode
from models.auth_token import AuthToken, Environment, auth_tokens_environments

logger = logging.getLogger(__name__)

QUEUED_MESSAGE = "Queued deploy."


class DeployStore:
    """배포 상태 테이블(deploys)과 토큰 권한 조회를 담당"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def queue_deploy(self, deploy_id: str, environment: str, image_name: str, image_tag: str) -> bool:
        deploy = Deploy(
            deploy_id=deploy_id,
            environment=environment,
            image_name=image_name,
            image_tag=image_tag,
            status=int(DeployStatusCode.QUEUED),
            message=QUEUED_MESSAGE,
            log=QUEUED_MESSAGE + "\n",
        )
        try:
            async with self.session_factory() as session:
                session.add(deploy)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Could not insert deploy %s: %s", deploy_id, e)
            return False
        return True

    async def update_deploy(self, deploy_id: str, status: DeployStatusCode, message: str, log: str) -> bool:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(Deploy)
                    .where(Deploy.deploy_id == deploy_id)
                    .values(status=int(status), message=message, log=log, updated_at=func.now())
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Could not update deploy %s: %s", deploy_id, e)
            return False
        if result.rowcount != 1:
            logger.error("Update of deploy %s touched %s rows", deploy_id, result.rowcount)
            return False
        return True

    async def query_deploy(self, deploy_id: str) -> Optional[Deploy]:
        async with self.session_factory() as session:
            result = await session.execute(select(Deploy).where(Deploy.deploy_id == deploy_id))
            return result.scalars().first()

    async def valid_auth(self, token: str) -> bool:
        if not token:
            return False
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(AuthToken.id).where(AuthToken.token == token))
                return result.scalars().first() is not None
        except SQLAlchemyError as e:
            logger.error("Auth token lookup failed: %s", e)
            return False

    async def auth_deploy_env(self, token: str, environment: str) -> bool:
        if not token:
            return False
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(auth_tokens_environments.c.auth_token_id)
                    .join(AuthToken, auth_tokens_environments.c.auth_token_id == AuthToken.id)
                    .join(Environment, auth_tokens_environments.c.environment_id == Environment.id)
                    .where(AuthToken.token == token, Environment.name == environment)
                )
                return result.first() is not None
        except SQLAlchemyError as e:
            logger.error("Environment auth lookup failed: %s", e)
            return False

    async def ping(self) -> bool:
        try:
            async with self.session_factory() as session:
                await session.execute(select(1))
            return True
        except SQLAlchemyError:
            return False
