import sys
import asyncio
import logging
import argparse
import signal
import uvicorn
import redis.asyncio as aioredis
from core import db as dbmod
from core.config import (
    APPLICATION_NAME,
    VERSION,
    DEFAULT_CONFIG_PREFIX,
    ConfigError,
    load_settings,
)
from core.context import AppContext
from deploy_pipeline import (
    DeployPipeline,
    DOWNLOAD_IMAGE,
    DOWNLOAD_METADATA,
    DEPLOY_METADATA,
    DEPLOY_CONTAINERS,
)
from deploy_store import DeployStore
from deploy_worker import DeployWorker
from executors.script import ScriptExecutor
from job_queue import JobQueue
from last_deploy import LastDeployTracker
from api.rest import create_app

logger = logging.getLogger(APPLICATION_NAME)

EPILOG = """
Example:

    # Config file name: ~/.docker-deploy-server/sf-deploy-service.yml

    python main.py --config-path ~/.docker-deploy-server --config-prefix sf-deploy-service
"""


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog=APPLICATION_NAME,
        description="Server for deploying services to one or more Docker nodes, "
                    "either single nodes or a Docker Swarm cluster.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-p", "--config-path", default="", help="Path to the config file ex: /path/to/dir")
    parser.add_argument("-x", "--config-prefix", default=DEFAULT_CONFIG_PREFIX, help="Config file prefix: ex. <prefix>.yml")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debugging output")
    parser.add_argument("-V", "--version", action="version", version=f"{APPLICATION_NAME} version {VERSION}")
    parser.add_argument("--no-worker", action="store_true", help="Do not run the deploy worker")
    parser.add_argument("--no-rest", action="store_true", help="Disable REST API")
    return parser.parse_args(argv)


def setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


async def build_context(settings) -> AppContext:
    dbmod.init_engine(settings.database_url)
    await dbmod.create_tables()
    store = DeployStore(dbmod.get_sessionmaker())
    redis = aioredis.from_url(settings.redis.url, password=settings.redis.password, decode_responses=True)
    await redis.ping()
    return AppContext(
        settings=settings,
        store=store,
        queue=JobQueue(redis, settings.redis.key_queue),
        tracker=LastDeployTracker(redis, settings.redis.key_last_deploy),
        redis=redis,
    )


async def close_context(context: AppContext) -> None:
    if context.redis is not None:
        await context.redis.aclose()
    await dbmod.dispose_engine()


async def serve(args) -> int:
    try:
        settings = load_settings(args.config_prefix, args.config_path, debug=args.debug)
    except ConfigError as e:
        logger.error(str(e))
        return 1
    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.info("Starting %s version %s", APPLICATION_NAME, VERSION)
    try:
        context = await build_context(settings)
    except Exception as e:
        logger.error("Unable to connect to backing services: %s", e)
        await dbmod.dispose_engine()
        return 1

    runner = ScriptExecutor(settings.scripts_path, strict_stderr=settings.strict_stderr)
    for name in (DOWNLOAD_IMAGE, DOWNLOAD_METADATA, DEPLOY_METADATA, DEPLOY_CONTAINERS):
        if not await runner.validate(name):
            logger.warning("Provisioning script %s is missing or not executable", runner.script_path(name))

    pipeline = DeployPipeline(settings, context.store, context.tracker, runner)
    worker = DeployWorker(context.queue, pipeline, settings.redis.poll_interval, context.shutdown)

    loop = asyncio.get_running_loop()
    server = None
    tasks = []
    if not args.no_worker:
        tasks.append(loop.create_task(worker.run()))
    if not args.no_rest:
        config = uvicorn.Config(create_app(context), host=settings.hostname, port=settings.port,
                                log_level="debug" if settings.debug else "info")
        server = uvicorn.Server(config)
        tasks.append(loop.create_task(server.serve()))
        logger.info("REST API started on %s:%d", settings.hostname, settings.port)

    def request_shutdown():
        logger.info("Server received shutdown signal")
        context.shutdown.set()
        if server is not None:
            server.should_exit = True

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except NotImplementedError:
            pass

    try:
        if tasks:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        # HTTP 서버가 먼저 끝나도 워커는 현재 배포를 마친 뒤 종료
        request_shutdown()
        await asyncio.gather(*tasks)
    finally:
        logger.info("BEGIN server service stop.")
        await close_context(context)
        logger.info("END server service stop.")
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.debug)
    return asyncio.run(serve(args))


if __name__ == "__main__":
    sys.exit(main())
