import os
import random
import shutil
import string
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)

MAX_RANDOM = 16
_CHARS = string.ascii_lowercase + string.digits


def random_string(n: int = MAX_RANDOM) -> str:
    return "".join(random.choice(_CHARS) for _ in range(n))


def workspace_path(temp_path: str, environment: str, image_name: str) -> str:
    return os.path.join(temp_path, environment, f"{image_name}-{random_string()}")


def remove_workspace(path: str) -> None:
    shutil.rmtree(path, ignore_errors=True)
    if os.path.exists(path):
        logger.warning("Workspace %s could not be fully removed", path)


@contextmanager
def workspace(temp_path: str, environment: str, image_name: str):
    """배포 1회용 작업 디렉토리. 성공/실패/예외 모두 종료 시 삭제"""
    path = workspace_path(temp_path, environment, image_name)
    os.makedirs(path, exist_ok=False)
    logger.debug("Created workspace %s", path)
    try:
        yield path
    finally:
        remove_workspace(path)
        logger.debug("Removed workspace %s", path)
