import os
import logging
from typing import Any, Dict, List, Optional
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

APPLICATION_NAME = "docker-deploy-server"
VERSION = "1.0.0"

DEFAULT_CONFIG_PREFIX = APPLICATION_NAME
DEFAULT_CONFIG_PATH = "/etc/" + APPLICATION_NAME
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./deploys.db"
DEFAULT_REDIS_URL = "redis://redis:6379/0"
DEFAULT_KEY_QUEUE = APPLICATION_NAME + ":queue"
DEFAULT_KEY_LAST_DEPLOY = APPLICATION_NAME + ":lastdeploy"
DEFAULT_POLL_INTERVAL = 5
DEFAULT_PROJECT = "docker"
DEFAULT_TEMP_PATH = "/tmp/" + APPLICATION_NAME
DEFAULT_SCRIPTS_PATH = "./scripts"
DEFAULT_IMAGE_TAG = "latest"
DEFAULT_NUM_CONTAINERS = 2


class ConfigError(Exception):
    pass


# YAML 값은 int/bool/str 중 무엇이든 올 수 있으므로 필드별로 변환
def coerce_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return str(value)
    logger.warning("Expected a string config value, got %r; using %r", value, default)
    return default


def coerce_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        logger.warning("Expected an integer config value, got %r; using %r", value, default)
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    logger.warning("Expected an integer config value, got %r; using %r", value, default)
    return default


def coerce_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "t", "true", "yes", "on"):
            return True
        if lowered in ("0", "f", "false", "no", "off"):
            return False
    logger.warning("Expected a boolean config value, got %r; using %r", value, default)
    return default


class EnvironmentConfig(BaseModel):
    """배포 대상 환경 하나의 설정 (dev, qa, prod 등)"""
    env_tag: str = ""
    etcd_endpoint: str = ""
    machine: str = ""
    metadata_mount: str = ""
    num_containers: int = DEFAULT_NUM_CONTAINERS
    docker_registry: str = ""
    swarm: bool = False

    @field_validator("env_tag", "etcd_endpoint", "machine", "metadata_mount", "docker_registry", mode="before")
    @classmethod
    def _as_str(cls, v):
        return coerce_str(v)

    @field_validator("num_containers", mode="before")
    @classmethod
    def _as_int(cls, v):
        count = coerce_int(v, DEFAULT_NUM_CONTAINERS)
        return count if count > 0 else DEFAULT_NUM_CONTAINERS

    @field_validator("swarm", mode="before")
    @classmethod
    def _as_bool(cls, v):
        return coerce_bool(v)


class RedisConfig(BaseModel):
    url: str = DEFAULT_REDIS_URL
    password: Optional[str] = Field(default=None, exclude=True)
    key_queue: str = DEFAULT_KEY_QUEUE
    key_last_deploy: str = DEFAULT_KEY_LAST_DEPLOY
    poll_interval: float = DEFAULT_POLL_INTERVAL

    @field_validator("poll_interval", mode="before")
    @classmethod
    def _poll(cls, v):
        interval = coerce_int(v, DEFAULT_POLL_INTERVAL) if not isinstance(v, float) else v
        return interval if interval > 0 else DEFAULT_POLL_INTERVAL


class GitConfig(BaseModel):
    root: str = ""
    repo: str = ""


class Settings(BaseModel):
    server_name: str = APPLICATION_NAME
    domain: str = APPLICATION_NAME
    hostname: str = "localhost"
    port: int = 8080
    database_url: str = Field(default=DEFAULT_DATABASE_URL, exclude=True)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    project: str = DEFAULT_PROJECT
    temp_path: str = DEFAULT_TEMP_PATH
    scripts_path: str = DEFAULT_SCRIPTS_PATH
    strict_stderr: bool = True
    debug: bool = False
    environments: Dict[str, EnvironmentConfig] = Field(default_factory=dict)

    @field_validator("environments", mode="before")
    @classmethod
    def _environments(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("environments must be a mapping of environment name to settings")
        return {str(name): (entry if entry is not None else {}) for name, entry in v.items()}

    def environment(self, name: str) -> Optional[EnvironmentConfig]:
        return self.environments.get(name)


def config_search_paths(config_path: Optional[str] = None) -> List[str]:
    paths = [DEFAULT_CONFIG_PATH]
    if config_path:
        paths.append(os.path.expanduser(config_path))
    paths.append(".")
    return paths


def find_config_file(config_prefix: str, config_path: Optional[str] = None) -> Optional[str]:
    # 마지막에 추가된 경로가 우선
    for directory in reversed(config_search_paths(config_path)):
        for ext in ("yml", "yaml"):
            candidate = os.path.join(directory, f"{config_prefix}.{ext}")
            if os.path.isfile(candidate):
                return candidate
    return None


def load_settings(config_prefix: str = DEFAULT_CONFIG_PREFIX, config_path: Optional[str] = None,
                  debug: bool = False) -> Settings:
    """YAML 설정 파일을 읽고 .env/환경변수로 덮어쓴 Settings 반환"""
    load_dotenv()
    path = find_config_file(config_prefix, config_path)
    if path is None:
        raise ConfigError(
            f"Config file '{config_prefix}.yml' not found in {', '.join(config_search_paths(config_path))}"
        )
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    settings = Settings.model_validate(data)
    if os.getenv("DATABASE_URL"):
        settings.database_url = os.environ["DATABASE_URL"]
    if os.getenv("REDIS_URL"):
        settings.redis.url = os.environ["REDIS_URL"]
    if os.getenv("REDIS_PASSWORD"):
        settings.redis.password = os.environ["REDIS_PASSWORD"]
    if debug:
        settings.debug = True
    logger.info("Loaded configuration from %s", path)
    return settings
