import os
import json
import logging
from typing import Any, Dict, List, Optional
import yaml
from core.config import coerce_int, coerce_str

logger = logging.getLogger(__name__)

CONFIG_EXTENSIONS = ("yml", "yaml", "json")
MAIN_CONFIG_NAME = "main"


class MetadataReader:
    """git에서 받은 프로비저닝 메타데이터(<repo>/roles/<role>/meta) 조회"""

    def __init__(self, workspace: str, git_repo: str):
        self.workspace = workspace
        self.git_repo = git_repo

    def meta_dir(self, role: str) -> str:
        return os.path.join(self.workspace, self.git_repo, "roles", role, "meta")

    def find_config(self, name: str, role: str) -> Optional[str]:
        directory = self.meta_dir(role)
        for ext in CONFIG_EXTENSIONS:
            candidate = os.path.join(directory, f"{name}.{ext}")
            if os.path.isfile(candidate):
                return candidate
        return None

    def load(self, path: str) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            if path.endswith(".json"):
                return json.load(f)
            return yaml.safe_load(f)

    def read_config(self, name: str, role: str) -> Optional[Any]:
        path = self.find_config(name, role)
        if path is None:
            return None
        try:
            return self.load(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning("Unable to read metadata file %s: %s", path, e)
            return None

    def container_count(self, image_name: str, environment: str, default: int) -> int:
        # 이미지 전용 main 설정이 있으면 그것만 사용, 없으면 common
        data = None
        for role in (image_name, "common"):
            if self.find_config(MAIN_CONFIG_NAME, role):
                data = self.read_config(MAIN_CONFIG_NAME, role)
                break
        if not isinstance(data, dict):
            return default
        envs = data.get("environments")
        if not isinstance(envs, dict):
            return default
        env = envs.get(environment)
        if not isinstance(env, dict):
            return default
        count = coerce_int(env.get("containers"), 0)
        return count if count > 0 else default

    def etcd_keys(self, role: str, environment: str) -> Dict[str, str]:
        data = self.read_config(f"{environment}.etcd2", role)
        records = parse_key_records(data)
        return {k: v for k, v in records}

    def merged_etcd_keys(self, image_name: str, environment: str) -> Dict[str, str]:
        keys: Dict[str, str] = {}
        keys.update(self.etcd_keys("common", environment))
        keys.update(self.etcd_keys(image_name, environment))
        return keys


def parse_key_records(data: Any) -> List[tuple]:
    if isinstance(data, dict):
        data = data.get("keys")
    if not isinstance(data, list):
        return []
    records = []
    for rec in data:
        if not isinstance(rec, dict) or "key" not in rec:
            logger.warning("Skipping malformed etcd2 key record: %r", rec)
            continue
        key = coerce_str(rec.get("key"))
        if not key:
            continue
        records.append((key, coerce_str(rec.get("value"))))
    return records
