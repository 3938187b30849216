import os
import time
import asyncio
import logging
import subprocess
from typing import Sequence
from executors.base import StepRunner, StepResult

logger = logging.getLogger(__name__)


class ScriptExecutor(StepRunner):
    """scripts_path 아래 쉘 스크립트를 서브프로세스로 실행 (타임아웃 없음)"""

    def __init__(self, scripts_path: str = "./scripts", strict_stderr: bool = True):
        self.scripts_path = scripts_path
        self.strict_stderr = strict_stderr

    def script_path(self, name: str) -> str:
        return os.path.join(self.scripts_path, name)

    async def validate(self, name: str) -> bool:
        path = self.script_path(name)
        return os.path.isfile(path) and os.access(path, os.X_OK)

    async def run_step(self, name: str, args: Sequence[str]) -> StepResult:
        cmd = [self.script_path(name), *[str(a) for a in args]]
        logger.debug("Running step: %s", " ".join(cmd))
        start_time = time.time()
        try:
            process = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                # 스크립트 출력은 임의 바이트일 수 있음
                errors="replace",
            )
            stdout = process.stdout or ""
            stderr = process.stderr or ""
            exit_code = process.returncode
        except OSError as e:
            stdout = ""
            stderr = f"Error executing step {name}: {e}"
            exit_code = 127
        duration = time.time() - start_time
        return StepResult(
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            duration=duration,
            strict_stderr=self.strict_stderr,
        )
