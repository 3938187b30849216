from abc import ABC, abstractmethod
from typing import Optional, Sequence
from pydantic import BaseModel

# 외부 스크립트가 '이미 원하는 컨테이너 수' 상태일 때 stderr로 내보내는 문구
ALREADY_ACHIEVED = "Desired container number already achieved"


class StepResult(BaseModel):
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    duration: float = 0.0  # seconds
    strict_stderr: bool = True

    @property
    def ok(self) -> bool:
        if self.exit_code != 0:
            return False
        if self.strict_stderr and self.stderr:
            return False
        return True

    @property
    def already_achieved(self) -> bool:
        return self.stderr.strip() == ALREADY_ACHIEVED

    @property
    def error_text(self) -> Optional[str]:
        if self.ok:
            return None
        return self.stderr or f"exit status {self.exit_code}"


class StepRunner(ABC):
    @abstractmethod
    async def run_step(self, name: str, args: Sequence[str]) -> StepResult:
        """이름으로 지정된 외부 프로비저닝 단계를 실행하고 결과를 반환"""
        pass

    @abstractmethod
    async def validate(self, name: str) -> bool:
        """해당 단계를 실행할 수 있는지 검증"""
        pass
