from fastapi import HTTPException

# HTTP 응답 메시지
INVALID_MEDIA_TYPE = "Invalid Content-Type or Accept header value."
INVALID_BODY = "Invalid body of text in request."
INVALID_JSON_TEXT = "Invalid JSON format in text of body in request."
INVALID_AUTHORIZATION = "Invalid authorization."
INVALID_ENV_AUTHORIZATION = "Invalid authorization for environment."
INVALID_DEPLOY_ENV = "Invalid 'deployEnvironment'."
INVALID_DEPLOY_IMAGE = "Invalid 'image'."
INVALID_DEPLOY_CANNOT_QUEUE = "Cannot queue deploy request at this time."


class CustomException(HTTPException):
    """HTTP 오류 응답. 본문은 {code, message, detail}

    detail은 따로 주지 않으면 message와 같은 값으로, HTTPException.detail을 읽는
    FastAPI 클라이언트를 위해 남겨 둠. dev_message는 로그에만 기록
    """

    def __init__(self, code: str, message: str, dev_message: str = "", status_code: int = 400, detail: str = ""):
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.dev_message = dev_message
        self.detail = detail or message

    def to_dict(self):
        return {
            "code": self.code,
            "message": self.message,
            "detail": self.detail,
        }


class DeployRunnerError(Exception):
    pass


class QueueError(DeployRunnerError):
    pass


class InvalidPayloadError(QueueError):
    def __init__(self, payload: str, reason: str):
        super().__init__(f"Invalid deploy request payload: {reason}")
        self.payload = payload


class TrackerError(DeployRunnerError):
    pass


class EtcdError(DeployRunnerError):
    pass


class StepFailedError(DeployRunnerError):
    """워크플로 단계 실패. message는 상태 메시지, detail은 로그에 남길 원인"""

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.message = message
        self.detail = detail
