from typing import Optional
from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from core.context import AppContext
from utils.exceptions import (
    CustomException,
    INVALID_AUTHORIZATION,
    INVALID_ENV_AUTHORIZATION,
    INVALID_MEDIA_TYPE,
)

JSON_MEDIA_TYPE = "application/json"

# Security
security = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def media_type(value: Optional[str]) -> str:
    if not value:
        return ""
    return value.split(";", 1)[0].strip().lower()


def validate_json_headers(request: Request) -> None:
    if (media_type(request.headers.get("content-type")) != JSON_MEDIA_TYPE
            or media_type(request.headers.get("accept")) != JSON_MEDIA_TYPE):
        raise CustomException(code="invalid_media_type", message=INVALID_MEDIA_TYPE, status_code=415)


async def get_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    context: AppContext = Depends(get_context),
) -> str:
    # 헤더 검사 후 토큰 검사 순서 유지
    validate_json_headers(request)
    token = credentials.credentials if credentials else ""
    if not await context.store.valid_auth(token):
        raise CustomException(code="invalid_authorization", message=INVALID_AUTHORIZATION, status_code=401)
    return token


async def authorize_environment(context: AppContext, token: str, environment: str) -> None:
    if not await context.store.auth_deploy_env(token, environment):
        raise CustomException(code="invalid_env_authorization", message=INVALID_ENV_AUTHORIZATION, status_code=401)
