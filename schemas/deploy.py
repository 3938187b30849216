from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Optional
from core.config import DEFAULT_IMAGE_TAG


class DeployRequest(BaseModel):
    """큐에 들어가는 배포 요청 (게이트웨이가 환경 정보를 채운 뒤 불변)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    deploy_id: str = Field(alias="deployID")
    image_name: str = Field(alias="imageName")
    image_tag: str = Field(default=DEFAULT_IMAGE_TAG, alias="imageTag")
    environment: str
    env_tag: str = Field(default="", alias="envTag")
    etcd_endpoint: str = Field(default="", alias="etcdEndpoint")
    machine: str = ""
    meta_mount: str = Field(default="", alias="metaMount")
    num_cont: int = Field(default=0, alias="numCont")
    registry: str = ""
    swarm: bool = False

    @field_validator("image_tag", mode="before")
    @classmethod
    def _default_tag(cls, v):
        return v or DEFAULT_IMAGE_TAG

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, payload) -> "DeployRequest":
        return cls.model_validate_json(payload)

    def __str__(self) -> str:
        return self.to_json()


class DeployCreate(BaseModel):
    # 클라이언트가 보내는 body. deployID는 무시되고 서버가 새로 발급
    deploy_id: Optional[str] = Field(default=None, alias="deployID")
    image_name: Optional[str] = Field(default="", alias="imageName")
    image_tag: Optional[str] = Field(default="", alias="imageTag")
    environment: Optional[str] = ""


class DeployAccepted(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deploy_id: str = Field(alias="deployID")


class DeployStatusRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deploy_id: str = Field(alias="deployID")
    environment: str
    image_name: str = Field(alias="imageName")
    image_tag: str = Field(alias="imageTag")
    status: int
    message: str
    log: str
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @classmethod
    def from_orm_safe(cls, deploy):
        return cls(
            deploy_id=deploy.deploy_id,
            environment=deploy.environment,
            image_name=deploy.image_name,
            image_tag=deploy.image_tag,
            status=int(deploy.status),
            message=deploy.message or "",
            log=deploy.log or "",
            updated_at=deploy.updated_at,
            created_at=deploy.created_at,
        )
