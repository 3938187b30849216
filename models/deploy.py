import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, func
from .base import Base


class DeployStatusCode(enum.IntEnum):
    QUEUED = 1
    STARTED = 2
    SUCCESS = 3
    FAILED = 4


class Deploy(Base):
    __tablename__ = 'deploys'
    id = Column(Integer, primary_key=True, index=True)
    deploy_id = Column(String(64), unique=True, nullable=False, index=True)
    environment = Column(String(64), nullable=False, index=True)
    image_name = Column(String(255), nullable=False)
    image_tag = Column(String(128), nullable=False)
    status = Column(Integer, nullable=False, default=DeployStatusCode.QUEUED)
    message = Column(String(255), nullable=False, default="")
    log = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<Deploy(deploy_id='{self.deploy_id}', environment='{self.environment}', image='{self.image_name}:{self.image_tag}', status={self.status})>"
