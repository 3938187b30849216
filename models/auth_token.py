from sqlalchemy import Column, Integer, String, DateTime, Table, ForeignKey, func
from sqlalchemy.orm import relationship
from .base import Base

# 토큰-환경 N:M 권한 테이블
auth_tokens_environments = Table(
    'auth_tokens_environments', Base.metadata,
    Column('auth_token_id', Integer, ForeignKey('auth_tokens.id'), primary_key=True),
    Column('environment_id', Integer, ForeignKey('environments.id'), primary_key=True)
)


class AuthToken(Base):
    __tablename__ = 'auth_tokens'
    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(128), unique=True, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    environments = relationship('Environment', secondary='auth_tokens_environments', back_populates='tokens')

    def __repr__(self):
        return f"<AuthToken(id={self.id}, description='{self.description}')>"


class Environment(Base):
    __tablename__ = 'environments'
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), unique=True, nullable=False, index=True)
    tokens = relationship('AuthToken', secondary='auth_tokens_environments', back_populates='environments')

    def __repr__(self):
        return f"<Environment(id={self.id}, name='{self.name}')>"
