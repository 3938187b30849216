import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import yaml
from sqlalchemy import select
from sqlalchemy.orm import Session
from core.db import get_sync_engine, DATABASE_URL
from models.base import Base
from models.auth_token import AuthToken, Environment

# 사용 예: python scripts/seed_auth.py auth.yml
#
# tokens:
#   - token: abc123
#     description: CI
#     environments: [dev, qa]


def get_or_create_environment(session, name):
    env = session.execute(select(Environment).where(Environment.name == name)).scalars().first()
    if env is None:
        env = Environment(name=name)
        session.add(env)
    return env


def seed(data, db_url=DATABASE_URL):
    engine = get_sync_engine(db_url)
    # DB 테이블 생성 (없으면)
    Base.metadata.create_all(bind=engine)
    count = 0
    with Session(bind=engine) as session:
        for info in data.get("tokens") or []:
            token = str(info["token"])
            auth = session.execute(select(AuthToken).where(AuthToken.token == token)).scalars().first()
            if auth is None:
                auth = AuthToken(token=token)
                session.add(auth)
            auth.description = info.get("description")
            auth.environments = [get_or_create_environment(session, str(e)) for e in info.get("environments") or []]
            count += 1
        session.commit()
    engine.dispose()
    return count


if __name__ == "__main__":
    yaml_path = sys.argv[1] if len(sys.argv) > 1 else "auth.yml"
    with open(yaml_path, "r", encoding="utf-8") as f:
        auth_data = yaml.safe_load(f) or {}
    n = seed(auth_data)
    print(f"{yaml_path} → DB 반영 완료 ({n} tokens)")
