from sqlalchemy.orm import declarative_base

# 모든 ORM 모델의 Base
Base = declarative_base()
