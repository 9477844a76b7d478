from sqlalchemy import Column, Integer, String, Boolean, BigInteger
from airview.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, index=True)
    name = Column(String)
    plan = Column(String)  # legacy, pre-organization plan
    created_at = Column(BigInteger, nullable=False)

class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    plan = Column(String, nullable=False, default="starter")
    is_personal = Column(Boolean, default=True)
    created_at = Column(BigInteger, nullable=False)
