from sqlalchemy import Column, Integer, String, Boolean, JSON, BigInteger
from airview.database import Base

class EmbedToken(Base):
    __tablename__ = "embed_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    organization_id = Column(Integer, index=True)
    device_id = Column(Integer, nullable=False, index=True)
    token = Column(String, unique=True, nullable=False)
    label = Column(String)
    is_revoked = Column(Boolean, default=False)
    created_at = Column(BigInteger, nullable=False)

class KioskConfig(Base):
    __tablename__ = "kiosk_configs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    organization_id = Column(Integer, index=True)
    token = Column(String, unique=True, nullable=False)
    mode = Column(String, default="multi")  # "single" | "multi"
    device_ids = Column(JSON, default=list)
    refresh_interval = Column(Integer, default=300)
    is_revoked = Column(Boolean, default=False)
    created_at = Column(BigInteger, nullable=False)
