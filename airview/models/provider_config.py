from sqlalchemy import Column, Integer, String, BigInteger, UniqueConstraint
from airview.database import Base

class ProviderConfig(Base):
    __tablename__ = "provider_configs"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_provider_configs_owner"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    organization_id = Column(Integer, index=True)
    provider = Column(String, nullable=False)
    access_token = Column(String, nullable=False)
    token_expires_at = Column(BigInteger, nullable=False)
    app_key = Column(String)
    app_secret = Column(String)
    webhook_secret = Column(String)
    last_sync_at = Column(BigInteger)
