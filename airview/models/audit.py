from sqlalchemy import Column, Integer, String, JSON, BigInteger
from airview.database import Base

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String, nullable=False)
    details = Column(JSON, default=dict)
    created_at = Column(BigInteger, nullable=False)
