from sqlalchemy import Column, Integer, String, Boolean, JSON, BigInteger, Float, UniqueConstraint
from airview.database import Base

class Device(Base):
    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint("provider", "provider_device_id", name="uq_devices_provider_device"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)  # owning account, may outlive it
    organization_id = Column(Integer, index=True)
    room_id = Column(Integer)
    provider = Column(String, nullable=False)  # "qingping"
    provider_device_id = Column(String, nullable=False)  # MAC for Qingping
    name = Column(String, nullable=False)
    name_overridden = Column(Boolean, default=False, nullable=False)  # user renamed
    model = Column(String)
    timezone = Column(String)
    last_reading_at = Column(BigInteger)
    last_battery = Column(Float)
    provider_offline = Column(Boolean)
    hidden_metrics = Column(JSON, default=list)
    primary_metrics = Column(JSON)
    secondary_metrics = Column(JSON)
    report_interval = Column(Integer, default=3600)  # seconds
    interval_change_at = Column(BigInteger)
    created_at = Column(BigInteger, nullable=False)

class DeletedDevice(Base):
    __tablename__ = "deleted_devices"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", "provider_device_id", name="uq_deleted_devices_owner"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False)
    organization_id = Column(Integer)
    provider = Column(String, nullable=False)
    provider_device_id = Column(String, nullable=False)
    deleted_at = Column(BigInteger, nullable=False)
