from sqlalchemy import Column, Integer, String, Float, BigInteger, Index, UniqueConstraint
from airview.database import Base

METRIC_FIELDS = ("pm25", "pm10", "co2", "temp_c", "rh", "voc", "pressure", "battery", "aqi")

class Reading(Base):
    __tablename__ = "readings"
    __table_args__ = (
        Index("ix_readings_device_ts", "device_id", "ts"),
        UniqueConstraint("device_id", "ts", name="uq_readings_device_ts"),
    )

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, nullable=False)  # no FK: readings may outlive their device
    device_name = Column(String)  # snapshot at insert time
    ts = Column(BigInteger, nullable=False)  # epoch ms
    pm25 = Column(Float)
    pm10 = Column(Float)
    co2 = Column(Float)
    temp_c = Column(Float)
    rh = Column(Float)
    voc = Column(Float)
    pressure = Column(Float)
    battery = Column(Float)
    aqi = Column(Float)
