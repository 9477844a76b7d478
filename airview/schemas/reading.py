from pydantic import BaseModel, ConfigDict
from typing import Optional, List

class ReadingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    device_id: int
    device_name: Optional[str] = None
    ts: int
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    co2: Optional[float] = None
    temp_c: Optional[float] = None
    rh: Optional[float] = None
    voc: Optional[float] = None
    pressure: Optional[float] = None
    battery: Optional[float] = None
    aqi: Optional[float] = None

class BucketedPointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ts: int
    count: int
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    co2: Optional[float] = None
    temp_c: Optional[float] = None
    rh: Optional[float] = None
    voc: Optional[float] = None
    pressure: Optional[float] = None
    battery: Optional[float] = None
    aqi: Optional[float] = None

class ExportResponse(BaseModel):
    device_id: int
    effective_start_ts: int
    end_ts: int
    truncated: bool
    clamped: bool
    readings: List[ReadingResponse]
