"""Translate Qingping payloads into the normalized reading/device shape."""

import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from airview.clock import now_ms

# Values below this are treated as epoch seconds
MS_THRESHOLD = 10 ** 12

# normalized field -> Qingping data key
READING_KEYS = {
    "temp_c": "temperature",
    "rh": "humidity",
    "pressure": "pressure",
    "co2": "co2",
    "pm25": "pm25",
    "pm10": "pm10",
    "voc": "tvoc",
    "battery": "battery",
}


@dataclass
class NormalizedReading:
    ts: int
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    co2: Optional[float] = None
    temp_c: Optional[float] = None
    rh: Optional[float] = None
    voc: Optional[float] = None
    pressure: Optional[float] = None
    battery: Optional[float] = None

    def metrics(self) -> Dict[str, Optional[float]]:
        values = asdict(self)
        values.pop("ts")
        return values


@dataclass
class NormalizedDevice:
    provider_device_id: str
    name: str
    model: Optional[str] = None
    timezone: Optional[str] = None
    offline: bool = False


def normalize_timestamp_ms(ts: float) -> int:
    return int(ts * 1000) if ts < MS_THRESHOLD else int(ts)


def _value(data: Dict[str, Any], key: str) -> Optional[float]:
    """Numeric ``data[key]["value"]``; numeric strings are coerced, anything else is None."""
    entry = data.get(key)
    if not isinstance(entry, dict):
        return None
    value = entry.get("value")
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    return None


def map_qingping_reading(data: Optional[Dict[str, Any]], now: Optional[int] = None) -> Optional[NormalizedReading]:
    """
    Map a Qingping ``data`` block. Returns None when the device reported no
    sample this cycle or sent a timestamp that is not a number; zero-valued
    metrics are kept.
    """
    if not data or not isinstance(data, dict):
        return None

    timestamp = data.get("timestamp")
    if not isinstance(timestamp, dict) or timestamp.get("value") is None:
        ts = now if now is not None else now_ms()
    else:
        ts = _value(data, "timestamp")
        if ts is None:
            return None

    metrics = {field: _value(data, key) for field, key in READING_KEYS.items()}
    return NormalizedReading(ts=ts, **metrics)


def map_qingping_device(device: Dict[str, Any]) -> NormalizedDevice:
    info = device.get("info") or {}
    product = device.get("product") or {}
    status = device.get("status") or {}

    mac = info.get("mac")
    return NormalizedDevice(
        provider_device_id=mac,
        name=info.get("name") or mac or "Qingping Device",
        model=product.get("en_name") or product.get("name"),
        offline=bool(status.get("offline", False)),
    )
