"""Tests for reading ingestion and history queries."""

import pytest

from airview.errors import NotFoundError, ValidationError
from airview.models import Reading
from airview.services import readings as reading_service
from conftest import DAY_MS, NOW


def test_ingest_normalizes_seconds(db, make_user, make_device):
    device = make_device(make_user(), name="Office")

    reading_id = reading_service.ingest(db, device.id, 1_760_000_000, co2=700)

    reading = db.get(Reading, reading_id)
    assert reading.ts == 1_760_000_000_000
    assert reading.device_name == "Office"
    db.refresh(device)
    assert device.last_reading_at == 1_760_000_000_000


def test_ingest_is_idempotent_per_timestamp(db, make_user, make_device):
    device = make_device(make_user())

    first = reading_service.ingest(db, device.id, NOW, pm25=4)
    second = reading_service.ingest(db, device.id, NOW // 1000, pm25=9)

    assert first == second
    assert db.query(Reading).count() == 1
    assert db.get(Reading, first).pm25 == 4


def test_ingest_without_battery_keeps_last_level(db, make_user, make_device):
    device = make_device(make_user())

    reading_service.ingest(db, device.id, NOW - 1000, battery=72, co2=500)
    reading_service.ingest(db, device.id, NOW, co2=510)

    db.refresh(device)
    assert device.last_battery == 72
    assert device.last_reading_at == NOW


def test_ingest_battery_zero_is_recorded(db, make_user, make_device):
    device = make_device(make_user(), last_battery=50)

    reading_service.ingest(db, device.id, NOW, battery=0)

    db.refresh(device)
    assert device.last_battery == 0


def test_ingest_unknown_device(db):
    with pytest.raises(NotFoundError):
        reading_service.ingest(db, 999, NOW, co2=400)


def test_ingest_unknown_metric(db, make_user, make_device):
    device = make_device(make_user())
    with pytest.raises(ValidationError):
        reading_service.ingest(db, device.id, NOW, radon=3)


def test_latest(db, make_user, make_device, add_readings):
    device = make_device(make_user())
    assert reading_service.latest(db, device.id) is None

    add_readings(device, [NOW - 2000, NOW, NOW - 1000], co2=400)
    assert reading_service.latest(db, device.id).ts == NOW


def test_history_is_clamped_to_plan_retention(db, make_user, make_device, add_readings):
    device = make_device(make_user(plan="starter"))
    add_readings(device, [NOW - 10 * DAY_MS, NOW - 6 * DAY_MS, NOW - DAY_MS], co2=400)

    rows = reading_service.history(db, device.id, start_ts=0, now=NOW)

    assert [r.ts for r in rows] == [NOW - DAY_MS, NOW - 6 * DAY_MS]


def test_history_unlimited_plan_is_not_clamped(db, make_user, make_device, add_readings):
    device = make_device(make_user(plan="custom"))
    add_readings(device, [NOW - 400 * DAY_MS, NOW - DAY_MS], co2=400)

    rows = reading_service.history(db, device.id, start_ts=0, now=NOW)

    assert len(rows) == 2


def test_history_respects_limit(db, make_user, make_device, add_readings):
    device = make_device(make_user())
    add_readings(device, [NOW - i * 1000 for i in range(10)], co2=400)

    rows = reading_service.history(db, device.id, limit=3, now=NOW)

    assert [r.ts for r in rows] == [NOW, NOW - 1000, NOW - 2000]


def test_export_requires_ownership(db, make_user, make_device):
    owner = make_user("owner@example.com")
    other = make_user("other@example.com")
    device = make_device(owner)

    with pytest.raises(NotFoundError):
        reading_service.for_export(db, other.id, device.id, 0, NOW, now=NOW)


def test_export_oldest_first_and_clamped(db, make_user, make_device, add_readings):
    user = make_user(plan="starter")
    device = make_device(user)
    add_readings(device, [NOW - 10 * DAY_MS, NOW - 2 * DAY_MS, NOW - DAY_MS], co2=400)

    result = reading_service.for_export(db, user.id, device.id, NOW - 30 * DAY_MS, NOW, now=NOW)

    assert [r.ts for r in result.readings] == [NOW - 2 * DAY_MS, NOW - DAY_MS]
    assert result.clamped is True
    assert result.effective_start_ts == NOW - 7 * DAY_MS
    assert result.truncated is False


def test_export_via_organization(db, make_user, make_org, make_device, add_readings):
    owner = make_user("owner@example.com")
    teammate = make_user("teammate@example.com")
    org = make_org(plan="business")
    device = make_device(owner, organization=org)
    add_readings(device, [NOW - DAY_MS], co2=400)

    result = reading_service.for_export(
        db, teammate.id, device.id, NOW - 2 * DAY_MS, NOW, organization_id=org.id, now=NOW
    )

    assert len(result.readings) == 1
    assert result.clamped is False


def test_export_truncates(db, make_user, make_device, add_readings, monkeypatch):
    monkeypatch.setattr(reading_service, "EXPORT_LIMIT", 3)
    user = make_user()
    device = make_device(user)
    add_readings(device, [NOW - i * 1000 for i in range(5)], co2=400)

    result = reading_service.for_export(db, user.id, device.id, NOW - DAY_MS, NOW, now=NOW)

    assert len(result.readings) == 3
    assert result.truncated is True
    assert result.readings[0].ts == NOW - 4000


def test_aggregation_averages_each_metric_independently(db, make_user, make_device):
    device = make_device(make_user())
    bucket_start = (NOW // 3_600_000) * 3_600_000 - 3_600_000
    db.add_all([
        Reading(device_id=device.id, device_name="x", ts=bucket_start + 1000, pm25=10),
        Reading(device_id=device.id, device_name="x", ts=bucket_start + 2000, pm25=20),
        Reading(device_id=device.id, device_name="x", ts=bucket_start + 3000, co2=500),
    ])
    db.commit()

    points = reading_service.history_aggregated(
        db, device.id, bucket_start, bucket_start + 3_600_000, 60, now=NOW
    )

    assert len(points) == 1
    point = points[0]
    assert point.ts == bucket_start
    assert point.count == 3
    assert point.metrics["pm25"] == 15
    assert point.metrics["co2"] == 500
    assert point.metrics["rh"] is None


def test_aggregation_buckets_sorted(db, make_user, make_device, add_readings):
    device = make_device(make_user())
    base = (NOW // 900_000) * 900_000 - 3_600_000
    db.add_all([
        Reading(device_id=device.id, device_name="x", ts=base + 900_000 + 10, temp_c=21.111),
        Reading(device_id=device.id, device_name="x", ts=base + 10, temp_c=20.0),
        Reading(device_id=device.id, device_name="x", ts=base + 20, temp_c=20.005),
    ])
    db.commit()

    points = reading_service.history_aggregated(db, device.id, base, base + 3_600_000, 15, now=NOW)

    assert [p.ts for p in points] == [base, base + 900_000]
    assert points[1].metrics["temp_c"] == 21.111


@pytest.mark.parametrize("bucket_minutes", [0, -5])
def test_aggregation_rejects_bad_bucket(db, make_user, make_device, bucket_minutes):
    device = make_device(make_user())
    with pytest.raises(ValidationError):
        reading_service.history_aggregated(db, device.id, NOW - 1000, NOW, bucket_minutes, now=NOW)


def test_aggregation_rejects_inverted_range(db, make_user, make_device):
    device = make_device(make_user())
    with pytest.raises(ValidationError):
        reading_service.history_aggregated(db, device.id, NOW, NOW - 1000, 60, now=NOW)


def test_aggregation_is_clamped(db, make_user, make_device, add_readings):
    device = make_device(make_user(plan="starter"))
    add_readings(device, [NOW - 20 * DAY_MS, NOW - DAY_MS], co2=400)

    points = reading_service.history_aggregated(db, device.id, 0, NOW, 60 * 24, now=NOW)

    assert sum(p.count for p in points) == 1


async def test_aggregated_endpoint_rejects_zero_bucket(client, make_user, make_device):
    device = make_device(make_user())

    response = await client.get(
        f"/api/v1/readings/{device.id}/aggregated",
        params={"start_ts": NOW - 1000, "end_ts": NOW, "bucket_minutes": 0},
    )

    assert response.status_code == 400
    assert "bucket_minutes" in response.json()["detail"]


async def test_history_endpoint(client, make_user, make_device, add_readings):
    device = make_device(make_user(plan="custom"))
    add_readings(device, [1000, 2000], co2=400)

    response = await client.get(f"/api/v1/readings/{device.id}/history", params={"start_ts": 0, "end_ts": 5000})

    assert response.status_code == 200
    assert [r["ts"] for r in response.json()] == [2000, 1000]


def test_aggregation_keeps_full_precision(db, make_user, make_device):
    device = make_device(make_user())
    base = (NOW // 3_600_000) * 3_600_000 - 3_600_000
    db.add_all([
        Reading(device_id=device.id, device_name="x", ts=base + 1000, pm25=1, pressure=101.325),
        Reading(device_id=device.id, device_name="x", ts=base + 2000, pm25=2),
        Reading(device_id=device.id, device_name="x", ts=base + 3000, pm25=2),
    ])
    db.commit()

    point = reading_service.history_aggregated(db, device.id, base, base + 3_600_000, 60, now=NOW)[0]

    assert point.metrics["pressure"] == pytest.approx(101.325)
    assert point.metrics["pm25"] == pytest.approx(5 / 3)
