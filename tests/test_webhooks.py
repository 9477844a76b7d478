"""Tests for webhook signature checks and the Qingping push endpoint."""

import hashlib
import hmac

import pytest

from airview.models import Reading
from airview.providers.webhooks import verify_signature

SECRET = "app-secret"
MAC = "CCB5D132368B"


def sign(timestamp, token, secret=SECRET):
    return hmac.new(secret.encode(), f"{timestamp}{token}".encode(), hashlib.sha256).hexdigest()


def webhook_body(timestamp=1760000000, token="tok-1", signature=None, mac="CC:B5:D1:32:36:8B", data=None):
    return {
        "signature": {
            "timestamp": timestamp,
            "token": token,
            "signature": signature if signature is not None else sign(timestamp, token),
        },
        "payload": {
            "info": {"mac": mac, "name": "Office"},
            "data": data if data is not None else [{
                "timestamp": {"value": 1760000000},
                "pm25": {"value": 12},
                "co2": {"value": 640},
                "battery": {"value": 90},
            }],
        },
    }


def test_valid_signature():
    assert verify_signature(1760000000, "tok", sign(1760000000, "tok"), SECRET) is True


def test_signature_is_case_insensitive():
    assert verify_signature(1760000000, "tok", sign(1760000000, "tok").upper(), SECRET) is True


def test_wrong_secret_rejected():
    assert verify_signature(1760000000, "tok", sign(1760000000, "tok", "other"), SECRET) is False


def test_tampered_token_rejected():
    assert verify_signature(1760000000, "tok2", sign(1760000000, "tok"), SECRET) is False


@pytest.mark.parametrize("args", [
    (None, "tok", "sig", SECRET),
    (1760000000, None, "sig", SECRET),
    (1760000000, "tok", "", SECRET),
    (1760000000, "tok", "sig", None),
])
def test_missing_inputs_rejected(args):
    assert verify_signature(*args) is False


@pytest.fixture
def tenant(make_user, make_device, make_config):
    user = make_user()
    device = make_device(user, mac=MAC)
    make_config(user, app_secret=SECRET)
    return user, device


async def test_webhook_ingests_readings(client, db, tenant):
    user, device = tenant

    response = await client.post(f"/webhooks/qingping/{user.id}", json=webhook_body())

    assert response.status_code == 200
    assert response.text == "ok"
    readings = db.query(Reading).filter(Reading.device_id == device.id).all()
    assert len(readings) == 1
    assert readings[0].ts == 1760000000 * 1000
    assert readings[0].pm25 == 12
    db.refresh(device)
    assert device.last_battery == 90


async def test_webhook_bad_signature_ingests_nothing(client, db, tenant):
    user, device = tenant

    response = await client.post(f"/webhooks/qingping/{user.id}", json=webhook_body(signature="0" * 64))

    assert response.status_code == 401
    assert db.query(Reading).count() == 0


async def test_webhook_without_tenant(client):
    response = await client.post("/webhooks/qingping", json=webhook_body())
    assert response.status_code == 400


async def test_webhook_non_numeric_tenant(client):
    response = await client.post("/webhooks/qingping/abc", json=webhook_body())
    assert response.status_code == 400


async def test_webhook_tenant_without_config(client, make_user):
    user = make_user()
    response = await client.post(f"/webhooks/qingping/{user.id}", json=webhook_body())
    assert response.status_code == 401


async def test_webhook_unknown_device(client, tenant):
    user, _ = tenant
    response = await client.post(f"/webhooks/qingping/{user.id}", json=webhook_body(mac="AABBCCDDEEFF"))
    assert response.status_code == 404


async def test_webhook_device_of_other_tenant(client, make_user, make_device, make_config):
    owner = make_user("owner@example.com")
    make_device(owner, mac=MAC)
    other = make_user("other@example.com")
    make_config(other, app_secret=SECRET)

    response = await client.post(f"/webhooks/qingping/{other.id}", json=webhook_body())
    assert response.status_code == 404


async def test_webhook_repeated_sample_is_stored_once(client, db, tenant):
    user, device = tenant

    for _ in range(2):
        response = await client.post(f"/webhooks/qingping/{user.id}", json=webhook_body())
        assert response.status_code == 200

    assert db.query(Reading).filter(Reading.device_id == device.id).count() == 1


async def test_webhook_missing_signature_is_unauthorized(client, db, tenant):
    user, _ = tenant
    body = webhook_body()
    del body["signature"]["signature"]

    response = await client.post(f"/webhooks/qingping/{user.id}", json=body)

    assert response.status_code == 401
    assert db.query(Reading).count() == 0


async def test_webhook_without_signature_block_is_unauthorized(client, db, tenant):
    user, _ = tenant
    body = webhook_body()
    del body["signature"]

    response = await client.post(f"/webhooks/qingping/{user.id}", json=body)

    assert response.status_code == 401
    assert db.query(Reading).count() == 0


async def test_webhook_string_timestamp(client, db, tenant):
    user, device = tenant
    body = webhook_body(data=[{"timestamp": {"value": "1760000000"}, "co2": {"value": 600}}])

    response = await client.post(f"/webhooks/qingping/{user.id}", json=body)

    assert response.status_code == 200
    reading = db.query(Reading).filter(Reading.device_id == device.id).one()
    assert reading.ts == 1760000000 * 1000


async def test_webhook_skips_sample_with_bad_timestamp(client, db, tenant):
    user, device = tenant
    body = webhook_body(data=[
        {"timestamp": {"value": "garbage"}, "co2": {"value": 600}},
        {"timestamp": {"value": 1760000060}, "co2": {"value": 610}},
    ])

    response = await client.post(f"/webhooks/qingping/{user.id}", json=body)

    assert response.status_code == 200
    assert [r.co2 for r in db.query(Reading).filter(Reading.device_id == device.id).all()] == [610]
