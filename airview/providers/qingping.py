import json
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional, List

import httpx

from airview.clock import now_ms
from airview.database import settings
from airview.errors import ApiError, AuthError

logger = logging.getLogger(__name__)

# Upstream responses have carried the device array under different keys
DEVICE_LIST_KEYS = ("devices", "device", "data")


@dataclass(frozen=True)
class AccessToken:
    access_token: str
    expires_at: int  # epoch ms


class QingpingProvider:
    """Client for the Qingping (ClearGrass) open API"""

    name = "qingping"

    def __init__(
        self,
        api_base: Optional[str] = None,
        oauth_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = (api_base or settings.qingping_api_base).rstrip("/")
        self.oauth_url = oauth_url or settings.qingping_oauth_url
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def get_access_token(self, app_key: str, app_secret: str) -> AccessToken:
        """Client-credentials OAuth. Raises AuthError on any non-2xx response."""
        try:
            async with self._client() as client:
                response = await client.post(
                    self.oauth_url,
                    auth=(app_key, app_secret),
                    data={"grant_type": "client_credentials", "scope": "device_full_access"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Qingping OAuth request failed: {str(e)}")
            raise ApiError(f"Qingping OAuth request failed: {str(e)}")

        if not response.is_success:
            logger.warning(f"Qingping OAuth rejected credentials: {response.status_code}")
            raise AuthError(f"Qingping OAuth failed: {response.status_code}")

        data = response.json()
        return AccessToken(
            access_token=data["access_token"],
            expires_at=now_ms() + int(data["expires_in"]) * 1000,
        )

    async def _request(
        self,
        method: str,
        access_token: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            async with self._client() as client:
                response = await client.request(
                    method,
                    f"{self.api_base}{path}",
                    headers={"Authorization": f"Bearer {access_token}"},
                    params=params,
                    json=body,
                )
        except httpx.HTTPError as e:
            logger.error(f"Qingping API request {method} {path} failed: {str(e)}")
            raise ApiError(f"Qingping API request failed: {str(e)}")

        if not response.is_success:
            logger.error(f"Qingping API error on {method} {path}: {response.status_code}")
            raise ApiError(
                f"Qingping API error: {response.status_code} - {response.text}",
                upstream_status=response.status_code,
            )

        # Settings and unbind calls may answer 200 with an empty body
        if not response.content or not response.content.strip():
            return None
        try:
            return response.json()
        except json.JSONDecodeError:
            return None

    async def list_devices(self, access_token: str) -> List[Dict[str, Any]]:
        payload = await self._request("GET", access_token, "/v1/apis/devices")
        if not isinstance(payload, dict):
            return []

        for key in DEVICE_LIST_KEYS:
            devices = payload.get(key)
            if isinstance(devices, list):
                return devices
        return []

    async def get_history_data(self, access_token: str, mac: str, start_time: int, end_time: int) -> Any:
        """Historical samples for one device; times are epoch seconds."""
        params = {"mac": mac, "start_time": str(start_time), "end_time": str(end_time)}
        return await self._request("GET", access_token, "/v1/apis/devices/data", params=params)

    async def update_device_settings(
        self,
        access_token: str,
        macs: List[str],
        report_interval: int,
        collect_interval: int,
    ) -> Dict[str, Any]:
        body = {
            "mac": macs,
            "report_interval": report_interval,
            "collect_interval": collect_interval,
            # must be unique for every request
            "timestamp": now_ms(),
        }
        await self._request("PUT", access_token, "/v1/apis/devices/settings", body=body)
        return {"success": True}

    async def unbind_device(self, access_token: str, mac: str) -> Dict[str, Any]:
        await self._request("DELETE", access_token, "/v1/apis/devices", body={"mac": [mac]})
        return {"success": True}
