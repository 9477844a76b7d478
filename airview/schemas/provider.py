from pydantic import BaseModel, Field
from typing import Optional, List

class ConnectProviderRequest(BaseModel):
    user_id: int
    organization_id: Optional[int] = None
    provider: str = "qingping"
    app_key: str
    app_secret: str
    webhook_secret: Optional[str] = None

class SyncRequest(BaseModel):
    user_id: int

class SyncResponse(BaseModel):
    user_id: int
    provider: str
    devices_seen: int
    devices_skipped: int
    readings_ingested: int
    failures: List[str] = []

class WebhookSignature(BaseModel):
    # Missing parts fail verification in the route (401)
    timestamp: Optional[int] = None
    token: Optional[str] = None
    signature: Optional[str] = None

class WebhookInfo(BaseModel):
    mac: str
    name: Optional[str] = None
    sn: Optional[str] = None
    version: Optional[str] = None

class WebhookPayload(BaseModel):
    info: WebhookInfo
    data: List[dict] = []
    metadata: Optional[dict] = None
    events: Optional[List[dict]] = None

class QingpingWebhookBody(BaseModel):
    signature: WebhookSignature = Field(default_factory=WebhookSignature)
    payload: WebhookPayload
