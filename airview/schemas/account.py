from pydantic import BaseModel

class DeleteUserResponse(BaseModel):
    user_id: int
    devices: int
    readings: int
    embed_tokens: int
    kiosk_configs: int
    provider_configs: int
