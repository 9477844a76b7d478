"""Per-account provider credentials and OAuth state."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from airview.clock import now_ms
from airview.models.provider_config import ProviderConfig

logger = logging.getLogger(__name__)


def get_config(db: Session, user_id: int, provider: str) -> Optional[ProviderConfig]:
    return db.query(ProviderConfig).filter(
        ProviderConfig.user_id == user_id,
        ProviderConfig.provider == provider,
    ).first()


def list_all_configs(db: Session) -> List[ProviderConfig]:
    return db.query(ProviderConfig).order_by(ProviderConfig.id).all()


def save_config(
    db: Session,
    user_id: int,
    provider: str,
    access_token: str,
    token_expires_at: int,
    app_key: Optional[str] = None,
    app_secret: Optional[str] = None,
    webhook_secret: Optional[str] = None,
    organization_id: Optional[int] = None,
) -> ProviderConfig:
    """Insert or update the single config for (user, provider)."""
    config = get_config(db, user_id, provider)
    if config is None:
        config = ProviderConfig(user_id=user_id, provider=provider)
        db.add(config)
        logger.info(f"Created {provider} config for user {user_id}")

    config.access_token = access_token
    config.token_expires_at = token_expires_at
    config.app_key = app_key
    config.app_secret = app_secret
    config.webhook_secret = webhook_secret
    if organization_id is not None:
        config.organization_id = organization_id

    db.commit()
    db.refresh(config)
    return config


def update_token(db: Session, config: ProviderConfig, access_token: str, token_expires_at: int) -> None:
    config.access_token = access_token
    config.token_expires_at = token_expires_at
    db.commit()


def update_last_sync(db: Session, config: ProviderConfig, now: Optional[int] = None) -> None:
    config.last_sync_at = now if now is not None else now_ms()
    db.commit()


def delete_configs_for_user(db: Session, user_id: int) -> int:
    deleted = db.query(ProviderConfig).filter(ProviderConfig.user_id == user_id).delete(
        synchronize_session=False
    )
    db.commit()
    return deleted
