"""Account removal and everything hanging off it."""

import logging
from typing import Dict

from sqlalchemy.orm import Session

from airview.errors import NotFoundError
from airview.models.account import User
from airview.models.device import Device
from airview.models.reading import Reading
from airview.models.sharing import EmbedToken, KioskConfig
from airview.services.provider_configs import delete_configs_for_user

logger = logging.getLogger(__name__)


def delete_user(db: Session, user_id: int) -> Dict[str, int]:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    counts = {"devices": 0, "readings": 0, "embed_tokens": 0, "kiosk_configs": 0}
    for device in db.query(Device).filter(Device.user_id == user_id).all():
        counts["readings"] += db.query(Reading).filter(
            Reading.device_id == device.id
        ).delete(synchronize_session=False)
        db.delete(device)
        counts["devices"] += 1

    counts["embed_tokens"] = db.query(EmbedToken).filter(
        EmbedToken.user_id == user_id
    ).delete(synchronize_session=False)
    counts["kiosk_configs"] = db.query(KioskConfig).filter(
        KioskConfig.user_id == user_id
    ).delete(synchronize_session=False)

    db.delete(user)
    db.commit()
    counts["provider_configs"] = delete_configs_for_user(db, user_id)

    logger.info(f"Deleted user {user_id}: {counts}")
    return counts
