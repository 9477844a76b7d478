import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def verify_signature(
    timestamp,
    token: Optional[str],
    signature: Optional[str],
    app_secret: Optional[str],
) -> bool:
    """
    Check a Qingping push signature: hex HMAC-SHA256 of ``timestamp + token``
    keyed by the app secret. Any missing input or crypto failure is a reject.
    """
    if not app_secret or not signature or timestamp is None or token is None:
        return False

    try:
        digest = hmac.new(
            app_secret.encode("utf-8"),
            f"{timestamp}{token}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
    except (ValueError, TypeError) as e:
        logger.error(f"Unable to compute webhook signature: {str(e)}")
        return False

    return hmac.compare_digest(digest, signature.lower())
