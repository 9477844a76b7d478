"""Plan limits and retention windows."""

import math
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from airview.models.account import Organization, User

DAY_MS = 24 * 60 * 60 * 1000
DEFAULT_PLAN = "starter"


@dataclass(frozen=True)
class PlanLimits:
    max_devices: int
    max_widgets: float
    max_kiosks: float
    min_report_interval: int  # seconds, most frequent allowed
    max_report_interval: int  # seconds, least frequent allowed
    default_report_interval: int
    max_history_days: float  # math.inf for unlimited
    max_user_seats: int
    custom_branding: bool
    white_label: bool


PLAN_LIMITS = {
    "starter": PlanLimits(
        max_devices=1, max_widgets=1, max_kiosks=1,
        min_report_interval=3600, max_report_interval=3600, default_report_interval=3600,
        max_history_days=7, max_user_seats=1, custom_branding=False, white_label=False,
    ),
    "pro": PlanLimits(
        max_devices=3, max_widgets=3, max_kiosks=3,
        min_report_interval=1800, max_report_interval=3600, default_report_interval=1800,
        max_history_days=30, max_user_seats=3, custom_branding=True, white_label=False,
    ),
    "business": PlanLimits(
        max_devices=20, max_widgets=math.inf, max_kiosks=math.inf,
        min_report_interval=300, max_report_interval=3600, default_report_interval=300,
        max_history_days=365, max_user_seats=5, custom_branding=True, white_label=True,
    ),
    "custom": PlanLimits(
        max_devices=100, max_widgets=math.inf, max_kiosks=math.inf,
        min_report_interval=60, max_report_interval=3600, default_report_interval=60,
        max_history_days=math.inf, max_user_seats=10, custom_branding=True, white_label=True,
    ),
}


def get_plan_limits(plan: Optional[str]) -> PlanLimits:
    return PLAN_LIMITS.get(plan or DEFAULT_PLAN, PLAN_LIMITS[DEFAULT_PLAN])


def is_valid_report_interval(plan: Optional[str], interval_seconds: int) -> bool:
    limits = get_plan_limits(plan)
    return limits.min_report_interval <= interval_seconds <= limits.max_report_interval


def retention_ms(plan: Optional[str]) -> Optional[int]:
    """Retention window in ms, or None when the plan keeps history forever."""
    days = get_plan_limits(plan).max_history_days
    if math.isinf(days):
        return None
    return int(days * DAY_MS)


def retention_start(plan: Optional[str], now: int) -> Optional[int]:
    window = retention_ms(plan)
    return None if window is None else now - window


def resolve_plan(db: Session, user_id: int, organization_id: Optional[int] = None) -> str:
    """Organization plan when there is one, else the user's legacy plan."""
    if organization_id is not None:
        org = db.get(Organization, organization_id)
        if org:
            return org.plan
    user = db.get(User, user_id)
    if user and user.plan:
        return user.plan
    return DEFAULT_PLAN
