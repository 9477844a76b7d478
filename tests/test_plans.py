"""Tests for plan limits and retention windows."""

import pytest

from airview.services import plans
from conftest import DAY_MS, NOW


@pytest.mark.parametrize("plan, interval, allowed", [
    ("starter", 3600, True),
    ("starter", 1800, False),
    ("pro", 1800, True),
    ("business", 300, True),
    ("business", 299, False),
    ("custom", 60, True),
    ("custom", 3601, False),
    (None, 3600, True),
])
def test_report_interval_bounds(plan, interval, allowed):
    assert plans.is_valid_report_interval(plan, interval) is allowed


def test_unknown_plan_falls_back_to_starter():
    assert plans.get_plan_limits("enterprise-legacy") == plans.PLAN_LIMITS["starter"]


def test_retention_start():
    assert plans.retention_start("pro", NOW) == NOW - 30 * DAY_MS
    assert plans.retention_start("custom", NOW) is None


def test_resolve_plan_prefers_organization(db, make_user, make_org):
    user = make_user(plan="pro")
    org = make_org(plan="business")

    assert plans.resolve_plan(db, user.id, org.id) == "business"
    assert plans.resolve_plan(db, user.id) == "pro"
    assert plans.resolve_plan(db, 999) == "starter"
