"""
Tests for the threshold classifier and the exclusion filter.
"""

from datetime import timedelta

import pytest

from dormant_access.engine.classifier import classify, days_since
from dormant_access.engine.exclusion import is_admin_user, is_excluded, is_service_account
from dormant_access.models import NEVER_ACCESSED_DAYS, DirectoryUser, DormantAccessConfig, DormantCategory

from .conftest import NOW


class TestClassify:
    """Test cases for threshold classification."""

    @pytest.fixture
    def config(self):
        return DormantAccessConfig(warning_days=30, critical_days=60, auto_revoke_days=90)

    @pytest.mark.parametrize("days", [0, 1, 15, 29])
    def test_below_warning_is_not_dormant(self, config, days):
        assert classify(days, config) is None

    @pytest.mark.parametrize("days,expected", [
        (30, DormantCategory.WARNING),
        (59, DormantCategory.WARNING),
        (60, DormantCategory.CRITICAL),
        (89, DormantCategory.CRITICAL),
        (90, DormantCategory.AUTO_REVOKE),
        (95, DormantCategory.AUTO_REVOKE),
        (5000, DormantCategory.AUTO_REVOKE),
    ])
    def test_boundaries_belong_to_higher_category(self, config, days, expected):
        assert classify(days, config) == expected

    def test_never_accessed_is_auto_revoke(self, config):
        assert classify(0, config, never_accessed=True) == DormantCategory.AUTO_REVOKE

    def test_never_accessed_ignores_large_thresholds(self):
        config = DormantAccessConfig(warning_days=1000, critical_days=2000, auto_revoke_days=3000)
        assert classify(NEVER_ACCESSED_DAYS, config, never_accessed=True) == DormantCategory.AUTO_REVOKE

    def test_zero_warning_threshold(self):
        config = DormantAccessConfig(warning_days=0, critical_days=1, auto_revoke_days=2)
        assert classify(0, config) == DormantCategory.WARNING


class TestDaysSince:
    """Test cases for staleness computation."""

    def test_whole_days_are_floored(self):
        assert days_since(NOW - timedelta(days=95, hours=23), NOW) == 95

    def test_never_accessed_sentinel(self):
        assert days_since(None, NOW) == NEVER_ACCESSED_DAYS

    def test_future_access_is_zero(self):
        assert days_since(NOW + timedelta(days=2), NOW) == 0

    def test_naive_timestamps_are_utc(self):
        naive = (NOW - timedelta(days=10)).replace(tzinfo=None)
        assert days_since(naive, NOW) == 10


class TestExclusion:
    """Test cases for the exclusion rules."""

    @pytest.mark.parametrize("role", ["admin", "super-admin", "it-manager"])
    def test_admin_roles(self, role):
        user = DirectoryUser(id="u1", email="someone@company.com", role=role)
        assert is_admin_user(user)

    @pytest.mark.parametrize("role", ["technician", "user", None, "Admin"])
    def test_non_admin_roles(self, role):
        user = DirectoryUser(id="u1", email="someone@company.com", role=role)
        assert not is_admin_user(user)

    @pytest.mark.parametrize("email", [
        "service-desk@company.com",
        "SYSTEM@company.com",
        "noreply@company.com",
        "api.gateway@company.com",
        "ci-Bot@company.com",
    ])
    def test_service_account_markers(self, email):
        assert is_service_account(DirectoryUser(id="u1", email=email))

    def test_regular_email_is_not_service_account(self):
        assert not is_service_account(DirectoryUser(id="u1", email="jane.doe@company.com"))

    def test_rules_can_be_disabled(self):
        admin = DirectoryUser(id="u1", email="svc-api@company.com", role="admin")

        assert is_excluded(admin, DormantAccessConfig())
        assert is_excluded(admin, DormantAccessConfig(exclude_admins=False))
        assert is_excluded(admin, DormantAccessConfig(exclude_service_accounts=False))
        assert not is_excluded(admin, DormantAccessConfig(exclude_admins=False,
                                                          exclude_service_accounts=False))
