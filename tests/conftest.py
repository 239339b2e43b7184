"""
Shared fixtures for the Dormant Access Engine tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from dormant_access.connectors import MockIdentityConnector, MockInventoryConnector
from dormant_access.detector import DormantAccessDetector
from dormant_access.engine.config_manager import ConfigManager
from dormant_access.engine.record_store import RecordStore
from dormant_access.events.emitter import InMemoryEventBus
from dormant_access.models import AccessGrant, Contract, DirectoryUser, SaasApp

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
TENANT = "acme"


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end tests across components")


def days_ago(days):
    return NOW - timedelta(days=days)


class Clock:
    """Settable clock for workflow timestamps."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def inventory():
    """Inventory with two apps: Slack (licensed) and Figma (no active contract)."""
    inv = MockInventoryConnector()
    inv.add_app(TENANT, SaasApp(id="app-slack", name="Slack", tenant_id=TENANT))
    inv.add_app(TENANT, SaasApp(id="app-figma", name="Figma", tenant_id=TENANT))
    inv.add_contract(Contract(app_id="app-slack", status="active", annual_value=1200.0, total_licenses=10))
    inv.add_contract(Contract(app_id="app-figma", status="expired", annual_value=5000.0, total_licenses=5))
    return inv


@pytest.fixture
def identity():
    idp = MockIdentityConnector()
    idp.add_user(DirectoryUser(id="u-alice", first_name="Alice", last_name="Johnson",
                               email="alice.johnson@company.com", department="Engineering",
                               manager="mgr1", role="technician"))
    idp.add_user(DirectoryUser(id="u-bob", first_name="Bob", last_name="Smith",
                               email="bob.smith@company.com", department=None,
                               manager="mgr2", role="user"))
    idp.add_user(DirectoryUser(id="u-admin", first_name="Ada", last_name="Admin",
                               email="ada@company.com", department="IT", role="admin"))
    idp.add_user(DirectoryUser(id="u-bot", first_name="Build", last_name="Bot",
                               email="ci-bot@company.com", department="IT", role="user"))
    return idp


def grant(user_id, app_id, days=None, status="active", access_type="user"):
    """Grant last used ``days`` ago (None: never used)."""
    return AccessGrant(
        user_id=user_id,
        app_id=app_id,
        status=status,
        access_type=access_type,
        granted_at=days_ago(400),
        last_access_date=days_ago(days) if days is not None else None,
    )


@pytest.fixture
def event_bus():
    return InMemoryEventBus()


@pytest.fixture
def detector(inventory, identity, event_bus, clock):
    return DormantAccessDetector(
        inventory=inventory,
        identity=identity,
        event_bus=event_bus,
        config_manager=ConfigManager(),
        record_store=RecordStore(),
        clock=clock,
    )
