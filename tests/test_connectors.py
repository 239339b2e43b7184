"""
Tests for the inventory and identity connectors.
"""

import json
from unittest.mock import Mock

import pytest
import requests
import yaml

from dormant_access.connectors import (
    HttpIdentityConnector,
    HttpInventoryConnector,
    MockIdentityConnector,
    MockInventoryConnector,
    build_providers,
    load_inventory_file,
)
from dormant_access.errors import ProviderUnavailable
from dormant_access.models import AccessGrant

from .conftest import TENANT


def response(status_code=200, payload=None):
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status_code}")
    return resp


@pytest.fixture
def session():
    session = Mock()
    session.headers = {}
    return session


class TestHttpInventoryConnector:
    """Test cases for HttpInventoryConnector."""

    @pytest.fixture
    def connector(self, session):
        return HttpInventoryConnector(
            {"base_url": "https://inventory.example.com/", "api_token": "secret"}, session=session
        )

    def test_requires_base_url(self, session):
        with pytest.raises(ValueError):
            HttpInventoryConnector({}, session=session)

    def test_auth_header(self, connector, session):
        assert session.headers["Authorization"] == "Bearer secret"

    def test_list_apps(self, connector, session):
        session.request.return_value = response(payload=[{"id": "app-slack", "name": "Slack"}])

        apps = connector.list_apps(TENANT)

        assert apps[0].name == "Slack"
        assert apps[0].tenant_id == TENANT
        session.request.assert_called_once_with(
            "GET", "https://inventory.example.com/tenants/acme/apps", timeout=15
        )

    def test_list_access_grants(self, connector, session):
        session.request.return_value = response(payload=[
            {"user_id": "u-alice", "last_access_date": "2026-06-01T00:00:00+00:00"},
            {"user_id": "u-bob", "status": "suspended"},
        ])

        grants = connector.list_access_grants(TENANT, "app-slack")

        assert [g.user_id for g in grants] == ["u-alice", "u-bob"]
        assert grants[0].app_id == "app-slack"
        assert grants[0].last_access_date.month == 6
        assert grants[1].last_access_date is None

    def test_list_contracts(self, connector, session):
        session.request.return_value = response(payload=[
            {"status": "active", "annual_value": 1200, "total_licenses": 10},
        ])

        contracts = connector.list_contracts(TENANT, "app-slack")

        assert contracts[0].annual_value == 1200
        assert contracts[0].app_id == "app-slack"

    def test_list_apps_ignores_payload_tenant(self, connector, session):
        session.request.return_value = response(payload=[
            {"id": "app-slack", "name": "Slack", "tenant_id": "someone-else"},
        ])

        apps = connector.list_apps(TENANT)

        assert apps[0].id == "app-slack"
        assert apps[0].tenant_id == TENANT

    @pytest.mark.parametrize("operation,payload", [
        ("list_apps", [{"name": "Slack"}]),
        ("list_apps", ["app-slack"]),
        ("list_access_grants", [{"last_access_date": "2026-06-01T00:00:00+00:00"}]),
        ("list_contracts", [{"annual_value": "a lot"}]),
    ])
    def test_malformed_item_raises(self, connector, session, operation, payload):
        session.request.return_value = response(payload=payload)
        args = (TENANT,) if operation == "list_apps" else (TENANT, "app-slack")

        with pytest.raises(ProviderUnavailable) as exc_info:
            getattr(connector, operation)(*args)
        assert exc_info.value.operation == operation

    def test_read_failure_raises(self, connector, session):
        session.request.return_value = response(status_code=503)

        with pytest.raises(ProviderUnavailable):
            connector.list_apps(TENANT)

    def test_connection_error_raises(self, connector, session):
        session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(ProviderUnavailable) as exc_info:
            connector.list_access_grants(TENANT, "app-slack")
        assert exc_info.value.operation == "list_access_grants"

    @pytest.mark.parametrize("status_code", [200, 202, 204])
    def test_revoke_success(self, connector, session, status_code):
        session.request.return_value = response(status_code=status_code)

        result = connector.revoke_access(TENANT, "u-alice", "app-slack")

        assert result.success
        session.request.assert_called_once_with(
            "DELETE", "https://inventory.example.com/tenants/acme/apps/app-slack/users/u-alice",
            timeout=15,
        )

    def test_revoke_failure(self, connector, session):
        session.request.return_value = response(status_code=403)

        result = connector.revoke_access(TENANT, "u-alice", "app-slack")

        assert not result.success
        assert result.error == "HTTP 403"

    def test_revoke_connection_error(self, connector, session):
        session.request.side_effect = requests.Timeout("slow")

        result = connector.revoke_access(TENANT, "u-alice", "app-slack")

        assert not result.success
        assert "slow" in result.error


class TestHttpIdentityConnector:
    """Test cases for HttpIdentityConnector."""

    @pytest.fixture
    def connector(self, session):
        return HttpIdentityConnector({"base_url": "https://idp.example.com", "timeout": 5},
                                     session=session)

    def test_get_user(self, connector, session):
        session.request.return_value = response(payload={
            "id": "u-alice", "first_name": "Alice", "last_name": "Johnson",
            "email": "alice.johnson@company.com", "role": "technician",
        })

        user = connector.get_user("u-alice")

        assert user.full_name == "Alice Johnson"
        session.request.assert_called_once_with("GET", "https://idp.example.com/users/u-alice",
                                                timeout=5)

    def test_unknown_user(self, connector, session):
        session.request.return_value = response(status_code=404)
        assert connector.get_user("ghost") is None

    def test_failure_raises(self, connector, session):
        session.request.return_value = response(status_code=500)
        with pytest.raises(ProviderUnavailable):
            connector.get_user("u-alice")


class TestMockInventoryConnector:
    """Test cases for MockInventoryConnector."""

    def test_revoke_marks_grant_removed(self, inventory):
        inventory.add_grant(AccessGrant(user_id="u-alice", app_id="app-slack"))

        assert inventory.revoke_access(TENANT, "u-alice", "app-slack").success
        assert inventory.list_access_grants(TENANT, "app-slack")[0].status == "removed"

        second = inventory.revoke_access(TENANT, "u-alice", "app-slack")
        assert not second.success
        assert second.error == "Grant not found"

    def test_mock_state(self, inventory):
        state = inventory.get_mock_state()
        assert [a["id"] for a in state["apps"][TENANT]] == ["app-slack", "app-figma"]
        assert state["revocations"] == []


class TestInventoryFile:
    """Test cases for file-backed inventories."""

    DATA = {
        "users": [{"id": "u1", "first_name": "Jane", "last_name": "Doe",
                   "email": "jane.doe@company.com", "department": "Sales"}],
        "apps": [{"id": "app-zoom", "name": "Zoom"},
                 {"id": "app-crm", "name": "CRM", "tenant_id": "globex"}],
        "grants": [{"user_id": "u1", "app_id": "app-zoom",
                    "last_access_date": "2026-01-01T00:00:00Z"}],
        "contracts": [{"app_id": "app-zoom", "annual_value": 500, "total_licenses": 5}],
    }

    def test_json(self, tmp_path):
        path = tmp_path / "inventory.json"
        path.write_text(json.dumps(self.DATA))

        inventory, identity = load_inventory_file(path, tenant_id=TENANT)

        assert [a.id for a in inventory.list_apps(TENANT)] == ["app-zoom"]
        assert [a.id for a in inventory.list_apps("globex")] == ["app-crm"]
        assert inventory.list_contracts(TENANT, "app-zoom")[0].total_licenses == 5
        assert identity.get_user("u1").department == "Sales"

    def test_yaml(self, tmp_path):
        path = tmp_path / "inventory.yaml"
        path.write_text(yaml.safe_dump(self.DATA))

        inventory, identity = load_inventory_file(path)

        assert [a.id for a in inventory.list_apps("default")] == ["app-zoom"]
        assert len(inventory.list_access_grants("default", "app-zoom")) == 1


class TestBuildProviders:
    """Test cases for build_providers."""

    def test_mock_by_default(self):
        inventory, identity = build_providers({})
        assert isinstance(inventory, MockInventoryConnector)
        assert isinstance(identity, MockIdentityConnector)

    def test_http(self):
        inventory, identity = build_providers({
            "mock_mode": False,
            "connectors": {"inventory": {"base_url": "https://inventory.example.com"}},
        })
        assert isinstance(inventory, HttpInventoryConnector)
        assert isinstance(identity, HttpIdentityConnector)
        assert identity.client.base_url == "https://inventory.example.com"

    def test_inventory_file_wins(self, tmp_path):
        path = tmp_path / "inventory.json"
        path.write_text(json.dumps({"apps": [{"id": "a", "name": "A"}]}))

        inventory, _ = build_providers({"inventory_file": str(path), "mock_mode": False,
                                        "default_tenant": TENANT})

        assert [a.id for a in inventory.list_apps(TENANT)] == ["a"]
