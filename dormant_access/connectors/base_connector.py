"""
Base Connector Classes for the Dormant Access Engine.

This module provides the interfaces of the inventory and identity providers
the engine consumes, together with in-memory mock backends used for
testing, demos and file-based inventories.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

import yaml

from ..errors import ProviderUnavailable
from ..models import AccessGrant, Contract, DirectoryUser, SaasApp

logger = logging.getLogger(__name__)


class ConnectorResult:
    """Result of a connector operation."""

    def __init__(self, success: bool, message: str = "", data: Optional[Any] = None,
                 error: Optional[str] = None):
        self.success = success
        self.message = message
        self.data = data
        self.error = error

    def __bool__(self):
        return self.success

    def __str__(self):
        return f"{'✓' if self.success else '✗'} {self.message}"


class BaseConnector(ABC):
    """Common plumbing shared by every provider connector."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, mock_mode: bool = False):
        """
        Initialize the connector.

        Args:
            config: Configuration dictionary with API credentials, endpoints, etc.
            mock_mode: If True, use an in-memory backend instead of real APIs
        """
        self.config = config or {}
        self.mock_mode = mock_mode
        self.system_name = self.__class__.__name__.replace('Connector', '').lower()

        logger.info(f"Initialized {self.__class__.__name__} (mock_mode={mock_mode})")

    def validate_config(self) -> bool:
        """Validate that the connector has all required configuration."""
        return True

    def get_system_name(self) -> str:
        """Get the name of the system this connector talks to."""
        return self.system_name

    def is_mock_mode(self) -> bool:
        """Check if this connector is running in mock mode."""
        return self.mock_mode


class InventoryProvider(BaseConnector):
    """
    Source of applications, access grants and license contracts.

    Read operations raise ProviderUnavailable when the backend cannot be
    reached; ``revoke_access`` reports its outcome as a ConnectorResult.
    """

    @abstractmethod
    def list_apps(self, tenant_id: str) -> List[SaasApp]:
        """List every application of a tenant."""

    @abstractmethod
    def list_access_grants(self, tenant_id: str, app_id: str) -> List[AccessGrant]:
        """List the user access grants of one application."""

    @abstractmethod
    def list_contracts(self, tenant_id: str, app_id: str) -> List[Contract]:
        """List the license contracts of one application."""

    @abstractmethod
    def revoke_access(self, tenant_id: str, user_id: str, app_id: str) -> ConnectorResult:
        """
        Remove a user's access to an application.

        Args:
            tenant_id: Tenant owning the application
            user_id: User whose access is removed
            app_id: Application identifier

        Returns:
            ConnectorResult with success status
        """


class IdentityProvider(BaseConnector):
    """Source of user records."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[DirectoryUser]:
        """
        Get a user by id.

        Returns:
            DirectoryUser, or None if the user is unknown
        """


class MockInventoryConnector(InventoryProvider):
    """
    In-memory inventory backend.

    Keeps applications, grants and contracts per tenant so tests and the
    CLI can run without a real inventory service.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config, mock_mode=True)

        self.apps: Dict[str, List[SaasApp]] = {}          # tenant_id -> apps
        self.grants: Dict[str, List[AccessGrant]] = {}    # app_id -> grants
        self.contracts: Dict[str, List[Contract]] = {}    # app_id -> contracts
        self.unavailable_apps: Set[str] = set()           # app_ids whose reads fail
        self.failing_revocations: Set[Tuple[str, str]] = set()
        self.revocations: List[Tuple[str, str, str]] = []

    def add_app(self, tenant_id: str, app: SaasApp) -> SaasApp:
        """Register an application for a tenant."""
        self.apps.setdefault(tenant_id, []).append(app)
        return app

    def add_grant(self, grant: AccessGrant) -> AccessGrant:
        """Register a user's access grant."""
        self.grants.setdefault(grant.app_id, []).append(grant)
        return grant

    def add_contract(self, contract: Contract) -> Contract:
        """Register a license contract."""
        self.contracts.setdefault(contract.app_id, []).append(contract)
        return contract

    def list_apps(self, tenant_id: str) -> List[SaasApp]:
        return list(self.apps.get(tenant_id, []))

    def list_access_grants(self, tenant_id: str, app_id: str) -> List[AccessGrant]:
        if app_id in self.unavailable_apps:
            raise ProviderUnavailable("inventory", "list_access_grants", f"app {app_id} offline")
        return list(self.grants.get(app_id, []))

    def list_contracts(self, tenant_id: str, app_id: str) -> List[Contract]:
        if app_id in self.unavailable_apps:
            raise ProviderUnavailable("inventory", "list_contracts", f"app {app_id} offline")
        return list(self.contracts.get(app_id, []))

    def revoke_access(self, tenant_id: str, user_id: str, app_id: str) -> ConnectorResult:
        """Mock access removal: marks the grant as removed."""
        if (user_id, app_id) in self.failing_revocations:
            return ConnectorResult(False, f"Revocation of {user_id} from {app_id} failed",
                                   error="Simulated provider failure")

        for grant in self.grants.get(app_id, []):
            if grant.user_id == user_id and grant.status == "active":
                grant.status = "removed"
                self.revocations.append((tenant_id, user_id, app_id))
                logger.info(f"Mock revoked {user_id} from {app_id}")
                return ConnectorResult(True, f"Revoked {user_id} from {app_id}")

        return ConnectorResult(False, f"No active grant for {user_id} on {app_id}",
                               error="Grant not found")

    def get_mock_state(self) -> Dict[str, Any]:
        """Get current mock state for inspection."""
        return {
            "apps": {t: [a.model_dump() for a in apps] for t, apps in self.apps.items()},
            "grants": {a: [g.model_dump() for g in gs] for a, gs in self.grants.items()},
            "revocations": list(self.revocations),
        }


class MockIdentityConnector(IdentityProvider):
    """In-memory identity backend."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config, mock_mode=True)
        self.users: Dict[str, DirectoryUser] = {}

    def add_user(self, user: DirectoryUser) -> DirectoryUser:
        self.users[user.id] = user
        return user

    def get_user(self, user_id: str) -> Optional[DirectoryUser]:
        return self.users.get(user_id)


def load_inventory_file(
    path: Union[str, Path], tenant_id: Optional[str] = None
) -> Tuple[MockInventoryConnector, MockIdentityConnector]:
    """
    Build mock providers from a JSON or YAML inventory file.

    The file holds ``users``, ``apps``, ``grants`` and ``contracts`` lists.
    Apps without a ``tenant_id`` are assigned to ``tenant_id``.

    Args:
        path: Path to the inventory file
        tenant_id: Default tenant for apps

    Returns:
        Tuple of (inventory, identity) connectors
    """
    path = Path(path)
    with open(path, encoding='utf-8') as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f) or {}
        else:
            data = json.load(f)

    inventory = MockInventoryConnector()
    identity = MockIdentityConnector()

    for user_data in data.get("users", []):
        identity.add_user(DirectoryUser(**user_data))

    for app_data in data.get("apps", []):
        app = SaasApp(**app_data)
        inventory.add_app(app.tenant_id or tenant_id or "default", app)

    for grant_data in data.get("grants", []):
        inventory.add_grant(AccessGrant(**grant_data))

    for contract_data in data.get("contracts", []):
        inventory.add_contract(Contract(**contract_data))

    logger.info(
        f"Loaded inventory from {path}: {len(identity.users)} users, "
        f"{sum(len(a) for a in inventory.apps.values())} apps"
    )
    return inventory, identity
