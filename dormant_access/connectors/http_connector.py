"""
HTTP Connectors for the Dormant Access Engine.

Talks to a REST inventory/identity service exposing:

    GET    /tenants/{tenant_id}/apps
    GET    /tenants/{tenant_id}/apps/{app_id}/users
    GET    /tenants/{tenant_id}/apps/{app_id}/contracts
    DELETE /tenants/{tenant_id}/apps/{app_id}/users/{user_id}
    GET    /users/{user_id}
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from ..errors import ProviderUnavailable
from ..models import AccessGrant, Contract, DirectoryUser, SaasApp
from .base_connector import ConnectorResult, IdentityProvider, InventoryProvider

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15

ModelT = TypeVar("ModelT", bound=BaseModel)


class _RestClient:
    """Thin requests.Session wrapper shared by the HTTP connectors."""

    def __init__(self, config: Dict[str, Any], session: Optional[requests.Session] = None):
        self.base_url = (config.get('base_url') or '').rstrip('/')
        if not self.base_url:
            raise ValueError("base_url is required for HTTP connectors")

        self.timeout = config.get('timeout', DEFAULT_TIMEOUT)
        self.session = session or requests.Session()

        token = config.get('api_token') or config.get('token')
        if token:
            self.session.headers['Authorization'] = f"Bearer {token}"

    def request(self, method: str, path: str) -> requests.Response:
        return self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout)


class HttpInventoryConnector(InventoryProvider):
    """Inventory provider backed by a REST API."""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 session: Optional[requests.Session] = None):
        super().__init__(config, mock_mode=False)
        self.client = _RestClient(self.config, session)

    def _get_list(self, operation: str, path: str) -> List[Dict[str, Any]]:
        try:
            response = self.client.request("GET", path)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Inventory {operation} failed for {path}: {e}")
            raise ProviderUnavailable("inventory", operation, str(e)) from e

    def _parse_list(self, operation: str, model: Type[ModelT], items: List[Any],
                    **scope: str) -> List[ModelT]:
        """Build models from API items; ``scope`` fields override the payload's."""
        try:
            return [model(**{**item, **scope}) for item in items]
        except (ValidationError, TypeError) as e:
            logger.error(f"Inventory {operation} returned a malformed item: {e}")
            raise ProviderUnavailable("inventory", operation, f"malformed item: {e}") from e

    def list_apps(self, tenant_id: str) -> List[SaasApp]:
        items = self._get_list("list_apps", f"/tenants/{tenant_id}/apps")
        return self._parse_list("list_apps", SaasApp, items, tenant_id=tenant_id)

    def list_access_grants(self, tenant_id: str, app_id: str) -> List[AccessGrant]:
        items = self._get_list("list_access_grants", f"/tenants/{tenant_id}/apps/{app_id}/users")
        return self._parse_list("list_access_grants", AccessGrant, items, app_id=app_id)

    def list_contracts(self, tenant_id: str, app_id: str) -> List[Contract]:
        items = self._get_list("list_contracts", f"/tenants/{tenant_id}/apps/{app_id}/contracts")
        return self._parse_list("list_contracts", Contract, items, app_id=app_id)

    def revoke_access(self, tenant_id: str, user_id: str, app_id: str) -> ConnectorResult:
        """Remove a user's access through the inventory API."""
        path = f"/tenants/{tenant_id}/apps/{app_id}/users/{user_id}"
        try:
            response = self.client.request("DELETE", path)
            if response.status_code in (200, 202, 204):
                logger.info(f"Revoked {user_id} from {app_id} in tenant {tenant_id}")
                return ConnectorResult(True, f"Revoked {user_id} from {app_id}")

            error_msg = f"Failed to revoke {user_id} from {app_id}: HTTP {response.status_code}"
            logger.error(error_msg)
            return ConnectorResult(False, error_msg, error=f"HTTP {response.status_code}")

        except requests.RequestException as e:
            error_msg = f"Failed to revoke {user_id} from {app_id}: {e}"
            logger.error(error_msg)
            return ConnectorResult(False, error_msg, error=str(e))


class HttpIdentityConnector(IdentityProvider):
    """Identity provider backed by a REST API."""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 session: Optional[requests.Session] = None):
        super().__init__(config, mock_mode=False)
        self.client = _RestClient(self.config, session)

    def get_user(self, user_id: str) -> Optional[DirectoryUser]:
        try:
            response = self.client.request("GET", f"/users/{user_id}")
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return DirectoryUser(**response.json())
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Identity lookup failed for {user_id}: {e}")
            raise ProviderUnavailable("identity", "get_user", str(e)) from e
