"""
Connectors Package for the Dormant Access Engine.

This package provides the inventory and identity provider interfaces
with mock (in-memory or file-backed) and HTTP implementations.
"""

from typing import Any, Dict, Optional, Tuple

from .base_connector import (
    BaseConnector,
    ConnectorResult,
    IdentityProvider,
    InventoryProvider,
    MockIdentityConnector,
    MockInventoryConnector,
    load_inventory_file,
)
from .http_connector import HttpIdentityConnector, HttpInventoryConnector


def build_providers(
    config: Optional[Dict[str, Any]] = None
) -> Tuple[InventoryProvider, IdentityProvider]:
    """
    Build the inventory and identity providers described by an engine config.

    ``inventory_file`` wins, then mock mode, then the HTTP connectors
    configured under ``connectors.inventory`` and ``connectors.identity``.
    """
    config = config or {}

    if config.get("inventory_file"):
        return load_inventory_file(config["inventory_file"], config.get("default_tenant"))

    if config.get("mock_mode", True):
        return MockInventoryConnector(), MockIdentityConnector()

    connectors_config = config.get("connectors", {})
    inventory_config = connectors_config.get("inventory", {})
    identity_config = connectors_config.get("identity", inventory_config)
    return HttpInventoryConnector(inventory_config), HttpIdentityConnector(identity_config)


__all__ = [
    "BaseConnector",
    "ConnectorResult",
    "InventoryProvider",
    "IdentityProvider",
    "MockInventoryConnector",
    "MockIdentityConnector",
    "HttpInventoryConnector",
    "HttpIdentityConnector",
    "load_inventory_file",
    "build_providers",
]
