"""
Configuration Manager for the Dormant Access Engine.

Holds one DormantAccessConfig snapshot per tenant. Defaults come from the
built-in policy, optionally overridden by a YAML file:

    defaults:
      warning_days: 30
      critical_days: 60
      auto_revoke_days: 90
    tenants:
      acme:
        require_approval: false
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from ..errors import ConfigValidationError
from ..models import DormantAccessConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "dormant_config.yaml"


def _validation_messages(error: ValidationError):
    for err in error.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "config"
        yield f"{location}: {err.get('msg')}"


class ConfigManager:
    """
    Per-tenant dormant access configuration store.

    Updates replace the tenant's snapshot atomically; scans read a snapshot
    once at start so a concurrent update never changes a running scan.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: YAML file with ``defaults`` and ``tenants`` sections.
                         Missing files fall back to the built-in defaults.
        """
        self.config_path = Path(config_path) if config_path else None
        self.defaults = DormantAccessConfig()
        self.tenant_configs: Dict[str, DormantAccessConfig] = {}
        self._lock = threading.Lock()

        if self.config_path:
            self._load_configuration()

    def _load_configuration(self):
        """Load defaults and tenant overrides from the YAML file."""
        if not self.config_path.exists():
            logger.warning(f"Dormant access config file not found: {self.config_path}")
            return

        with open(self.config_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        self.defaults = self._build(self.defaults, data.get("defaults") or {})
        for tenant_id, overrides in (data.get("tenants") or {}).items():
            self.tenant_configs[str(tenant_id)] = self._build(self.defaults, overrides or {})

        logger.info(
            f"Loaded dormant access config from {self.config_path} "
            f"({len(self.tenant_configs)} tenant overrides)"
        )

    @staticmethod
    def _build(base: DormantAccessConfig, changes: Dict[str, Any]) -> DormantAccessConfig:
        try:
            return base.merged(**changes)
        except ValidationError as e:
            raise ConfigValidationError(_validation_messages(e)) from e
        except ValueError as e:
            raise ConfigValidationError([str(e)]) from e

    def get_config(self, tenant_id: str) -> DormantAccessConfig:
        """Get the current configuration snapshot for a tenant."""
        with self._lock:
            return self.tenant_configs.get(tenant_id, self.defaults)

    def set_config(self, tenant_id: str, **changes: Any) -> DormantAccessConfig:
        """
        Merge-update a tenant's configuration.

        Unspecified fields keep their previous values.

        Raises:
            ConfigValidationError: if the result violates the threshold rules
        """
        with self._lock:
            current = self.tenant_configs.get(tenant_id, self.defaults)
            updated = self._build(current, changes)
            self.tenant_configs[tenant_id] = updated

        logger.info(f"Updated dormant access config for tenant {tenant_id}")
        return updated

    def reset_config(self, tenant_id: str) -> DormantAccessConfig:
        """Drop a tenant's overrides."""
        with self._lock:
            self.tenant_configs.pop(tenant_id, None)
            return self.defaults

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Write defaults and tenant overrides back to YAML."""
        target = Path(path) if path else (self.config_path or Path(DEFAULT_CONFIG_FILE))
        with self._lock:
            data = {
                "defaults": self.defaults.model_dump(),
                "tenants": {t: c.model_dump() for t, c in self.tenant_configs.items()},
            }
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding='utf-8') as f:
            yaml.safe_dump(data, f, sort_keys=False)
        return target
