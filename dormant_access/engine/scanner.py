"""
Scan Orchestrator for the Dormant Access Engine.

Fans out over a tenant's applications, resolves each active grant's user,
applies the exclusion rules and threshold classification, and builds a
fresh set of dormant access records.

The scan is a plain function over an explicit (tenant_id, config) context
so that scans of different tenants never share mutable state.
"""

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import List, Optional

from ..connectors.base_connector import IdentityProvider, InventoryProvider
from ..models import (
    AccessGrant,
    Contract,
    DirectoryUser,
    DormantAccessConfig,
    DormantAccessRecord,
    SaasApp,
    ScanResult,
    utc_now,
)
from .classifier import classify, days_since
from .exclusion import is_excluded
from .summary import generate_summary

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


def cost_per_license(contracts: List[Contract]) -> float:
    """
    Annual license cost derived from the first active contract.

    Returns 0 when there is no active contract or it has no licenses.
    """
    active = next((c for c in contracts if c.status == "active"), None)
    if active is None or active.total_licenses <= 0:
        return 0.0
    return active.annual_value / active.total_licenses


def build_record(
    tenant_id: str,
    app: SaasApp,
    grant: AccessGrant,
    user: DirectoryUser,
    config: DormantAccessConfig,
    license_cost: float,
    now: datetime,
) -> Optional[DormantAccessRecord]:
    """
    Build a dormant access record for one grant.

    Returns:
        The record, or None if the grant is not dormant
    """
    never_accessed = grant.last_access_date is None
    days = days_since(grant.last_access_date, now)
    category = classify(days, config, never_accessed=never_accessed)
    if category is None:
        return None

    return DormantAccessRecord(
        id=str(uuid.uuid4()),
        tenant_id=tenant_id,
        user_id=user.id,
        user_name=user.full_name or user.email,
        user_email=user.email,
        department=user.department,
        manager=user.manager,
        app_id=app.id,
        app_name=app.name,
        access_type=grant.access_type or "user",
        granted_at=grant.granted_at or now,
        last_access_date=grant.last_access_date,
        days_since_access=days,
        category=category,
        cost_per_license=license_cost,
        detected_at=now,
    )


def scan_app(
    tenant_id: str,
    app: SaasApp,
    config: DormantAccessConfig,
    inventory: InventoryProvider,
    identity: IdentityProvider,
    now: datetime,
    cancel_event: Optional[threading.Event] = None,
) -> List[DormantAccessRecord]:
    """
    Scan a single application.

    Raises:
        ProviderUnavailable: if the application's grants, contracts or users
            cannot be fetched
    """
    if cancel_event is not None and cancel_event.is_set():
        return []

    grants = inventory.list_access_grants(tenant_id, app.id)
    license_cost = cost_per_license(inventory.list_contracts(tenant_id, app.id))

    records = []
    for grant in grants:
        if grant.status != "active":
            continue

        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Scan of {app.name} cancelled after {len(records)} records")
            break

        user = identity.get_user(grant.user_id)
        if user is None:
            logger.debug(f"Skipping grant on {app.id}: user {grant.user_id} not resolved")
            continue

        if is_excluded(user, config):
            continue

        record = build_record(tenant_id, app, grant, user, config, license_cost, now)
        if record is not None:
            records.append(record)

    return records


def scan(
    tenant_id: str,
    config: DormantAccessConfig,
    inventory: InventoryProvider,
    identity: IdentityProvider,
    now: Optional[datetime] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    cancel_event: Optional[threading.Event] = None,
    app_timeout: Optional[float] = None,
) -> ScanResult:
    """
    Scan a tenant for dormant access.

    Per-application work runs on a bounded thread pool; the summary is
    computed only after every application has finished. A failing
    application is dropped from the result and reported in ``errors``.

    Args:
        tenant_id: Tenant to scan
        config: Configuration snapshot used for the whole scan
        inventory: Inventory provider
        identity: Identity provider
        now: Reference time (defaults to the current UTC time)
        max_workers: Upper bound on concurrent provider requests
        cancel_event: When set, no new provider requests are issued
        app_timeout: Seconds the scan waits for application results; apps
            still running after that are reported as timed out

    Returns:
        ScanResult with records ordered by application, then grant
    """
    now = now or utc_now()
    logger.info(f"Scanning for dormant access in tenant {tenant_id}")

    try:
        apps = inventory.list_apps(tenant_id)
    except Exception as e:
        logger.error(f"Cannot list applications for tenant {tenant_id}: {e}")
        return ScanResult(tenant_id=tenant_id, errors=[str(e)], scanned_at=now)

    per_app: List[List[DormantAccessRecord]] = [[] for _ in apps]
    errors: List[str] = []
    deadline = time.monotonic() + app_timeout if app_timeout is not None else None
    timed_out = False

    pool = ThreadPoolExecutor(max_workers=max(1, max_workers))
    try:
        futures = [
            pool.submit(scan_app, tenant_id, app, config, inventory, identity, now, cancel_event)
            for app in apps
        ]

        for index, (app, future) in enumerate(zip(apps, futures)):
            remaining = max(0.0, deadline - time.monotonic()) if deadline is not None else None
            try:
                per_app[index] = future.result(timeout=remaining)
            except FutureTimeoutError:
                timed_out = True
                future.cancel()
                message = f"Timed out scanning {app.name} ({app.id})"
                logger.warning(message)
                errors.append(message)
            except Exception as e:
                message = f"Failed to scan {app.name} ({app.id}): {e}"
                logger.warning(message)
                errors.append(message)
    finally:
        # Stuck provider calls are left to finish in the background
        pool.shutdown(wait=not timed_out, cancel_futures=timed_out)

    records = [record for app_records in per_app for record in app_records]
    cancelled = cancel_event is not None and cancel_event.is_set()

    logger.info(
        f"Found {len(records)} dormant access records in tenant {tenant_id} "
        f"({len(errors)} applications failed{', cancelled' if cancelled else ''})"
    )

    return ScanResult(
        tenant_id=tenant_id,
        records=records,
        summary=generate_summary(records),
        errors=errors,
        cancelled=cancelled,
        scanned_at=now,
    )
