"""Device discovery for source users.

The managed-device inventory is authoritative: it is fetched once per run and
filtered per user in memory. A user's registered devices are only queried
when the inventory has nothing for that user.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

import errors
from config import get_logger
from entities.directory import DeviceRecord, ManagedDeviceRecord, RegisteredDeviceRecord

if TYPE_CHECKING:
    from graph import GraphClient
    from sync_report import SyncRunReport

logger = get_logger(service="device_discovery")


class InventorySnapshot:
    """Read-only view of the managed-device inventory, indexed by owning user."""

    def __init__(self, records: list[ManagedDeviceRecord]) -> None:
        self._records = tuple(records)
        by_user: dict[str, list[ManagedDeviceRecord]] = defaultdict(list)
        for record in self._records:
            if record.user_id:
                by_user[record.user_id.lower()].append(record)
        self._by_user = {user_id: tuple(user_records) for user_id, user_records in by_user.items()}

    def __len__(self) -> int:
        return len(self._records)

    def for_user(self, user_id: str) -> list[ManagedDeviceRecord]:
        return list(self._by_user.get(user_id.lower(), ()))


def fetch_inventory(graph: GraphClient, report: SyncRunReport) -> InventorySnapshot:
    """Fetch the managed-device inventory once for the run.

    A failed fetch is not fatal: the run continues with an empty snapshot and
    every user is served by the registered-device fallback. The failure is
    recorded on the report as a run warning.
    """
    try:
        raw_devices = graph.list_managed_devices()
    except errors.GraphRequestError as e:
        logger.warning(f"Failed to fetch managed device inventory, continuing with registered devices only: {e}")
        report.warn_run(f"Managed device inventory unavailable, all users used registered devices: {e}")
        return InventorySnapshot([])
    return InventorySnapshot([ManagedDeviceRecord.model_validate(device) for device in raw_devices])


def _fetch_registered_devices(graph: GraphClient, user_id: str) -> list[RegisteredDeviceRecord]:
    registered = [RegisteredDeviceRecord.model_validate(obj) for obj in graph.list_user_registered_objects(user_id)]
    devices = [record for record in registered if record.is_device]
    skipped = len(registered) - len(devices)
    if skipped:
        logger.debug(f"Ignored {skipped} registered objects of user {user_id} that are not devices")
    return devices


def discover_user_devices(
    graph: GraphClient,
    inventory: InventorySnapshot,
    user_id: str,
    report: SyncRunReport,
) -> list[DeviceRecord]:
    """Return the devices owned by a user.

    Args:
        graph: Graph client, used only for the fallback query.
        inventory: Managed-device snapshot for the run.
        user_id: Source user id.
        report: Run report; fallback failures are recorded as user warnings.

    Returns:
        Inventory records when the user has any, otherwise registered devices.
    """
    managed = inventory.for_user(user_id)
    if managed:
        logger.debug(f"User {user_id} has {len(managed)} managed devices")
        return list(managed)

    try:
        registered = _fetch_registered_devices(graph, user_id)
    except errors.GraphRequestError as e:
        message = f"Failed to fetch registered devices for user {user_id}: {e}"
        logger.warning(message, extra={"user_id": user_id})
        report.warn_user(user_id, message)
        return []

    if registered:
        logger.debug(f"User {user_id} has no managed devices, found {len(registered)} registered devices")
    else:
        logger.info(f"No devices found for user {user_id}")
    return list(registered)
