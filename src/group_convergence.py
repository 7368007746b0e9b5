"""Target group convergence.

Adds directory device objects to the target group when they are not members
yet. Membership is read through a per-run cache by default; object ids added
or attempted during the run are tracked in-process so a device reached under
several users is written at most once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import errors
from config import get_logger
from sync_report import DeviceOutcome

if TYPE_CHECKING:
    from entities.directory import DirectoryDeviceObject
    from graph import GraphClient

logger = get_logger(service="group_convergence")

# Graph answers 400 with this text when the reference is already in the group
_ALREADY_EXISTS_MARKER = "already exist"


def _is_already_member_error(e: errors.GraphRequestError) -> bool:
    return e.status_code == 400 and _ALREADY_EXISTS_MARKER in e.message.lower()


class GroupConverger:
    def __init__(self, graph: GraphClient, group_id: str, cache_membership: bool = True) -> None:
        self._graph = graph
        self._group_id = group_id
        self._cache_membership = cache_membership
        self._members: Optional[set[str]] = None
        # object id -> failure cause, None when the add succeeded
        self._attempted: dict[str, Optional[str]] = {}

    def _read_members(self) -> set[str]:
        members = {member["id"].lower() for member in self._graph.list_group_members(self._group_id) if member.get("id")}
        logger.debug(f"Target group {self._group_id} has {len(members)} members")
        return members

    def current_members(self) -> set[str]:
        if self._members is None or not self._cache_membership:
            self._members = self._read_members()
        return self._members

    def converge(self, device_object: DirectoryDeviceObject) -> tuple[DeviceOutcome, Optional[str]]:
        """Make sure a directory object is a member of the target group.

        Returns:
            The terminal outcome and, for failures, the cause.
        """
        object_id = device_object.id.lower()

        if object_id in self._attempted:
            previous_failure = self._attempted[object_id]
            if previous_failure is None:
                return DeviceOutcome.ALREADY_MEMBER, "Added earlier in this run"
            return DeviceOutcome.ADD_FAILED, f"Add failed earlier in this run: {previous_failure}"

        try:
            members = self.current_members()
        except errors.GraphRequestError as e:
            logger.warning(f"Failed to read members of target group {self._group_id}: {e}")
            return DeviceOutcome.ADD_FAILED, f"Failed to read target group membership: {e}"

        if object_id in members:
            return DeviceOutcome.ALREADY_MEMBER, None

        try:
            self._graph.add_group_member_by_ref(self._group_id, device_object.id)
        except errors.GraphRequestError as e:
            if _is_already_member_error(e):
                self._attempted[object_id] = None
                members.add(object_id)
                return DeviceOutcome.ALREADY_MEMBER, None
            self._attempted[object_id] = str(e)
            logger.warning(f"Failed to add device {device_object.display_name} ({device_object.id}) to group {self._group_id}: {e}")
            return DeviceOutcome.ADD_FAILED, str(e)

        self._attempted[object_id] = None
        members.add(object_id)
        logger.info(
            f"Added device {device_object.display_name} to group {self._group_id}",
            extra={
                "operation": "add_device",
                "directory_object_id": device_object.id,
                "device_id": device_object.device_id,
                "group_id": self._group_id,
            },
        )
        return DeviceOutcome.ADDED, None
