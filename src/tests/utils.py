from __future__ import annotations

from typing import Iterable, Optional
from unittest.mock import MagicMock

import errors
from graph import GraphClient

from .conftest import SOURCE_GROUP_ID, TARGET_GROUP_ID


def user(user_id: str) -> dict:
    return {"@odata.type": "#microsoft.graph.user", "id": user_id}


def managed_device(record_id: Optional[str], name: str, user_id: str, azure_ad_device_id: Optional[str]) -> dict:
    return {"id": record_id, "deviceName": name, "userId": user_id, "azureADDeviceId": azure_ad_device_id}


def registered_device(record_id: Optional[str], name: str, device_id: Optional[str], odata_type: str = "#microsoft.graph.device") -> dict:
    return {"@odata.type": odata_type, "id": record_id, "displayName": name, "deviceId": device_id}


def device_object(object_id: str, device_id: str, name: str = "device") -> dict:
    return {"id": object_id, "deviceId": device_id, "displayName": name}


def make_graph(  # noqa: PLR0913
    source_members: Iterable[dict] | Exception = (),
    target_members: Iterable[str] | Exception = (),
    managed_devices: Iterable[dict] | Exception = (),
    registered: Optional[dict[str, list[dict] | Exception]] = None,
    device_objects: Optional[dict[str, list[dict]]] = None,
    add_error: Optional[errors.GraphRequestError] = None,
) -> MagicMock:
    """Build a GraphClient mock backed by in-memory directory state.

    Added members are appended to the target group state, so a second pass
    over the same mock sees the additions.
    """
    graph = MagicMock(spec=GraphClient)
    registered = registered or {}
    device_objects = device_objects or {}
    target_state = target_members if isinstance(target_members, Exception) else [{"id": m} for m in target_members]

    def list_group_members(group_id: str) -> list[dict]:
        if group_id == SOURCE_GROUP_ID:
            if isinstance(source_members, Exception):
                raise source_members
            return list(source_members)
        if group_id == TARGET_GROUP_ID:
            if isinstance(target_state, Exception):
                raise target_state
            return list(target_state)
        return []

    def list_managed_devices() -> list[dict]:
        if isinstance(managed_devices, Exception):
            raise managed_devices
        return list(managed_devices)

    def list_user_registered_objects(user_id: str) -> list[dict]:
        objects = registered.get(user_id, [])
        if isinstance(objects, Exception):
            raise objects
        return list(objects)

    def find_device_objects(canonical_device_id: str) -> list[dict]:
        return list(device_objects.get(canonical_device_id, []))

    def add_group_member_by_ref(group_id: str, directory_object_id: str) -> None:  # noqa: ARG001
        if add_error is not None:
            raise add_error
        if not isinstance(target_state, Exception):
            target_state.append({"id": directory_object_id})

    graph.list_group_members.side_effect = list_group_members
    graph.list_managed_devices.side_effect = list_managed_devices
    graph.list_user_registered_objects.side_effect = list_user_registered_objects
    graph.find_device_objects.side_effect = find_device_objects
    graph.add_group_member_by_ref.side_effect = add_group_member_by_ref
    return graph
