"""Maps device records to their directory objects.

Both record shapes carry a dedicated device id field and their own record id.
The canonical device id is taken from an ordered list of candidate extractors
per shape; the first non-empty value wins.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

import errors
from config import get_logger
from entities.directory import DeviceRecord, DirectoryDeviceObject, ManagedDeviceRecord, RegisteredDeviceRecord

if TYPE_CHECKING:
    from graph import GraphClient

logger = get_logger(service="identity_normalizer")

# Intune reports this for devices that never joined the directory.
EMPTY_DEVICE_ID = "00000000-0000-0000-0000-000000000000"

CANONICAL_ID_EXTRACTORS: dict[type, tuple[Callable[..., Optional[str]], ...]] = {
    ManagedDeviceRecord: (
        lambda record: record.azure_ad_device_id,
        lambda record: record.id,
    ),
    RegisteredDeviceRecord: (
        lambda record: record.device_id,
        lambda record: record.id,
    ),
}


def _is_empty(value: Optional[str]) -> bool:
    return not value or not value.strip() or value.strip() == EMPTY_DEVICE_ID


def canonical_device_id(record: DeviceRecord) -> str:
    """Return the id used to look the device up in the directory.

    Raises:
        UnresolvableDeviceIdentity: No candidate field holds a value.
    """
    for extract in CANONICAL_ID_EXTRACTORS[type(record)]:
        value = extract(record)
        if not _is_empty(value):
            return value.strip()  # type: ignore[union-attr]
    raise errors.UnresolvableDeviceIdentity(f"Device '{record.display_name}' from {record.source} has no device identifier")


class ResolvedDevice:
    def __init__(self, device_object: DirectoryDeviceObject, match_count: int) -> None:
        self.device_object = device_object
        self.match_count = match_count

    @property
    def is_ambiguous(self) -> bool:
        return self.match_count > 1


class DirectoryObjectResolver:
    """Looks up directory device objects, memoizing results for the run."""

    def __init__(self, graph: GraphClient) -> None:
        self._graph = graph
        self._resolved: dict[str, ResolvedDevice] = {}
        self._missing: dict[str, errors.DirectoryObjectNotFound] = {}

    def resolve(self, canonical_id: str) -> ResolvedDevice:
        """Find the directory object for a canonical device id.

        When several objects share the id the first one is used and the
        result is flagged as ambiguous.

        Raises:
            DirectoryObjectNotFound: No object matches, or the lookup failed.
        """
        key = canonical_id.lower()
        if key in self._resolved:
            return self._resolved[key]
        if key in self._missing:
            raise self._missing[key]

        try:
            matches = self._graph.find_device_objects(canonical_id)
        except errors.GraphRequestError as e:
            self._missing[key] = errors.DirectoryObjectNotFound(f"Lookup of device {canonical_id} failed: {e}")
            raise self._missing[key] from e

        if not matches:
            self._missing[key] = errors.DirectoryObjectNotFound(f"No directory object found for device {canonical_id}")
            raise self._missing[key]

        if len(matches) > 1:
            logger.warning(
                f"Found {len(matches)} directory objects for device {canonical_id}, using the first one",
                extra={"canonical_device_id": canonical_id, "object_ids": [m.get("id") for m in matches]},
            )

        resolved = ResolvedDevice(DirectoryDeviceObject.model_validate(matches[0]), match_count=len(matches))
        self._resolved[key] = resolved
        return resolved
