"""Per-run result collector for the device group sync.

Every (user, device) pair processed during a run ends in exactly one
terminal outcome. The report accumulates those outcomes together with
per-user and run-level warnings and the fatal error, if any, and is the only state
shared between the pipeline stages.
"""

from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from config import get_logger

logger = get_logger(service="sync_report")


class DeviceOutcome(enum.Enum):
    ALREADY_MEMBER = "AlreadyMember"
    ADDED = "Added"
    ADD_FAILED = "AddFailed"
    UNRESOLVABLE_DEVICE_IDENTITY = "UnresolvableDeviceIdentity"
    DIRECTORY_OBJECT_NOT_FOUND = "DirectoryObjectNotFound"


@dataclass(frozen=True)
class DeviceSyncOutcome:
    """Terminal outcome of one (user, device) pair.

    Attributes:
        user_id: Source user the device was discovered under.
        device_name: Display name from the originating record.
        record_source: "inventory" for managed devices, "registration" for the fallback.
        outcome: Terminal state.
        canonical_device_id: Resolved device id, None when unresolvable.
        directory_object_id: Directory object id, None when not resolved.
        detail: Failure cause or other context.
        ambiguous_matches: Number of directory objects the lookup returned when more than one.
    """

    user_id: str
    device_name: str
    record_source: Literal["inventory", "registration"]
    outcome: DeviceOutcome
    canonical_device_id: Optional[str] = None
    directory_object_id: Optional[str] = None
    detail: Optional[str] = None
    ambiguous_matches: Optional[int] = None


@dataclass(frozen=True)
class UserWarning:
    user_id: str
    message: str


@dataclass
class SyncRunReport:
    source_user_group_id: str
    target_device_group_id: str
    start_time: datetime
    end_time: datetime | None = None
    success: bool = False

    users_evaluated: int = 0
    managed_devices_in_inventory: int = 0
    outcomes: list[DeviceSyncOutcome] = field(default_factory=list)
    user_warnings: list[UserWarning] = field(default_factory=list)
    run_warnings: list[str] = field(default_factory=list)
    fatal_error: str | None = None

    def record(self, outcome: DeviceSyncOutcome) -> None:
        self.outcomes.append(outcome)

    def warn_user(self, user_id: str, message: str) -> None:
        self.user_warnings.append(UserWarning(user_id=user_id, message=message))

    def warn_run(self, message: str) -> None:
        self.run_warnings.append(message)

    def outcomes_with(self, outcome: DeviceOutcome) -> list[DeviceSyncOutcome]:
        return [o for o in self.outcomes if o.outcome is outcome]

    def counts(self) -> dict[str, int]:
        counter = Counter(o.outcome for o in self.outcomes)
        return {outcome.value: counter.get(outcome, 0) for outcome in DeviceOutcome}

    @property
    def devices_added(self) -> int:
        return len(self.outcomes_with(DeviceOutcome.ADDED))

    @property
    def has_failures(self) -> bool:
        return self.fatal_error is not None or any(o.outcome is DeviceOutcome.ADD_FAILED for o in self.outcomes)

    @property
    def has_warnings(self) -> bool:
        return bool(self.user_warnings or self.run_warnings)

    @property
    def duration_ms(self) -> int | None:
        if not self.end_time:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def log_start(self) -> None:
        logger.info(
            "Device sync operation started",
            extra={
                "operation": "sync_start",
                "start_time": self.start_time.isoformat(),
                "source_user_group_id": self.source_user_group_id,
                "target_device_group_id": self.target_device_group_id,
            },
        )

    def log_completion(self) -> None:
        logger.info(
            "Device sync operation completed",
            extra={
                "operation": "sync_complete",
                "start_time": self.start_time.isoformat(),
                "end_time": self.end_time.isoformat() if self.end_time else None,
                "duration_ms": self.duration_ms,
                "success": self.success,
                "users_evaluated": self.users_evaluated,
                "managed_devices_in_inventory": self.managed_devices_in_inventory,
                "devices_processed": len(self.outcomes),
                "outcomes": self.counts(),
                "user_warnings": len(self.user_warnings),
                "run_warnings": self.run_warnings,
                "fatal_error": self.fatal_error,
            },
        )

    def to_dict(self) -> dict:
        return {
            "source_user_group_id": self.source_user_group_id,
            "target_device_group_id": self.target_device_group_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "success": self.success,
            "fatal_error": self.fatal_error,
            "users_evaluated": self.users_evaluated,
            "managed_devices_in_inventory": self.managed_devices_in_inventory,
            "counts": self.counts(),
            "user_warnings": [{"user_id": w.user_id, "message": w.message} for w in self.user_warnings],
            "run_warnings": list(self.run_warnings),
            "outcomes": [
                {
                    "user_id": o.user_id,
                    "device_name": o.device_name,
                    "record_source": o.record_source,
                    "outcome": o.outcome.value,
                    "canonical_device_id": o.canonical_device_id,
                    "directory_object_id": o.directory_object_id,
                    "detail": o.detail,
                    "ambiguous_matches": o.ambiguous_matches,
                }
                for o in self.outcomes
            ],
        }
