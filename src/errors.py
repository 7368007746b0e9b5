from typing import Optional


class DeviceSyncError(Exception):
    ...


class FatalSyncError(DeviceSyncError):
    """Stops the whole run."""


class SourceEmpty(FatalSyncError):
    ...


class DirectoryUnavailable(FatalSyncError):
    ...


class DeviceOutcomeError(DeviceSyncError):
    """Stops processing of a single device record only."""


class UnresolvableDeviceIdentity(DeviceOutcomeError):
    ...


class DirectoryObjectNotFound(DeviceOutcomeError):
    ...


class GraphRequestError(DeviceSyncError):
    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __str__(self) -> str:
        parts = [str(self.status_code)] if self.status_code is not None else []
        if self.code:
            parts.append(self.code)
        prefix = " ".join(parts)
        return f"{prefix}: {self.message}" if prefix else self.message
