from typing import Literal, Optional, Union

from pydantic import Field

from .model import BaseModel

DEVICE_ODATA_TYPE = "#microsoft.graph.device"
USER_ODATA_TYPE = "#microsoft.graph.user"


class ManagedDeviceRecord(BaseModel):
    """Intune managed device, as listed by /deviceManagement/managedDevices."""

    source: Literal["inventory"] = "inventory"
    id: Optional[str] = None
    device_name: Optional[str] = Field(default=None, alias="deviceName")
    user_id: Optional[str] = Field(default=None, alias="userId")
    azure_ad_device_id: Optional[str] = Field(default=None, alias="azureADDeviceId")

    @property
    def display_name(self) -> str:
        return self.device_name or ""


class RegisteredDeviceRecord(BaseModel):
    """Object registered by a user, as listed by /users/{id}/registeredDevices."""

    source: Literal["registration"] = "registration"
    id: Optional[str] = None
    odata_type: Optional[str] = Field(default=None, alias="@odata.type")
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    name: Optional[str] = Field(default=None, alias="displayName")

    @property
    def display_name(self) -> str:
        return self.name or ""

    @property
    def is_device(self) -> bool:
        return self.odata_type == DEVICE_ODATA_TYPE


# Tagged by the `source` literal
DeviceRecord = Union[ManagedDeviceRecord, RegisteredDeviceRecord]


class DirectoryDeviceObject(BaseModel):
    """Device object in the directory. `id` is the object id used for group membership."""

    id: str
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    display_name: Optional[str] = Field(default=None, alias="displayName")
