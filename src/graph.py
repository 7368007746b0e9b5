"""Thin Microsoft Graph client for the directory calls the device sync needs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator, Optional

import requests
from azure.core.exceptions import AzureError

import config
import errors

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential

logger = config.get_logger(service="graph")

GRAPH_SCOPE = "https://graph.microsoft.com/.default"

MANAGED_DEVICE_FIELDS = ("id", "deviceName", "userId", "azureADDeviceId")
REGISTERED_DEVICE_FIELDS = ("id", "deviceId", "displayName")
DEVICE_OBJECT_FIELDS = ("id", "deviceId", "displayName")


def _quote_odata_literal(value: str) -> str:
    return value.replace("'", "''")


def _error_from_response(response: requests.Response) -> errors.GraphRequestError:
    code = None
    message = response.reason or "Graph request failed"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        code = body["error"].get("code")
        message = body["error"].get("message") or message
    return errors.GraphRequestError(message, status_code=response.status_code, code=code)


class GraphClient:
    def __init__(
        self,
        credential: TokenCredential,
        base_url: str = config.GRAPH_BASE_URL,
        timeout_seconds: int = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._credential = credential
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        token = self._credential.get_token(GRAPH_SCOPE)
        return {
            "Authorization": f"Bearer {token.token}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:  # noqa: ANN401
        if not url.startswith("http"):
            url = f"{self._base_url}{url}"
        try:
            headers = self._headers()
        except AzureError as e:
            raise errors.GraphRequestError(f"Failed to acquire Graph access token: {e}") from e
        try:
            response = self._session.request(method, url, headers=headers, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise errors.GraphRequestError(f"{method} {url} failed: {e}") from e
        if not response.ok:
            raise _error_from_response(response)
        return response

    def _paginate(self, path: str, params: Optional[dict[str, str]] = None) -> Iterator[dict]:
        url: Optional[str] = path
        while url:
            response = self._request("GET", url, params=params)
            try:
                data = response.json()
            except ValueError as e:
                raise errors.GraphRequestError("Invalid JSON in Graph response", status_code=response.status_code) from e
            yield from data.get("value", [])
            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None

    def list_group_members(self, group_id: str) -> list[dict]:
        members = list(self._paginate(f"/groups/{group_id}/members", params={"$select": "id"}))
        logger.debug(f"Fetched {len(members)} members of group {group_id}")
        return members

    def list_managed_devices(self) -> list[dict]:
        devices = list(self._paginate("/deviceManagement/managedDevices", params={"$select": ",".join(MANAGED_DEVICE_FIELDS)}))
        logger.info(f"Fetched {len(devices)} managed devices")
        return devices

    def list_user_registered_objects(self, user_id: str) -> list[dict]:
        return list(self._paginate(f"/users/{user_id}/registeredDevices", params={"$select": ",".join(REGISTERED_DEVICE_FIELDS)}))

    def find_device_objects(self, canonical_device_id: str) -> list[dict]:
        params = {
            "$filter": f"deviceId eq '{_quote_odata_literal(canonical_device_id)}'",
            "$select": ",".join(DEVICE_OBJECT_FIELDS),
        }
        return list(self._paginate("/devices", params=params))

    def add_group_member_by_ref(self, group_id: str, directory_object_id: str) -> None:
        self._request(
            "POST",
            f"/groups/{group_id}/members/$ref",
            json={"@odata.id": f"{self._base_url}/directoryObjects/{directory_object_id}"},
        )
