import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx

from .config import Config
from .errors import TransportError, extract_error_detail
from .models import DirectoryEntry, Instance, TelemetrySample

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Raised by the from_api_response constructors on bodies of the wrong shape
PAYLOAD_ERRORS = (AttributeError, KeyError, TypeError, ValueError)


class PanelClient:
    """
    An asynchronous HTTP client for the panel's client API.

    Every failure, whether the request never reached the panel or the panel
    answered with an error status, is raised as TransportError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initializes the asynchronous HTTP client.

        Args:
            base_url: Panel URL; defaults to SERVERDASH_PANEL_URL
            api_key: Client API key; defaults to SERVERDASH_API_KEY
            timeout: Request timeout in seconds; defaults to SERVERDASH_HTTP_TIMEOUT
        """
        self.base_url = (base_url or Config.get_panel_url()).rstrip("/")
        self.api_key = api_key if api_key is not None else Config.get_api_key()

        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout if timeout is not None else Config.get_http_timeout()),
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Issue a request against the client API and decode the JSON body.

        Raises:
            TransportError: On connection errors and 4xx/5xx responses
        """
        url = f"/api/client{path}"
        try:
            response = await self.client.request(method, url, params=params, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = extract_error_detail(e.response)
            error_message = str(e)
            if detail:
                error_message = f"{error_message} - {detail}"
            logger.error(f"PanelClient: {method} {url} failed: {error_message}")
            raise TransportError(
                error_message, status_code=e.response.status_code, detail=detail
            ) from e
        except httpx.RequestError as e:
            logger.error(f"PanelClient: {method} {url} failed: {e}")
            raise TransportError(f"Unable to reach the panel: {e}") from e

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                f"Invalid JSON returned for {method} {url}", status_code=response.status_code
            ) from e

    def _parse(self, what: str, parser: Callable[[Any], T], data: Any) -> T:
        """
        Convert a decoded body into models.

        Raises:
            TransportError: If the body does not have the expected shape
        """
        try:
            return parser(data)
        except PAYLOAD_ERRORS as e:
            logger.error(f"PanelClient: Malformed {what} response: {e!r}")
            raise TransportError(f"Malformed {what} response from the panel: {e}") from e

    async def get_server(self, server_uuid: str) -> Instance:
        """Load a server with its limits and allocations."""
        logger.info(f"PanelClient: Loading server {server_uuid}")
        data = await self._request("GET", f"/servers/{server_uuid}")
        return self._parse("server", Instance.from_api_response, data or {})

    async def get_resource_usage(self, server_uuid: str) -> TelemetrySample:
        """
        Fetch the current resource usage of a server.

        Args:
            server_uuid: The server to query

        Returns:
            A TelemetrySample with cpu, memory and disk usage.
        """
        data = await self._request("GET", f"/servers/{server_uuid}/resources")
        return self._parse("resource usage", TelemetrySample.from_api_response, data or {})

    async def list_directory(self, server_uuid: str, directory: str) -> List[DirectoryEntry]:
        """
        List the contents of a directory on the server.

        Args:
            server_uuid: The server to query
            directory: Normalized directory path

        Returns:
            The entries in the order the panel returned them.
        """
        data = await self._request(
            "GET", f"/servers/{server_uuid}/files/list", params={"directory": directory}
        )
        return self._parse(
            "directory listing",
            lambda body: [DirectoryEntry.from_api_response(item) for item in body.get("data") or []],
            data or {},
        )

    async def rename_entry(self, server_uuid: str, rename_from: str, rename_to: str) -> None:
        """Rename or move a file; both paths are full paths on the server."""
        await self._request(
            "PUT",
            f"/servers/{server_uuid}/files/rename",
            payload={"rename_from": rename_from, "rename_to": rename_to},
        )

    async def copy_entry(self, server_uuid: str, location: str) -> None:
        """Ask the panel to duplicate a file next to itself."""
        await self._request(
            "POST", f"/servers/{server_uuid}/files/copy", payload={"location": location}
        )

    async def delete_entry(self, server_uuid: str, location: str) -> None:
        await self._request(
            "POST", f"/servers/{server_uuid}/files/delete", payload={"location": location}
        )

    async def get_download_url(self, server_uuid: str, file_path: str) -> str:
        """
        Request a short-lived, signed download URL for a file.

        Returns:
            The URL the browser (or any HTTP client) can retrieve the file from.
        """
        data = await self._request(
            "GET", f"/servers/{server_uuid}/files/download", params={"file": file_path}
        )
        url = self._parse(
            "download", lambda body: (body.get("attributes") or {}).get("url"), data or {}
        )
        if not url:
            raise TransportError("Panel did not return a download URL")
        return url

    async def close(self):
        """
        Closes the HTTP client session.
        """
        await self.client.aclose()
