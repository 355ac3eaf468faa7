# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

import logging
import os
from typing import Any, List, Optional

import httpx

from tabflip.config import DEFAULT_HOST_URL, HOST_BUSY_STATUS_CODES, HOST_REQUEST_TIMEOUT
from tabflip.error_handler import HostBusyError, HostError, is_busy_message
from tabflip.host import HostContainer, HostInterface

logger = logging.getLogger(__name__)


class HttpHostClient(HostInterface):
    """
    Talks to the browser-side bridge over HTTP.

    Endpoints:
        GET  /windows                -> [{"id", "type", "tabs": [{"id", "active", "index"}]}]
        GET  /windows/{id}           -> one window, 404 if it is gone
        POST /tabs/{id}/move         {"index": int}
        POST /tabs/{id}/activate
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or os.getenv("TABFLIP_HOST_URL", DEFAULT_HOST_URL)
        if timeout is None:
            timeout_str = os.getenv("TABFLIP_HOST_TIMEOUT", str(HOST_REQUEST_TIMEOUT))
            try:
                timeout = float(timeout_str)
            except ValueError:
                logger.warning(
                    f"Invalid TABFLIP_HOST_TIMEOUT '{timeout_str}'. "
                    f"Falling back to {HOST_REQUEST_TIMEOUT}s."
                )
                timeout = HOST_REQUEST_TIMEOUT
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise HostError(f"{method} {path} failed: {e}") from e

        if response.is_success:
            return response

        detail = response.text
        if response.status_code in HOST_BUSY_STATUS_CODES or is_busy_message(detail):
            raise HostBusyError(
                f"{method} {path} rejected: {detail}", status_code=response.status_code
            )
        raise HostError(
            f"{method} {path} returned {response.status_code}: {detail}",
            status_code=response.status_code,
        )

    async def query_containers(self) -> List[HostContainer]:
        response = await self._request("GET", "/windows")
        try:
            return [HostContainer.model_validate(raw) for raw in response.json()]
        except ValueError as e:
            raise HostError(f"Invalid window list from host: {e}") from e

    async def query_container(self, container_id: int) -> Optional[HostContainer]:
        try:
            response = await self._request("GET", f"/windows/{container_id}")
        except HostError as e:
            if e.status_code == 404:
                return None
            raise
        try:
            return HostContainer.model_validate(response.json())
        except ValueError as e:
            raise HostError(f"Invalid window {container_id} from host: {e}") from e

    async def move_item(self, item_id: int, index: int) -> None:
        await self._request("POST", f"/tabs/{item_id}/move", json={"index": index})

    async def activate_item(self, item_id: int) -> None:
        await self._request("POST", f"/tabs/{item_id}/activate")

    async def close(self) -> None:
        await self._client.aclose()
        logger.debug("Host client closed")
