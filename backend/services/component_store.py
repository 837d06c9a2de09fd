"""
Component library client.

Global components (site header/footer and saved content components) live
in an external service. Records are {id, name, html, position, isDefault}.
"""

from __future__ import annotations

import logging

import httpx

from engine.kernel.types import GlobalComponent

logger = logging.getLogger(__name__)


class ComponentServiceError(Exception):
    """The component service could not be reached or answered with an error."""


class ComponentStore:
    """Abstract component library."""

    async def for_site(self, site_id: str) -> list[GlobalComponent]:
        raise NotImplementedError

    async def create(self, site_id: str, component: GlobalComponent) -> GlobalComponent:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class MemoryComponentStore(ComponentStore):
    """In-memory component library for development and tests."""

    def __init__(self) -> None:
        self.components: dict[str, list[GlobalComponent]] = {}

    async def for_site(self, site_id: str) -> list[GlobalComponent]:
        return list(self.components.get(site_id, []))

    async def create(self, site_id: str, component: GlobalComponent) -> GlobalComponent:
        self.components.setdefault(site_id, []).append(component)
        return component


class HttpComponentStore(ComponentStore):
    """
    Component library over HTTP.

    GET  {base_url}/sites/{site_id}/global-components  -> {"data": [record, ...]}
    POST {base_url}/sites/{site_id}/global-components  -> {"data": record}
    """

    def __init__(self, base_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def for_site(self, site_id: str) -> list[GlobalComponent]:
        data = await self._request("GET", f"/sites/{site_id}/global-components")
        if not isinstance(data, list):
            raise ComponentServiceError("component list is not a list")
        return [GlobalComponent.from_record(record) for record in data]

    async def create(self, site_id: str, component: GlobalComponent) -> GlobalComponent:
        data = await self._request("POST", f"/sites/{site_id}/global-components", json=component.to_record())
        return GlobalComponent.from_record(data)

    async def _request(self, method: str, path: str, **kwargs):
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("component service %s %s failed: %s", method, path, e)
            raise ComponentServiceError(str(e)) from e
        try:
            body = response.json()
        except ValueError as e:
            raise ComponentServiceError(f"undecodable response from {path}") from e
        return body.get("data") if isinstance(body, dict) else body

    async def close(self) -> None:
        await self.client.aclose()
