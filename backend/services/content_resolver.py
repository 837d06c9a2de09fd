"""
Content placeholder resolution.

Asks the content service to render each {{#entries:...}} / {{entries:...}}
token of a page. The canonical document keeps the tokens; resolved markup
only goes into realm documents (engine.kernel.entries.substitute).

A token the service cannot resolve stays a token in the realm. Resolution
failures are logged, never raised into the editing session.
"""

from __future__ import annotations

import logging

import httpx

from engine.kernel.entries import find_placeholders

logger = logging.getLogger(__name__)


class ContentResolver:
    """
    POST {base_url}/sites/{site_id}/preview/resolve-entries {"html": token}
        -> {"html": resolved, "resolved": true}
    """

    def __init__(self, base_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.enabled = bool(base_url)
        self.client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def resolve(self, site_id: str | None, document: str) -> dict[str, str]:
        """Map of token -> resolved markup for every placeholder in document."""
        placeholders = find_placeholders(document)
        if not placeholders or not self.enabled or not site_id:
            return {}

        resolved: dict[str, str] = {}
        for placeholder in placeholders:
            if placeholder.token in resolved:
                continue
            markup = await self._resolve_one(site_id, placeholder.token)
            if markup is not None:
                resolved[placeholder.token] = markup
        logger.info("content_resolver: resolved %d/%d placeholders for site %s", len(resolved), len(placeholders), site_id)
        return resolved

    async def _resolve_one(self, site_id: str, token: str) -> str | None:
        try:
            response = await self.client.post(f"/sites/{site_id}/preview/resolve-entries", json={"html": token})
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("content_resolver: %r failed: %s", token[:80], e)
            return None
        if not isinstance(body, dict) or not body.get("resolved"):
            return None
        markup = body.get("html")
        if not isinstance(markup, str) or markup == token:
            return None
        return markup

    async def close(self) -> None:
        await self.client.aclose()
