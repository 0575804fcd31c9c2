import logging
from collections.abc import Sequence

import httpx

from app.core.config import settings
from app.platform.ports.catalog import CatalogSourcePort

logger = logging.getLogger(__name__)


class StaticCatalogSource(CatalogSourcePort):
    """Catalogs held in memory; None means "not loaded yet"."""

    def __init__(self, staff: Sequence[dict] | None = None, roles: Sequence[dict] | None = None, departments: Sequence[dict] | None = None):
        self._staff = list(staff) if staff is not None else None
        self._roles = list(roles) if roles is not None else None
        self._departments = list(departments) if departments is not None else None

    def load(self, *, staff=None, roles=None, departments=None):
        if staff is not None:
            self._staff = list(staff)
        if roles is not None:
            self._roles = list(roles)
        if departments is not None:
            self._departments = list(departments)

    async def staff(self) -> list[dict] | None:
        return self._staff

    async def roles(self) -> list[dict] | None:
        return self._roles

    async def departments(self) -> list[dict] | None:
        return self._departments


class RemoteCatalogSource(CatalogSourcePort):
    """Catalogs served by the legacy backend. Unreachable means unavailable."""

    def __init__(self, client: httpx.AsyncClient | None = None, base_url: str | None = None):
        self.client = client or httpx.AsyncClient(
            base_url=base_url or settings.UPSTREAM_API_URL,
            timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        )

    async def _fetch(self, path: str) -> list[dict] | None:
        try:
            response = await self.client.get(path)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Catalog {path} unavailable: {e}")
            return None
        payload = response.json()
        if isinstance(payload, dict) and "data" in payload:
            payload = payload["data"]
        if not isinstance(payload, list):
            logger.warning(f"Unexpected {path} payload of type {type(payload).__name__}")
            return None
        return payload

    async def staff(self) -> list[dict] | None:
        return await self._fetch("/staff")

    async def roles(self) -> list[dict] | None:
        return await self._fetch("/roles")

    async def departments(self) -> list[dict] | None:
        return await self._fetch("/departments")

    async def close(self):
        await self.client.aclose()
