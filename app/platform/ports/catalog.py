from typing import Protocol, runtime_checkable

@runtime_checkable
class CatalogSourcePort(Protocol):
    """Read-only staff / role / department catalogs.

    Each method returns the raw records, or None while the catalog is not yet
    available.
    """
    async def staff(self) -> list[dict] | None: ...
    async def roles(self) -> list[dict] | None: ...
    async def departments(self) -> list[dict] | None: ...
