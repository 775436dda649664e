"""Central registry for provider types (upload targets, navigators)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from chatexport.core.errors import UnsupportedFormat

log = logging.getLogger(__name__)


@dataclass
class ProviderEntry:
    """Metadata about a registered provider."""

    family: str  # "target", "navigator"
    name: str  # "notion", "gdrive", "playwright"
    cls: type
    extras: list[str] = field(default_factory=list)  # pip extras needed


class ProviderRegistry:
    """Central registry for all provider types."""

    def __init__(self) -> None:
        self._providers: dict[str, dict[str, ProviderEntry]] = {}

    def register(
        self,
        family: str,
        name: str,
        cls: type,
        extras: list[str] | None = None,
    ) -> None:
        """Register a provider class under a family."""
        self._providers.setdefault(family, {})[name] = ProviderEntry(
            family=family, name=name, cls=cls, extras=extras or []
        )
        log.debug("Registered provider: %s/%s", family, name)

    def get_entry(self, family: str, name: str) -> ProviderEntry:
        """Get a ProviderEntry without instantiating."""
        fam = self._providers.get(family)
        if fam is None:
            raise UnsupportedFormat(f"Unknown provider family: {family!r}")
        entry = fam.get(name)
        if entry is None:
            raise UnsupportedFormat(f"Unknown provider: {family}/{name!r}")
        return entry

    def get(self, family: str, name: str, config: dict | None = None) -> object:
        """Instantiate a provider by family and name."""
        entry = self.get_entry(family, name)
        if config is not None:
            return entry.cls(config)
        return entry.cls()

    def list_family(self, family: str) -> list[ProviderEntry]:
        return list(self._providers.get(family, {}).values())

    def families(self) -> list[str]:
        return list(self._providers.keys())


def _build_default() -> ProviderRegistry:
    from chatexport.providers.navigator.playwright import PlaywrightNavigator
    from chatexport.providers.targets.gdrive import GDriveTarget
    from chatexport.providers.targets.notion import NotionTarget
    from chatexport.providers.targets.onedrive import OneDriveTarget

    reg = ProviderRegistry()
    reg.register("target", "notion", NotionTarget)
    reg.register("target", "gdrive", GDriveTarget)
    reg.register("target", "onedrive", OneDriveTarget)
    reg.register("navigator", "playwright", PlaywrightNavigator, extras=["browser"])
    return reg


# Global singleton
registry = _build_default()
