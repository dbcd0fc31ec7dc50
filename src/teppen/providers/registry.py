"""Provider registry: maps each provider type to its adapter instance.

The mapping is fixed at import time; adapters are instantiated per registry
with the injected settings and (optionally) a shared HTTP client.
"""

from __future__ import annotations

import importlib

import httpx

from teppen.config import Settings
from teppen.models.enums import ProviderType
from teppen.providers.base import ProviderAdapter

AVAILABLE_PROVIDERS: dict[ProviderType, str] = {
    ProviderType.GOOGLE_BUSINESS_PROFILE: "teppen.providers.google_gbp.GoogleBusinessProfileAdapter",
    ProviderType.META: "teppen.providers.meta.MetaAdapter",
    ProviderType.YAHOO_PLACE: "teppen.providers.partner_only.YahooPlaceAdapter",
    ProviderType.APPLE_BUSINESS_CONNECT: "teppen.providers.partner_only.AppleBusinessConnectAdapter",
    ProviderType.BING_MAPS: "teppen.providers.bing_maps.BingMapsAdapter",
    ProviderType.YAHOO_YOLP: "teppen.providers.yahoo_yolp.YahooYolpAdapter",
}


def import_adapter(dotted_path: str) -> type[ProviderAdapter]:
    """Import an adapter class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


class ProviderRegistry:
    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.settings = settings
        self._adapters: dict[ProviderType, ProviderAdapter] = {
            provider: import_adapter(path)(settings, client=client)
            for provider, path in AVAILABLE_PROVIDERS.items()
        }

    def get(self, provider: ProviderType | str) -> ProviderAdapter:
        """Return the adapter for ``provider``. Raises ValueError on unknown types."""
        return self._adapters[ProviderType(provider)]

    def all(self) -> list[ProviderAdapter]:
        return list(self._adapters.values())
