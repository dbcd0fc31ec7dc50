"""Bing Maps place search."""

from __future__ import annotations

from teppen.models.enums import ProviderErrorCode, ProviderType
from teppen.providers.base import ProviderAdapter
from teppen.providers.errors import ProviderError
from teppen.providers.types import ProviderCapabilities, ProviderSearchInput, ProviderSearchResult
from teppen.utils.http import request_json

LOCATIONS_ENDPOINT = "https://dev.virtualearth.net/REST/v1/Locations"


class BingMapsAdapter(ProviderAdapter):
    provider_type = ProviderType.BING_MAPS
    display_name = "Bing Maps"
    capabilities = ProviderCapabilities(can_search_places=True)
    required_settings = ("bing_maps_key",)

    async def search_places(self, search: ProviderSearchInput) -> list[ProviderSearchResult]:
        if self.mock_mode:
            return [
                ProviderSearchResult(
                    id="bing-1",
                    name="モック喫茶",
                    address="東京都中央区銀座2-2-2",
                    lat=35.6717,
                    lng=139.765,
                )
            ]

        if not self.settings.bing_maps_key:
            raise ProviderError(
                self.provider_type,
                ProviderErrorCode.NOT_CONFIGURED,
                "Bing MapsのAPIキーが未設定です",
            )

        data = await request_json(
            LOCATIONS_ENDPOINT,
            params={
                "q": search.query,
                "maxResults": search.limit,
                "key": self.settings.bing_maps_key,
            },
            client=self.client,
        ) or {}
        resource_sets = data.get("resourceSets") or [{}]
        resources = resource_sets[0].get("resources") or []

        results = []
        for resource in resources:
            coordinates = (resource.get("point") or {}).get("coordinates") or [None, None]
            results.append(
                ProviderSearchResult(
                    id=resource.get("entityId") or resource["name"],
                    name=resource["name"],
                    address=(resource.get("address") or {}).get("formattedAddress"),
                    lat=coordinates[0],
                    lng=coordinates[1] if len(coordinates) > 1 else None,
                    raw=resource,
                )
            )
        return results
