"""Yahoo! YOLP local search."""

from __future__ import annotations

from teppen.models.enums import ProviderErrorCode, ProviderType
from teppen.providers.base import ProviderAdapter
from teppen.providers.errors import ProviderError
from teppen.providers.types import ProviderCapabilities, ProviderSearchInput, ProviderSearchResult
from teppen.utils.http import request_json

LOCAL_SEARCH_ENDPOINT = "https://map.yahooapis.jp/search/local/V1/localSearch"


def parse_coordinates(raw: str | None) -> tuple[float | None, float | None]:
    """YOLP coordinates are ``"lng,lat"``. Returns (lat, lng)."""
    if not raw:
        return None, None
    lng_raw, _, lat_raw = raw.partition(",")
    try:
        return float(lat_raw), float(lng_raw)
    except ValueError:
        return None, None


class YahooYolpAdapter(ProviderAdapter):
    provider_type = ProviderType.YAHOO_YOLP
    display_name = "Yahoo! YOLP"
    capabilities = ProviderCapabilities(can_search_places=True)
    required_settings = ("yahoo_yolp_app_id",)

    async def search_places(self, search: ProviderSearchInput) -> list[ProviderSearchResult]:
        if self.mock_mode:
            return [
                ProviderSearchResult(
                    id="yolp-1",
                    name="モックラーメン",
                    address="東京都目黒区中目黒4-4-4",
                    lat=35.6443,
                    lng=139.699,
                )
            ]

        if not self.settings.yahoo_yolp_app_id:
            raise ProviderError(
                self.provider_type,
                ProviderErrorCode.NOT_CONFIGURED,
                "Yahoo! YOLPのApp IDが未設定です",
            )

        data = await request_json(
            LOCAL_SEARCH_ENDPOINT,
            params={
                "appid": self.settings.yahoo_yolp_app_id,
                "query": search.query,
                "output": "json",
                "results": search.limit,
            },
            client=self.client,
        ) or {}

        results = []
        for feature in data.get("Feature") or []:
            lat, lng = parse_coordinates((feature.get("Geometry") or {}).get("Coordinates"))
            results.append(
                ProviderSearchResult(
                    id=feature["Id"],
                    name=feature["Name"],
                    address=(feature.get("Property") or {}).get("Address"),
                    lat=lat,
                    lng=lng,
                    raw=feature,
                )
            )
        return results
