"""Provider adapter and registry tests."""

import json

import httpx
import pytest

from teppen.models.enums import ProviderErrorCode, ProviderStatusKind, ProviderType
from teppen.providers.errors import ProviderError, provider_error_status, to_provider_error, to_ui_error
from teppen.providers.google_gbp import GoogleBusinessProfileAdapter
from teppen.providers.google_gbp.api import (
    extract_review_id,
    format_address,
    list_google_reviews,
    map_google_api_error,
    map_star_rating,
)
from teppen.providers.google_gbp.oauth import (
    build_auth_url,
    map_google_callback_error,
    map_google_oauth_error,
)
from teppen.providers.registry import ProviderRegistry
from teppen.providers.types import ProviderCreatePostInput, ProviderRequestContext, ProviderSearchInput
from teppen.providers.yahoo_yolp import parse_coordinates
from teppen.services.provider_status import list_provider_status
from teppen.utils.http import HttpError

from conftest import make_settings

GBP = ProviderType.GOOGLE_BUSINESS_PROFILE


def test_registry_has_every_provider(registry):
    assert {adapter.provider_type for adapter in registry.all()} == set(ProviderType)
    assert registry.get("google_gbp").provider_type == GBP


def test_registry_rejects_unknown_provider(registry):
    with pytest.raises(ValueError):
        registry.get("myspace")


def test_capability_checks(registry):
    gbp = registry.get(GBP)
    assert gbp.supports("can_read_reviews")
    assert not gbp.supports("can_search_places")
    assert registry.get(ProviderType.BING_MAPS).supports("can_search_places")


@pytest.mark.asyncio
async def test_unsupported_operation_raises_not_supported(registry):
    bing = registry.get(ProviderType.BING_MAPS)
    with pytest.raises(ProviderError) as excinfo:
        await bing.list_reviews(ProviderRequestContext(organization_id="org-1"))
    assert excinfo.value.code == ProviderErrorCode.NOT_SUPPORTED
    assert provider_error_status(excinfo.value) == 400


@pytest.mark.asyncio
async def test_mock_fixtures(registry):
    context = ProviderRequestContext(organization_id="org-1", external_location_id="locations/1")
    gbp = registry.get(GBP)

    reviews = await gbp.list_reviews(context)
    assert reviews[0].id == "mock-review-locations/1"
    assert reviews[0].rating == 4.5

    locations = await gbp.list_locations(context)
    assert locations[0].id == "google-location-1"

    post = await gbp.create_post(context, ProviderCreatePostInput(content="本日のおすすめ"))
    assert post.id == "post-1"

    bing = await registry.get(ProviderType.BING_MAPS).search_places(ProviderSearchInput(query="cafe"))
    assert bing[0].name == "モック喫茶"
    yolp = await registry.get(ProviderType.YAHOO_YOLP).search_places(ProviderSearchInput(query="ramen"))
    assert yolp[0].id == "yolp-1"


@pytest.mark.asyncio
async def test_mock_oauth_callbacks(registry):
    google = await registry.get(GBP).handle_oauth_callback("code")
    assert google.access_token == "mock-google-access"
    meta = await registry.get(ProviderType.META).handle_oauth_callback("code")
    assert meta.external_account_id == "mock-meta-user"


@pytest.mark.asyncio
async def test_live_search_without_key_is_not_configured():
    registry = ProviderRegistry(make_settings(provider_mock_mode=False))
    with pytest.raises(ProviderError) as excinfo:
        await registry.get(ProviderType.BING_MAPS).search_places(ProviderSearchInput(query="cafe"))
    assert excinfo.value.code == ProviderErrorCode.NOT_CONFIGURED


@pytest.mark.asyncio
async def test_live_yolp_search_parses_features():
    def handler(request):
        assert request.url.params["appid"] == "yolp-app"
        return httpx.Response(
            200,
            json={
                "Feature": [
                    {
                        "Id": "f-1",
                        "Name": "中目黒ラーメン",
                        "Geometry": {"Coordinates": "139.699,35.6443"},
                        "Property": {"Address": "東京都目黒区"},
                    }
                ]
            },
        )

    settings = make_settings(provider_mock_mode=False, yahoo_yolp_app_id="yolp-app")
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        registry = ProviderRegistry(settings, client=client)
        results = await registry.get(ProviderType.YAHOO_YOLP).search_places(
            ProviderSearchInput(query="ラーメン", limit=3)
        )
    assert results[0].name == "中目黒ラーメン"
    assert (results[0].lat, results[0].lng) == (35.6443, 139.699)


@pytest.mark.asyncio
async def test_partner_only_providers_cannot_connect():
    registry = ProviderRegistry(make_settings(yahoo_place_enabled=True))
    with pytest.raises(ProviderError) as excinfo:
        await registry.get(ProviderType.YAHOO_PLACE).get_auth_url("state")
    assert excinfo.value.code == ProviderErrorCode.NOT_SUPPORTED


def test_parse_coordinates():
    assert parse_coordinates("139.7,35.6") == (35.6, 139.7)
    assert parse_coordinates(None) == (None, None)
    assert parse_coordinates("garbage") == (None, None)


def test_google_helpers():
    assert map_star_rating("FOUR") == 4.0
    assert map_star_rating(3) == 3.0
    assert map_star_rating(None) == 0.0
    assert format_address({"addressLines": ["渋谷1-2-3"], "locality": "渋谷区", "administrativeArea": "東京都"}) == (
        "渋谷1-2-3 渋谷区 東京都"
    )
    assert format_address(None) is None
    assert extract_review_id({"name": "accounts/1/locations/2/reviews/abc"}) == "abc"
    assert extract_review_id({"reviewId": "xyz"}) == "xyz"


@pytest.mark.parametrize(
    "status, code",
    [
        (401, ProviderErrorCode.AUTH_REQUIRED),
        (403, ProviderErrorCode.AUTH_REQUIRED),
        (429, ProviderErrorCode.RATE_LIMITED),
        (503, ProviderErrorCode.UPSTREAM_ERROR),
        (400, ProviderErrorCode.UNKNOWN),
    ],
)
def test_map_google_api_error(status, code):
    error = map_google_api_error(HttpError(status, "{}"), "fallback")
    assert error.code == code
    assert error.status == (None if code == ProviderErrorCode.UNKNOWN else status)


def test_map_google_oauth_errors():
    def body(**kwargs):
        return HttpError(400, json.dumps(kwargs))

    assert "認可コードが無効" in map_google_oauth_error(body(error="invalid_grant"))
    assert "リダイレクトURI" in map_google_oauth_error(body(error="redirect_uri_mismatch"))
    assert "クライアントID" in map_google_oauth_error(body(error="invalid_client"))
    assert "scope bad" in map_google_oauth_error(body(error="other", error_description="scope bad"))
    assert map_google_oauth_error(HttpError(500, "<html>")) == "認証に失敗しました。もう一度接続してください。"
    assert "拒否" in map_google_callback_error("access_denied")


def test_build_auth_url_requires_credentials():
    with pytest.raises(ProviderError) as excinfo:
        build_auth_url(make_settings(), "state")
    assert excinfo.value.code == ProviderErrorCode.NOT_CONFIGURED

    url = build_auth_url(
        make_settings(google_client_id="cid", google_client_secret="secret", app_base_url="https://app.test"),
        "signed-state",
    )
    assert "access_type=offline" in url
    assert "prompt=consent" in url
    assert "state=signed-state" in url
    assert "redirect_uri=https%3A%2F%2Fapp.test%2Fapi%2Fv1%2Fproviders%2Fgoogle_gbp%2Fcallback" in url


@pytest.mark.asyncio
async def test_list_google_reviews_follows_pages():
    pages = {
        None: {"reviews": [{"reviewId": "r1", "starRating": "FIVE"}], "nextPageToken": "p2"},
        "p2": {"reviews": [{"name": "x/reviews/r2", "starRating": "TWO", "comment": "遅い"}]},
    }

    def handler(request):
        assert request.headers["Authorization"] == "Bearer tok"
        return httpx.Response(200, json=pages[request.url.params.get("pageToken")])

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        reviews = await list_google_reviews("tok", "accounts/1/locations/2", client=client)

    assert [(r.id, r.rating) for r in reviews] == [("r1", 5.0), ("r2", 2.0)]


@pytest.mark.asyncio
async def test_list_google_reviews_maps_rate_limit():
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(429, text="slow down"))
    ) as client:
        with pytest.raises(ProviderError) as excinfo:
            await list_google_reviews("tok", "accounts/1/locations/2", client=client)
    assert excinfo.value.code == ProviderErrorCode.RATE_LIMITED


@pytest.mark.asyncio
async def test_live_adapter_requires_token():
    adapter = GoogleBusinessProfileAdapter(make_settings(provider_mock_mode=False))
    with pytest.raises(ProviderError) as excinfo:
        await adapter.list_reviews(ProviderRequestContext(organization_id="org-1", external_location_id="l/1"))
    assert excinfo.value.code == ProviderErrorCode.AUTH_REQUIRED


def test_to_provider_error_and_ui_error():
    wrapped = to_provider_error(GBP, RuntimeError("kaboom"))
    assert wrapped.code == ProviderErrorCode.UNKNOWN
    assert wrapped.message == "kaboom"
    existing = ProviderError(GBP, ProviderErrorCode.AUTH_REQUIRED, "x")
    assert to_provider_error(GBP, existing) is existing
    ui = to_ui_error(existing)
    assert ui.cause
    assert ui.next_action


def test_provider_status_precedence():
    settings = make_settings(
        provider_mock_mode=True,
        google_client_id="cid",
        google_client_secret="secret",
        google_redirect_uri="https://app.test/cb",
    )
    statuses = {status.type: status for status in list_provider_status(ProviderRegistry(settings))}

    assert statuses[GBP].status == ProviderStatusKind.MOCKED
    assert statuses[ProviderType.META].status == ProviderStatusKind.NOT_CONFIGURED
    assert "meta_app_id" in statuses[ProviderType.META].missing_settings
    assert statuses[ProviderType.YAHOO_PLACE].status == ProviderStatusKind.DISABLED
    assert statuses[ProviderType.APPLE_BUSINESS_CONNECT].enabled is False


def test_provider_status_enabled_when_live_and_configured():
    settings = make_settings(provider_mock_mode=False, bing_maps_key="bing")
    statuses = {status.type: status for status in list_provider_status(ProviderRegistry(settings))}
    assert statuses[ProviderType.BING_MAPS].status == ProviderStatusKind.ENABLED
