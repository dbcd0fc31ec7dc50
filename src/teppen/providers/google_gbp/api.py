"""Google Business Profile REST calls.

Every public function takes a bearer token and raises ``ProviderError`` with a
taxonomy code on failure (see :func:`map_google_api_error`).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from teppen.models.enums import PostStatus, ProviderErrorCode, ProviderType
from teppen.providers.errors import ProviderError
from teppen.providers.types import ProviderLocation, ProviderPost, ProviderReview
from teppen.utils.http import HttpError, request_json

logger = logging.getLogger(__name__)

ACCOUNTS_ENDPOINT = "https://mybusinessaccountmanagement.googleapis.com/v1/accounts"
BUSINESS_INFO_ENDPOINT = "https://mybusinessbusinessinformation.googleapis.com/v1"
REVIEW_ENDPOINT = "https://mybusiness.googleapis.com/v4"

LOCATION_READ_MASK = "name,title,storeCode,address,metadata,latlng"
LOCATION_PAGE_SIZE = 100
REVIEW_PAGE_SIZE = 50

_STAR_RATINGS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}

_PROVIDER = ProviderType.GOOGLE_BUSINESS_PROFILE


def map_google_api_error(error: BaseException, fallback: str) -> ProviderError:
    if isinstance(error, ProviderError):
        return error
    if isinstance(error, HttpError):
        status = error.status
        if status == 401:
            return ProviderError(
                _PROVIDER, ProviderErrorCode.AUTH_REQUIRED,
                "認証が無効です。再認可してください。", status,
            )
        if status == 403:
            return ProviderError(
                _PROVIDER, ProviderErrorCode.AUTH_REQUIRED,
                "API承認または権限が不足しています。申請後に再接続してください。", status,
            )
        if status == 429:
            return ProviderError(
                _PROVIDER, ProviderErrorCode.RATE_LIMITED,
                "レート制限に達しました。しばらく待って再実行してください。", status,
            )
        if status >= 500:
            return ProviderError(
                _PROVIDER, ProviderErrorCode.UPSTREAM_ERROR,
                "Google側のエラーが発生しました。時間をおいて再実行してください。", status,
            )
    return ProviderError(_PROVIDER, ProviderErrorCode.UNKNOWN, fallback)


def map_star_rating(value: str | int | float | None) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    if not value:
        return 0.0
    return float(_STAR_RATINGS.get(value, 0))


def format_address(address: dict[str, Any] | None) -> str | None:
    if not address:
        return None
    parts = [
        *(address.get("addressLines") or []),
        address.get("locality"),
        address.get("administrativeArea"),
        address.get("postalCode"),
        address.get("regionCode"),
    ]
    parts = [part for part in parts if part]
    return " ".join(parts) if parts else None


def extract_review_id(review: dict[str, Any]) -> str:
    if review.get("reviewId"):
        return review["reviewId"]
    if review.get("name"):
        return review["name"].rsplit("/", 1)[-1]
    return "unknown"


def _auth_headers(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


async def _list_accounts(
    access_token: str, client: httpx.AsyncClient | None
) -> list[dict[str, Any]]:
    accounts: list[dict[str, Any]] = []
    page_token: str | None = None
    while True:
        params = {"pageToken": page_token} if page_token else None
        response = await request_json(
            ACCOUNTS_ENDPOINT, headers=_auth_headers(access_token), params=params, client=client
        ) or {}
        accounts.extend(response.get("accounts") or [])
        page_token = response.get("nextPageToken")
        if not page_token:
            return accounts


async def _list_locations_for_account(
    access_token: str, account: dict[str, Any], client: httpx.AsyncClient | None
) -> list[ProviderLocation]:
    locations: list[ProviderLocation] = []
    account_label = account.get("accountName") or account["name"]
    page_token: str | None = None
    while True:
        params: dict[str, Any] = {"readMask": LOCATION_READ_MASK, "pageSize": LOCATION_PAGE_SIZE}
        if page_token:
            params["pageToken"] = page_token
        response = await request_json(
            f"{BUSINESS_INFO_ENDPOINT}/{account['name']}/locations",
            headers=_auth_headers(access_token),
            params=params,
            client=client,
        ) or {}
        for location in response.get("locations") or []:
            latlng = location.get("latlng") or {}
            locations.append(
                ProviderLocation(
                    id=location["name"],
                    name=location.get("title") or location["name"],
                    address=format_address(location.get("address")),
                    lat=latlng.get("latitude"),
                    lng=latlng.get("longitude"),
                    metadata={
                        "account_name": account_label,
                        "account_resource": account["name"],
                        "store_code": location.get("storeCode"),
                        "place_id": (location.get("metadata") or {}).get("placeId"),
                    },
                )
            )
        page_token = response.get("nextPageToken")
        if not page_token:
            return locations


async def list_google_locations(
    access_token: str, client: httpx.AsyncClient | None = None
) -> list[ProviderLocation]:
    """All locations across every account the token can see."""
    try:
        results: list[ProviderLocation] = []
        for account in await _list_accounts(access_token, client):
            results.extend(await _list_locations_for_account(access_token, account, client))
        return results
    except (HttpError, httpx.HTTPError, KeyError) as exc:
        raise map_google_api_error(exc, "GBPロケーションの取得に失敗しました。") from exc


async def list_google_reviews(
    access_token: str, location_name: str, client: httpx.AsyncClient | None = None
) -> list[ProviderReview]:
    try:
        reviews: list[ProviderReview] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"pageSize": REVIEW_PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            response = await request_json(
                f"{REVIEW_ENDPOINT}/{location_name}/reviews",
                headers=_auth_headers(access_token),
                params=params,
                client=client,
            ) or {}
            for review in response.get("reviews") or []:
                reviews.append(
                    ProviderReview(
                        id=extract_review_id(review),
                        rating=map_star_rating(review.get("starRating")),
                        author=(review.get("reviewer") or {}).get("displayName"),
                        comment=review.get("comment"),
                        created_at=review.get("createTime") or datetime.now(timezone.utc),
                    )
                )
            page_token = response.get("nextPageToken")
            if not page_token:
                return reviews
    except (HttpError, httpx.HTTPError) as exc:
        raise map_google_api_error(exc, "GBPレビューの取得に失敗しました。") from exc


async def reply_google_review(
    access_token: str,
    location_name: str,
    review_id: str,
    reply: str,
    client: httpx.AsyncClient | None = None,
) -> None:
    try:
        await request_json(
            f"{REVIEW_ENDPOINT}/{location_name}/reviews/{review_id}/reply",
            "PUT",
            headers=_auth_headers(access_token),
            json_body={"comment": reply},
            client=client,
        )
    except (HttpError, httpx.HTTPError) as exc:
        raise map_google_api_error(exc, "GBPレビュー返信に失敗しました。") from exc


async def create_google_post(
    access_token: str,
    location_name: str,
    summary: str,
    image_url: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> ProviderPost:
    """Publish a STANDARD local post. ``media`` is omitted without an image."""
    body: dict[str, Any] = {
        "languageCode": "ja",
        "summary": summary,
        "topicType": "STANDARD",
    }
    if image_url:
        body["media"] = [{"mediaFormat": "PHOTO", "sourceUrl": image_url}]
    try:
        response = await request_json(
            f"{REVIEW_ENDPOINT}/{location_name}/localPosts",
            "POST",
            headers=_auth_headers(access_token),
            json_body=body,
            client=client,
        ) or {}
    except (HttpError, httpx.HTTPError) as exc:
        raise map_google_api_error(exc, "GBP投稿の作成に失敗しました。") from exc

    name = response.get("name") or ""
    return ProviderPost(
        id=name.rsplit("/", 1)[-1] or "unknown",
        content=summary,
        media_urls=[image_url] if image_url else [],
        status=PostStatus.PUBLISHED,
    )
