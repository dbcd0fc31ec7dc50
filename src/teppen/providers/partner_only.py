"""Partner-only providers.

Both are listed for status display behind a feature flag. Their APIs are not
open to us, so connecting always fails with ``not_supported``.
"""

from teppen.models.enums import ProviderErrorCode, ProviderType
from teppen.providers.base import ProviderAdapter
from teppen.providers.errors import ProviderError
from teppen.providers.types import ProviderCapabilities


class _PartnerOnlyAdapter(ProviderAdapter):
    capabilities = ProviderCapabilities(can_connect_oauth=True)
    partner_message = ""

    async def get_auth_url(self, state: str, redirect_uri: str | None = None) -> str:
        raise ProviderError(self.provider_type, ProviderErrorCode.NOT_SUPPORTED, self.partner_message)


class YahooPlaceAdapter(_PartnerOnlyAdapter):
    provider_type = ProviderType.YAHOO_PLACE
    display_name = "Yahoo!プレイス"
    feature_flag = "yahoo_place_enabled"
    partner_message = "Yahoo!プレイスはパートナー限定です。手順書を確認してください。"


class AppleBusinessConnectAdapter(_PartnerOnlyAdapter):
    provider_type = ProviderType.APPLE_BUSINESS_CONNECT
    display_name = "Apple Business Connect"
    feature_flag = "apple_business_connect_enabled"
    partner_message = "Apple Business ConnectのAPIはパートナー限定です。"
