"""Per-provider availability for the settings screen."""

from teppen.models.enums import ProviderStatusKind
from teppen.models.provider import ProviderStatus
from teppen.providers.registry import ProviderRegistry


def list_provider_status(registry: ProviderRegistry) -> list[ProviderStatus]:
    """Disabled beats not_configured, which beats mocked."""
    statuses = []
    for adapter in registry.all():
        enabled = adapter.is_enabled()
        missing = adapter.missing_settings()

        if not enabled:
            status = ProviderStatusKind.DISABLED
        elif missing:
            status = ProviderStatusKind.NOT_CONFIGURED
        elif adapter.mock_mode:
            status = ProviderStatusKind.MOCKED
        else:
            status = ProviderStatusKind.ENABLED

        statuses.append(
            ProviderStatus(
                type=adapter.provider_type,
                name=adapter.display_name,
                enabled=enabled,
                status=status,
                required_settings=list(adapter.required_settings),
                missing_settings=missing,
                capabilities=adapter.capabilities.model_dump(),
                feature_flag=adapter.feature_flag,
            )
        )
    return statuses
