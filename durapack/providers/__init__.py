"""Provider implementations and the capability registry."""

from durapack.providers.http import HttpClient
from durapack.providers.registry import (
    CAPABILITIES,
    ProviderRegistryError,
    create_chat,
    create_embed,
    create_stt,
    create_vector,
    create_video,
    create_websearch,
    get_provider,
    initialize_default_providers,
    list_providers,
    load_providers_from_plugins,
    register_provider,
    register_provider_entrypoint,
    reset_provider_registry,
)

initialize_default_providers()

__all__ = [
    "CAPABILITIES",
    "HttpClient",
    "ProviderRegistryError",
    "create_chat",
    "create_embed",
    "create_stt",
    "create_vector",
    "create_video",
    "create_websearch",
    "get_provider",
    "initialize_default_providers",
    "list_providers",
    "load_providers_from_plugins",
    "register_provider",
    "register_provider_entrypoint",
    "reset_provider_registry",
]
