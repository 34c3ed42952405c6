"""Provider registry keyed by capability and provider name, with plugin hooks."""

from __future__ import annotations

import importlib
from typing import Any, Callable

from durapack.capabilities.embed import DurableEmbed
from durapack.capabilities.stt import DurableStt
from durapack.capabilities.vector import DurableVector
from durapack.capabilities.video import DurableVideo
from durapack.capabilities.websearch import DurableWebSearch
from durapack.llm.durable import DurableLLM

CAPABILITIES = ("chat", "embed", "stt", "websearch", "video", "vector")

ProviderFactory = Callable[[], Any]
_PROVIDER_REGISTRY: dict[tuple[str, str], ProviderFactory] = {}


class ProviderRegistryError(ValueError):
    """Raised when provider registration or lookup fails."""


def _normalize(capability: str, name: str) -> tuple[str, str]:
    normalized_capability = capability.strip().lower()
    normalized_name = name.strip().lower()
    if normalized_capability not in CAPABILITIES:
        raise ProviderRegistryError(f"Unknown capability '{capability}'.")
    if not normalized_name:
        raise ProviderRegistryError("Provider name cannot be empty.")
    return normalized_capability, normalized_name


def register_provider(
    capability: str,
    name: str,
    factory: ProviderFactory,
    *,
    overwrite: bool = False,
) -> None:
    key = _normalize(capability, name)
    if not overwrite and key in _PROVIDER_REGISTRY:
        raise ProviderRegistryError(f"Provider '{key[1]}' is already registered for {key[0]}.")
    _PROVIDER_REGISTRY[key] = factory


def register_provider_entrypoint(
    capability: str,
    name: str,
    entrypoint: str,
    *,
    overwrite: bool = False,
) -> None:
    module_name, separator, attr = entrypoint.partition(":")
    if not separator:
        raise ProviderRegistryError(
            f"Invalid provider entrypoint '{entrypoint}'. Expected module:attribute."
        )
    module = importlib.import_module(module_name)
    target = getattr(module, attr)
    if not callable(target):
        raise ProviderRegistryError(f"Provider entrypoint '{entrypoint}' is not callable.")
    register_provider(capability, name, target, overwrite=overwrite)


def get_provider(capability: str, name: str) -> Any:
    key = _normalize(capability, name)
    if key not in _PROVIDER_REGISTRY:
        raise ProviderRegistryError(f"Provider '{key[1]}' is not registered for {key[0]}.")
    return _PROVIDER_REGISTRY[key]()


def list_providers(capability: str | None = None) -> tuple[tuple[str, str], ...]:
    keys = sorted(_PROVIDER_REGISTRY)
    if capability is not None:
        wanted = capability.strip().lower()
        keys = [key for key in keys if key[0] == wanted]
    return tuple(keys)


def reset_provider_registry() -> None:
    _PROVIDER_REGISTRY.clear()


def initialize_default_providers(*, overwrite: bool = False) -> None:
    from durapack.providers.anthropic import AnthropicChat
    from durapack.providers.bedrock import BedrockChat
    from durapack.providers.brave import BraveWebSearch
    from durapack.providers.cohere import CohereEmbed
    from durapack.providers.fake import FakeChat, FakeEmbed, FakeStt, FakeVideo, FakeWebSearch, MemoryVector
    from durapack.providers.ollama import OllamaChat
    from durapack.providers.openai import OpenAIChat, OpenAIEmbed, OpenAIStt
    from durapack.providers.openrouter import OpenRouterChat
    from durapack.providers.qdrant import QdrantVector

    defaults: dict[tuple[str, str], ProviderFactory] = {
        ("chat", "anthropic"): AnthropicChat,
        ("chat", "bedrock"): BedrockChat,
        ("chat", "fake"): FakeChat,
        ("chat", "ollama"): OllamaChat,
        ("chat", "openai"): OpenAIChat,
        ("chat", "openrouter"): OpenRouterChat,
        ("embed", "cohere"): CohereEmbed,
        ("embed", "fake"): FakeEmbed,
        ("embed", "openai"): OpenAIEmbed,
        ("stt", "fake"): FakeStt,
        ("stt", "openai"): OpenAIStt,
        ("websearch", "brave"): BraveWebSearch,
        ("websearch", "fake"): FakeWebSearch,
        ("video", "fake"): FakeVideo,
        ("vector", "memory"): MemoryVector,
        ("vector", "qdrant"): QdrantVector,
    }
    for key, factory in defaults.items():
        if key in _PROVIDER_REGISTRY and not overwrite:
            continue
        register_provider(key[0], key[1], factory, overwrite=True)


def load_providers_from_plugins(
    plugins: dict[str, str] | None = None,
    *,
    overwrite: bool = False,
) -> None:
    """Register providers from a ``{"capability:name": "module:attribute"}`` mapping."""
    if not plugins:
        return
    for key, entrypoint in plugins.items():
        capability, separator, name = key.partition(":")
        if not separator:
            raise ProviderRegistryError(f"Invalid plugin key '{key}'. Expected capability:name.")
        register_provider_entrypoint(capability, name, entrypoint, overwrite=overwrite)


def create_chat(name: str) -> DurableLLM:
    return DurableLLM(get_provider("chat", name))


def create_embed(name: str) -> DurableEmbed:
    return DurableEmbed(get_provider("embed", name))


def create_stt(name: str) -> DurableStt:
    return DurableStt(get_provider("stt", name))


def create_websearch(name: str) -> DurableWebSearch:
    return DurableWebSearch(get_provider("websearch", name))


def create_video(name: str) -> DurableVideo:
    return DurableVideo(get_provider("video", name))


def create_vector(name: str) -> DurableVector:
    return DurableVector(get_provider("vector", name))
