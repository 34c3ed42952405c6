from __future__ import annotations

from pathlib import Path

import pytest

from durapack.capabilities import DurableEmbed, DurableVector
from durapack.llm import DurableLLM
from durapack.providers import (
    ProviderRegistryError,
    create_chat,
    create_embed,
    create_vector,
    get_provider,
    initialize_default_providers,
    list_providers,
    load_providers_from_plugins,
    register_provider,
    reset_provider_registry,
)
from durapack.providers.fake import FakeChat


def test_defaults_cover_every_capability() -> None:
    keys = list_providers()

    assert ("chat", "anthropic") in keys
    assert ("chat", "bedrock") in keys
    assert ("chat", "ollama") in keys
    assert ("chat", "openai") in keys
    assert ("chat", "openrouter") in keys
    assert ("embed", "cohere") in keys
    assert ("stt", "openai") in keys
    assert ("websearch", "brave") in keys
    assert ("video", "fake") in keys
    assert ("vector", "qdrant") in keys


def test_list_providers_filters_by_capability() -> None:
    assert list_providers(" Embed ") == (("embed", "cohere"), ("embed", "fake"), ("embed", "openai"))


def test_factories_wrap_providers_in_durable_facades() -> None:
    assert isinstance(create_chat("FAKE"), DurableLLM)
    assert isinstance(create_embed("fake"), DurableEmbed)
    assert isinstance(create_vector("memory"), DurableVector)


def test_unknown_lookups_fail() -> None:
    with pytest.raises(ProviderRegistryError, match="not registered"):
        get_provider("chat", "missing")
    with pytest.raises(ProviderRegistryError, match="Unknown capability"):
        get_provider("telepathy", "fake")


def test_duplicate_registration_requires_overwrite() -> None:
    with pytest.raises(ProviderRegistryError, match="already registered"):
        register_provider("chat", "fake", FakeChat)

    try:
        register_provider("chat", "fake", lambda: FakeChat(chunks=("custom",)), overwrite=True)
        assert get_provider("chat", "fake").chunks == ("custom",)
    finally:
        initialize_default_providers(overwrite=True)


def test_plugin_hook_registers_entrypoint(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    plugin_module = tmp_path / "chat_plugin_fixture.py"
    plugin_module.write_text(
        "\n".join(
            [
                "from durapack.providers.fake import FakeChat",
                "",
                "def create():",
                "    return FakeChat(chunks=('from plugin',))",
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(tmp_path))

    reset_provider_registry()
    initialize_default_providers()
    try:
        load_providers_from_plugins({"chat:plugin-chat": "chat_plugin_fixture:create"})
        assert ("chat", "plugin-chat") in list_providers("chat")
        assert get_provider("chat", "plugin-chat").chunks == ("from plugin",)
    finally:
        reset_provider_registry()
        initialize_default_providers()


def test_plugin_key_must_name_capability() -> None:
    with pytest.raises(ProviderRegistryError, match="Expected capability:name"):
        load_providers_from_plugins({"plugin-chat": "chat_plugin_fixture:create"})


def test_entrypoint_requires_separator() -> None:
    with pytest.raises(ProviderRegistryError, match="Expected module:attribute"):
        load_providers_from_plugins({"chat:bad": "no_separator"})
