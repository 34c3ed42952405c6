"""Per-provider stream decoders."""

from durapack.llm.decoders.anthropic import AnthropicDecoder
from durapack.llm.decoders.base import StreamDecoder, ToolCallFragment
from durapack.llm.decoders.bedrock import BedrockDecoder
from durapack.llm.decoders.ollama import OllamaDecoder
from durapack.llm.decoders.openai import OpenAIDecoder
from durapack.llm.decoders.openrouter import OpenRouterDecoder

__all__ = [
    "AnthropicDecoder",
    "BedrockDecoder",
    "OllamaDecoder",
    "OpenAIDecoder",
    "OpenRouterDecoder",
    "StreamDecoder",
    "ToolCallFragment",
]
