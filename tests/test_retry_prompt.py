from durapack.llm import (
    Message,
    StreamDelta,
    Text,
    ToolCall,
    build_labelled_retry_prompt,
    build_retry_prompt,
    render_tool_call,
)
from durapack.llm.durable import retry_prompt_for
from durapack.llm.retry import INTERRUPTED_INSTRUCTIONS, ORIGINAL_QUESTION_LABEL, PARTIAL_RESPONSE_LABEL
from durapack.providers.anthropic import AnthropicChat
from durapack.providers.ollama import OllamaChat
from durapack.providers.openrouter import OpenRouterChat


def test_retry_prompt_wraps_original_events_and_partial_result() -> None:
    original = [Message.text("system", "be brief"), Message.text("user", "Tell me a story")]
    partial = [StreamDelta(content=[Text("Once upon ")])]

    prompt = build_retry_prompt(original, partial)

    assert prompt[0] == Message(role="system", content=[Text(INTERRUPTED_INSTRUCTIONS), Text(ORIGINAL_QUESTION_LABEL)])
    assert prompt[1:3] == original
    assert prompt[3] == Message(role="user", content=[Text(PARTIAL_RESPONSE_LABEL), Text("Once upon ")])


def test_tool_calls_are_rendered_as_escaped_tags() -> None:
    call = ToolCall(id="t1", name="calc", arguments_json='{"expr": "1 < 2 & \\"x\\""}')

    rendered = render_tool_call(call)

    assert rendered == (
        '<tool-call id="t1" name="calc" '
        'arguments="{&quot;expr&quot;: &quot;1 &lt; 2 &amp; \\&quot;x\\&quot;&quot;}"/>'
    )


def test_partial_tool_calls_follow_their_delta_content() -> None:
    partial = [
        StreamDelta(content=[Text("Let me check. ")]),
        StreamDelta(tool_calls=[ToolCall(id="t1", name="now", arguments_json="")]),
    ]

    prompt = build_retry_prompt([Message.text("user", "time?")], partial)

    assert prompt[-1].content == [
        Text(PARTIAL_RESPONSE_LABEL),
        Text("Let me check. "),
        Text('<tool-call id="t1" name="now" arguments=""/>'),
    ]


def test_labelled_variant_splits_instructions_and_label() -> None:
    original = [Message.text("user", "Tell me a story")]

    prompt = build_labelled_retry_prompt(original, [StreamDelta(content=[Text("Once")])])

    assert prompt[0].role == "system"
    assert "\n" not in prompt[0].content[0].text
    assert prompt[1] == Message.text("user", ORIGINAL_QUESTION_LABEL)
    assert prompt[2] == original[0]
    assert prompt[3].content == [Text(PARTIAL_RESPONSE_LABEL), Text("Once")]


def test_providers_pick_their_retry_prompt() -> None:
    assert retry_prompt_for(AnthropicChat()) is build_retry_prompt
    assert retry_prompt_for(OpenRouterChat()) is build_labelled_retry_prompt
    assert retry_prompt_for(OllamaChat()) is build_labelled_retry_prompt
