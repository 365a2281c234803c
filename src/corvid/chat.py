"""Chat completion queries and results.

Streamed completions arrive as :class:`ChatStreamResult` deltas. The
:class:`ChatStreamAccumulator` reassembles the message, including tool
calls whose arguments arrive in fragments across multiple deltas.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from corvid.message import ChatMessage, MessageRole, ToolCall, ToolCallFunction


class ChatQuery(BaseModel):
    model: str
    messages: list[ChatMessage]
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    stop: str | list[str] | None = None
    max_tokens: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    logit_bias: dict[str, int] | None = None
    seed: int | None = None
    user: str | None = None
    tools: list[dict[str, Any]] | None = None
    tool_choice: str | dict[str, Any] | None = None
    response_format: dict[str, Any] | None = None
    stream: bool | None = None

    def make_streamable(self) -> ChatQuery:
        return self.model_copy(update={"stream": True})


class Usage(BaseModel):
    prompt_tokens: int
    completion_tokens: int | None = None
    total_tokens: int


class ChatChoice(BaseModel):
    index: int
    message: ChatMessage
    finish_reason: str | None = None


class ChatResult(BaseModel):
    id: str
    object: str
    created: int
    model: str
    choices: list[ChatChoice]
    usage: Usage | None = None
    system_fingerprint: str | None = None


class ToolCallFunctionDelta(BaseModel):
    name: str | None = None
    arguments: str | None = None


class ToolCallDelta(BaseModel):
    index: int
    id: str | None = None
    type: str | None = None
    function: ToolCallFunctionDelta | None = None


class ChoiceDelta(BaseModel):
    role: MessageRole | None = None
    content: str | None = None
    tool_calls: list[ToolCallDelta] | None = None


class ChatStreamChoice(BaseModel):
    index: int
    delta: ChoiceDelta
    finish_reason: str | None = None


class ChatStreamResult(BaseModel):
    """One ``chat.completion.chunk`` event of a streamed completion."""

    id: str
    object: str
    created: int
    model: str
    choices: list[ChatStreamChoice]
    usage: Usage | None = None
    system_fingerprint: str | None = None


class ChatStreamAccumulator:
    """Assembles the complete message of one choice from streamed deltas."""

    def __init__(self, choice_index: int = 0) -> None:
        self.choice_index = choice_index
        self.role = MessageRole.ASSISTANT
        self.finish_reason: str | None = None
        self._content: list[str] = []
        self._tool_calls: dict[int, ToolCall] = {}

    def feed(self, result: ChatStreamResult) -> None:
        for choice in result.choices:
            if choice.index != self.choice_index:
                continue
            delta = choice.delta
            if delta.role is not None:
                self.role = delta.role
            if delta.content:
                self._content.append(delta.content)
            for fragment in delta.tool_calls or []:
                self._feed_tool_call(fragment)
            if choice.finish_reason is not None:
                self.finish_reason = choice.finish_reason

    def _feed_tool_call(self, fragment: ToolCallDelta) -> None:
        if fragment.index not in self._tool_calls:
            self._tool_calls[fragment.index] = ToolCall(
                id="", function=ToolCallFunction(name="")
            )
        tc = self._tool_calls[fragment.index]
        if fragment.id is not None:
            tc.id = fragment.id
        if fragment.type is not None:
            tc.type = fragment.type
        if fragment.function is None:
            return
        if fragment.function.name is not None:
            tc.function.name = fragment.function.name
        if fragment.function.arguments is not None:
            tc.function.arguments += fragment.function.arguments

    @property
    def content(self) -> str:
        return "".join(self._content)

    def finalize(self) -> ChatMessage:
        """Return the message, tool calls in index order."""
        tool_calls = [self._tool_calls[i] for i in sorted(self._tool_calls)]
        return ChatMessage(
            role=self.role,
            content=self.content or None,
            tool_calls=tool_calls or None,
        )
