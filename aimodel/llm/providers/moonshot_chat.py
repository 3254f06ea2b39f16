"""``ChatModel`` implementation backed by ``MoonshotApi``."""

from __future__ import annotations

import logging
from typing import AsyncIterator

from aimodel.chat.messages import (
    AssistantMessage,
    Message,
    MessageType,
    ToolCall,
    ToolResponseMessage,
)
from aimodel.chat.prompt import Prompt
from aimodel.chat.response import (
    EMPTY_USAGE,
    ChatGenerationMetadata,
    ChatResponse,
    ChatResponseMetadata,
    Generation,
    Usage,
    cumulative_usage,
)
from aimodel.llm import types as api
from aimodel.llm.providers.base import ChatModel
from aimodel.llm.providers.moonshot import MoonshotApi
from aimodel.llm.providers.moonshot_options import MoonshotChatOptions

logger = logging.getLogger(__name__)


def _to_usage(usage: api.Usage | None) -> Usage:
    if usage is None:
        return EMPTY_USAGE
    return Usage(
        prompt_tokens=usage.prompt_tokens or 0,
        completion_tokens=usage.completion_tokens or 0,
        total_tokens=usage.total_tokens,
        native=usage,
    )


def _build_generation(choice: api.Choice, metadata: dict) -> Generation:
    message = choice.message or api.ChatCompletionMessage()
    tool_calls = [
        ToolCall(
            id=tc.id or "",
            type="function",
            name=(tc.function.name if tc.function else None) or "",
            arguments=(tc.function.arguments if tc.function else None) or "",
        )
        for tc in message.tool_calls or ()
    ]
    finish_reason = choice.finish_reason.name if choice.finish_reason else ""
    return Generation(
        AssistantMessage(message.content, metadata, tool_calls=tool_calls),
        ChatGenerationMetadata(finish_reason=finish_reason),
    )


def chunk_to_chat_completion(chunk: api.ChatCompletionChunk) -> api.ChatCompletion:
    """
    Convert a streamed chunk into a ``ChatCompletion``.

    A choice without a delta becomes an empty assistant message; usage is
    taken from the last choice.
    """
    choices = tuple(
        api.Choice(
            index=cc.index,
            message=cc.delta or api.ChatCompletionMessage(content="", role=api.Role.ASSISTANT),
            finish_reason=cc.finish_reason,
            usage=cc.usage,
        )
        for cc in chunk.choices
    )
    usage = choices[-1].usage if choices else None
    return api.ChatCompletion(
        id=chunk.id,
        object="chat.completion",
        created=chunk.created,
        model=chunk.model,
        choices=choices,
        usage=usage,
    )


class MoonshotChatModel(ChatModel):
    """
    Chat model for Moonshot.

    Parameters
    ----------
    moonshot_api:
        The HTTP client.
    default_options:
        Options applied to every request; prompt options override them.
    strict_tool_calls:
        Raise ``IncompleteToolCallError`` when a stream ends mid tool call
        instead of dropping the call.
    """

    def __init__(
        self,
        moonshot_api: MoonshotApi,
        default_options: MoonshotChatOptions | None = None,
        *,
        strict_tool_calls: bool = False,
    ) -> None:
        if moonshot_api is None:
            raise ValueError("MoonshotApi must not be None")
        self._api = moonshot_api
        self._default_options = default_options or MoonshotChatOptions(
            model=api.DEFAULT_CHAT_MODEL, temperature=0.7, top_p=1.0
        )
        self.strict_tool_calls = strict_tool_calls

    @property
    def default_options(self) -> MoonshotChatOptions:
        return self._default_options.copy()

    # ------------------------------------------------------------------
    # Blocking calls
    # ------------------------------------------------------------------

    async def call(self, prompt: Prompt) -> ChatResponse:
        return await self.internal_call(prompt, None)

    async def internal_call(
        self,
        prompt: Prompt,
        previous_response: ChatResponse | None,
    ) -> ChatResponse:
        request = self.create_request(prompt, stream=False)
        completion = await self._api.chat_completion_entity(request)

        if completion.choices is None:
            logger.warning("No choices returned for prompt: %s", prompt)
            return ChatResponse([])

        generations = []
        for choice in completion.choices:
            role = choice.message.role if choice.message else None
            metadata = {
                "id": completion.id,
                "role": role.name if role else "",
                "finish_reason": choice.finish_reason.name if choice.finish_reason else "",
            }
            generations.append(_build_generation(choice, metadata))

        usage = cumulative_usage(_to_usage(completion.usage), previous_response)
        return ChatResponse(generations, self._response_metadata(completion, usage))

    # ------------------------------------------------------------------
    # Streaming calls
    # ------------------------------------------------------------------

    async def stream(self, prompt: Prompt) -> AsyncIterator[ChatResponse]:
        async for response in self.internal_stream(prompt, None):
            yield response

    async def internal_stream(
        self,
        prompt: Prompt,
        previous_response: ChatResponse | None,
    ) -> AsyncIterator[ChatResponse]:
        request = self.create_request(prompt, stream=True)

        # Only the first chunk of a response carries the role; later chunks
        # with the same id share it.
        role_map: dict[str | None, str] = {}

        async for chunk in self._api.chat_completion_stream(
            request, strict=self.strict_tool_calls
        ):
            completion = chunk_to_chat_completion(chunk)
            response_id = completion.id

            generations = []
            for choice in completion.choices or ():
                role = choice.message.role if choice.message else None
                if role is not None:
                    role_map.setdefault(response_id, role.name)
                metadata = {
                    "id": response_id,
                    "role": role_map.get(response_id, ""),
                    "finish_reason": choice.finish_reason.name if choice.finish_reason else "",
                }
                generations.append(_build_generation(choice, metadata))

            usage = cumulative_usage(_to_usage(completion.usage), previous_response)
            yield ChatResponse(generations, self._response_metadata(completion, usage))

    # ------------------------------------------------------------------
    # Request / response mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _response_metadata(
        completion: api.ChatCompletion, usage: Usage
    ) -> ChatResponseMetadata:
        metadata = ChatResponseMetadata(
            id=completion.id or "",
            model=completion.model or "",
            usage=usage,
        )
        return metadata.with_value("created", completion.created or 0)

    @staticmethod
    def _to_api_messages(message: Message) -> list[api.ChatCompletionMessage]:
        kind = message.message_type
        if kind in (MessageType.USER, MessageType.SYSTEM):
            return [api.ChatCompletionMessage(content=message.text, role=api.Role(kind.value))]

        if kind is MessageType.ASSISTANT:
            tool_calls = None
            if message.tool_calls:
                tool_calls = tuple(
                    api.ToolCall(
                        id=tc.id,
                        type=tc.type,
                        function=api.ChatCompletionFunction(tc.name, tc.arguments),
                    )
                    for tc in message.tool_calls
                )
            return [api.ChatCompletionMessage(
                content=message.text,
                role=api.Role.ASSISTANT,
                tool_calls=tool_calls,
            )]

        if kind is MessageType.TOOL:
            assert isinstance(message, ToolResponseMessage)
            for response in message.responses:
                if response.id is None:
                    raise ValueError("ToolResponseMessage must have an id")
            return [
                api.ChatCompletionMessage(
                    content=response.response_data,
                    role=api.Role.TOOL,
                    name=response.name,
                    tool_call_id=response.id,
                )
                for response in message.responses
            ]

        raise ValueError(f"Unsupported message type: {kind}")

    def create_request(self, prompt: Prompt, stream: bool) -> api.ChatCompletionRequest:
        """Build the wire request for *prompt*; exposed for testing."""
        messages: list[api.ChatCompletionMessage] = []
        for message in prompt.messages:
            messages.extend(self._to_api_messages(message))

        options = self._default_options.merge(prompt.options)
        tools = list(options.tools) if options.tools else None
        if options.functions and options.tools:
            tools = [t for t in options.tools if t.function.name in options.functions]

        return api.ChatCompletionRequest(
            messages=messages,
            model=options.model or api.DEFAULT_CHAT_MODEL,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
            top_p=options.top_p,
            n=options.n,
            frequency_penalty=options.frequency_penalty,
            presence_penalty=options.presence_penalty,
            stop=options.stop,
            stream=stream,
            tools=tools,
            tool_choice=options.tool_choice,
            user=options.user,
        )
