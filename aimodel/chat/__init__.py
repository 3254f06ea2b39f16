"""Chat abstractions -- messages, prompts, templates, options and responses."""

from aimodel.chat.media import Media, MediaFormat
from aimodel.chat.messages import (
    AssistantMessage,
    Message,
    MessageType,
    SystemMessage,
    ToolCall,
    ToolResponse,
    ToolResponseMessage,
    UserMessage,
)
from aimodel.chat.options import ChatOptions
from aimodel.chat.prompt import Prompt
from aimodel.chat.response import (
    ChatGenerationMetadata,
    ChatResponse,
    ChatResponseMetadata,
    Generation,
    Usage,
)
from aimodel.chat.template import PromptTemplate

__all__ = [
    "AssistantMessage",
    "ChatGenerationMetadata",
    "ChatOptions",
    "ChatResponse",
    "ChatResponseMetadata",
    "Generation",
    "Media",
    "MediaFormat",
    "Message",
    "MessageType",
    "Prompt",
    "PromptTemplate",
    "SystemMessage",
    "ToolCall",
    "ToolResponse",
    "ToolResponseMessage",
    "Usage",
    "UserMessage",
]
