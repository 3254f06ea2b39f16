"""Exception hierarchy shared by every aimodel subsystem."""

from __future__ import annotations


class ErrorCode:
    DECODE_ERROR = "decode_error"
    UNSUPPORTED_MULTI_TOOL_CALL = "unsupported_multi_tool_call"
    INCOMPLETE_TOOL_CALL = "incomplete_tool_call"
    TRANSPORT_ERROR = "transport_error"
    OUTPUT_CONVERSION_ERROR = "output_conversion_error"


class AimodelError(Exception):
    """Base class for errors raised by the library."""

    error_code: str = "aimodel_error"


class DecodeError(AimodelError):
    """A stream frame could not be decoded into a chunk."""

    error_code = ErrorCode.DECODE_ERROR

    def __init__(self, message: str, frame: str | None = None) -> None:
        super().__init__(message)
        self.frame = frame


class UnsupportedMultiToolCallError(AimodelError):
    """A single streamed chunk carried more than one tool call."""

    error_code = ErrorCode.UNSUPPORTED_MULTI_TOOL_CALL

    def __init__(self, count: int) -> None:
        super().__init__(
            f"Currently only one tool call is supported per message, got {count}"
        )
        self.count = count


class IncompleteToolCallError(AimodelError):
    """
    The stream terminated while a tool-call window was still open.

    Only raised when the aggregator runs in strict mode; by default the
    unfinished window is dropped.
    """

    error_code = ErrorCode.INCOMPLETE_TOOL_CALL

    def __init__(self, tool_call_id: str | None = None) -> None:
        super().__init__(
            f"Stream ended before tool call {tool_call_id or '<unknown>'} finished"
        )
        self.tool_call_id = tool_call_id


class TransportError(AimodelError):
    """HTTP-level failure talking to a model provider."""

    error_code = ErrorCode.TRANSPORT_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OutputConversionError(AimodelError):
    """Model output could not be converted into the requested type."""

    error_code = ErrorCode.OUTPUT_CONVERSION_ERROR

    def __init__(self, message: str, text: str | None = None) -> None:
        super().__init__(message)
        self.text = text
