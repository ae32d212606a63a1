"""
Activo Utilities

Primitives shared by the gateway and the agent loop.
"""

from .cancellation import CancellationToken, OperationCancelledError
from .channel import Channel, ChannelClosedError
from .json_parser import (
    clean_json_string,
    extract_json_from_text,
    parse_json_safely,
    parse_tool_arguments,
)

__all__ = [
    "CancellationToken",
    "OperationCancelledError",
    "Channel",
    "ChannelClosedError",
    "extract_json_from_text",
    "clean_json_string",
    "parse_json_safely",
    "parse_tool_arguments",
]
