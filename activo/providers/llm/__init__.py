"""
Model Gateways for Activo.

- ModelGateway: protocol for tool-calling completion endpoints
- OllamaGateway: local Ollama server over HTTP
"""

from .base import (
    GatewayConnectionError,
    GatewayError,
    GatewayResponseError,
    MalformedResponseError,
    Message,
    MessageRole,
    ModelGateway,
    StreamEvent,
    StreamEventType,
    ToolCall,
    generate_call_id,
)
from .ollama import OllamaGateway

__all__ = [
    # Protocol and messages
    "ModelGateway",
    "Message",
    "MessageRole",
    "ToolCall",
    "StreamEvent",
    "StreamEventType",
    "generate_call_id",
    # Errors
    "GatewayError",
    "GatewayConnectionError",
    "GatewayResponseError",
    "MalformedResponseError",
    # Ollama
    "OllamaGateway",
]
