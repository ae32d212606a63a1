"""
Activo Providers

Remote services the agent depends on. Currently only model gateways.
"""

from .llm import Message, MessageRole, ModelGateway, OllamaGateway, StreamEvent, ToolCall

__all__ = [
    "ModelGateway",
    "OllamaGateway",
    "Message",
    "MessageRole",
    "StreamEvent",
    "ToolCall",
]
