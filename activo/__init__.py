"""
Activo - a tool-calling agent for code quality work against a local Ollama model.

Activo turns natural-language requests into calls against local
capabilities (file access, search, shell commands, analyzers):

- **Agent Loop**: bounded Thinking/Executing loop with cooperative cancellation
- **Model Gateway**: Ollama /api/chat client with tool calling and NDJSON streaming
- **Capabilities**: schema-validated tools with failures contained in results
- **Context Budget**: history pruned to fit the model's context window
- **Sessions**: saved conversations summarized into the next session

Quick Start:
    >>> from activo import AgentLoop, OllamaGateway, create_default_registry
    >>>
    >>> async with OllamaGateway(model="mistral:latest") as gateway:
    ...     agent = AgentLoop(gateway, create_default_registry(gateway))
    ...     result = await agent.run("Which files in src/ mention TODO?")
    ...     print(result.content)
"""

__version__ = "0.1.0"

from activo.agent import AgentLoop, AgentResult, ConversationBuffer, create_agent
from activo.providers.llm import Message, ModelGateway, OllamaGateway, ToolCall
from activo.tools import Tool, ToolRegistry, ToolResult, capability, create_default_registry
from activo.utils import CancellationToken, OperationCancelledError

__all__ = [
    "__version__",
    # Agent
    "AgentLoop",
    "AgentResult",
    "ConversationBuffer",
    "create_agent",
    # Gateway
    "ModelGateway",
    "OllamaGateway",
    "Message",
    "ToolCall",
    # Tools
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "capability",
    "create_default_registry",
    # Cancellation
    "CancellationToken",
    "OperationCancelledError",
]
