"""Tool-dispatch orchestration."""

from packages.core.orchestrator.conversations import ConversationStore
from packages.core.orchestrator.engine import Orchestrator
from packages.core.orchestrator.tools import (
    BASE_TOOLS,
    LOCAL_TOOLS,
    TOOL_ACTIONS,
    ExtensionTool,
    ToolRegistry,
    ToolSpec,
)

__all__ = [
    "BASE_TOOLS",
    "ConversationStore",
    "ExtensionTool",
    "LOCAL_TOOLS",
    "Orchestrator",
    "TOOL_ACTIONS",
    "ToolRegistry",
    "ToolSpec",
]
