"""
Core Chatbot Logic Module

This module contains the orchestration core of the Campus Assistant:
- Capability registry: which functions exist and who may call them
- Conversation builder: the append-only turn log sent to the model
- Tool dispatcher: runs function calls against backend collaborators
- Orchestrator: the bounded tool-calling loop with its fallback
- Sanitizer: the output safety post-pass
"""

from .errors import (
    ChatbotError,
    ToolResolutionError,
    ToolExecutionError,
    ModelUnavailableError,
    ConversationError,
    DomainError,
)

from .capabilities import (
    ToolName,
    ParameterSpec,
    CapabilityDescriptor,
    CapabilityRegistry,
    ROLE_TOOLS,
    UNIVERSAL_TOOLS,
    build_default_registry,
    parse_role,
)

from .conversation import (
    Speaker,
    TextPart,
    FunctionCallPart,
    FunctionResponsePart,
    FunctionCall,
    Turn,
    Conversation,
    ConversationBuilder,
    serialize_result,
)

from .dispatcher import (
    ToolDispatcher,
    ToolResult,
)

from .sanitizer import ResponseSanitizer

from .orchestrator import (
    ChatOrchestrator,
    OrchestrationState,
    OrchestrationStatus,
)

__all__ = [
    # Errors
    "ChatbotError",
    "ToolResolutionError",
    "ToolExecutionError",
    "ModelUnavailableError",
    "ConversationError",
    "DomainError",

    # Capabilities
    "ToolName",
    "ParameterSpec",
    "CapabilityDescriptor",
    "CapabilityRegistry",
    "ROLE_TOOLS",
    "UNIVERSAL_TOOLS",
    "build_default_registry",
    "parse_role",

    # Conversation
    "Speaker",
    "TextPart",
    "FunctionCallPart",
    "FunctionResponsePart",
    "FunctionCall",
    "Turn",
    "Conversation",
    "ConversationBuilder",
    "serialize_result",

    # Dispatcher
    "ToolDispatcher",
    "ToolResult",

    # Sanitizer
    "ResponseSanitizer",

    # Orchestrator
    "ChatOrchestrator",
    "OrchestrationState",
    "OrchestrationStatus",
]
